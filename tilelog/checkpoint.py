"""Fast, unverified parsing of checkpoints produced by this log."""

from __future__ import annotations

import base64
import binascii
import re

_DIGITS = re.compile(rb"[0-9]+")
_MAX_UINT64 = (1 << 64) - 1


class CheckpointError(ValueError):
    """Raised when a checkpoint cannot be parsed."""


def parse_checkpoint_unsafe(raw: bytes | str) -> tuple[str, int, bytes]:
    """Return the origin, size and root hash of a checkpoint.

    The note signatures are not verified, so this is only safe for
    checkpoints known to come from the log itself.
    """
    if isinstance(raw, str):
        raw = raw.encode()
    parts = bytes(raw).split(b"\n", 3)
    if len(parts) != 4:
        raise CheckpointError(f"invalid checkpoint: {raw!r}")
    origin_raw, size_raw, hash_raw, _ = parts

    if not _DIGITS.fullmatch(size_raw) or int(size_raw) > _MAX_UINT64:
        raise CheckpointError(
            f"failed to turn checkpoint size of {size_raw.decode(errors='replace')!r} into uint64"
        )
    try:
        root = base64.b64decode(hash_raw, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise CheckpointError(f"failed to decode hash: {exc}") from exc

    return origin_raw.decode(errors="replace"), int(size_raw), root