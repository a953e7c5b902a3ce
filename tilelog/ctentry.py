"""Certificate Transparency log entries in the static-ct-api format."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field

from tilelog.hashing import hash_leaf, identity_hash

_X509_ENTRY = 0
_PRECERT_ENTRY = 1
_LEAF_INDEX_EXTENSION = 0
_MAX_LEAF_INDEX = 1 << 40


def _uint(value: int, width: int) -> bytes:
    try:
        return value.to_bytes(width, "big")
    except OverflowError as exc:
        raise ValueError(f"value {value} does not fit in {width} bytes") from exc


def _prefixed(data: bytes, width: int) -> bytes:
    if len(data) >= 1 << (8 * width):
        raise ValueError(f"{len(data)} bytes exceed a {width}-byte length prefix")
    return _uint(len(data), width) + bytes(data)


def marshal_extensions(leaf_index: int) -> bytes:
    """Encode the CTExtensions field carrying a 40-bit leaf index."""
    if not 0 <= leaf_index < _MAX_LEAF_INDEX:
        raise ValueError("leaf_index out of range")
    return _uint(_LEAF_INDEX_EXTENSION, 1) + _prefixed(_uint(leaf_index, 5), 2)


@dataclass
class CTEntry:
    """A CT log entry.

    For x509 entries ``certificate`` holds the submitted certificate; for
    precertificate entries it holds the TBS certificate extracted from
    ``precertificate``.
    """

    timestamp: int
    is_precert: bool = False
    certificate: bytes = b""
    precertificate: bytes = b""
    issuer_key_hash: bytes = b""
    fingerprints_chain: Sequence[bytes] = field(default_factory=list)

    def __post_init__(self) -> None:
        for fingerprint in self.fingerprints_chain:
            if len(fingerprint) != 32:
                raise ValueError("chain fingerprints must be 32 bytes long")

    def _timestamped_entry(self, index: int) -> bytes:
        parts = [_uint(self.timestamp, 8)]
        if self.is_precert:
            parts += [
                _uint(_PRECERT_ENTRY, 2),
                bytes(self.issuer_key_hash),
                _prefixed(self.certificate, 3),
            ]
        else:
            parts += [_uint(_X509_ENTRY, 2), _prefixed(self.certificate, 3)]
        parts.append(_prefixed(marshal_extensions(index), 2))
        return b"".join(parts)

    def leaf_data(self, index: int) -> bytes:
        """Return the bytes this entry contributes to an entry bundle."""
        parts = [self._timestamped_entry(index)]
        if self.is_precert:
            parts.append(_prefixed(self.precertificate, 3))
        parts.append(_prefixed(b"".join(bytes(f) for f in self.fingerprints_chain), 2))
        return b"".join(parts)

    def merkle_tree_leaf(self, index: int) -> bytes:
        """Return the RFC 6962 MerkleTreeLeaf, embedding the leaf index extension."""
        # version = v1, leaf_type = timestamped_entry
        return b"\x00\x00" + self._timestamped_entry(index)

    def merkle_leaf_hash(self, index: int) -> bytes:
        """Return the RFC 6962 leaf hash for this entry at ``index``."""
        return hash_leaf(self.merkle_tree_leaf(index))

    def identity(self) -> bytes:
        """Return the hash identifying this entry for deduplication."""
        return identity_hash(self.precertificate if self.is_precert else self.certificate)