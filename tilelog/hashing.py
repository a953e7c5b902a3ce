"""Leaf hashing, identity hashing and tlog-tiles entry bundle encoding."""

from __future__ import annotations

import hashlib
from collections.abc import Iterable

_LEAF_PREFIX = b"\x00"
_NODE_PREFIX = b"\x01"
_MAX_ENTRY_SIZE = 0xFFFF


def hash_leaf(data: bytes) -> bytes:
    """Return the RFC 6962 Merkle leaf hash of ``data``."""
    return hashlib.sha256(_LEAF_PREFIX + bytes(data)).digest()


def hash_children(left: bytes, right: bytes) -> bytes:
    """Return the RFC 6962 hash of an interior node with the given children."""
    return hashlib.sha256(_NODE_PREFIX + bytes(left) + bytes(right)).digest()


def identity_hash(data: bytes) -> bytes:
    """Return the antispam identity hash for a single entry's data."""
    return hashlib.sha256(bytes(data)).digest()


def marshal_entry_bundle(entries: Iterable[bytes]) -> bytes:
    """Serialise entries as a tlog-tiles entry bundle of uint16 length-prefixed records."""
    out = bytearray()
    for entry in entries:
        if len(entry) > _MAX_ENTRY_SIZE:
            raise ValueError(f"entry of {len(entry)} bytes is too large for a bundle")
        out += len(entry).to_bytes(2, "big")
        out += entry
    return bytes(out)


def parse_entry_bundle(bundle: bytes) -> list[bytes]:
    """Split a tlog-tiles entry bundle into its entries."""
    data = bytes(bundle)
    entries: list[bytes] = []
    pos = 0
    while pos < len(data):
        if pos + 2 > len(data):
            raise ValueError(f"truncated length prefix at offset {pos}")
        size = int.from_bytes(data[pos:pos + 2], "big")
        pos += 2
        if pos + size > len(data):
            raise ValueError(
                f"entry at offset {pos} claims {size} bytes but only {len(data) - pos} remain"
            )
        entries.append(data[pos:pos + size])
        pos += size
    return entries


def _parse_or_raise(bundle: bytes) -> list[bytes]:
    try:
        return parse_entry_bundle(bundle)
    except ValueError as exc:
        raise ValueError(f"unmarshal: {exc}") from exc


def default_id_hasher(bundle: bytes) -> list[bytes]:
    """Return the identity hash of every entry in a tlog-tiles bundle."""
    return [identity_hash(e) for e in _parse_or_raise(bundle)]


def default_merkle_leaf_hasher(bundle: bytes) -> list[bytes]:
    """Return the Merkle leaf hash of every entry in a tlog-tiles bundle."""
    return [hash_leaf(e) for e in _parse_or_raise(bundle)]