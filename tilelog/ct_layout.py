"""Static CT API entry bundle layout and hashing.

These helpers must only be used for Certificate Transparency logs; other
applications should use the tlog-tiles layout.
"""

from __future__ import annotations

from tilelog.ctentry import CTEntry
from tilelog.entry import Entry
from tilelog.hashing import hash_leaf, identity_hash

ENTRY_BUNDLE_WIDTH = 256
_ISSUER_KEY_HASH_SIZE = 32
_X509_ENTRY = 0
_PRECERT_ENTRY = 1


class BundleParseError(ValueError):
    """Raised when a Static CT entry bundle is malformed."""


class _Cursor:
    """Reads big-endian fields from a byte string."""

    def __init__(self, data: bytes) -> None:
        self._data = bytes(data)
        self._pos = 0

    @property
    def remaining(self) -> int:
        return len(self._data) - self._pos

    def take(self, n: int) -> bytes | None:
        if n > self.remaining:
            return None
        chunk = self._data[self._pos:self._pos + n]
        self._pos += n
        return chunk

    def uint(self, width: int) -> int | None:
        raw = self.take(width)
        return None if raw is None else int.from_bytes(raw, "big")

    def prefixed(self, width: int) -> bytes | None:
        """Return the body of a length-prefixed field."""
        length = self.uint(width)
        return None if length is None else self.take(length)

    def prefixed_raw(self, width: int) -> bytes | None:
        """Return a length-prefixed field including its prefix."""
        body = self.prefixed(width)
        return None if body is None else len(body).to_bytes(width, "big") + body


def _format_index(n: int) -> str:
    path = f"{n % 1000:03d}"
    n //= 1000
    while n > 0:
        path = f"x{n % 1000:03d}/{path}"
        n //= 1000
    return path


def ct_entries_path(n: int, p: int = 0) -> str:
    """Return the Static CT API path of entry bundle ``n`` with partial size ``p``."""
    path = f"tile/data/{_format_index(n)}"
    if p > 0:
        path += f".p/{p}"
    return path


def _check_trailing(cursor: _Cursor) -> None:
    if cursor.remaining:
        raise BundleParseError(
            f"unexpected {cursor.remaining} bytes of trailing data in entry bundle"
        )


def ct_bundle_id_hasher(bundle: bytes) -> list[bytes]:
    """Return the antispam identity hash of every entry in a Static CT bundle."""
    cursor = _Cursor(bundle)
    ids: list[bytes] = []
    for i in range(ENTRY_BUNDLE_WIDTH):
        if not cursor.remaining:
            break
        if cursor.take(8) is None:
            raise BundleParseError(f"failed to read timestamp of entry index {i} of bundle")
        entry_type = cursor.uint(2)
        if entry_type is None:
            raise BundleParseError(f"failed to read entry type of entry index {i} of bundle")

        if entry_type == _X509_ENTRY:
            cert = cursor.prefixed(3)
            if cert is None:
                raise BundleParseError(f"failed to read certificate at entry index {i} of bundle")
            ids.append(identity_hash(cert))
        elif entry_type == _PRECERT_ENTRY:
            if cursor.take(_ISSUER_KEY_HASH_SIZE) is None:
                raise BundleParseError(
                    f"failed to read issuer key hash at entry index {i} of bundle"
                )
            if cursor.prefixed(3) is None:
                raise BundleParseError(f"failed to read precert tbs at entry index {i} of bundle")
        else:
            raise BundleParseError(f"unknown entry type at entry index {i} of bundle")

        if cursor.prefixed(2) is None:
            raise BundleParseError(f"failed to read SCT extensions at entry index {i} of bundle")

        if entry_type == _PRECERT_ENTRY:
            precert = cursor.prefixed(3)
            if precert is None:
                raise BundleParseError(f"failed to read precert at entry index {i} of bundle")
            ids.append(identity_hash(precert))

        if cursor.prefixed(2) is None:
            raise BundleParseError(
                f"failed to read chain fingerprints at entry index {i} of bundle"
            )
    _check_trailing(cursor)
    return ids


def ct_merkle_leaf_hasher(bundle: bytes) -> list[bytes]:
    """Return the RFC 6962 leaf hash of every entry in a Static CT bundle."""
    cursor = _Cursor(bundle)
    hashes: list[bytes] = []
    for i in range(ENTRY_BUNDLE_WIDTH):
        if not cursor.remaining:
            break
        # version = v1, leaf_type = timestamped_entry
        preimage = bytearray(b"\x00\x00")

        timestamp = cursor.take(8)
        if timestamp is None:
            raise BundleParseError(f"failed to copy timestamp of entry index {i} of bundle")
        preimage += timestamp

        entry_type = cursor.uint(2)
        if entry_type is None:
            raise BundleParseError(f"failed to read entry type of entry index {i} of bundle")
        preimage += entry_type.to_bytes(2, "big")

        if entry_type == _X509_ENTRY:
            cert = cursor.prefixed_raw(3)
            if cert is None:
                raise BundleParseError(f"failed to copy certificate at entry index {i} of bundle")
            preimage += cert
        elif entry_type == _PRECERT_ENTRY:
            key_hash = cursor.take(_ISSUER_KEY_HASH_SIZE)
            if key_hash is None:
                raise BundleParseError(
                    f"failed to copy issuer key hash at entry index {i} of bundle"
                )
            preimage += key_hash
            tbs = cursor.prefixed_raw(3)
            if tbs is None:
                raise BundleParseError(f"failed to copy precert tbs at entry index {i} of bundle")
            preimage += tbs
        else:
            raise BundleParseError(
                f"unknown entry type 0x{entry_type:x} at entry index {i} of bundle"
            )

        extensions = cursor.prefixed_raw(2)
        if extensions is None:
            raise BundleParseError(f"failed to copy SCT extensions at entry index {i} of bundle")
        preimage += extensions

        if entry_type == _PRECERT_ENTRY and cursor.prefixed(3) is None:
            raise BundleParseError(f"failed to read precert at entry index {i} of bundle")
        if cursor.prefixed(2) is None:
            raise BundleParseError(
                f"failed to read chain fingerprints at entry index {i} of bundle"
            )

        hashes.append(hash_leaf(bytes(preimage)))
    _check_trailing(cursor)
    return hashes


def convert_ct_entry(entry: CTEntry) -> Entry:
    """Wrap a CT entry so that it is bundled in the Static CT API format.

    The data and leaf hash depend on the index, so they are filled in when
    the entry is marshalled for a bundle.
    """
    result = Entry(identity=entry.identity())

    def marshal(index: int) -> bytes:
        result.leaf_hash = entry.merkle_leaf_hash(index)
        result.data = entry.leaf_data(index)
        return result.data

    result.marshal_for_bundle = marshal
    return result