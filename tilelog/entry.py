"""Log entries and their bundle serialisation."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field

from tilelog.hashing import hash_leaf, identity_hash, marshal_entry_bundle


@dataclass
class Entry:
    """An entry to be added to a log.

    ``marshal_for_bundle`` converts the entry into its bundle form for a given
    index; when unset the tlog-tiles encoding of ``data`` is used.
    """

    data: bytes = b""
    identity: bytes = b""
    leaf_hash: bytes = b""
    index: int | None = None
    marshal_for_bundle: Callable[[int], bytes] | None = field(default=None, repr=False)

    def marshal_bundle_data(self, index: int) -> bytes:
        """Return this entry's bundle data for ``index``, recording the index.

        This may be called several times with different indices; the index is
        only final once the storage has durably accepted the entry.
        """
        self.index = index
        if self.marshal_for_bundle is not None:
            return self.marshal_for_bundle(index)
        return marshal_entry_bundle([self.data])


def new_entry(data: bytes) -> Entry:
    """Create an entry whose identity and leaf hash are derived from ``data``."""
    data = bytes(data)
    return Entry(data=data, identity=identity_hash(data), leaf_hash=hash_leaf(data))