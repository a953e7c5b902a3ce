"""Building blocks for tile-based transparency logs: hashing, entry bundles, Static CT entries, deduplication, streaming and bundle copying."""

__version__ = "0.1.0"