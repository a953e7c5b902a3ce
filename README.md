# tilelog

Building blocks for tile-based transparency logs. It uses only the Python
standard library.

## Modules

- `tilelog.hashing` covers hashing and the tile entry-bundle format.
  - `hash_leaf` and `hash_children` compute RFC 6962 leaf and interior hashes.
  - `identity_hash` is the SHA-256 of an entry's data.
  - `marshal_entry_bundle` and `parse_entry_bundle` write and read bundles of
    uint16 length-prefixed entries.
  - `default_id_hasher` and `default_merkle_leaf_hasher` turn a bundle into
    one hash per entry.
- `tilelog.entry` provides `Entry` and `new_entry(data)`.
  - `new_entry` fills in the identity hash and the leaf hash.
  - `Entry.marshal_bundle_data(index)` records the index and returns the
    entry's bundle bytes.
- `tilelog.ctentry` provides `CTEntry`, a Certificate Transparency entry.
  - It produces Static CT leaf data (`leaf_data`).
  - It produces the RFC 6962 Merkle tree leaf (`merkle_tree_leaf`) and that
    leaf's hash (`merkle_leaf_hash`).
  - `identity` returns its dedupe identity.
  - `marshal_extensions` encodes the 40-bit leaf-index extension.
- `tilelog.ct_layout` handles the Static CT bundle layout.
  - `ct_entries_path(n, p)` gives a bundle's path, for example
    `tile/data/x123/x456/x789/000`.
  - `ct_bundle_id_hasher` and `ct_merkle_leaf_hasher` parse a bundle and
    return its hashes. A malformed bundle raises `BundleParseError`.
  - `convert_ct_entry` wraps a `CTEntry` as an `Entry` that marshals itself
    in the Static CT format.
- `tilelog.checkpoint` provides `parse_checkpoint_unsafe(raw)`.
  - It returns `(origin, size, root_hash)` without verifying any signature.
  - Bad input raises `CheckpointError`.
- `tilelog.metrics` provides `clamp64`, which clamps an unsigned value into
  the signed 64-bit range.
- `tilelog.dedupe` wraps an add function so that entries seen recently are not
  added again.
  - `InMemoryDedupe(delegate, size)` keeps a bounded cache of entries seen
    recently. `in_memory_dedupe(size)` is the decorator form.
  - A repeat add returns the earlier result, marked `Index(is_dup=True)`.
  - Failed adds are not cached.
  - `PushbackError` is the exception for signalling that the log is
    overloaded.
- `tilelog.stream` streams bundles and entries.
  - `bundle_ranges` yields a `RangeInfo` for each bundle that covers a range
    of entries.
  - `entry_bundles(num_workers, get_size, get_bundle, from_entry, n)` fetches
    bundles ahead in a thread pool and yields `Bundle`s in log order.
  - `entries(bundles, bundle_fn)` yields one `StreamEntry` per entry.
  - `Streamer` and `Follower` are protocols.
- `tilelog.migrate` provides `Copier`.
  - `Copier` copies the entry bundles for a range of entries from one log to
    another with parallel workers.
  - Each bundle is retried with exponential backoff. A failure raises
    `CopyError`.
- `tilelog.loadtest` has helpers for load-testing a log.
  - `Throttle` supplies a token bucket per second.
  - `WorkerPool` manages worker threads.
  - `RoundRobinReader` and `round_robin_writer` spread requests over several
    targets.
  - `LeafReader` and `LogWriter` are the workers.
  - `random_next_leaf` and `monotonically_increasing_next_leaf` choose which
    leaf to read next.
  - `HammerAnalyser` records latency and error statistics, with
    `MovingAverage` for the averages.
  - `RetryError` is the exception a writer raises to ask for a retry later.

## What it does not do

This package has no storage backend and no appender that assigns indices and
integrates entries into a tree. It does not serve a log over HTTP, sign or
witness checkpoints, or check a log's integrity. `Copier` copies bundles
only: integrating them and comparing root hashes is left to the caller.
There is no command-line program and no terminal interface.

## Installation

```
pip install .
```

To install the test dependencies as well:

```
pip install ".[test]"
```

## Example

```python
from tilelog.entry import new_entry
from tilelog.hashing import default_merkle_leaf_hasher, marshal_entry_bundle

entries = [new_entry(b"hello"), new_entry(b"world")]
bundle = marshal_entry_bundle([e.data for e in entries])
assert default_merkle_leaf_hasher(bundle) == [e.leaf_hash for e in entries]
```

Parsing a checkpoint:

```python
from tilelog.checkpoint import parse_checkpoint_unsafe

origin, size, root = parse_checkpoint_unsafe(
    b"example.com/log\n42\nqINS1GRFhWHwdkUeqLEoP4yEMkTBBzxBkGwGQlVlVcs=\n"
)
assert (origin, size, len(root)) == ("example.com/log", 42, 32)
```

## Running the tests

```
pytest
```