import threading
import time

import pytest

from tilelog.ct_layout import ENTRY_BUNDLE_WIDTH
from tilelog.hashing import marshal_entry_bundle, parse_entry_bundle
from tilelog.stream import (
    Bundle,
    RangeInfo,
    StreamEntry,
    bundle_ranges,
    entries,
    entry_bundles,
)


def leaf(i):
    return b"leaf-%d" % i


def fake_bundle(index, partial):
    count = partial or ENTRY_BUNDLE_WIDTH
    start = index * ENTRY_BUNDLE_WIDTH
    return marshal_entry_bundle(leaf(i) for i in range(start, start + count))


class BoomError(Exception):
    pass


def test_single_bundle_range():
    assert list(bundle_ranges(0, 10, 10)) == [RangeInfo(index=0, partial=10, first=0, n=10)]


def test_worked_example_spanning_bundles():
    assert list(bundle_ranges(250, 300, 300)) == [
        RangeInfo(index=0, partial=0, first=250, n=6),
        RangeInfo(index=1, partial=44, first=0, n=44),
    ]


@pytest.mark.parametrize(
    "start,end,size",
    [(0, 1000, 1000), (3, 700, 700), (256, 512, 600), (10, 5000, 777), (511, 513, 1024)],
)
def test_ranges_cover_requested_entries(start, end, size):
    ranges = list(bundle_ranges(start, end, size))
    covered = [
        r.index * ENTRY_BUNDLE_WIDTH + r.first + k for r in ranges for k in range(r.n)
    ]
    assert covered == list(range(start, min(end, size)))
    assert [r.index for r in ranges] == list(range(ranges[0].index, ranges[-1].index + 1))


def test_empty_ranges():
    assert list(bundle_ranges(10, 10, 100)) == []
    assert list(bundle_ranges(100, 200, 100)) == []


def test_entry_bundles_in_order():
    size = 1000
    bundles = list(entry_bundles(3, lambda: size, fake_bundle, 0, size))
    assert [b.range_info for b in bundles] == list(bundle_ranges(0, size, size))
    for b in bundles:
        assert b.data == fake_bundle(b.range_info.index, b.range_info.partial)


def test_entry_bundles_respects_worker_limit():
    lock = threading.Lock()
    active = 0
    peak = 0

    def slow_bundle(index, partial):
        nonlocal active, peak
        with lock:
            active += 1
            peak = max(peak, active)
        time.sleep(0.01)
        with lock:
            active -= 1
        return fake_bundle(index, partial)

    bundles = list(entry_bundles(2, lambda: 3000, slow_bundle, 0, 3000))
    assert len(bundles) == len(list(bundle_ranges(0, 3000, 3000)))
    assert 1 <= peak <= 2


def test_entry_bundles_size_error():
    def bad_size():
        raise BoomError("no size")

    with pytest.raises(BoomError):
        list(entry_bundles(2, bad_size, fake_bundle, 0, 10))


def test_entry_bundles_fetch_error():
    def bad_bundle(index, partial):
        if index == 1:
            raise BoomError("fetch failed")
        return fake_bundle(index, partial)

    got = []
    with pytest.raises(BoomError):
        for b in entry_bundles(1, lambda: 1000, bad_bundle, 0, 1000):
            got.append(b.range_info.index)
    assert got == [0]


def test_entry_bundles_rejects_zero_workers():
    with pytest.raises(ValueError):
        entry_bundles(0, lambda: 10, fake_bundle, 0, 10)


def test_entries_yields_requested_range():
    size = 600
    stream = entry_bundles(4, lambda: size, fake_bundle, 250, 100)
    got = list(entries(stream, parse_entry_bundle))
    assert [e.index for e in got] == list(range(250, 350))
    assert all(e.entry == leaf(e.index) for e in got)


def test_entries_truncated_at_tree_size():
    got = list(entries(entry_bundles(2, lambda: 300, fake_bundle, 290, 50), parse_entry_bundle))
    assert got[-1] == StreamEntry(299, leaf(299))
    assert [e.index for e in got] == list(range(290, 300))


def test_entries_logic_error():
    bundle = Bundle(RangeInfo(index=0, partial=2, first=5, n=1), marshal_entry_bundle([b"a", b"b"]))
    with pytest.raises(ValueError, match="logic error"):
        list(entries([bundle], parse_entry_bundle))


def test_entries_propagates_bundle_fn_error():
    bundle = Bundle(RangeInfo(index=0, partial=1, first=0, n=1), b"\x00")
    with pytest.raises(ValueError):
        list(entries([bundle], parse_entry_bundle))