import threading

from tilelog.loadtest.throttle import Throttle


def test_increase_adds_at_least_one():
    t = Throttle(1)
    t.increase()
    assert t.ops_per_second == 2


def test_increase_by_ten_percent():
    t = Throttle(10)
    t.increase()
    assert t.ops_per_second == 11


def test_increase_always_grows():
    for n in range(0, 60):
        t = Throttle(n)
        t.increase()
        assert t.ops_per_second > n


def test_decrease_by_ten_percent():
    t = Throttle(10)
    t.decrease()
    assert t.ops_per_second == 9


def test_decrease_never_below_one():
    t = Throttle(1)
    t.decrease()
    assert t.ops_per_second == 1


def test_decrease_always_shrinks_above_one():
    for n in range(2, 60):
        t = Throttle(n)
        t.decrease()
        assert 1 <= t.ops_per_second < n


def test_supply_then_take_all_tokens():
    t = Throttle(4)
    t.supply_tokens(1.0)
    assert t.oversupply == 0
    taken = [t.take(timeout=0) for _ in range(4)]
    assert taken == [True] * 4
    assert t.take(timeout=0) is False


def test_oversupply_when_queue_full():
    t = Throttle(4)
    t.supply_tokens(1.0)
    t.supply_tokens(0.01)
    assert t.oversupply == 4
    assert str(t) == "Current max: 4/s. Oversupply in last second: 4"


def test_str_format_initial():
    assert str(Throttle(5)) == "Current max: 5/s. Oversupply in last second: 0"


def test_run_returns_when_stopped():
    t = Throttle(3)
    stop = threading.Event()
    stop.set()
    t.run(stop)
    assert t.take(timeout=0) is False