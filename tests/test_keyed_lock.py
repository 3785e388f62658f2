import threading

import pytest

from src.timepay.timepay.common.locking import KeyedLock


def test_registry_is_empty_after_hold_exits():
    locks = KeyedLock()

    with locks.hold(("E001", "2025-03-03")):
        with locks.hold("PR-202503-abc"):
            assert locks.active_keys() == 2

    assert locks.active_keys() == 0


def test_entry_is_released_when_the_body_raises():
    locks = KeyedLock()

    with pytest.raises(RuntimeError):
        with locks.hold("run"):
            raise RuntimeError("boom")

    assert locks.active_keys() == 0


def test_same_key_is_serialized_across_threads():
    locks = KeyedLock()
    inside = []
    overlaps = []
    barrier = threading.Barrier(4)

    def work():
        barrier.wait()
        for _ in range(50):
            with locks.hold("run"):
                inside.append(1)
                if len(inside) > 1:
                    overlaps.append(len(inside))
                inside.pop()

    threads = [threading.Thread(target=work) for _ in range(4)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert overlaps == []
    assert locks.active_keys() == 0
