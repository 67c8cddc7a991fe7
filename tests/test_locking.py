import threading
import time

from locking import PlanTreeLocks


def test_same_tree_is_serialized() -> None:
    locks = PlanTreeLocks()
    order: list[str] = []
    entered = threading.Event()
    release = threading.Event()

    def first() -> None:
        with locks.hold("expense", 1):
            entered.set()
            release.wait(2)
            order.append("first")

    def second() -> None:
        entered.wait(2)
        with locks.hold("expense", 1):
            order.append("second")

    t1 = threading.Thread(target=first)
    t2 = threading.Thread(target=second)
    t1.start()
    t2.start()
    entered.wait(2)
    time.sleep(0.05)
    assert order == []

    release.set()
    t1.join(2)
    t2.join(2)
    assert order == ["first", "second"]


def test_disjoint_trees_do_not_block_each_other() -> None:
    locks = PlanTreeLocks()
    held = threading.Event()
    release = threading.Event()

    def holder() -> None:
        with locks.hold("expense", 1):
            held.set()
            release.wait(2)

    def other() -> None:
        with locks.hold("expense", 2):
            pass
        with locks.hold("income", 1):
            pass

    t1 = threading.Thread(target=holder)
    t1.start()
    held.wait(2)
    t2 = threading.Thread(target=other)
    t2.start()
    t2.join(1)
    assert not t2.is_alive()

    release.set()
    t1.join(2)
    assert len(locks) == 3


def test_lock_is_reentrant_within_a_thread() -> None:
    locks = PlanTreeLocks()
    with locks.hold("expense", 7):
        with locks.hold("expense", 7):
            pass
    assert len(locks) == 1
