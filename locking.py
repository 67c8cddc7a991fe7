import logging
from contextlib import contextmanager
from threading import Lock, RLock
from typing import Iterator

logger = logging.getLogger(__name__)


class PlanTreeLocks:
    """One re-entrant lock per root plan.

    Every mutation and reconciliation touching a plan tree runs while holding
    the lock of the tree's root plan; disjoint trees proceed in parallel.
    The locks are process-local.
    """

    def __init__(self) -> None:
        self._guard = Lock()
        self._locks: dict[tuple[str, int], RLock] = {}

    def _lock_for(self, kind: str, root_plan_id: int) -> RLock:
        key = (kind, root_plan_id)
        with self._guard:
            lock = self._locks.get(key)
            if lock is None:
                lock = RLock()
                self._locks[key] = lock
            return lock

    @contextmanager
    def hold(self, kind: str, root_plan_id: int) -> Iterator[None]:
        lock = self._lock_for(kind, root_plan_id)
        with lock:
            logger.debug(f"plan_tree_locked: kind={kind} root_plan_id={root_plan_id}")
            yield
        logger.debug(f"plan_tree_released: kind={kind} root_plan_id={root_plan_id}")

    def __len__(self) -> int:
        with self._guard:
            return len(self._locks)


plan_tree_locks = PlanTreeLocks()
