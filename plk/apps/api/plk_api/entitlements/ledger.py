"""
Usage Ledger: durable per-(account, feature, period) counters.

`try_increment` is the only incremental mutation and the concurrency boundary.
Every backend implements it as one atomic increment-if-below-limit step,
never as a read-then-write from the caller.
"""

import math
import threading
from abc import ABC, abstractmethod
from typing import Dict, Tuple, Union

CounterKey = Tuple[str, str, str]


def validate_count(value: int) -> int:
    """Reject counts that cannot be stored (negative or non-integer)"""
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"count must be an integer, got {value!r}")
    if value < 0:
        raise ValueError(f"count must be >= 0, got {value}")
    return value


class UsageLedger(ABC):
    """Storage contract shared by the memory, Redis and SQL backends."""

    @abstractmethod
    def get_used(self, account_id: str, feature_key: str, period_key: str) -> int:
        """Current count, 0 when no counter exists yet"""

    @abstractmethod
    def try_increment(
        self,
        account_id: str,
        feature_key: str,
        period_key: str,
        max_count: Union[int, float],
    ) -> bool:
        """
        Atomically add 1 if the result stays <= max_count.

        Returns:
            True if the counter was incremented, False with state unchanged otherwise
        """

    @abstractmethod
    def set_count(self, account_id: str, feature_key: str, period_key: str, value: int) -> None:
        """Overwrite the counter with an externally recomputed value"""

    def ping(self) -> bool:
        """Backend reachability (health checks)"""
        return True


class InMemoryUsageLedger(UsageLedger):
    """Lock-guarded dict ledger for tests and local development."""

    def __init__(self):
        self._counters: Dict[CounterKey, int] = {}
        self._lock = threading.Lock()

    def get_used(self, account_id: str, feature_key: str, period_key: str) -> int:
        with self._lock:
            return self._counters.get((account_id, feature_key, period_key), 0)

    def try_increment(
        self,
        account_id: str,
        feature_key: str,
        period_key: str,
        max_count: Union[int, float],
    ) -> bool:
        key = (account_id, feature_key, period_key)
        with self._lock:
            used = self._counters.get(key, 0)
            if not math.isinf(max_count) and used + 1 > max_count:
                return False
            self._counters[key] = used + 1
            return True

    def set_count(self, account_id: str, feature_key: str, period_key: str, value: int) -> None:
        validate_count(value)
        with self._lock:
            self._counters[(account_id, feature_key, period_key)] = value

    def snapshot(self) -> Dict[CounterKey, int]:
        """Copy of every counter, including past periods"""
        with self._lock:
            return dict(self._counters)
