"""
Redis-backed Usage Ledger

Key: usage:{account_id}:{feature_key}:{period_key}
No TTL: past periods are kept for audit, cleanup is external housekeeping.
"""

import logging
import math
from typing import Union

from redis import Redis
from redis.exceptions import RedisError

from .ledger import UsageLedger, validate_count

logger = logging.getLogger(__name__)

# Atomic check-and-increment. ARGV[1] = max (-1 = unlimited).
# Returns the new count, or -1 when the increment would exceed max.
TRY_INCREMENT_LUA = """
local used = tonumber(redis.call('GET', KEYS[1]) or '0')
local max = tonumber(ARGV[1])
if max >= 0 and used + 1 > max then
    return -1
end
return redis.call('INCR', KEYS[1])
"""


class RedisUsageLedger(UsageLedger):
    """Usage ledger over a shared Redis (server-side Lua for the conditional increment)."""

    def __init__(self, redis: Redis, key_prefix: str = "usage"):
        self.redis = redis
        self.key_prefix = key_prefix

    def _key(self, account_id: str, feature_key: str, period_key: str) -> str:
        return f"{self.key_prefix}:{account_id}:{feature_key}:{period_key}"

    def get_used(self, account_id: str, feature_key: str, period_key: str) -> int:
        return int(self.redis.get(self._key(account_id, feature_key, period_key)) or 0)

    def try_increment(
        self,
        account_id: str,
        feature_key: str,
        period_key: str,
        max_count: Union[int, float],
    ) -> bool:
        limit = -1 if math.isinf(max_count) else int(max_count)
        result = self.redis.eval(
            TRY_INCREMENT_LUA,
            1,
            self._key(account_id, feature_key, period_key),
            str(limit),
        )
        return int(result) >= 0

    def set_count(self, account_id: str, feature_key: str, period_key: str, value: int) -> None:
        validate_count(value)
        self.redis.set(self._key(account_id, feature_key, period_key), value)

    def ping(self) -> bool:
        try:
            return bool(self.redis.ping())
        except RedisError as e:
            logger.warning("Redis ledger ping failed", extra={"error": str(e)})
            return False
