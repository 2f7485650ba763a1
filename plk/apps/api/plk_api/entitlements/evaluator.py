"""
Quota Evaluator: catalog limit + ledger snapshot -> QuotaDecision.

Read-only. Calling it any number of times never changes a counter.
"""

import math
from datetime import datetime, tzinfo
from typing import Callable, Optional, Union

from pydantic import BaseModel, ConfigDict

from .accounts import Account
from .catalog import FeatureLimits, TierCatalog
from .ledger import UsageLedger
from .periods import current_period_key, utc_now


class QuotaDecision(BaseModel):
    """Allow/deny decision with diagnostic counts (never cached)"""
    model_config = ConfigDict(frozen=True)

    feature_key: str
    user_type: str
    tier: str
    period_key: str
    allowed: bool
    used: int
    max: Union[int, float]
    included_in_plan: bool

    @property
    def unlimited(self) -> bool:
        return math.isinf(self.max)

    @property
    def remaining(self) -> Union[int, float]:
        if self.unlimited:
            return math.inf
        return max(0, int(self.max) - self.used)


class QuotaEvaluator:
    """Stateless evaluator over an immutable catalog and a ledger handle."""

    def __init__(
        self,
        catalog: TierCatalog,
        ledger: UsageLedger,
        clock: Callable[[], datetime] = utc_now,
        daily_timezone: Optional[tzinfo] = None,
    ):
        self.catalog = catalog
        self.ledger = ledger
        self.clock = clock
        # Calendar day of daily quotas; None is UTC
        self.daily_timezone = daily_timezone

    def resolve(self, account: Account, feature_key: str, now: Optional[datetime] = None):
        """
        Limit and current period key for (account, feature)

        Raises:
            UnknownTierError / UnknownFeatureError: catalog misconfiguration
        """
        limits: FeatureLimits = self.catalog.limits_for(account.user_type, account.tier, feature_key)
        period_key = current_period_key(
            limits.period_kind,
            now or self.clock(),
            account.period_anchor,
            self.daily_timezone,
        )
        return limits, period_key

    def evaluate(self, account: Account, feature_key: str, now: Optional[datetime] = None) -> QuotaDecision:
        limits, period_key = self.resolve(account, feature_key, now)
        used = self.ledger.get_used(account.account_id, feature_key, period_key)

        allowed = math.isinf(limits.max) or used < limits.max

        return QuotaDecision(
            feature_key=feature_key,
            user_type=account.user_type,
            tier=account.tier,
            period_key=period_key,
            allowed=allowed,
            used=used,
            max=limits.max,
            included_in_plan=not limits.pay_per_use,
        )
