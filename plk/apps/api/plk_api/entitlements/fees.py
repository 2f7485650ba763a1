"""
Fee Calculator: one-off mission contact fee when the plan's contacts do not cover it.

Quotes are advisory. Confirmation recomputes the quote, since tier or usage
may change between quote and commit.
"""

from datetime import datetime
from decimal import Decimal
from typing import Literal, Optional, Union

from pydantic import BaseModel, ConfigDict

from .accounts import Account
from .catalog import TierCatalog
from .evaluator import QuotaDecision, QuotaEvaluator
from .exceptions import InvalidDurationError
from .models import MISSION_CONTACT_FEATURE

FeeStructure = Literal["included", "fixed", "tiered"]


class FeeQuote(BaseModel):
    """Contact fee quote for one mission"""
    model_config = ConfigDict(frozen=True)

    amount: Decimal
    currency: str
    included_in_subscription: bool
    user_type: str
    tier: str
    contacts_remaining: Union[int, float]
    contacts_max: Union[int, float]
    mission_days: int
    fee_structure: FeeStructure
    period_key: str


def validate_mission_days(mission_days) -> int:
    """
    Raises:
        InvalidDurationError: not a positive whole number of days
    """
    if isinstance(mission_days, bool) or not isinstance(mission_days, int) or mission_days <= 0:
        raise InvalidDurationError(mission_days)
    return mission_days


class FeeCalculator:
    """Prices mission contacts from the tier's contact fee schedule."""

    def __init__(self, catalog: TierCatalog, evaluator: QuotaEvaluator):
        self.catalog = catalog
        self.evaluator = evaluator

    def quote(self, account: Account, mission_days: int, now: Optional[datetime] = None) -> FeeQuote:
        validate_mission_days(mission_days)
        decision = self.evaluator.evaluate(account, MISSION_CONTACT_FEATURE, now)
        return self.quote_from_decision(account, mission_days, decision)

    def quote_from_decision(self, account: Account, mission_days: int, decision: QuotaDecision) -> FeeQuote:
        """Build the quote from an evaluation already made"""
        included = decision.allowed and decision.included_in_plan

        if included:
            amount = Decimal("0.00")
            fee_structure: FeeStructure = "included"
        else:
            schedule = self.catalog.contact_fee_for(account.user_type, account.tier)
            amount = schedule.amount_for(mission_days)
            fee_structure = schedule.fee_structure

        return FeeQuote(
            amount=amount,
            currency=self.catalog.currency,
            included_in_subscription=included,
            user_type=account.user_type,
            tier=account.tier,
            contacts_remaining=decision.remaining,
            contacts_max=decision.max,
            mission_days=mission_days,
            fee_structure=fee_structure,
            period_key=decision.period_key,
        )
