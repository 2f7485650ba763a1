"""Pydantic schemas for API requests/responses.

Unlimited maxima are rendered as null together with "unlimited": true
(float infinity is not valid JSON). Money amounts are decimal strings.
"""

import math
from decimal import Decimal
from typing import List, Optional, Union

from pydantic import BaseModel, Field

from plk_api.entitlements.catalog import TierCatalog
from plk_api.entitlements.evaluator import QuotaDecision
from plk_api.entitlements.facade import CommitOutcome, MissionContactConfirmation
from plk_api.entitlements.fees import FeeQuote


def _finite(value: Union[int, float]) -> Optional[int]:
    return None if math.isinf(value) else int(value)


# ============================================================================
# Quota decisions
# ============================================================================


class QuotaDecisionResponse(BaseModel):
    """Quota decision for one feature."""

    feature_key: str
    user_type: str
    tier: str
    period_key: str
    allowed: bool
    used: int
    max: Optional[int] = Field(None, description="Maximum per period, null when unlimited")
    unlimited: bool
    remaining: Optional[int] = None
    included_in_plan: bool

    @classmethod
    def from_decision(cls, decision: QuotaDecision) -> "QuotaDecisionResponse":
        return cls(
            feature_key=decision.feature_key,
            user_type=decision.user_type,
            tier=decision.tier,
            period_key=decision.period_key,
            allowed=decision.allowed,
            used=decision.used,
            max=_finite(decision.max),
            unlimited=decision.unlimited,
            remaining=_finite(decision.remaining),
            included_in_plan=decision.included_in_plan,
        )


class AccountStatusResponse(BaseModel):
    """GET /v1/entitlements/{account_id}"""

    account_id: str
    user_type: str
    tier: str
    next_tier: Optional[str] = None
    catalog_version: str
    analytics: str
    flags: dict[str, bool]
    features: dict[str, QuotaDecisionResponse]


# ============================================================================
# Commit / count
# ============================================================================


class CommitResponse(BaseModel):
    """POST .../features/{feature_key}/commit (200)"""

    committed: bool
    status: str
    feature_key: str
    period_key: str
    used: int
    max: Optional[int] = None
    unlimited: bool

    @classmethod
    def from_outcome(cls, outcome: CommitOutcome) -> "CommitResponse":
        return cls(
            committed=outcome.committed,
            status=outcome.status,
            feature_key=outcome.feature_key,
            period_key=outcome.period_key,
            used=outcome.used,
            max=_finite(outcome.max),
            unlimited=math.isinf(outcome.max),
        )


class SetCountRequest(BaseModel):
    """PUT .../features/{feature_key}/count"""

    count: int = Field(..., ge=0, description="Authoritative count recomputed by the caller")


# ============================================================================
# Mission contacts
# ============================================================================


class FeeQuoteResponse(BaseModel):
    """Mission contact fee quote."""

    amount: str
    currency: str
    included_in_subscription: bool
    user_type: str
    tier: str
    contacts_remaining: Optional[int] = None
    contacts_max: Optional[int] = None
    contacts_unlimited: bool
    mission_days: int
    fee_structure: str
    period_key: str

    @classmethod
    def from_quote(cls, quote: FeeQuote) -> "FeeQuoteResponse":
        return cls(
            amount=f"{quote.amount:.2f}",
            currency=quote.currency,
            included_in_subscription=quote.included_in_subscription,
            user_type=quote.user_type,
            tier=quote.tier,
            contacts_remaining=_finite(quote.contacts_remaining),
            contacts_max=_finite(quote.contacts_max),
            contacts_unlimited=math.isinf(quote.contacts_max),
            mission_days=quote.mission_days,
            fee_structure=quote.fee_structure,
            period_key=quote.period_key,
        )


class ConfirmContactRequest(BaseModel):
    """POST .../mission-contact/confirm"""

    mission_days: int = Field(..., description="Mission length in days (>= 1)")
    accepted_amount: Optional[Decimal] = Field(
        None, ge=0, description="Fee the user explicitly accepted (required for paid contacts)"
    )


class ConfirmContactResponse(BaseModel):
    """POST .../mission-contact/confirm (200)"""

    committed: bool
    status: str
    quote: FeeQuoteResponse

    @classmethod
    def from_confirmation(cls, confirmation: MissionContactConfirmation) -> "ConfirmContactResponse":
        return cls(
            committed=confirmation.committed,
            status=confirmation.status,
            quote=FeeQuoteResponse.from_quote(confirmation.quote),
        )


# ============================================================================
# Catalog
# ============================================================================


class TierLimitResponse(BaseModel):
    """One metered feature of a plan."""

    max: Optional[int] = Field(None, description="Maximum per period, null when unlimited")
    unlimited: bool
    period: str
    pay_per_use: bool


class FeeBracketResponse(BaseModel):
    up_to_days: Optional[int] = None
    amount: str


class ContactFeeResponse(BaseModel):
    fee_structure: str
    brackets: List[FeeBracketResponse]


class TierInfoResponse(BaseModel):
    """GET /v1/catalog/{user_type}/tiers item"""

    user_type: str
    tier: str
    label: str
    monthly_price: str
    currency: str
    popular: bool
    upgrade_to: Optional[str] = None
    analytics: str
    flags: dict[str, bool]
    limits: dict[str, TierLimitResponse]
    contact_fee: Optional[ContactFeeResponse] = None

    @classmethod
    def from_plan(cls, catalog: TierCatalog, user_type: str, tier: str) -> "TierInfoResponse":
        plan = catalog.get_tier(user_type, tier)
        contact_fee = None
        if plan.contact_fee is not None:
            contact_fee = ContactFeeResponse(
                fee_structure=plan.contact_fee.fee_structure,
                brackets=[
                    FeeBracketResponse(up_to_days=bracket.up_to_days, amount=f"{bracket.amount:.2f}")
                    for bracket in plan.contact_fee.brackets
                ],
            )

        return cls(
            user_type=plan.user_type,
            tier=plan.tier,
            label=plan.label,
            monthly_price=f"{catalog.price_for(user_type, tier):.2f}",
            currency=catalog.currency,
            popular=plan.popular,
            upgrade_to=plan.upgrade_to,
            analytics=plan.analytics,
            flags=dict(plan.flags),
            limits={
                feature_key: TierLimitResponse(
                    max=limit.max,
                    unlimited=limit.unlimited,
                    period=limit.period,
                    pay_per_use=limit.pay_per_use,
                )
                for feature_key, limit in plan.limits.items()
            },
            contact_fee=contact_fee,
        )


class TierListResponse(BaseModel):
    """GET /v1/catalog/{user_type}/tiers"""

    catalog_version: str
    user_type: str
    tiers: List[TierInfoResponse]
