"""
Pydantic models for the PharmaLink tier catalog

A plan is identified by (user type, tier): a laboratory "pro" and a
titulaire "pro" are different plans with their own limits and prices.
"""

import math
from datetime import datetime
from decimal import Decimal
from typing import Dict, List, Literal, Optional, Union, get_args

from pydantic import BaseModel, Field, model_validator

TierName = Literal["free", "starter", "pro", "business", "premium"]
UserType = Literal["laboratory", "titulaire", "animateur", "candidat", "etudiant"]
AnalyticsLevel = Literal["none", "basic", "advanced", "advanced_export"]
PeriodKind = Literal["monthly", "lifetime", "daily"]
TrackingMode = Literal["incremental", "absolute"]

# Unlimited maxima are carried as float infinity at runtime (null in the catalog JSON)
UNLIMITED = math.inf

MISSION_CONTACT_FEATURE = "mission_contact"

USER_TYPES = get_args(UserType)
DEFAULT_USER_TYPE = "candidat"

# Profile types stored on users.user_type -> catalog user type
USER_TYPE_ALIASES = {
    "laboratoire": "laboratory",
    "titulaire": "titulaire",
    "animateur": "animateur",
    "preparateur": "candidat",
    "conseiller": "candidat",
    "etudiant": "etudiant",
}


def normalize_user_type(user_type: Optional[str]) -> str:
    """Catalog user type for a profile type; unknown or missing types are candidates"""
    if user_type in USER_TYPES:
        return user_type
    return USER_TYPE_ALIASES.get(user_type or "", DEFAULT_USER_TYPE)


class CurrencyModel(BaseModel):
    """Currency configuration"""
    code: str = "EUR"
    symbol: str = "€"


class FeatureModel(BaseModel):
    """Catalogued metered feature"""
    tracking: TrackingMode = "incremental"
    description: str = ""


class UserTypeModel(BaseModel):
    """Metered features offered to one user type"""
    label: str
    features: List[str] = Field(min_length=1)


class FeatureLimitModel(BaseModel):
    """Per-tier limit for one feature (max=None means unlimited)"""
    max: Optional[int] = Field(default=None, ge=0)
    period: PeriodKind
    pay_per_use: bool = False

    @property
    def unlimited(self) -> bool:
        return self.max is None

    @property
    def max_count(self) -> Union[int, float]:
        """Numeric maximum, UNLIMITED when the catalog says null"""
        return UNLIMITED if self.max is None else self.max


class FeeBracketModel(BaseModel):
    """One step of the contact fee schedule (up_to_days=None is open-ended)"""
    up_to_days: Optional[int] = Field(default=None, ge=1)
    amount: Decimal = Field(ge=0)


class ContactFeeModel(BaseModel):
    """
    Contact fee schedule: a non-decreasing step function of mission days.

    Brackets are ordered by ascending `up_to_days`; the last one is open-ended.
    A single open-ended bracket is a fixed fee.
    """
    brackets: List[FeeBracketModel] = Field(min_length=1)

    @model_validator(mode="after")
    def _check_step_function(self) -> "ContactFeeModel":
        previous_days = 0
        previous_amount = Decimal("0")
        last_index = len(self.brackets) - 1

        for index, bracket in enumerate(self.brackets):
            if bracket.up_to_days is None:
                if index != last_index:
                    raise ValueError("only the last contact fee bracket may be open-ended")
            else:
                if index == last_index:
                    raise ValueError("the last contact fee bracket must be open-ended (up_to_days=null)")
                if bracket.up_to_days <= previous_days:
                    raise ValueError("contact fee brackets must be strictly ascending in days")
                previous_days = bracket.up_to_days

            if bracket.amount < previous_amount:
                raise ValueError("contact fee amounts must not decrease with mission length")
            previous_amount = bracket.amount

        return self

    @property
    def fee_structure(self) -> Literal["fixed", "tiered"]:
        return "fixed" if len(self.brackets) == 1 else "tiered"

    def amount_for(self, mission_days: int) -> Decimal:
        """Fee for a mission of `mission_days` days"""
        for bracket in self.brackets:
            if bracket.up_to_days is None or mission_days <= bracket.up_to_days:
                return bracket.amount
        return self.brackets[-1].amount


class TierModel(BaseModel):
    """Subscription plan of one user type"""
    user_type: UserType
    tier: TierName
    label: str
    monthly_price: Decimal = Field(ge=0)
    upgrade_to: Optional[TierName] = None
    popular: bool = False
    analytics: AnalyticsLevel = "none"
    # Boolean capabilities (events, priority_visibility, ...); undeclared means off
    flags: Dict[str, bool] = Field(default_factory=dict)
    limits: Dict[str, FeatureLimitModel]
    # Required when the plan meters mission contacts
    contact_fee: Optional[ContactFeeModel] = None

    @property
    def plan_id(self) -> str:
        return f"{self.user_type}.{self.tier}"


class TierCatalogModel(BaseModel):
    """Tier catalog root model"""
    catalog_version: str
    effective_from: datetime
    currency: CurrencyModel
    features: Dict[str, FeatureModel]
    user_types: Dict[UserType, UserTypeModel]
    tiers: List[TierModel] = Field(min_length=1)

    @model_validator(mode="after")
    def _check_plans(self) -> "TierCatalogModel":
        catalogued = set(self.features)

        for user_type, definition in self.user_types.items():
            unknown = sorted(set(definition.features) - catalogued)
            if unknown:
                raise ValueError(f"user type '{user_type}' lists uncatalogued features: {unknown}")

        seen: set[tuple[str, str]] = set()
        for plan in self.tiers:
            key = (plan.user_type, plan.tier)
            if key in seen:
                raise ValueError(f"duplicate plan '{plan.plan_id}'")
            seen.add(key)

            definition = self.user_types.get(plan.user_type)
            if definition is None:
                raise ValueError(f"plan '{plan.plan_id}' has undeclared user type '{plan.user_type}'")

            offered = set(definition.features)
            unknown = sorted(set(plan.limits) - offered)
            if unknown:
                raise ValueError(f"plan '{plan.plan_id}' limits features not offered to its user type: {unknown}")

            missing = sorted(offered - set(plan.limits))
            if missing:
                raise ValueError(f"plan '{plan.plan_id}' is missing limits for: {missing}")

            if MISSION_CONTACT_FEATURE in plan.limits and plan.contact_fee is None:
                raise ValueError(f"plan '{plan.plan_id}' meters mission contacts without a contact fee")

        for plan in self.tiers:
            if plan.upgrade_to is not None and (plan.user_type, plan.upgrade_to) not in seen:
                raise ValueError(
                    f"plan '{plan.plan_id}' upgrades to '{plan.upgrade_to}', "
                    f"which '{plan.user_type}' does not offer"
                )

        for user_type in self.user_types:
            if (user_type, "free") not in seen:
                raise ValueError(f"user type '{user_type}' has no free plan")

        return self

    def get_tier(self, user_type: str, tier_name: str) -> Optional[TierModel]:
        """Get plan configuration by (user type, tier)"""
        for tier in self.tiers:
            if tier.user_type == user_type and tier.tier == tier_name:
                return tier
        return None
