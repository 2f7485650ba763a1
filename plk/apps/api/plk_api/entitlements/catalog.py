"""
Tier Catalog: read-only lookups over a validated TierCatalogModel.

Plans are keyed by (user type, tier). User types are normalized the way
profiles store them (laboratoire -> laboratory, unknown -> candidat); tiers
are not. Unknown tiers and features fail loudly. A silent default would turn
a misconfigured plan into "unlimited" or "zero".
"""

from decimal import Decimal
from typing import Callable, Dict, List, NamedTuple, Optional, Tuple, Union

from .exceptions import UnknownFeatureError, UnknownTierError
from .models import (
    MISSION_CONTACT_FEATURE,
    AnalyticsLevel,
    ContactFeeModel,
    FeatureLimitModel,
    PeriodKind,
    TierCatalogModel,
    TierModel,
    TrackingMode,
    normalize_user_type,
)

FeeSchedule = Callable[[int], Decimal]


class FeatureLimits(NamedTuple):
    """Resolved limit for one (plan, feature)"""
    max: Union[int, float]
    period_kind: PeriodKind
    pay_per_use: bool


class TierCatalog:
    """Immutable tier catalog, loaded once at process start."""

    def __init__(self, model: TierCatalogModel):
        self._model = model
        self._plans: Dict[Tuple[str, str], TierModel] = {
            (plan.user_type, plan.tier): plan for plan in model.tiers
        }

    @property
    def model(self) -> TierCatalogModel:
        return self._model

    @property
    def version(self) -> str:
        return self._model.catalog_version

    @property
    def currency(self) -> str:
        return self._model.currency.code

    def user_types(self) -> List[str]:
        return list(self._model.user_types)

    def tiers(self, user_type: str) -> List[str]:
        """Plan tiers offered to `user_type`, in catalog order"""
        user_type = normalize_user_type(user_type)
        return [plan.tier for plan in self._model.tiers if plan.user_type == user_type]

    def feature_keys(self, user_type: Optional[str] = None) -> List[str]:
        """Metered features of `user_type`, or every catalogued feature"""
        if user_type is None:
            return list(self._model.features)
        return list(self._model.user_types[normalize_user_type(user_type)].features)

    def get_tier(self, user_type: str, tier: str) -> TierModel:
        user_type = normalize_user_type(user_type)
        try:
            return self._plans[(user_type, tier)]
        except KeyError:
            raise UnknownTierError(tier, user_type) from None

    def limits_for(self, user_type: str, tier: str, feature_key: str) -> FeatureLimits:
        """
        Resolve the limit of `feature_key` for the (user_type, tier) plan.

        Raises:
            UnknownTierError: tier not offered to the user type
            UnknownFeatureError: feature not metered for the plan
        """
        plan = self.get_tier(user_type, tier)
        limit: Optional[FeatureLimitModel] = plan.limits.get(feature_key)
        if limit is None:
            raise UnknownFeatureError(feature_key, plan.plan_id)
        return FeatureLimits(
            max=limit.max_count,
            period_kind=limit.period,
            pay_per_use=limit.pay_per_use,
        )

    def fee_rate_for(self, user_type: str, tier: str) -> FeeSchedule:
        """Contact fee schedule of the plan: mission days -> amount"""
        return self.contact_fee_for(user_type, tier).amount_for

    def contact_fee_for(self, user_type: str, tier: str) -> ContactFeeModel:
        plan = self.get_tier(user_type, tier)
        if plan.contact_fee is None:
            raise UnknownFeatureError(MISSION_CONTACT_FEATURE, plan.plan_id)
        return plan.contact_fee

    def tracking_for(self, feature_key: str) -> TrackingMode:
        feature = self._model.features.get(feature_key)
        if feature is None:
            raise UnknownFeatureError(feature_key)
        return feature.tracking

    def price_for(self, user_type: str, tier: str) -> Decimal:
        return self.get_tier(user_type, tier).monthly_price

    def next_tier(self, user_type: str, tier: str) -> Optional[str]:
        """Upgrade target of the plan, None at the top of its ladder"""
        return self.get_tier(user_type, tier).upgrade_to

    def has_feature(self, user_type: str, tier: str, feature_key: str) -> bool:
        """
        Whether the plan grants `feature_key` at all.

        Boolean flags answer directly; a metered feature counts when its
        maximum is above zero or unlimited. Anything else is off.
        """
        plan = self.get_tier(user_type, tier)
        if feature_key in plan.flags:
            return plan.flags[feature_key]
        limit = plan.limits.get(feature_key)
        return limit is not None and limit.max_count > 0

    def analytics_level(self, user_type: str, tier: str) -> AnalyticsLevel:
        return self.get_tier(user_type, tier).analytics
