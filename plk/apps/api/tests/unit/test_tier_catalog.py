"""
Unit tests for TierCatalog lookups
"""

import math
from decimal import Decimal

import pytest

from plk_api.entitlements.exceptions import UnknownFeatureError, UnknownTierError
from plk_api.entitlements.models import normalize_user_type

LAB = "laboratory"


class TestLimits:
    """limits_for resolution"""

    def test_finite_limit(self, scenario_catalog):
        limits = scenario_catalog.limits_for(LAB, "free", "posts")

        assert limits.max == 3
        assert limits.period_kind == "monthly"
        assert limits.pay_per_use is False

    def test_unlimited_is_infinity(self, scenario_catalog):
        limits = scenario_catalog.limits_for(LAB, "pro", "videos")

        assert math.isinf(limits.max)

    def test_lifetime_period(self, scenario_catalog):
        assert scenario_catalog.limits_for(LAB, "starter", "photos").period_kind == "lifetime"

    def test_pay_per_use_flag(self, scenario_catalog):
        limits = scenario_catalog.limits_for(LAB, "free", "sponsored_card")

        assert limits.max == 0
        assert limits.pay_per_use is True

    def test_profile_user_type_is_normalized(self, scenario_catalog):
        assert scenario_catalog.limits_for("laboratoire", "free", "posts").max == 3

    def test_unknown_tier_raises(self, scenario_catalog):
        """Unknown tier must fail loudly, never default to unlimited"""
        with pytest.raises(UnknownTierError) as exc_info:
            scenario_catalog.limits_for(LAB, "gold", "posts")

        assert exc_info.value.tier == "gold"
        assert exc_info.value.user_type == LAB

    def test_tier_of_another_user_type_raises(self, scenario_catalog):
        """The scenario catalog offers no candidate plans"""
        with pytest.raises(UnknownTierError):
            scenario_catalog.limits_for("candidat", "free", "posts")

    def test_unknown_feature_raises(self, scenario_catalog):
        with pytest.raises(UnknownFeatureError) as exc_info:
            scenario_catalog.limits_for(LAB, "starter", "stories")

        assert exc_info.value.feature_key == "stories"
        assert exc_info.value.tier == "laboratory.starter"


class TestFeeSchedule:
    """fee_rate_for schedules"""

    @pytest.mark.parametrize(
        "days,expected",
        [(1, "12.50"), (3, "12.50"), (4, "15.00"), (7, "15.00"), (8, "25.00"), (365, "25.00")],
    )
    def test_tiered_brackets(self, scenario_catalog, days, expected):
        assert scenario_catalog.fee_rate_for(LAB, "starter")(days) == Decimal(expected)

    def test_fixed_fee(self, scenario_catalog):
        schedule = scenario_catalog.fee_rate_for(LAB, "pro")

        assert schedule(1) == schedule(90) == Decimal("10.00")
        assert scenario_catalog.contact_fee_for(LAB, "pro").fee_structure == "fixed"
        assert scenario_catalog.contact_fee_for(LAB, "starter").fee_structure == "tiered"

    def test_monotonic_in_duration(self, packaged_catalog):
        for user_type in ("laboratory", "titulaire", "animateur"):
            for tier in packaged_catalog.tiers(user_type):
                schedule = packaged_catalog.fee_rate_for(user_type, tier)
                for days in range(1, 60):
                    assert schedule(days + 1) >= schedule(days)

    def test_unknown_tier_raises(self, scenario_catalog):
        with pytest.raises(UnknownTierError):
            scenario_catalog.fee_rate_for(LAB, "gold")

    def test_plan_without_contacts_has_no_schedule(self, packaged_catalog):
        with pytest.raises(UnknownFeatureError) as exc_info:
            packaged_catalog.contact_fee_for("candidat", "free")

        assert exc_info.value.feature_key == "mission_contact"


class TestCatalogMetadata:
    def test_tracking_modes(self, scenario_catalog):
        assert scenario_catalog.tracking_for("posts") == "incremental"
        assert scenario_catalog.tracking_for("photos") == "absolute"

    def test_tracking_unknown_feature(self, scenario_catalog):
        with pytest.raises(UnknownFeatureError):
            scenario_catalog.tracking_for("stories")

    def test_next_tier(self, scenario_catalog):
        assert scenario_catalog.next_tier(LAB, "free") == "starter"
        assert scenario_catalog.next_tier(LAB, "starter") == "pro"
        assert scenario_catalog.next_tier(LAB, "pro") is None

    def test_price_for(self, scenario_catalog):
        assert scenario_catalog.price_for(LAB, "starter") == Decimal("49.00")

    def test_tiers_per_user_type(self, packaged_catalog):
        assert packaged_catalog.tiers("laboratory") == ["free", "starter", "pro", "business"]
        assert packaged_catalog.tiers("titulaire") == ["free", "pro", "business"]
        assert packaged_catalog.tiers("preparateur") == ["free", "premium"]

    def test_feature_keys_per_user_type(self, packaged_catalog):
        assert "posts" not in packaged_catalog.feature_keys("titulaire")
        assert "job_offers" in packaged_catalog.feature_keys("titulaire")
        assert set(packaged_catalog.feature_keys("candidat")) == {
            "super_likes", "cv_generated", "documents_storage",
        }


class TestHasFeature:
    def test_boolean_flags(self, packaged_catalog):
        assert packaged_catalog.has_feature("laboratory", "pro", "events") is True
        assert packaged_catalog.has_feature("laboratory", "starter", "events") is False
        assert packaged_catalog.has_feature("titulaire", "pro", "priority_visibility") is True

    def test_metered_features(self, packaged_catalog):
        assert packaged_catalog.has_feature("titulaire", "free", "animator_missions") is False
        assert packaged_catalog.has_feature("titulaire", "pro", "animator_missions") is True
        assert packaged_catalog.has_feature("titulaire", "free", "internship_offers") is True

    def test_undeclared_feature_is_off(self, packaged_catalog):
        assert packaged_catalog.has_feature("candidat", "premium", "events") is False
        assert packaged_catalog.has_feature("candidat", "premium", "posts") is False

    def test_analytics_level(self, packaged_catalog):
        assert packaged_catalog.analytics_level("laboratory", "free") == "none"
        assert packaged_catalog.analytics_level("laboratory", "business") == "advanced_export"
        assert packaged_catalog.analytics_level("titulaire", "pro") == "none"


class TestNormalizeUserType:
    @pytest.mark.parametrize(
        "profile_type,expected",
        [
            ("laboratoire", "laboratory"),
            ("laboratory", "laboratory"),
            ("titulaire", "titulaire"),
            ("animateur", "animateur"),
            ("preparateur", "candidat"),
            ("conseiller", "candidat"),
            ("etudiant", "etudiant"),
            ("pharmacien_adjoint", "candidat"),
            (None, "candidat"),
        ],
    )
    def test_profile_types(self, profile_type, expected):
        assert normalize_user_type(profile_type) == expected
