"""
Unit tests for the tier catalog loader

Tests:
- Packaged catalog loads and validates against its JSON Schema
- Every plan declares a limit for every feature of its user type
- Broken documents fail with CatalogError (never a partial catalog)
- PLK_TIER_CATALOG_PATH overrides the packaged catalog
"""

import copy
import json
import math
from decimal import Decimal

import pytest

from plk_api.entitlements.catalog_loader import (
    DEFAULT_CATALOG_PATH,
    DEFAULT_SCHEMA_PATH,
    CatalogLoader,
    get_catalog_loader,
    load_tier_catalog,
    reset_catalog_loader,
)
from plk_api.entitlements.exceptions import CatalogError

from conftest import build_scenario_catalog_dict


@pytest.fixture
def write_catalog(tmp_path):
    """Write a catalog document to a temp file and return a loader for it"""

    def _write(document) -> CatalogLoader:
        path = tmp_path / "catalog.json"
        if isinstance(document, str):
            path.write_text(document, encoding="utf-8")
        else:
            path.write_text(json.dumps(document), encoding="utf-8")
        return CatalogLoader(path, DEFAULT_SCHEMA_PATH)

    return _write


@pytest.fixture(autouse=True)
def _fresh_loader():
    reset_catalog_loader()
    yield
    reset_catalog_loader()


class TestPackagedCatalog:
    """Packaged tier catalog"""

    def test_load_packaged_catalog(self):
        """Test loading the packaged catalog"""
        catalog = CatalogLoader(DEFAULT_CATALOG_PATH, DEFAULT_SCHEMA_PATH).load()

        assert catalog.version == "2026-10-15.v2"
        assert catalog.currency == "EUR"
        assert catalog.user_types() == ["laboratory", "titulaire", "animateur", "candidat", "etudiant"]

    def test_every_plan_covers_its_features(self):
        """No plan may leave a feature of its user type undefined (no silent default)"""
        catalog = CatalogLoader(DEFAULT_CATALOG_PATH, DEFAULT_SCHEMA_PATH).load()

        for user_type in catalog.user_types():
            for tier in catalog.tiers(user_type):
                for feature_key in catalog.feature_keys(user_type):
                    limits = catalog.limits_for(user_type, tier, feature_key)
                    assert limits.max >= 0

    def test_null_max_is_unlimited(self):
        catalog = CatalogLoader(DEFAULT_CATALOG_PATH, DEFAULT_SCHEMA_PATH).load()

        assert math.isinf(catalog.limits_for("laboratory", "business", "posts").max)

    def test_fee_schedules_are_non_decreasing(self):
        catalog = CatalogLoader(DEFAULT_CATALOG_PATH, DEFAULT_SCHEMA_PATH).load()

        for user_type in ("laboratory", "titulaire", "animateur"):
            for tier in catalog.tiers(user_type):
                schedule = catalog.fee_rate_for(user_type, tier)
                amounts = [schedule(days) for days in range(1, 91)]
                assert amounts == sorted(amounts), f"{user_type}.{tier} fee decreases with duration"

    def test_get_catalog_before_load_raises(self):
        loader = CatalogLoader(DEFAULT_CATALOG_PATH, DEFAULT_SCHEMA_PATH)

        with pytest.raises(RuntimeError, match="not loaded"):
            loader.get_catalog()

    def test_get_catalog_is_cached(self):
        loader = CatalogLoader(DEFAULT_CATALOG_PATH, DEFAULT_SCHEMA_PATH)
        catalog = loader.load()

        assert loader.get_catalog() is catalog


class TestInvalidCatalog:
    """Invalid documents are rejected at load time"""

    def test_scenario_catalog_is_valid(self, write_catalog):
        """Sanity check: the test catalog itself passes both validation layers"""
        catalog = write_catalog(build_scenario_catalog_dict()).load()

        assert catalog.version == "test.v1"

    def test_missing_file(self, tmp_path):
        loader = CatalogLoader(tmp_path / "missing.json", DEFAULT_SCHEMA_PATH)

        with pytest.raises(CatalogError, match="not found"):
            loader.load()

    def test_malformed_json(self, write_catalog):
        with pytest.raises(CatalogError, match="not valid JSON"):
            write_catalog("{not json").load()

    def test_negative_max_fails_schema(self, write_catalog):
        document = build_scenario_catalog_dict()
        document["tiers"][0]["limits"]["posts"]["max"] = -1

        with pytest.raises(CatalogError, match="JSON Schema"):
            write_catalog(document).load()

    def test_unknown_period_fails_schema(self, write_catalog):
        document = build_scenario_catalog_dict()
        document["tiers"][0]["limits"]["posts"]["period"] = "weekly"

        with pytest.raises(CatalogError):
            write_catalog(document).load()

    def test_missing_feature_limit(self, write_catalog):
        """A tier without a limit for a catalogued feature is a defect"""
        document = build_scenario_catalog_dict()
        del document["tiers"][1]["limits"]["videos"]

        with pytest.raises(CatalogError, match="missing limits"):
            write_catalog(document).load()

    def test_uncatalogued_feature_limit(self, write_catalog):
        document = build_scenario_catalog_dict()
        document["tiers"][1]["limits"]["stories"] = {"max": 1, "period": "monthly"}

        with pytest.raises(CatalogError):
            write_catalog(document).load()

    def test_decreasing_fee_rejected(self, write_catalog):
        """Longer missions never cost less"""
        document = build_scenario_catalog_dict()
        document["tiers"][1]["contact_fee"]["brackets"] = [
            {"up_to_days": 3, "amount": "20.00"},
            {"up_to_days": None, "amount": "12.00"},
        ]

        with pytest.raises(CatalogError, match="must not decrease"):
            write_catalog(document).load()

    def test_closed_last_bracket_rejected(self, write_catalog):
        document = build_scenario_catalog_dict()
        document["tiers"][2]["contact_fee"]["brackets"] = [{"up_to_days": 30, "amount": "10.00"}]

        with pytest.raises(CatalogError):
            write_catalog(document).load()

    def test_duplicate_tier_rejected(self, write_catalog):
        document = build_scenario_catalog_dict()
        document["tiers"].append(copy.deepcopy(document["tiers"][0]))

        with pytest.raises(CatalogError, match="duplicate plan"):
            write_catalog(document).load()

    def test_same_tier_for_two_user_types(self, write_catalog):
        """free exists once per user type"""
        document = build_scenario_catalog_dict()
        document["user_types"]["candidat"] = {"label": "Candidat", "features": ["photos"]}
        document["tiers"].append({
            "user_type": "candidat",
            "tier": "free",
            "label": "Gratuit",
            "monthly_price": "0.00",
            "limits": {"photos": {"max": 2, "period": "lifetime"}},
        })

        catalog = write_catalog(document).load()

        assert catalog.limits_for("candidat", "free", "photos").max == 2
        assert catalog.limits_for("laboratory", "free", "photos").max == 5

    def test_feature_not_offered_to_user_type(self, write_catalog):
        document = build_scenario_catalog_dict()
        document["features"]["cv_generated"] = {"tracking": "absolute"}
        document["tiers"][0]["limits"]["cv_generated"] = {"max": 1, "period": "lifetime"}

        with pytest.raises(CatalogError, match="not offered"):
            write_catalog(document).load()

    def test_undeclared_user_type(self, write_catalog):
        document = build_scenario_catalog_dict()
        document["tiers"][2]["user_type"] = "titulaire"

        with pytest.raises(CatalogError, match="undeclared user type"):
            write_catalog(document).load()

    def test_upgrade_outside_user_type(self, write_catalog):
        document = build_scenario_catalog_dict()
        document["tiers"][2]["upgrade_to"] = "business"

        with pytest.raises(CatalogError, match="does not offer"):
            write_catalog(document).load()

    def test_user_type_without_free_plan(self, write_catalog):
        document = build_scenario_catalog_dict()
        document["user_types"]["etudiant"] = {"label": "Etudiant", "features": ["photos"]}

        with pytest.raises(CatalogError, match="no free plan"):
            write_catalog(document).load()

    def test_metered_contacts_need_a_fee(self, write_catalog):
        document = build_scenario_catalog_dict()
        del document["tiers"][1]["contact_fee"]

        with pytest.raises(CatalogError, match="without a contact fee"):
            write_catalog(document).load()


class TestPackagedPlans:
    """User-type plans shipped in the packaged catalog"""

    @pytest.fixture
    def catalog(self):
        return CatalogLoader(DEFAULT_CATALOG_PATH, DEFAULT_SCHEMA_PATH).load()

    def test_titulaire_contact_fees(self, catalog):
        free = catalog.fee_rate_for("titulaire", "free")

        assert [free(days) for days in (1, 2, 3, 5, 6)] == [
            Decimal("5.00"), Decimal("5.00"), Decimal("8.00"), Decimal("8.00"), Decimal("10.00"),
        ]
        assert catalog.fee_rate_for("titulaire", "pro")(30) == Decimal("8.00")
        assert catalog.fee_rate_for("titulaire", "business")(30) == Decimal("5.00")

    @pytest.mark.parametrize("tier,included", [("free", 0), ("pro", 1), ("business", 5)])
    def test_titulaire_included_contacts(self, catalog, tier, included):
        assert catalog.limits_for("titulaire", tier, "mission_contact").max == included

    def test_titulaire_offers(self, catalog):
        assert catalog.limits_for("titulaire", "free", "job_offers").max == 1
        assert math.isinf(catalog.limits_for("titulaire", "free", "internship_offers").max)
        assert catalog.limits_for("titulaire", "business", "animator_missions").max == 5

    def test_animateur_contacts_always_included(self, catalog):
        for tier in catalog.tiers("animateur"):
            assert math.isinf(catalog.limits_for("animateur", tier, "mission_contact").max)

    def test_prices(self, catalog):
        assert catalog.price_for("titulaire", "pro") == Decimal("29.00")
        assert catalog.price_for("laboratoire", "pro") == Decimal("149.00")
        assert catalog.price_for("etudiant", "premium") == Decimal("5.00")


class TestEnvironmentPath:
    """PLK_TIER_CATALOG_PATH selects the catalog document"""

    def test_env_path_override(self, tmp_path, monkeypatch):
        document = build_scenario_catalog_dict()
        document["catalog_version"] = "env.v2"
        path = tmp_path / "env_catalog.json"
        path.write_text(json.dumps(document), encoding="utf-8")
        monkeypatch.setenv("PLK_TIER_CATALOG_PATH", str(path))

        catalog = load_tier_catalog()

        assert catalog.version == "env.v2"
        assert catalog.fee_rate_for("laboratory", "starter")(4) == Decimal("15.00")

    def test_default_path_without_env(self, monkeypatch):
        monkeypatch.delenv("PLK_TIER_CATALOG_PATH", raising=False)

        assert get_catalog_loader().catalog_path == DEFAULT_CATALOG_PATH
