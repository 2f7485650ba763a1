"""Pytest configuration and fixtures."""

import sys
from pathlib import Path
# Inject sys.path for reliable pytest imports
sys.path.insert(0, str(Path(__file__).resolve().parents[1]))  # => .../apps/api

import os

# Keep pytest's log capture in charge of the root logger
os.environ.setdefault("PLK_JSON_LOGS", "false")

from datetime import datetime, timedelta, timezone

import pytest
from fastapi.testclient import TestClient

from plk_api.db.engine import build_engine, build_sessionmaker
from plk_api.db.models import Base
from plk_api.entitlements.accounts import Account, InMemoryAccountDirectory
from plk_api.entitlements.catalog import TierCatalog
from plk_api.entitlements.catalog_loader import DEFAULT_CATALOG_PATH, DEFAULT_SCHEMA_PATH, CatalogLoader
from plk_api.entitlements.facade import EntitlementFacade
from plk_api.entitlements.ledger import InMemoryUsageLedger
from plk_api.entitlements.models import TierCatalogModel


def build_scenario_catalog_dict() -> dict:
    """Small catalog mirroring the documented quota scenarios.

    Laboratory plans only:
    free: posts 3/month, sponsored and contacts pay-per-use only
    starter: 5 included contacts, tiered contact fee
    pro: unlimited posts and videos, events and priority visibility
    """
    return {
        "catalog_version": "test.v1",
        "effective_from": "2026-01-01T00:00:00Z",
        "currency": {"code": "EUR", "symbol": "€"},
        "features": {
            "posts": {"tracking": "incremental"},
            "videos": {"tracking": "incremental"},
            "photos": {"tracking": "absolute"},
            "sponsored_week": {"tracking": "incremental"},
            "sponsored_card": {"tracking": "incremental"},
            "mission_contact": {"tracking": "incremental"},
        },
        "user_types": {
            "laboratory": {
                "label": "Laboratoire",
                "features": [
                    "posts", "videos", "photos", "sponsored_week", "sponsored_card", "mission_contact",
                ],
            },
        },
        "tiers": [
            {
                "user_type": "laboratory",
                "tier": "free",
                "label": "Gratuit",
                "monthly_price": "0.00",
                "upgrade_to": "starter",
                "flags": {"events": False},
                "limits": {
                    "posts": {"max": 3, "period": "monthly"},
                    "videos": {"max": 0, "period": "monthly"},
                    "photos": {"max": 5, "period": "lifetime"},
                    "sponsored_week": {"max": 0, "period": "monthly", "pay_per_use": True},
                    "sponsored_card": {"max": 0, "period": "monthly", "pay_per_use": True},
                    "mission_contact": {"max": 0, "period": "monthly", "pay_per_use": True},
                },
                "contact_fee": {
                    "brackets": [
                        {"up_to_days": 2, "amount": "10.00"},
                        {"up_to_days": 5, "amount": "15.00"},
                        {"up_to_days": None, "amount": "20.00"},
                    ]
                },
            },
            {
                "user_type": "laboratory",
                "tier": "starter",
                "label": "Starter",
                "monthly_price": "49.00",
                "upgrade_to": "pro",
                "limits": {
                    "posts": {"max": 5, "period": "monthly"},
                    "videos": {"max": 1, "period": "monthly"},
                    "photos": {"max": 10, "period": "lifetime"},
                    "sponsored_week": {"max": 1, "period": "monthly"},
                    "sponsored_card": {"max": 2, "period": "monthly"},
                    "mission_contact": {"max": 5, "period": "monthly"},
                },
                "contact_fee": {
                    "brackets": [
                        {"up_to_days": 3, "amount": "12.50"},
                        {"up_to_days": 7, "amount": "15.00"},
                        {"up_to_days": None, "amount": "25.00"},
                    ]
                },
            },
            {
                "user_type": "laboratory",
                "tier": "pro",
                "label": "Pro",
                "monthly_price": "149.00",
                "upgrade_to": None,
                "analytics": "advanced",
                "flags": {"events": True, "priority_visibility": True},
                "limits": {
                    "posts": {"max": None, "period": "monthly"},
                    "videos": {"max": None, "period": "monthly"},
                    "photos": {"max": 20, "period": "lifetime"},
                    "sponsored_week": {"max": 2, "period": "monthly"},
                    "sponsored_card": {"max": 2, "period": "monthly"},
                    "mission_contact": {"max": None, "period": "monthly"},
                },
                "contact_fee": {
                    "brackets": [
                        {"up_to_days": None, "amount": "10.00"},
                    ]
                },
            },
        ],
    }


class FrozenClock:
    """Controllable wall clock for period tests."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now = self.now + timedelta(**kwargs)


@pytest.fixture
def scenario_catalog() -> TierCatalog:
    return TierCatalog(TierCatalogModel(**build_scenario_catalog_dict()))


@pytest.fixture(scope="session")
def packaged_catalog() -> TierCatalog:
    """The catalog shipped with the service (every user type)."""
    return CatalogLoader(DEFAULT_CATALOG_PATH, DEFAULT_SCHEMA_PATH).load()


@pytest.fixture
def clock() -> FrozenClock:
    return FrozenClock(datetime(2026, 10, 15, 12, 0, tzinfo=timezone.utc))


@pytest.fixture
def ledger() -> InMemoryUsageLedger:
    return InMemoryUsageLedger()


@pytest.fixture
def accounts() -> InMemoryAccountDirectory:
    """Directory with one account per tier plus a misconfigured one."""
    return InMemoryAccountDirectory({
        "acc_free": Account(account_id="acc_free", user_type="laboratoire", tier="free"),
        "acc_starter": Account(account_id="acc_starter", user_type="laboratoire", tier="starter"),
        "acc_pro": Account(account_id="acc_pro", user_type="laboratoire", tier="pro"),
        "acc_gold": Account(account_id="acc_gold", user_type="laboratoire", tier="gold"),
    })


@pytest.fixture
def facade(scenario_catalog, ledger, accounts, clock) -> EntitlementFacade:
    return EntitlementFacade(
        catalog=scenario_catalog,
        ledger=ledger,
        accounts=accounts,
        clock=clock,
    )


@pytest.fixture
def sqlite_session_factory(tmp_path):
    """File-backed SQLite database with the usage_counters table."""
    engine = build_engine(f"sqlite:///{tmp_path / 'ledger.db'}")
    Base.metadata.create_all(engine)
    try:
        yield build_sessionmaker(engine)
    finally:
        engine.dispose()


@pytest.fixture
def client(facade) -> TestClient:
    """TestClient over an app serving the scenario facade."""
    from plk_api.main import create_app

    return TestClient(create_app(facade=facade))
