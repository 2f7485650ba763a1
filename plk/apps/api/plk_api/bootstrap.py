"""Wiring of the entitlement facade from environment configuration.

The facade is an injected instance: main.create_app() stores it on
app.state and routers receive it through get_facade().
"""

import logging

from fastapi import Request

from plk_api.config.env import get_accounts_backend, get_daily_timezone, get_ledger_backend
from plk_api.entitlements.accounts import AccountDirectory, InMemoryAccountDirectory
from plk_api.entitlements.catalog_loader import load_tier_catalog
from plk_api.entitlements.facade import EntitlementFacade
from plk_api.entitlements.ledger import InMemoryUsageLedger, UsageLedger

logger = logging.getLogger(__name__)


def build_ledger(backend: str) -> UsageLedger:
    """Build the usage ledger for PLK_LEDGER_BACKEND."""
    if backend == "sql":
        from plk_api.db.session import get_session_factory
        from plk_api.entitlements.ledger_sql import SqlUsageLedger

        return SqlUsageLedger(get_session_factory())

    if backend == "redis":
        from plk_api.db.redis_client import get_redis
        from plk_api.entitlements.ledger_redis import RedisUsageLedger

        return RedisUsageLedger(get_redis())

    return InMemoryUsageLedger()


def build_account_directory(backend: str) -> AccountDirectory:
    """Build the account directory for PLK_ACCOUNTS_BACKEND."""
    if backend == "supabase":
        from plk_api.entitlements.accounts import SupabaseAccountDirectory
        from plk_api.supabase_client import get_supabase_admin_client

        return SupabaseAccountDirectory(get_supabase_admin_client())

    return InMemoryAccountDirectory()


def build_facade_from_env() -> EntitlementFacade:
    """
    Load the tier catalog and build the facade from environment configuration.

    Raises:
        CatalogError: tier catalog missing or invalid (fail fast at startup)
        ValueError: invalid or missing backend configuration
    """
    catalog = load_tier_catalog()
    ledger_backend = get_ledger_backend()
    accounts_backend = get_accounts_backend()
    daily_timezone = get_daily_timezone()

    facade = EntitlementFacade(
        catalog=catalog,
        ledger=build_ledger(ledger_backend),
        accounts=build_account_directory(accounts_backend),
        daily_timezone=daily_timezone,
    )

    logger.info(
        "Entitlement facade ready",
        extra={
            "catalog_version": catalog.version,
            "ledger_backend": ledger_backend,
            "accounts_backend": accounts_backend,
            "daily_timezone": str(daily_timezone),
        },
    )
    return facade


def get_facade(request: Request) -> EntitlementFacade:
    """FastAPI dependency: the facade injected into the running app."""
    return request.app.state.facade
