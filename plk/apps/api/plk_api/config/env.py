"""Environment variable resolution utilities.

Canonical env names + fail-fast validation in production.
"""

import os
from typing import List, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

LEDGER_BACKENDS = {"memory", "redis", "sql"}
ACCOUNTS_BACKENDS = {"memory", "supabase"}

# The app's users count "today" on French local time
DEFAULT_DAILY_TIMEZONE = "Europe/Paris"


def get_plk_env() -> str:
    """Get PharmaLink environment name.

    Priority:
    1. PLK_ENV
    2. Default: "local"

    Returns:
        Environment name (lowercase)
    """
    return (os.getenv("PLK_ENV") or "local").lower()


def is_production_env() -> bool:
    """True if PLK_ENV is prod/production."""
    return get_plk_env() in {"prod", "production"}


def get_tier_catalog_path() -> Optional[str]:
    """Tier catalog JSON path (PLK_TIER_CATALOG_PATH); None = packaged catalog."""
    return os.getenv("PLK_TIER_CATALOG_PATH") or None


def get_tier_catalog_schema_path() -> Optional[str]:
    """Tier catalog JSON Schema path (PLK_TIER_CATALOG_SCHEMA_PATH); None = packaged schema."""
    return os.getenv("PLK_TIER_CATALOG_SCHEMA_PATH") or None


def get_ledger_backend() -> str:
    """Get usage ledger backend.

    Required: PLK_LEDGER_BACKEND in production (memory is not durable).
    Default: memory (local/dev/test)

    Returns:
        "memory" | "redis" | "sql"

    Raises:
        ValueError: Unknown backend, or missing/in-memory backend in production
    """
    backend = (os.getenv("PLK_LEDGER_BACKEND") or "").lower()

    if not backend:
        if is_production_env():
            raise ValueError(
                "PLK_LEDGER_BACKEND is required in production environment. "
                "Set PLK_LEDGER_BACKEND=sql or PLK_LEDGER_BACKEND=redis."
            )
        backend = "memory"

    if backend not in LEDGER_BACKENDS:
        raise ValueError(
            f"Invalid PLK_LEDGER_BACKEND value: {backend}. "
            "Must be 'memory', 'redis' or 'sql'."
        )

    if backend == "memory" and is_production_env():
        raise ValueError(
            "PRODUCTION GUARDRAIL: PLK_LEDGER_BACKEND=memory loses usage counters on restart. "
            "Use 'sql' or 'redis' in production."
        )

    return backend


def get_database_url() -> str:
    """Get DATABASE_URL.

    Raises:
        ValueError: If DATABASE_URL is not set
    """
    url = os.getenv("DATABASE_URL")
    if not url:
        raise ValueError(
            "DATABASE_URL is required when PLK_LEDGER_BACKEND=sql. "
            "Set DATABASE_URL in your environment configuration."
        )
    return url


def get_accounts_backend() -> str:
    """Get account directory backend.

    Default: supabase in production, memory elsewhere.

    Returns:
        "supabase" | "memory"

    Raises:
        ValueError: Unknown backend, or memory directory in production
    """
    backend = (os.getenv("PLK_ACCOUNTS_BACKEND") or "").lower()
    if not backend:
        backend = "supabase" if is_production_env() else "memory"

    if backend not in ACCOUNTS_BACKENDS:
        raise ValueError(
            f"Invalid PLK_ACCOUNTS_BACKEND value: {backend}. "
            "Must be 'supabase' or 'memory'."
        )

    if backend == "memory" and is_production_env():
        raise ValueError(
            "PRODUCTION GUARDRAIL: PLK_ACCOUNTS_BACKEND=memory has no subscriptions. "
            "Use 'supabase' in production."
        )

    return backend


def get_daily_timezone() -> ZoneInfo:
    """Timezone bounding daily quotas (PLK_DAILY_TIMEZONE, default Europe/Paris).

    Raises:
        ValueError: Unknown IANA timezone name
    """
    name = os.getenv("PLK_DAILY_TIMEZONE") or DEFAULT_DAILY_TIMEZONE
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError) as e:
        raise ValueError(f"Invalid PLK_DAILY_TIMEZONE value: {name}") from e


def json_logs_enabled() -> bool:
    """PLK_JSON_LOGS (default true)."""
    return os.getenv("PLK_JSON_LOGS", "true").lower() in {"1", "true", "yes"}


def get_log_level() -> str:
    return os.getenv("LOG_LEVEL", "INFO").upper()


def get_cors_allowed_origins() -> List[str]:
    """Comma-separated CORS_ALLOWED_ORIGINS (empty list = CORS disabled)."""
    raw = os.getenv("CORS_ALLOWED_ORIGINS", "")
    return [origin.strip() for origin in raw.split(",") if origin.strip()]
