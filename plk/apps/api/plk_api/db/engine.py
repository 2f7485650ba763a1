"""Database engine builder.

- Default pool: NullPool (Supabase pooler in transaction mode does the pooling)
- ENV: PLK_DB_POOL=nullpool|queuepool (default: nullpool)
- Postgres URLs are pinned to the psycopg2 driver (postgresql+psycopg2://)
- Supabase hosts: sslmode=require unless the URL or PLK_DB_SSLMODE sets it
- SQLite (tests, local): busy timeout so concurrent writers wait instead of failing
"""

import logging
import os
import re
from typing import Any, Optional
from urllib.parse import parse_qs, urlparse

from sqlalchemy import Engine, NullPool, create_engine
from sqlalchemy.orm import Session, sessionmaker

from plk_api.config.env import get_database_url

logger = logging.getLogger(__name__)

SQLITE_BUSY_TIMEOUT_SECONDS = 30

POSTGRES_DRIVER_PREFIX = "postgresql+psycopg2://"


def normalize_database_url(url: str) -> str:
    """Pin bare postgres:// and postgresql:// URLs to psycopg2.

    SQLAlchemy picks its own default DBAPI for a bare scheme; the installed
    driver is psycopg2-binary. URLs naming a driver are left untouched.
    """
    for scheme in ("postgres://", "postgresql://"):
        if url.startswith(scheme):
            return POSTGRES_DRIVER_PREFIX + url[len(scheme):]
    return url


def _mask_password(url: str) -> str:
    """Mask password in database URL for safe logging."""
    return re.sub(r"://([^:]+):([^@]+)@", r"://\1:***@", url)


def _is_supabase_host(url: str) -> bool:
    hostname = (urlparse(url).hostname or "").lower()
    return hostname.endswith(".supabase.co") or hostname.endswith(".supabase.com")


def _connect_args(url: str) -> dict[str, Any]:
    if url.startswith("sqlite"):
        return {"timeout": SQLITE_BUSY_TIMEOUT_SECONDS, "check_same_thread": False}

    connect_args: dict[str, Any] = {}
    # sslmode in the URL query wins over the injected default
    url_has_sslmode = "sslmode" in parse_qs(urlparse(url).query)
    if _is_supabase_host(url) and not url_has_sslmode:
        connect_args["sslmode"] = os.getenv("PLK_DB_SSLMODE", "require")

    app_name = os.getenv("PLK_DB_APPLICATION_NAME", "pharmalink-entitlements")
    if app_name:
        connect_args["application_name"] = app_name
    return connect_args


def build_engine(database_url: Optional[str] = None) -> Engine:
    """
    Build SQLAlchemy engine.

    Args:
        database_url: Database URL. If None, reads DATABASE_URL.

    Returns:
        SQLAlchemy Engine instance.

    Raises:
        ValueError: DATABASE_URL missing, or invalid PLK_DB_POOL value.
    """
    url = normalize_database_url(database_url or get_database_url())
    connect_args = _connect_args(url)

    pool_mode = (os.getenv("PLK_DB_POOL") or "nullpool").lower()

    if pool_mode == "nullpool":
        engine = create_engine(
            url,
            poolclass=NullPool,
            pool_pre_ping=True,
            connect_args=connect_args,
        )
    elif pool_mode == "queuepool":
        pool_size = int(os.getenv("PLK_DB_POOL_SIZE", "5"))
        max_overflow = int(os.getenv("PLK_DB_MAX_OVERFLOW", "10"))
        engine = create_engine(
            url,
            pool_pre_ping=True,
            pool_size=pool_size,
            max_overflow=max_overflow,
            connect_args=connect_args,
        )
    else:
        raise ValueError(
            f"Invalid PLK_DB_POOL value: {pool_mode}. "
            "Must be 'nullpool' or 'queuepool'."
        )

    # Never log the full URL with password
    logger.debug(
        "Database engine created: pool=%s, url=%s",
        engine.pool.__class__.__name__,
        _mask_password(url),
    )

    return engine


def build_sessionmaker(engine: Engine) -> sessionmaker[Session]:
    """
    Build SQLAlchemy sessionmaker (autocommit=False, autoflush=False).

    Examples:
        >>> SessionLocal = build_sessionmaker(build_engine())
        >>> with SessionLocal() as session:
        ...     ...
    """
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)
