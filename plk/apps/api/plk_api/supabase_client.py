"""Supabase client configuration for the subscription directory.

The entitlement service reads account subscriptions server-side, so it uses
the secret (service role) key, which bypasses RLS. Never expose it to clients.

KEY NAMING TRANSITION:
- New Supabase UI (2024+): SB_SECRET_KEY
- Legacy (pre-2024): SUPABASE_SERVICE_ROLE_KEY
"""

import logging
import os
from functools import lru_cache

from supabase import Client, create_client

logger = logging.getLogger(__name__)


@lru_cache(maxsize=1)
def get_supabase_url() -> str:
    """Get Supabase project URL from environment.

    Raises:
        RuntimeError: If SUPABASE_URL not set
    """
    url = os.getenv("SUPABASE_URL")
    if not url:
        raise RuntimeError(
            "SUPABASE_URL environment variable not set. "
            "Required when PLK_ACCOUNTS_BACKEND=supabase."
        )
    return url


@lru_cache(maxsize=1)
def get_supabase_secret_key() -> str:
    """Get Supabase secret (service role) key from environment.

    Priority:
    1. SB_SECRET_KEY (new standard)
    2. SUPABASE_SERVICE_ROLE_KEY (legacy)

    Raises:
        RuntimeError: If neither key is set
    """
    key = os.getenv("SB_SECRET_KEY")
    if key:
        return key

    key = os.getenv("SUPABASE_SERVICE_ROLE_KEY")
    if key:
        logger.info(
            "Using legacy SUPABASE_SERVICE_ROLE_KEY (consider migrating to SB_SECRET_KEY)"
        )
        return key

    raise RuntimeError(
        "Neither SB_SECRET_KEY nor SUPABASE_SERVICE_ROLE_KEY environment variable is set. "
        "Set SB_SECRET_KEY (recommended) or SUPABASE_SERVICE_ROLE_KEY (legacy)."
    )


@lru_cache(maxsize=1)
def get_supabase_admin_client() -> Client:
    """Get Supabase admin client for server-side subscription reads."""
    url = get_supabase_url()
    secret_key = get_supabase_secret_key()

    # Log initialization (without exposing keys)
    logger.info(
        "Initializing Supabase admin client",
        extra={"supabase_url": url, "key_type": "secret"},
    )

    return create_client(url, secret_key)
