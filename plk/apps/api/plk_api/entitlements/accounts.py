"""
Account directory: the subscription collaborator.

The engine only reads an account's user type, tier and period anchor.
Identity, sign-up and plan changes live elsewhere.
"""

import logging
import threading
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Callable, Dict, Optional

from pydantic import BaseModel, ConfigDict, field_validator
from supabase import Client

from .exceptions import AccountNotFoundError
from .models import DEFAULT_USER_TYPE, normalize_user_type
from .periods import as_utc, utc_now

logger = logging.getLogger(__name__)

DEFAULT_TIER = "free"


class Account(BaseModel):
    """Read-only view of an account's subscription"""
    model_config = ConfigDict(frozen=True)

    account_id: str
    user_type: str = DEFAULT_USER_TYPE
    # Plain str: an unknown tier must reach the catalog and fail there
    tier: str = DEFAULT_TIER
    period_anchor: Optional[datetime] = None

    @field_validator("user_type", mode="before")
    @classmethod
    def _normalize_user_type(cls, value):
        return normalize_user_type(value)


class AccountDirectory(ABC):
    """Resolves account ids to their current subscription."""

    @abstractmethod
    def get_account(self, account_id: str) -> Account:
        """
        Raises:
            AccountNotFoundError: account id unknown to the directory
        """


class InMemoryAccountDirectory(AccountDirectory):
    """Dict-backed directory for tests and local development."""

    def __init__(self, accounts: Optional[Dict[str, Account]] = None):
        self._accounts: Dict[str, Account] = dict(accounts or {})
        self._lock = threading.Lock()

    def put(self, account: Account) -> None:
        with self._lock:
            self._accounts[account.account_id] = account

    def get_account(self, account_id: str) -> Account:
        with self._lock:
            account = self._accounts.get(account_id)
        if account is None:
            raise AccountNotFoundError(account_id)
        return account


def _parse_timestamp(value) -> Optional[datetime]:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        parsed = value
    else:
        parsed = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    return as_utc(parsed)


class SupabaseAccountDirectory(AccountDirectory):
    """
    Reads `users.user_type` and the `subscriptions` table
    (tier, started_at, expires_at, auto_renew).

    Rules:
    - No users row: the account does not exist.
    - user_type is normalized to a catalog user type (unknown -> candidat).
    - No subscription row: the account is on the free plan.
    - Expired and not auto-renewing: back to free.
    - started_at is the billing period anchor.
    """

    USERS_TABLE = "users"
    TABLE = "subscriptions"

    def __init__(self, client: Client, clock: Callable[[], datetime] = utc_now):
        self.client = client
        self.clock = clock

    def _get_user_type(self, account_id: str) -> str:
        response = (
            self.client.table(self.USERS_TABLE)
            .select("user_type")
            .eq("id", account_id)
            .limit(1)
            .execute()
        )
        rows = response.data or []
        if not rows:
            raise AccountNotFoundError(account_id)
        return normalize_user_type(rows[0].get("user_type"))

    def get_account(self, account_id: str) -> Account:
        user_type = self._get_user_type(account_id)

        response = (
            self.client.table(self.TABLE)
            .select("tier, started_at, expires_at, auto_renew")
            .eq("user_id", account_id)
            .limit(1)
            .execute()
        )
        rows = response.data or []
        if not rows:
            return Account(account_id=account_id, user_type=user_type, tier=DEFAULT_TIER)

        row = rows[0]
        started_at = _parse_timestamp(row.get("started_at"))
        expires_at = _parse_timestamp(row.get("expires_at"))
        tier = row.get("tier") or DEFAULT_TIER

        if expires_at is not None and expires_at <= as_utc(self.clock()) and not row.get("auto_renew", False):
            logger.info(
                "Subscription expired, falling back to free plan",
                extra={"account_id": account_id, "expired_tier": tier},
            )
            return Account(account_id=account_id, user_type=user_type, tier=DEFAULT_TIER)

        return Account(account_id=account_id, user_type=user_type, tier=tier, period_anchor=started_at)
