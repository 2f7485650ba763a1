"""Observability event helpers for the entitlement engine.

One structured log event per decision. Raw events only: aggregation
(dashboards, conversion funnels) happens downstream of the log pipeline.

Usage:
    from plk_api.observability.metrics import log_usage_committed

    log_usage_committed(account_id="u_123", feature_key="posts", period_key="2026-10",
                        used=3, max_count=5)

Unlimited maxima are logged as null (float infinity is not valid JSON).
"""

import logging
import math
from decimal import Decimal
from typing import Optional, Union

logger = logging.getLogger(__name__)

Count = Union[int, float]


def _count(value: Count) -> Optional[int]:
    if isinstance(value, float) and math.isinf(value):
        return None
    return int(value)


# ============================================================================
# Quota / usage events
# ============================================================================


def log_quota_evaluated(
    account_id: str,
    feature_key: str,
    tier: str,
    period_key: str,
    allowed: bool,
    used: int,
    max_count: Count,
) -> None:
    """Log a quota evaluation (debug level: previews are frequent)."""
    logger.debug(
        "quota.evaluated",
        extra={
            "event": "quota.evaluated",
            "account_id": account_id,
            "feature_key": feature_key,
            "tier": tier,
            "period_key": period_key,
            "allowed": allowed,
            "used": used,
            "max": _count(max_count),
        },
    )


def log_usage_committed(
    account_id: str,
    feature_key: str,
    period_key: str,
    used: int,
    max_count: Count,
) -> None:
    logger.info(
        "usage.committed",
        extra={
            "event": "usage.committed",
            "account_id": account_id,
            "feature_key": feature_key,
            "period_key": period_key,
            "used": used,
            "max": _count(max_count),
        },
    )


def log_usage_denied(
    account_id: str,
    feature_key: str,
    tier: str,
    used: int,
    max_count: Count,
) -> None:
    """Log a commit refused because the quota is exhausted (upgrade prompt upstream)."""
    logger.info(
        "usage.denied",
        extra={
            "event": "usage.denied",
            "account_id": account_id,
            "feature_key": feature_key,
            "tier": tier,
            "used": used,
            "max": _count(max_count),
        },
    )


def log_usage_race_lost(
    account_id: str,
    feature_key: str,
    period_key: str,
    max_count: Count,
) -> None:
    """Log a commit that passed evaluation but lost the conditional increment."""
    logger.warning(
        "usage.race_lost",
        extra={
            "event": "usage.race_lost",
            "account_id": account_id,
            "feature_key": feature_key,
            "period_key": period_key,
            "max": _count(max_count),
        },
    )


def log_usage_count_set(
    account_id: str,
    feature_key: str,
    period_key: str,
    value: int,
    max_count: Count,
) -> None:
    logger.info(
        "usage.count_set",
        extra={
            "event": "usage.count_set",
            "account_id": account_id,
            "feature_key": feature_key,
            "period_key": period_key,
            "used": value,
            "max": _count(max_count),
            "over_limit": not math.isinf(max_count) and value > max_count,
        },
    )


# ============================================================================
# Mission contact events
# ============================================================================


def log_contact_fee_quoted(
    account_id: str,
    tier: str,
    mission_days: int,
    amount: Decimal,
    currency: str,
    included: bool,
) -> None:
    logger.info(
        "contact_fee.quoted",
        extra={
            "event": "contact_fee.quoted",
            "account_id": account_id,
            "tier": tier,
            "mission_days": mission_days,
            "amount": str(amount),
            "currency": currency,
            "included": included,
        },
    )


def log_contact_confirmed(
    account_id: str,
    tier: str,
    status: str,
    amount: Decimal,
    included: bool,
) -> None:
    """Log the outcome of a mission contact confirmation.

    Args:
        status: COMMITTED | RACE_LOST | PAYMENT_REQUIRED
        amount: Fee amount of the recomputed quote (string-logged for precision)
    """
    logger.info(
        "contact.confirmed",
        extra={
            "event": "contact.confirmed",
            "account_id": account_id,
            "tier": tier,
            "status": status,
            "amount": str(amount),
            "included": included,
        },
    )
