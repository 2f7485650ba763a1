"""
Usage period bucketing.

Period keys are pure functions of (kind, now, anchor). Rollover is implicit:
the read path always computes the current key, so no reset job exists.
"""

import calendar
from datetime import date, datetime, timezone, tzinfo
from typing import Optional

from .models import PeriodKind

LIFETIME_PERIOD_KEY = "lifetime"


def utc_now() -> datetime:
    """Default clock"""
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    # Naive datetimes are treated as UTC
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _clamped_day(year: int, month: int, day: int) -> int:
    return min(day, calendar.monthrange(year, month)[1])


def billing_cycle_start(now: datetime, anchor: datetime) -> date:
    """
    First day of the billing cycle containing `now`.

    Cycles start on the anchor's day of month, clamped to the month's last day
    (an anchor on the 31st starts February cycles on the 28th/29th).
    An anchor later than `now` yields the anchor date itself.
    """
    now = as_utc(now)
    anchor = as_utc(anchor)

    if anchor > now:
        return anchor.date()

    start_day = _clamped_day(now.year, now.month, anchor.day)
    if now.day >= start_day:
        return date(now.year, now.month, start_day)

    year, month = (now.year - 1, 12) if now.month == 1 else (now.year, now.month - 1)
    return date(year, month, _clamped_day(year, month, anchor.day))


def current_period_key(
    kind: PeriodKind,
    now: datetime,
    anchor: Optional[datetime] = None,
    day_tz: Optional[tzinfo] = None,
) -> str:
    """
    Deterministic period key.

    Args:
        kind: monthly | lifetime | daily
        now: Wall-clock time
        anchor: Start of the account's billing period (monthly only)
        day_tz: Timezone whose calendar day bounds daily periods (default UTC)

    Returns:
        "lifetime", "YYYY-MM-DD" (daily) or "YYYY-MM" (monthly, of the cycle start)
    """
    if kind == "lifetime":
        return LIFETIME_PERIOD_KEY

    now = as_utc(now)

    if kind == "daily":
        return now.astimezone(day_tz or timezone.utc).strftime("%Y-%m-%d")

    if kind == "monthly":
        if anchor is None:
            return now.strftime("%Y-%m")
        return billing_cycle_start(now, anchor).strftime("%Y-%m")

    raise ValueError(f"Unknown period kind: {kind!r}")
