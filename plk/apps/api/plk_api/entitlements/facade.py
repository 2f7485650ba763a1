"""
Entitlement Facade: the only interface calling features consume.

Caller ordering contract:
    1. can_X / quote            (read-only)
    2. caller's own domain write
    3. increment_X / confirm    (re-evaluates, then one atomic conditional increment)
A False / RACE_LOST result means the caller must undo or void its domain write.

Quota and race outcomes are typed results. Exceptions are reserved for
configuration defects (unknown tier/feature) and caller input errors.
"""

import logging
import math
from datetime import datetime, tzinfo
from decimal import Decimal
from typing import Callable, Dict, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict

from plk_api.observability.metrics import (
    log_contact_confirmed,
    log_contact_fee_quoted,
    log_quota_evaluated,
    log_usage_committed,
    log_usage_count_set,
    log_usage_denied,
    log_usage_race_lost,
)

from .accounts import Account, AccountDirectory
from .catalog import TierCatalog
from .evaluator import QuotaDecision, QuotaEvaluator
from .exceptions import TrackingModeError
from .fees import MISSION_CONTACT_FEATURE, FeeCalculator, FeeQuote, validate_mission_days
from .ledger import UsageLedger
from .periods import utc_now

logger = logging.getLogger(__name__)

# Raw counter of paid (non-included) mission contacts; never limited
MISSION_CONTACT_PAID_COUNTER = "mission_contact_paid"

CommitStatus = Literal["COMMITTED", "QUOTA_EXCEEDED", "RACE_LOST"]
ConfirmationStatus = Literal["COMMITTED", "RACE_LOST", "PAYMENT_REQUIRED"]


class CommitOutcome(BaseModel):
    """Result of an increment attempt"""
    model_config = ConfigDict(frozen=True)

    committed: bool
    status: CommitStatus
    feature_key: str
    user_type: str
    tier: str
    period_key: str
    used: int
    max: Union[int, float]


class AccountStatus(BaseModel):
    """Every metered feature of one account, resolved from a single directory read"""
    model_config = ConfigDict(frozen=True)

    account: Account
    decisions: Dict[str, QuotaDecision]
    flags: Dict[str, bool]
    analytics: str
    next_tier: Optional[str] = None


class MissionContactConfirmation(BaseModel):
    """Result of a mission contact confirmation, with the recomputed quote"""
    model_config = ConfigDict(frozen=True)

    committed: bool
    status: ConfirmationStatus
    quote: FeeQuote


class EntitlementFacade:
    """
    Injected entitlement service.

    Constructed with a tier catalog, a usage ledger handle and an account
    directory. Every method takes the account id explicitly.
    """

    def __init__(
        self,
        catalog: TierCatalog,
        ledger: UsageLedger,
        accounts: AccountDirectory,
        clock: Optional[Callable[[], datetime]] = None,
        daily_timezone: Optional[tzinfo] = None,
    ):
        self.catalog = catalog
        self.ledger = ledger
        self.accounts = accounts
        self.clock = clock or utc_now
        self.evaluator = QuotaEvaluator(catalog, ledger, self.clock, daily_timezone)
        self.fees = FeeCalculator(catalog, self.evaluator)

    # ------------------------------------------------------------------
    # Generic operations
    # ------------------------------------------------------------------

    def _evaluate(self, account: Account, feature_key: str, now: datetime) -> QuotaDecision:
        decision = self.evaluator.evaluate(account, feature_key, now)
        log_quota_evaluated(
            account_id=account.account_id,
            feature_key=feature_key,
            tier=account.tier,
            period_key=decision.period_key,
            allowed=decision.allowed,
            used=decision.used,
            max_count=decision.max,
        )
        return decision

    def evaluate(self, account_id: str, feature_key: str) -> QuotaDecision:
        """Read-only quota decision for one feature"""
        account = self.accounts.get_account(account_id)
        return self._evaluate(account, feature_key, self.clock())

    def account_status(self, account_id: str) -> AccountStatus:
        """
        Decision for every feature the account's plan meters, evaluated at one
        instant against one read of the account (tier and decisions agree).
        """
        account = self.accounts.get_account(account_id)
        now = self.clock()
        decisions = {
            feature_key: self._evaluate(account, feature_key, now)
            for feature_key in self.catalog.feature_keys(account.user_type)
        }
        plan = self.catalog.get_tier(account.user_type, account.tier)
        return AccountStatus(
            account=account,
            decisions=decisions,
            flags=dict(plan.flags),
            analytics=plan.analytics,
            next_tier=plan.upgrade_to,
        )

    def has_feature(self, account_id: str, feature_key: str) -> bool:
        """Whether the account's plan grants a flag or a non-zero quota"""
        account = self.accounts.get_account(account_id)
        return self.catalog.has_feature(account.user_type, account.tier, feature_key)

    def analytics_level(self, account_id: str) -> str:
        account = self.accounts.get_account(account_id)
        return self.catalog.analytics_level(account.user_type, account.tier)

    def commit(self, account_id: str, feature_key: str) -> CommitOutcome:
        """
        Re-evaluate, then conditionally increment an incremental feature.

        Raises:
            TrackingModeError: feature is tracked by absolute count
        """
        tracking = self.catalog.tracking_for(feature_key)
        if tracking != "incremental":
            raise TrackingModeError(feature_key, tracking, "commit")

        account = self.accounts.get_account(account_id)
        decision = self._evaluate(account, feature_key, self.clock())

        if not decision.allowed:
            log_usage_denied(
                account_id=account_id,
                feature_key=feature_key,
                tier=account.tier,
                used=decision.used,
                max_count=decision.max,
            )
            return CommitOutcome(
                committed=False,
                status="QUOTA_EXCEEDED",
                feature_key=feature_key,
                user_type=account.user_type,
                tier=account.tier,
                period_key=decision.period_key,
                used=decision.used,
                max=decision.max,
            )

        won = self.ledger.try_increment(account_id, feature_key, decision.period_key, decision.max)
        used = self.ledger.get_used(account_id, feature_key, decision.period_key)

        if not won:
            log_usage_race_lost(
                account_id=account_id,
                feature_key=feature_key,
                period_key=decision.period_key,
                max_count=decision.max,
            )
            return CommitOutcome(
                committed=False,
                status="RACE_LOST",
                feature_key=feature_key,
                user_type=account.user_type,
                tier=account.tier,
                period_key=decision.period_key,
                used=used,
                max=decision.max,
            )

        log_usage_committed(
            account_id=account_id,
            feature_key=feature_key,
            period_key=decision.period_key,
            used=used,
            max_count=decision.max,
        )
        return CommitOutcome(
            committed=True,
            status="COMMITTED",
            feature_key=feature_key,
            user_type=account.user_type,
            tier=account.tier,
            period_key=decision.period_key,
            used=used,
            max=decision.max,
        )

    def set_count(self, account_id: str, feature_key: str, count: int) -> QuotaDecision:
        """
        Store an authoritative, externally recomputed count (absolute features only).

        A count above the tier maximum is stored as-is (e.g. after a downgrade);
        the returned decision then reports allowed=False.

        Raises:
            TrackingModeError: feature is tracked incrementally
            ValueError: negative or non-integer count
        """
        tracking = self.catalog.tracking_for(feature_key)
        if tracking != "absolute":
            raise TrackingModeError(feature_key, tracking, "set_count")

        account = self.accounts.get_account(account_id)
        now = self.clock()
        limits, period_key = self.evaluator.resolve(account, feature_key, now)

        self.ledger.set_count(account_id, feature_key, period_key, count)
        log_usage_count_set(
            account_id=account_id,
            feature_key=feature_key,
            period_key=period_key,
            value=count,
            max_count=limits.max,
        )
        return self._evaluate(account, feature_key, now)

    # ------------------------------------------------------------------
    # Feature methods
    # ------------------------------------------------------------------

    def can_publish_post(self, account_id: str) -> QuotaDecision:
        return self.evaluate(account_id, "posts")

    def increment_posts_published(self, account_id: str) -> bool:
        return self.commit(account_id, "posts").committed

    def can_publish_video(self, account_id: str) -> QuotaDecision:
        return self.evaluate(account_id, "videos")

    def increment_videos_published(self, account_id: str) -> bool:
        return self.commit(account_id, "videos").committed

    def can_add_photo(self, account_id: str) -> QuotaDecision:
        return self.evaluate(account_id, "photos")

    def set_photos_count(self, account_id: str, count: int) -> QuotaDecision:
        return self.set_count(account_id, "photos", count)

    def can_use_sponsored_week(self, account_id: str) -> QuotaDecision:
        return self.evaluate(account_id, "sponsored_week")

    def increment_sponsored_weeks(self, account_id: str) -> bool:
        return self.commit(account_id, "sponsored_week").committed

    def can_use_sponsored_card(self, account_id: str) -> QuotaDecision:
        return self.evaluate(account_id, "sponsored_card")

    def increment_sponsored_cards(self, account_id: str) -> bool:
        return self.commit(account_id, "sponsored_card").committed

    def can_publish_mission(self, account_id: str) -> QuotaDecision:
        return self.evaluate(account_id, "missions")

    def increment_missions_published(self, account_id: str) -> bool:
        return self.commit(account_id, "missions").committed

    def can_send_alert(self, account_id: str) -> QuotaDecision:
        return self.evaluate(account_id, "alerts")

    def increment_alerts_sent(self, account_id: str) -> bool:
        return self.commit(account_id, "alerts").committed

    def can_add_favorite(self, account_id: str) -> QuotaDecision:
        return self.evaluate(account_id, "favorites")

    def set_favorites_count(self, account_id: str, count: int) -> QuotaDecision:
        return self.set_count(account_id, "favorites", count)

    def can_super_like(self, account_id: str) -> QuotaDecision:
        return self.evaluate(account_id, "super_likes")

    def increment_super_likes(self, account_id: str) -> bool:
        return self.commit(account_id, "super_likes").committed

    def can_add_formation(self, account_id: str) -> QuotaDecision:
        return self.evaluate(account_id, "formations")

    def set_formations_count(self, account_id: str, count: int) -> QuotaDecision:
        return self.set_count(account_id, "formations", count)

    # Titulaire offers

    def can_publish_job_offer(self, account_id: str) -> QuotaDecision:
        return self.evaluate(account_id, "job_offers")

    def increment_job_offers_published(self, account_id: str) -> bool:
        return self.commit(account_id, "job_offers").committed

    def can_publish_internship_offer(self, account_id: str) -> QuotaDecision:
        return self.evaluate(account_id, "internship_offers")

    def increment_internship_offers_published(self, account_id: str) -> bool:
        return self.commit(account_id, "internship_offers").committed

    def can_publish_animator_mission(self, account_id: str) -> QuotaDecision:
        return self.evaluate(account_id, "animator_missions")

    def increment_animator_missions_published(self, account_id: str) -> bool:
        return self.commit(account_id, "animator_missions").committed

    # Candidate profiles

    def can_generate_cv(self, account_id: str) -> QuotaDecision:
        return self.evaluate(account_id, "cv_generated")

    def set_cv_count(self, account_id: str, count: int) -> QuotaDecision:
        return self.set_count(account_id, "cv_generated", count)

    def can_store_document(self, account_id: str) -> QuotaDecision:
        return self.evaluate(account_id, "documents_storage")

    def set_documents_count(self, account_id: str, count: int) -> QuotaDecision:
        return self.set_count(account_id, "documents_storage", count)

    # ------------------------------------------------------------------
    # Mission contacts
    # ------------------------------------------------------------------

    def quote_mission_contact(self, account_id: str, mission_days: int) -> FeeQuote:
        """
        Raises:
            InvalidDurationError: mission_days is not a positive integer
        """
        validate_mission_days(mission_days)
        account = self.accounts.get_account(account_id)
        quote = self.fees.quote(account, mission_days, self.clock())
        log_contact_fee_quoted(
            account_id=account_id,
            tier=account.tier,
            mission_days=mission_days,
            amount=quote.amount,
            currency=quote.currency,
            included=quote.included_in_subscription,
        )
        return quote

    def confirm_mission_contact(
        self,
        account_id: str,
        mission_days: int,
        accepted_amount: Optional[Decimal] = None,
    ) -> MissionContactConfirmation:
        """
        Commit a mission contact against a freshly recomputed quote.

        Included contacts consume the plan's mission_contact quota.
        Paid contacts require the caller's explicit acceptance of at least the
        recomputed amount; nothing is ever charged here.

        Raises:
            InvalidDurationError: mission_days is not a positive integer
        """
        validate_mission_days(mission_days)
        account = self.accounts.get_account(account_id)
        now = self.clock()
        quote = self.fees.quote(account, mission_days, now)

        if quote.included_in_subscription:
            won = self.ledger.try_increment(
                account_id, MISSION_CONTACT_FEATURE, quote.period_key, quote.contacts_max
            )
            if won:
                used = self.ledger.get_used(account_id, MISSION_CONTACT_FEATURE, quote.period_key)
                remaining = (
                    math.inf if math.isinf(quote.contacts_max) else max(0, int(quote.contacts_max) - used)
                )
                confirmation = MissionContactConfirmation(
                    committed=True,
                    status="COMMITTED",
                    quote=quote.model_copy(update={"contacts_remaining": remaining}),
                )
            else:
                log_usage_race_lost(
                    account_id=account_id,
                    feature_key=MISSION_CONTACT_FEATURE,
                    period_key=quote.period_key,
                    max_count=quote.contacts_max,
                )
                confirmation = MissionContactConfirmation(
                    committed=False,
                    status="RACE_LOST",
                    quote=self.fees.quote(account, mission_days, now),
                )
        elif accepted_amount is None or Decimal(str(accepted_amount)) < quote.amount:
            confirmation = MissionContactConfirmation(
                committed=False,
                status="PAYMENT_REQUIRED",
                quote=quote,
            )
        else:
            self.ledger.try_increment(
                account_id, MISSION_CONTACT_PAID_COUNTER, quote.period_key, math.inf
            )
            confirmation = MissionContactConfirmation(
                committed=True,
                status="COMMITTED",
                quote=quote,
            )

        log_contact_confirmed(
            account_id=account_id,
            tier=account.tier,
            status=confirmation.status,
            amount=confirmation.quote.amount,
            included=confirmation.quote.included_in_subscription,
        )
        return confirmation
