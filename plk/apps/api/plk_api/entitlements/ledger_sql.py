"""
SQL-backed Usage Ledger (usage_counters table).

try_increment is one conditional UPDATE (DB-CAS):

    UPDATE usage_counters SET used = used + 1
    WHERE account_id = :a AND feature_key = :f AND period_key = :p
      AND used + 1 <= :max

rowcount 1 means the increment won. rowcount 0 means either no row yet
(first increment of the period: INSERT used=1) or the counter is at max.
A concurrent creator surfaces as a unique violation, after which the
conditional UPDATE is retried once.
"""

import logging
import math
from datetime import datetime, timezone
from typing import Union

from sqlalchemy import select, text, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from plk_api.db.models import UsageCounter

from .ledger import UsageLedger, validate_count

logger = logging.getLogger(__name__)


class SqlUsageLedger(UsageLedger):
    """Usage ledger over SQLAlchemy (Postgres in production, SQLite in tests)."""

    def __init__(self, session_factory: sessionmaker[Session]):
        self._session_factory = session_factory

    @staticmethod
    def _where(account_id: str, feature_key: str, period_key: str):
        return (
            UsageCounter.account_id == account_id,
            UsageCounter.feature_key == feature_key,
            UsageCounter.period_key == period_key,
        )

    def get_used(self, account_id: str, feature_key: str, period_key: str) -> int:
        with self._session_factory() as session:
            used = session.execute(
                select(UsageCounter.used).where(*self._where(account_id, feature_key, period_key))
            ).scalar_one_or_none()
            return int(used or 0)

    def _conditional_increment(
        self,
        session: Session,
        account_id: str,
        feature_key: str,
        period_key: str,
        max_count: Union[int, float],
    ) -> bool:
        stmt = (
            update(UsageCounter)
            .where(*self._where(account_id, feature_key, period_key))
            .values(used=UsageCounter.used + 1, updated_at=datetime.now(timezone.utc))
        )
        if not math.isinf(max_count):
            stmt = stmt.where(UsageCounter.used + 1 <= int(max_count))

        result = session.execute(stmt)
        return result.rowcount == 1

    def try_increment(
        self,
        account_id: str,
        feature_key: str,
        period_key: str,
        max_count: Union[int, float],
    ) -> bool:
        with self._session_factory() as session:
            if self._conditional_increment(session, account_id, feature_key, period_key, max_count):
                session.commit()
                return True

            if max_count < 1:
                session.rollback()
                return False

            # No row or counter at max: the INSERT tells them apart
            session.add(
                UsageCounter(
                    account_id=account_id,
                    feature_key=feature_key,
                    period_key=period_key,
                    used=1,
                )
            )
            try:
                session.commit()
                return True
            except IntegrityError:
                session.rollback()

            # Row exists (created concurrently or already at max)
            won = self._conditional_increment(session, account_id, feature_key, period_key, max_count)
            if won:
                session.commit()
            else:
                session.rollback()
            return won

    def set_count(self, account_id: str, feature_key: str, period_key: str, value: int) -> None:
        validate_count(value)
        now = datetime.now(timezone.utc)
        stmt = (
            update(UsageCounter)
            .where(*self._where(account_id, feature_key, period_key))
            .values(used=value, updated_at=now)
        )

        with self._session_factory() as session:
            if session.execute(stmt).rowcount == 1:
                session.commit()
                return

            session.add(
                UsageCounter(
                    account_id=account_id,
                    feature_key=feature_key,
                    period_key=period_key,
                    used=value,
                )
            )
            try:
                session.commit()
                return
            except IntegrityError:
                session.rollback()

            session.execute(stmt)
            session.commit()

    def ping(self) -> bool:
        try:
            with self._session_factory() as session:
                session.execute(text("SELECT 1"))
            return True
        except SQLAlchemyError as e:
            logger.warning("SQL ledger ping failed", extra={"error": str(e)})
            return False
