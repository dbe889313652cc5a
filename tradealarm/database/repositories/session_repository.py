"""Session repository - SQLAlchemy implementation of the LedgerStore.

Every public method runs in its own short transaction. SQLAlchemy errors
are rolled back and re-raised as StorageError.
"""

import logging
from contextlib import contextmanager
from typing import Iterator, List, Optional

from sqlalchemy import delete, desc, func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from ...exceptions import StorageError
from ...models.session import (
    EntryKind,
    LedgerEntry,
    LedgerOutcome,
    OutcomeStatus,
    UserSession,
    evaluate_thresholds,
)
from ..models import SessionLogRecord, UserRecord
from ..store import LedgerStore


class SessionRepository(LedgerStore):
    """Repository for user sessions and their session log.

    Example:
        >>> engine = create_db_engine("sqlite://")
        >>> init_db(engine)
        >>> repo = SessionRepository(create_session_factory(engine))
        >>> repo.put_session(UserSession("12345", start_balance=100000, active=True))
        >>> entry = repo.append_entry("12345", EntryKind.WIN, 30000)
        >>> entry.running_balance
        130000
    """

    def __init__(self, session_factory: sessionmaker):
        """Initialize repository with a session factory.

        Args:
            session_factory: SQLAlchemy sessionmaker bound to the engine
        """
        self.session_factory = session_factory
        self.logger = logging.getLogger(__name__)

    @contextmanager
    def _transaction(self, operation: str, identifier: Optional[str] = None) -> Iterator[Session]:
        db = self.session_factory()
        try:
            yield db
            db.commit()
        except SQLAlchemyError as e:
            db.rollback()
            self.logger.error(
                "storage_operation_failed",
                extra={"operation": operation, "identifier": identifier, "error": str(e)},
            )
            raise StorageError(str(e), operation=operation, identifier=identifier) from e
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

    def get_session(self, identifier: str) -> Optional[UserSession]:
        with self._transaction("get_session", identifier) as db:
            record = db.get(UserRecord, identifier)
            return record.to_domain() if record else None

    def put_session(self, session: UserSession) -> UserSession:
        with self._transaction("put_session", session.identifier) as db:
            record = db.get(UserRecord, session.identifier)
            if record is None:
                record = UserRecord(telegram_id=session.identifier)
                db.add(record)

            record.start_balance = session.start_balance
            record.target_win = session.target_win
            record.stop_loss = session.stop_loss
            record.interval_minutes = session.interval_minutes
            record.is_active = session.active

        return session

    def append_entry(self, identifier: str, kind: EntryKind, amount: int) -> LedgerEntry:
        """Insert one session log row with its running balance.

        Reads the start balance and current net, then inserts, all inside
        one transaction (row-locked on PostgreSQL).
        """
        with self._transaction("append_entry", identifier) as db:
            user = self._lock_user(db, identifier)
            if user is None:
                raise StorageError(
                    "session not found",
                    operation="append_entry",
                    identifier=identifier,
                )

            entry, _ = self._append(db, user, kind, amount)

        self.logger.debug(
            "session_log_appended",
            extra={"identifier": identifier, "sequence": entry.sequence, "delta": entry.delta},
        )
        return entry

    def record_event(self, identifier: str, kind: EntryKind, amount: int) -> Optional[LedgerOutcome]:
        """Append to an active session and deactivate it on a threshold crossing.

        The user row stays locked from the active check to the commit, so
        the entry and the auto-stop land together or not at all.
        """
        with self._transaction("record_event", identifier) as db:
            user = self._lock_user(db, identifier)
            if user is None or not user.is_active:
                return None

            entry, net = self._append(db, user, kind, amount)
            status = evaluate_thresholds(user.to_domain(), net)

            if status is not OutcomeStatus.RECORDED:
                user.is_active = False
                db.flush()

        self.logger.debug(
            "session_event_recorded",
            extra={
                "identifier": identifier,
                "sequence": entry.sequence,
                "net": net,
                "status": status.value,
            },
        )
        return LedgerOutcome(entry=entry, net=net, status=status)

    def sum_deltas(self, identifier: str) -> int:
        with self._transaction("sum_deltas", identifier) as db:
            return self._sum(db, identifier)

    def list_entries(self, identifier: str, limit: Optional[int] = None) -> List[LedgerEntry]:
        with self._transaction("list_entries", identifier) as db:
            query = (
                select(SessionLogRecord)
                .where(SessionLogRecord.telegram_id == identifier)
                .order_by(desc(SessionLogRecord.id))
            )
            if limit:
                query = query.limit(limit)

            return [record.to_domain() for record in db.execute(query).scalars()]

    def count_entries(self, identifier: str) -> int:
        with self._transaction("count_entries", identifier) as db:
            return int(
                db.execute(
                    select(func.count(SessionLogRecord.id))
                    .where(SessionLogRecord.telegram_id == identifier)
                ).scalar_one()
            )

    def delete_entries(self, identifier: str) -> int:
        with self._transaction("delete_entries", identifier) as db:
            result = db.execute(
                delete(SessionLogRecord).where(SessionLogRecord.telegram_id == identifier)
            )
            return int(result.rowcount or 0)

    def list_active_sessions(self) -> List[UserSession]:
        with self._transaction("list_active_sessions") as db:
            records = db.execute(
                select(UserRecord).where(UserRecord.is_active.is_(True))
            ).scalars()
            return [record.to_domain() for record in records]

    @staticmethod
    def _sum(db: Session, identifier: str) -> int:
        total = db.execute(
            select(func.coalesce(func.sum(SessionLogRecord.profit_loss), 0))
            .where(SessionLogRecord.telegram_id == identifier)
        ).scalar_one()
        return int(total)

    @staticmethod
    def _lock_user(db: Session, identifier: str) -> Optional[UserRecord]:
        return db.execute(
            select(UserRecord)
            .where(UserRecord.telegram_id == identifier)
            .with_for_update()
        ).scalar_one_or_none()

    def _append(self, db: Session, user: UserRecord, kind: EntryKind, amount: int):
        """Insert a row for user; returns (entry, net after the entry)."""
        net_before = self._sum(db, user.telegram_id)
        delta = kind.signed(amount)

        record = SessionLogRecord(
            telegram_id=user.telegram_id,
            current_balance=int(user.start_balance) + net_before + delta,
            profit_loss=delta,
            status=kind.value,
        )
        db.add(record)
        db.flush()

        return record.to_domain(), net_before + delta
