"""SQLAlchemy models for user sessions and the append-only session log.

Amounts are stored as BIGINT minor units.
"""

from datetime import datetime

from sqlalchemy import BigInteger, Boolean, Column, DateTime, ForeignKey, Integer, Text
from sqlalchemy.orm import declarative_base

from ..models.session import EntryKind, LedgerEntry, UserSession

Base = declarative_base()


class UserRecord(Base):
    """One row per Telegram user; holds the session configuration.

    Example:
        >>> user = UserRecord(telegram_id="12345", start_balance=100000, is_active=True)
        >>> db.add(user)
        >>> db.commit()
    """

    __tablename__ = 'users'

    telegram_id = Column(Text, primary_key=True)
    start_balance = Column(BigInteger, nullable=False, default=0)
    target_win = Column(BigInteger, nullable=False, default=0)
    stop_loss = Column(BigInteger, nullable=False, default=0)
    interval_minutes = Column(Integer, nullable=False, default=5)
    is_active = Column(Boolean, nullable=False, default=False)

    def __repr__(self):
        return (
            f"<UserRecord(telegram_id='{self.telegram_id}', "
            f"start_balance={self.start_balance}, "
            f"is_active={self.is_active})>"
        )

    def to_domain(self) -> UserSession:
        return UserSession(
            identifier=self.telegram_id,
            start_balance=int(self.start_balance or 0),
            target_win=int(self.target_win or 0),
            stop_loss=int(self.stop_loss or 0),
            interval_minutes=int(self.interval_minutes or 0),
            active=bool(self.is_active),
        )


class SessionLogRecord(Base):
    """Append-only ledger row.

    id doubles as the entry sequence: insertion order is the only ordering
    guarantee, `time` is informational.
    """

    __tablename__ = 'session_logs'

    id = Column(Integer, primary_key=True, autoincrement=True)
    telegram_id = Column(
        Text,
        ForeignKey('users.telegram_id', ondelete='CASCADE'),
        nullable=False,
        index=True,
    )
    time = Column(DateTime, nullable=False, default=datetime.now)
    current_balance = Column(BigInteger, nullable=False)
    profit_loss = Column(BigInteger, nullable=False)
    status = Column(Text, nullable=False)  # WIN/LOSS

    def __repr__(self):
        return (
            f"<SessionLogRecord(id={self.id}, "
            f"telegram_id='{self.telegram_id}', "
            f"status='{self.status}', "
            f"profit_loss={self.profit_loss})>"
        )

    def to_domain(self) -> LedgerEntry:
        return LedgerEntry(
            sequence=self.id,
            user_identifier=self.telegram_id,
            delta=int(self.profit_loss),
            running_balance=int(self.current_balance),
            kind=EntryKind(self.status),
            created_at=self.time,
        )
