"""Tests for the SQLAlchemy session repository."""

import pytest

from tradealarm.database.connection import build_connect_args, check_connection, create_db_engine
from tradealarm.exceptions import StorageError
from tradealarm.models.session import EntryKind, OutcomeStatus, UserSession


class TestSessions:
    """Session rows."""

    def test_get_missing_session(self, store):
        assert store.get_session("12345") is None

    def test_put_and_get(self, store):
        session = UserSession("12345", start_balance=100000, target_win=50000,
                              stop_loss=20000, interval_minutes=5, active=True)
        store.put_session(session)

        loaded = store.get_session("12345")
        assert loaded == session

    def test_put_overwrites(self, store):
        store.put_session(UserSession("12345", start_balance=100000, active=True))
        store.put_session(UserSession("12345", start_balance=5000, interval_minutes=10))

        loaded = store.get_session("12345")
        assert loaded.start_balance == 5000
        assert loaded.interval_minutes == 10
        assert not loaded.active

    def test_negative_start_balance(self, store):
        store.put_session(UserSession("12345", start_balance=-7000))
        assert store.get_session("12345").start_balance == -7000

    def test_list_active_sessions(self, store):
        store.put_session(UserSession("a", active=True))
        store.put_session(UserSession("b", active=False))
        store.put_session(UserSession("c", active=True, interval_minutes=15))

        active = {session.identifier: session for session in store.list_active_sessions()}

        assert set(active) == {"a", "c"}
        assert active["c"].interval_minutes == 15


class TestLedger:
    """Session log rows."""

    @pytest.fixture
    def seeded(self, store):
        store.put_session(UserSession("12345", start_balance=100000, active=True))
        return store

    def test_sum_of_empty_ledger_is_zero(self, seeded):
        assert seeded.sum_deltas("12345") == 0
        assert seeded.count_entries("12345") == 0
        assert seeded.list_entries("12345") == []

    def test_append_signs_delta(self, seeded):
        win = seeded.append_entry("12345", EntryKind.WIN, 30000)
        loss = seeded.append_entry("12345", EntryKind.LOSS, 25000)

        assert win.delta == 30000
        assert win.kind is EntryKind.WIN
        assert loss.delta == -25000
        assert loss.kind is EntryKind.LOSS
        assert loss.amount == 25000

    def test_running_balance_is_start_plus_prefix_sum(self, seeded):
        """Test every entry's running balance equals start plus all deltas up to it."""
        moves = [
            (EntryKind.WIN, 30000),
            (EntryKind.LOSS, 10000),
            (EntryKind.LOSS, 45000),
            (EntryKind.WIN, 1),
        ]
        entries = [seeded.append_entry("12345", kind, amount) for kind, amount in moves]

        prefix = 0
        for entry in entries:
            prefix += entry.delta
            assert entry.running_balance == 100000 + prefix

        assert seeded.sum_deltas("12345") == prefix == -24999

    def test_sequences_increase(self, seeded):
        first = seeded.append_entry("12345", EntryKind.WIN, 1)
        second = seeded.append_entry("12345", EntryKind.WIN, 1)
        assert second.sequence > first.sequence

    def test_list_entries_most_recent_first(self, seeded):
        for amount in (100, 200, 300):
            seeded.append_entry("12345", EntryKind.WIN, amount)

        entries = seeded.list_entries("12345")
        assert [entry.amount for entry in entries] == [300, 200, 100]

        limited = seeded.list_entries("12345", limit=2)
        assert [entry.amount for entry in limited] == [300, 200]

    def test_entries_are_per_user(self, seeded):
        seeded.put_session(UserSession("other", start_balance=0, active=True))
        seeded.append_entry("12345", EntryKind.WIN, 500)
        seeded.append_entry("other", EntryKind.LOSS, 70)

        assert seeded.sum_deltas("12345") == 500
        assert seeded.sum_deltas("other") == -70
        assert seeded.count_entries("other") == 1

    def test_delete_entries_keeps_session(self, seeded):
        seeded.append_entry("12345", EntryKind.WIN, 500)
        seeded.append_entry("12345", EntryKind.LOSS, 200)

        deleted = seeded.delete_entries("12345")

        assert deleted == 2
        assert seeded.sum_deltas("12345") == 0
        assert seeded.list_entries("12345") == []
        assert seeded.get_session("12345").active

    def test_delete_empty_ledger(self, seeded):
        assert seeded.delete_entries("12345") == 0

    def test_running_balance_restarts_after_delete(self, seeded):
        seeded.append_entry("12345", EntryKind.WIN, 500)
        seeded.delete_entries("12345")

        entry = seeded.append_entry("12345", EntryKind.LOSS, 100)
        assert entry.running_balance == 99900

    def test_append_without_session_raises(self, store):
        """Test a missing session is a storage error and writes nothing."""
        with pytest.raises(StorageError) as exc_info:
            store.append_entry("ghost", EntryKind.WIN, 100)

        assert exc_info.value.operation == "append_entry"
        assert store.count_entries("ghost") == 0


class TestRecordEvent:
    """Append and threshold check in one transaction."""

    @pytest.fixture
    def seeded(self, store):
        store.put_session(UserSession("12345", start_balance=100000, target_win=50000,
                                      stop_loss=20000, interval_minutes=5, active=True))
        return store

    def test_below_thresholds_stays_active(self, seeded):
        outcome = seeded.record_event("12345", EntryKind.WIN, 30000)

        assert outcome.status is OutcomeStatus.RECORDED
        assert outcome.net == 30000
        assert outcome.entry.running_balance == 130000
        assert seeded.get_session("12345").active

    def test_crossing_deactivates_in_same_call(self, seeded):
        seeded.record_event("12345", EntryKind.WIN, 30000)

        outcome = seeded.record_event("12345", EntryKind.WIN, 20000)

        assert outcome.status is OutcomeStatus.TARGET_REACHED
        assert outcome.auto_stopped
        assert outcome.net == 50000
        assert not seeded.get_session("12345").active
        assert seeded.count_entries("12345") == 2

    def test_stop_loss_crossing(self, seeded):
        outcome = seeded.record_event("12345", EntryKind.LOSS, 20000)

        assert outcome.status is OutcomeStatus.STOP_LOSS_REACHED
        assert not seeded.get_session("12345").active

    def test_missing_session_returns_none(self, store):
        assert store.record_event("ghost", EntryKind.WIN, 100) is None
        assert store.count_entries("ghost") == 0

    def test_inactive_session_returns_none(self, store):
        store.put_session(UserSession("12345", active=False))

        assert store.record_event("12345", EntryKind.LOSS, 100) is None
        assert store.count_entries("12345") == 0

    def test_summarize(self, seeded):
        seeded.record_event("12345", EntryKind.WIN, 700)
        seeded.record_event("12345", EntryKind.LOSS, 200)

        result = seeded.summarize("12345")

        assert result.net == 500
        assert result.current_balance == 100500
        assert result.entry_count == 2
        assert result.active
        assert seeded.summarize("ghost") is None


class TestConnection:

    def test_check_connection(self):
        engine = create_db_engine("sqlite://")
        assert check_connection(engine)
        engine.dispose()

    def test_connect_args_sqlite(self):
        assert build_connect_args("sqlite:///alarm.db", connect_timeout=7) == {
            "check_same_thread": False,
            "timeout": 7,
        }

    def test_connect_args_postgresql(self):
        args = build_connect_args(
            "postgresql://user:secret@db/alarm",
            connect_timeout=4,
            statement_timeout_ms=2500,
        )

        assert args == {"connect_timeout": 4, "options": "-c statement_timeout=2500"}

    def test_connect_args_other_backend(self):
        assert build_connect_args("mysql://user@db/alarm") == {}
