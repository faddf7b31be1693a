"""
Tests for the progressive lockout ledger.
"""
from sqlalchemy import select

from src.core.auth.lockout import (
    LockoutLedger,
    REALM_BACKOFFICE,
    REALM_POS,
    normalize_realm,
    sq_realm,
)
from src.core.config import LockoutPolicy
from src.core.db.tables.lock_state import LockState

EMPLOYEE = "202500001"


def make_ledger(db_session, clock):
    return LockoutLedger(db_session, LockoutPolicy(), clock=clock)


class TestProgressiveLock:
    """Tests for the 5 -> temporary, 6+ -> permanent policy."""

    def test_first_four_failures_stay_clear(self, db_session, clock):
        ledger = make_ledger(db_session, clock)
        for expected in range(1, 5):
            status = ledger.record_failure(EMPLOYEE, REALM_BACKOFFICE)
            assert status.is_clear
            assert status.failures == expected

    def test_fifth_failure_locks_for_fifteen_minutes(self, db_session, clock):
        ledger = make_ledger(db_session, clock)
        for _ in range(4):
            ledger.record_failure(EMPLOYEE, REALM_BACKOFFICE)

        status = ledger.record_failure(EMPLOYEE, REALM_BACKOFFICE)
        assert status.locked
        assert not status.permanent
        assert status.remaining_seconds == 900
        assert status.as_dict() == {"locked": True, "permanent": False, "remaining_seconds": 900}

    def test_sixth_failure_is_permanent_and_drops_lock_until(self, db_session, clock):
        ledger = make_ledger(db_session, clock)
        for _ in range(5):
            ledger.record_failure(EMPLOYEE, REALM_BACKOFFICE)

        status = ledger.record_failure(EMPLOYEE, REALM_BACKOFFICE)
        assert status.permanent
        assert status.as_dict()["locked"] is True

        row = db_session.execute(select(LockState)).scalar()
        assert row.permanent_lock is True
        assert row.lock_until is None
        assert row.failed_login_count == 6

    def test_permanent_lock_survives_time(self, db_session, clock):
        ledger = make_ledger(db_session, clock)
        for _ in range(6):
            ledger.record_failure(EMPLOYEE, REALM_BACKOFFICE)

        clock.advance(days=30)
        assert ledger.status(EMPLOYEE, REALM_BACKOFFICE).permanent

    def test_expired_temporary_lock_reads_clear_without_write(self, db_session, clock):
        ledger = make_ledger(db_session, clock)
        for _ in range(5):
            ledger.record_failure(EMPLOYEE, REALM_BACKOFFICE)

        clock.advance(minutes=15, seconds=1)
        status = ledger.status(EMPLOYEE, REALM_BACKOFFICE)
        assert status.is_clear

        row = db_session.execute(select(LockState)).scalar()
        assert row.lock_until is not None
        assert row.failed_login_count == 5

    def test_failure_after_expired_temporary_lock_is_permanent(self, db_session, clock):
        ledger = make_ledger(db_session, clock)
        for _ in range(5):
            ledger.record_failure(EMPLOYEE, REALM_BACKOFFICE)
        clock.advance(minutes=16)

        assert ledger.record_failure(EMPLOYEE, REALM_BACKOFFICE).permanent


class TestClearAndRealms:
    """Tests for clear() and realm isolation."""

    def test_clear_resets_everything(self, db_session, clock):
        ledger = make_ledger(db_session, clock)
        for _ in range(6):
            ledger.record_failure(EMPLOYEE, REALM_BACKOFFICE)

        ledger.clear(EMPLOYEE, REALM_BACKOFFICE)
        status = ledger.status(EMPLOYEE, REALM_BACKOFFICE)
        assert status.is_clear
        assert status.failures == 0

    def test_clear_without_row_is_noop(self, db_session, clock):
        ledger = make_ledger(db_session, clock)
        ledger.clear(EMPLOYEE, REALM_POS)
        assert ledger.status(EMPLOYEE, REALM_POS).is_clear

    def test_realms_are_independent(self, db_session, clock):
        ledger = make_ledger(db_session, clock)
        for _ in range(5):
            ledger.record_failure(EMPLOYEE, REALM_BACKOFFICE)

        assert ledger.status(EMPLOYEE, REALM_BACKOFFICE).locked
        assert ledger.status(EMPLOYEE, REALM_POS).is_clear
        assert ledger.status(EMPLOYEE, sq_realm(REALM_BACKOFFICE)).is_clear

    def test_realm_names(self):
        assert normalize_realm("POS") == REALM_POS
        assert normalize_realm(None) == REALM_BACKOFFICE
        assert normalize_realm("kiosk") == REALM_BACKOFFICE
        assert sq_realm(REALM_POS) == "pos:sq"
