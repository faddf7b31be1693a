"""
Per-(account, realm) progressive lockout ledger.

States: clear, temporarily locked (lock_until in the future), permanently
locked. A temporary lock whose time has passed reads as clear without any
write. A permanent lock is only removed by clear(), which is what the
administrative unlock calls.

record_failure() is a single UPDATE that increments the counter and derives
the lock fields from the incremented value in the database, so concurrent
failures for the same account cannot under-count.
"""
import math
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable

from sqlalchemy import Boolean, DateTime, case, insert, literal, null, select, true, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from src.core.clock import utcnow
from src.core.config import LockoutPolicy
from src.core.db.tables.lock_state import LockState
from src.core.logger import get_logger

logger = get_logger(__name__)

REALM_BACKOFFICE = "backoffice"
REALM_POS = "pos"
LOGIN_REALMS = (REALM_BACKOFFICE, REALM_POS)


def normalize_realm(raw: str | None) -> str:
    """Anything other than "pos" is the backoffice realm."""
    value = (raw or "").strip().lower()
    return REALM_POS if value == REALM_POS else REALM_BACKOFFICE


def sq_realm(realm: str) -> str:
    """Lockout realm used for security-question attempts of a login realm."""
    return f"{realm}:sq"


@dataclass(frozen=True)
class LockStatus:
    failures: int = 0
    locked: bool = False
    permanent: bool = False
    remaining_seconds: int = 0

    @property
    def is_clear(self) -> bool:
        return not (self.locked or self.permanent)

    def as_dict(self) -> dict:
        return {
            "locked": self.locked or self.permanent,
            "permanent": self.permanent,
            "remaining_seconds": self.remaining_seconds,
        }


class LockoutLedger:
    def __init__(
        self,
        session: Session,
        policy: LockoutPolicy,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.session = session
        self.policy = policy
        self.clock = clock

    def _row(self, employee_id: str, realm: str) -> LockState | None:
        return self.session.execute(
            select(LockState)
            .where(LockState.employee_id == str(employee_id), LockState.app == realm)
            .execution_options(populate_existing=True)
        ).scalar()

    def _status_from_row(self, row: LockState | None, now: datetime) -> LockStatus:
        if row is None:
            return LockStatus()
        if row.permanent_lock:
            return LockStatus(failures=row.failed_login_count, permanent=True)
        if row.lock_until is not None and row.lock_until > now:
            remaining = math.ceil((row.lock_until - now).total_seconds())
            return LockStatus(
                failures=row.failed_login_count, locked=True, remaining_seconds=remaining
            )
        return LockStatus(failures=row.failed_login_count)

    def status(self, employee_id: str, realm: str) -> LockStatus:
        return self._status_from_row(self._row(employee_id, realm), self.clock())

    def _ensure_row(self, employee_id: str, realm: str) -> None:
        exists_already = (
            select(LockState.employee_id)
            .where(LockState.employee_id == employee_id, LockState.app == realm)
            .correlate(None)
            .exists()
        )
        stmt = insert(LockState).from_select(
            ["employee_id", "app", "failed_login_count", "permanent_lock"],
            select(
                literal(employee_id),
                literal(realm),
                literal(0),
                literal(False, Boolean),
            ).where(~exists_already),
        )
        try:
            self.session.execute(stmt)
        except IntegrityError:
            # A concurrent failure created the row first
            self.session.rollback()

    def record_failure(self, employee_id: str, realm: str) -> LockStatus:
        """Count one more consecutive failure and return the resulting lock status."""
        employee_id = str(employee_id)
        now = self.clock()
        policy = self.policy

        self._ensure_row(employee_id, realm)

        next_count = LockState.failed_login_count + 1
        temp_until = literal(now + timedelta(minutes=policy.temporary_minutes), DateTime)
        # Lock fields are assigned before the counter so every expression sees the old count
        stmt = (
            update(LockState)
            .where(LockState.employee_id == employee_id, LockState.app == realm)
            .ordered_values(
                (LockState.lock_until, case(
                    (next_count >= policy.permanent_on, null()),
                    (next_count >= policy.temporary_on, temp_until),
                    else_=LockState.lock_until,
                )),
                (LockState.permanent_lock, case(
                    (next_count >= policy.permanent_on, true()),
                    else_=LockState.permanent_lock,
                )),
                (LockState.last_failed_login, literal(now, DateTime)),
                (LockState.failed_login_count, next_count),
            )
            .execution_options(synchronize_session=False)
        )
        self.session.execute(stmt)

        result = self._status_from_row(self._row(employee_id, realm), now)
        self.session.commit()

        if result.permanent:
            logger.warning(f"Permanent lock set for employee {employee_id} in realm {realm}")
        elif result.locked:
            logger.warning(
                f"Temporary lock set for employee {employee_id} in realm {realm} "
                f"({result.remaining_seconds}s)"
            )
        return result

    def clear(self, employee_id: str, realm: str) -> None:
        """Reset counter and both lock fields. Used on success and by admin unlock."""
        self.session.execute(
            update(LockState)
            .where(LockState.employee_id == str(employee_id), LockState.app == realm)
            .values(
                failed_login_count=0,
                lock_until=None,
                permanent_lock=False,
                last_failed_login=None,
            )
            .execution_options(synchronize_session=False)
        )
        self.session.commit()
