"""
E-mail one-time codes.

Issuance is a single INSERT ... SELECT ... WHERE NOT EXISTS against the
pending, unexpired row for the same (email, purpose), backed by the unique
pending_key column. Whoever loses a concurrent race sees zero inserted rows
or a uniqueness violation and gets CooldownActive with the winner's expiry.
Every transition out of "pending" clears pending_key.
"""
from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum
from typing import Callable

from sqlalchemy import DateTime, Integer, String, insert, literal, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from src.core.clock import utcnow
from src.core.config import OtpPolicy
from src.core.db.tables.otp import OtpRecord, pending_key_for
from src.core.logger import get_logger, redact_email
from src.core.security import hash_secret, new_otp_code, verify_secret

logger = get_logger(__name__)

STATUS_PENDING = "pending"
STATUS_USED = "used"
STATUS_EXPIRED = "expired"


@dataclass(frozen=True)
class OtpIssued:
    code: str
    expires_at: datetime


@dataclass(frozen=True)
class CooldownActive:
    expires_at: datetime | None


class OtpVerifyStatus(str, Enum):
    VERIFIED = "verified"
    NOT_FOUND = "not_found"
    EXPIRED = "expired"
    BLOCKED = "blocked"
    INVALID = "invalid"


@dataclass(frozen=True)
class OtpVerification:
    status: OtpVerifyStatus
    employee_id: str | None = None


class OtpService:
    def __init__(
        self,
        session: Session,
        policy: OtpPolicy,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.session = session
        self.policy = policy
        self.clock = clock

    def _key(self, email_lower: str):
        return (
            OtpRecord.email_lower == email_lower,
            OtpRecord.purpose == self.policy.purpose,
        )

    def _sweep_expired(self, email_lower: str, now: datetime) -> None:
        self.session.execute(
            update(OtpRecord)
            .where(
                *self._key(email_lower),
                OtpRecord.status == STATUS_PENDING,
                OtpRecord.expires_at <= now,
            )
            .values(status=STATUS_EXPIRED, pending_key=None, expired_at=now)
            .execution_options(synchronize_session=False)
        )

    def latest_pending(self, email_lower: str) -> OtpRecord | None:
        return self.session.execute(
            select(OtpRecord)
            .where(*self._key(email_lower), OtpRecord.status == STATUS_PENDING)
            .order_by(OtpRecord.created_at.desc(), OtpRecord.id.desc())
            .limit(1)
            .execution_options(populate_existing=True)
        ).scalar()

    def issue(
        self,
        email: str,
        employee_id: str | None = None,
        ttl_seconds: int | None = None,
    ) -> OtpIssued | CooldownActive:
        """Create a code unless one is already pending; the caller delivers it."""
        email_lower = email.strip().lower()
        now = self.clock()
        expires_at = now + timedelta(seconds=ttl_seconds or self.policy.ttl_seconds)
        code = new_otp_code()
        code_hash = hash_secret(code)

        self._sweep_expired(email_lower, now)

        active = (
            select(OtpRecord.id)
            .where(
                *self._key(email_lower),
                OtpRecord.status == STATUS_PENDING,
                OtpRecord.expires_at > now,
            )
            .correlate(None)
            .exists()
        )
        stmt = insert(OtpRecord).from_select(
            [
                "employee_id", "email_lower", "purpose", "pending_key", "channel", "code_hash",
                "status", "attempts", "created_at", "expires_at",
            ],
            select(
                literal(str(employee_id) if employee_id else None, String),
                literal(email_lower, String),
                literal(self.policy.purpose, String),
                literal(pending_key_for(email_lower, self.policy.purpose), String),
                literal(self.policy.channel, String),
                literal(code_hash, String),
                literal(STATUS_PENDING, String),
                literal(0, Integer),
                literal(now, DateTime),
                literal(expires_at, DateTime),
            ).where(~active),
        )

        violation = None
        try:
            inserted = self.session.execute(stmt).rowcount
            self.session.commit()
        except IntegrityError as exc:
            self.session.rollback()
            inserted, violation = 0, exc

        if inserted == 1:
            logger.info(f"OTP issued for {redact_email(email_lower)}")
            return OtpIssued(code=code, expires_at=expires_at)

        existing = self.latest_pending(email_lower)
        if existing is None and violation is not None:
            # The conflict was not with a pending code; that is a fault, not a cooldown
            logger.error(f"OTP insert failed for {redact_email(email_lower)}: {violation}")
            raise violation
        logger.info(f"OTP cooldown active for {redact_email(email_lower)}")
        return CooldownActive(expires_at=existing.expires_at if existing else None)

    def verify(self, email: str, code: str) -> OtpVerification:
        email_lower = email.strip().lower()
        now = self.clock()
        record = self.latest_pending(email_lower)

        if record is None:
            return OtpVerification(OtpVerifyStatus.NOT_FOUND)

        employee_id = record.employee_id

        if now >= record.expires_at:
            record.status = STATUS_EXPIRED
            record.pending_key = None
            record.expired_at = now
            self.session.commit()
            return OtpVerification(OtpVerifyStatus.EXPIRED, employee_id)

        if record.attempts >= self.policy.max_attempts:
            return OtpVerification(OtpVerifyStatus.BLOCKED, employee_id)

        if not verify_secret(code.strip(), record.code_hash):
            self.session.execute(
                update(OtpRecord)
                .where(OtpRecord.id == record.id)
                .values(attempts=OtpRecord.attempts + 1, last_attempt_at=now)
                .execution_options(synchronize_session=False)
            )
            self.session.commit()
            return OtpVerification(OtpVerifyStatus.INVALID, employee_id)

        claimed = self.session.execute(
            update(OtpRecord)
            .where(OtpRecord.id == record.id, OtpRecord.status == STATUS_PENDING)
            .values(status=STATUS_USED, pending_key=None, used_at=now)
            .execution_options(synchronize_session=False)
        ).rowcount
        self.session.commit()
        if claimed != 1:
            # Another request consumed it between our read and write
            return OtpVerification(OtpVerifyStatus.NOT_FOUND, employee_id)
        return OtpVerification(OtpVerifyStatus.VERIFIED, employee_id)
