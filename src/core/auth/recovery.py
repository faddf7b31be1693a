"""
E-mail recovery (start / resend / verify) and the final credential reset.

A reset token is consumed once: its jti is inserted into
consumed_reset_tokens in the same transaction that stores the new hash.
"""
import re
from dataclasses import dataclass
from datetime import datetime
from enum import Enum

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from src.core.audit import AuditRecorder, AuthStatus, build_detail
from src.core.auth.credentials import MODE_PIN, login_mode
from src.core.auth.identity import find_by_email
from src.core.auth.otp import CooldownActive, OtpService, OtpVerifyStatus
from src.core.auth.tokens import TokenIssuer, PURPOSE_PASSWORD_RESET
from src.core.clock import utcnow
from src.core.config import Settings
from src.core.db.tables.account import Account
from src.core.db.tables.consumed_token import ConsumedResetToken
from src.core.logger import get_logger, redact_email
from src.core.mailer import MailError, Mailer
from src.core.security import hash_secret

logger = get_logger(__name__)

EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]{2,}$", re.IGNORECASE)
PIN_RE = re.compile(r"^\d{6}$")
MIN_PASSWORD_LENGTH = 8


class RecoveryFailure(str, Enum):
    MISSING_EMAIL = "MISSING_EMAIL"
    EMAIL_NOT_ALLOWED = "EMAIL_NOT_ALLOWED"
    EMAIL_NOT_REGISTERED = "EMAIL_NOT_REGISTERED"
    EXTRA_VERIFICATION_FAILED = "EXTRA_VERIFICATION_FAILED"
    COOLDOWN_ACTIVE = "COOLDOWN_ACTIVE"


@dataclass(frozen=True)
class RecoveryStart:
    expires_at: datetime | None = None
    failure: RecoveryFailure | None = None

    @property
    def ok(self) -> bool:
        return self.failure is None


@dataclass(frozen=True)
class CodeVerification:
    status: OtpVerifyStatus
    reset_token: str | None = None


class ResetOutcome(str, Enum):
    OK = "OK"
    INVALID_TOKEN = "INVALID_TOKEN"
    INVALID_PURPOSE = "INVALID_PURPOSE"
    ACCOUNT_NOT_FOUND = "ACCOUNT_NOT_FOUND"
    INVALID_SECRET = "INVALID_SECRET"


def email_allowed(email: str, allowed_domains: tuple[str, ...]) -> bool:
    if not EMAIL_RE.match(email):
        return False
    if not allowed_domains:
        return True
    return email.split("@", 1)[1].lower() in allowed_domains


def extra_verification_ok(account: Account, verify_type: str | None, verify_value: str | None) -> bool:
    """Optional second factor on recovery start: employee id or username must match."""
    value = (verify_value or "").strip()
    if not verify_type or not value:
        return True
    if verify_type == "employeeId":
        return str(account.employee_id) == value
    if verify_type == "username":
        return (account.username or "").strip().lower() == value.lower()
    return False


class RecoveryService:
    def __init__(self, session: Session, settings: Settings, tokens: TokenIssuer, mailer: Mailer):
        self.session = session
        self.settings = settings
        self.tokens = tokens
        self.mailer = mailer
        self.otp = OtpService(session, settings.otp)
        self.audit = AuditRecorder(session)

    def _audit(self, action: str, message: str, status: AuthStatus, details: dict,
               account: Account | None = None, actor: str | None = None, meta: dict | None = None) -> None:
        self.audit.record(
            action,
            build_detail(message, status, action_details=details, meta=meta),
            account=account,
            actor=actor,
        )

    def start(
        self,
        email: str | None,
        verify_type: str | None = None,
        verify_value: str | None = None,
        resend: bool = False,
    ) -> RecoveryStart:
        """Issue (or re-issue) a recovery code for a registered e-mail and send it."""
        step = "resend" if resend else "start"
        label = "Resend" if resend else "Start"
        email_lower = (email or "").strip().lower()
        details = {"actionType": "password_reset_otp", "step": step, "email": email_lower}

        def fail(failure: RecoveryFailure, message: str, account: Account | None = None) -> RecoveryStart:
            self._audit(f"Auth - Forgot Password (Email OTP {label} Failed)", message, AuthStatus.NONE,
                        {**details, "result": failure.value.lower()}, account=account,
                        actor=email_lower or "Unknown")
            return RecoveryStart(failure=failure)

        if not email_lower:
            return fail(RecoveryFailure.MISSING_EMAIL, "Email is required.")
        if not email_allowed(email_lower, self.settings.allowed_email_domains):
            return fail(RecoveryFailure.EMAIL_NOT_ALLOWED, "Email is not allowed.")

        account = find_by_email(self.session, email_lower)
        if account is None:
            return fail(RecoveryFailure.EMAIL_NOT_REGISTERED, "That email is not registered.")
        if not extra_verification_ok(account, verify_type, verify_value):
            return fail(RecoveryFailure.EXTRA_VERIFICATION_FAILED, "Extra verification failed.", account)

        issued = self.otp.issue(email_lower, employee_id=account.employee_id)
        if isinstance(issued, CooldownActive):
            self._audit(f"Auth - Forgot Password (Email OTP {'Resend ' if resend else ''}Cooldown)",
                        "OTP request blocked by active cooldown.", AuthStatus.OTP_COOLDOWN_ACTIVE,
                        {**details, "result": "cooldown_active"}, account=account,
                        meta={"expiresAt": issued.expires_at})
            return RecoveryStart(expires_at=issued.expires_at, failure=RecoveryFailure.COOLDOWN_ACTIVE)

        # The code is already stored; a failed send must not undo it
        try:
            self.mailer.send_otp(
                email_lower, issued.code, expires_minutes=-(-self.settings.otp.ttl_seconds // 60)
            )
        except MailError as exc:
            logger.error(f"OTP e-mail to {redact_email(email_lower)} failed: {exc}")

        self._audit(f"Auth - Forgot Password (Email OTP {'Resent' if resend else 'Started'})",
                    "A new OTP email was sent." if resend else "OTP email issued for password reset.",
                    AuthStatus.OTP_EMAIL_RESENT if resend else AuthStatus.OTP_EMAIL_SENT,
                    {**details, "result": "otp_resent" if resend else "otp_sent"}, account=account)
        return RecoveryStart(expires_at=issued.expires_at)

    def verify_code(self, email: str, code: str) -> CodeVerification:
        email_lower = (email or "").strip().lower()
        result = self.otp.verify(email_lower, code)
        details = {"actionType": "password_reset_otp", "step": "verify", "email": email_lower,
                   "result": result.status.value}

        if result.status is not OtpVerifyStatus.VERIFIED:
            status = {
                OtpVerifyStatus.EXPIRED: AuthStatus.OTP_EXPIRED,
                OtpVerifyStatus.BLOCKED: AuthStatus.OTP_BLOCKED,
            }.get(result.status, AuthStatus.OTP_INVALID_OR_EXPIRED)
            self._audit("Auth - Forgot Password (Email OTP Verify Failed)",
                        f"OTP verification failed: {result.status.value}.", status, details,
                        actor=email_lower or "Unknown")
            return CodeVerification(result.status)

        account = self.session.get(Account, result.employee_id) if result.employee_id else None
        if account is None:
            account = find_by_email(self.session, email_lower)
        reset_token = self.tokens.issue_reset(
            account.employee_id if account is not None else None, email_lower
        )
        self._audit("Auth - Forgot Password (Email OTP Verified)", "OTP verified. Reset token issued.",
                    AuthStatus.OTP_VERIFIED_RESET_ALLOWED, details, account=account, actor=email_lower)
        return CodeVerification(OtpVerifyStatus.VERIFIED, reset_token)

    def _account_for_claims(self, claims: dict) -> Account | None:
        account = None
        if claims.get("employeeId"):
            account = self.session.get(Account, str(claims["employeeId"]))
        if account is None and claims.get("emailLower"):
            account = find_by_email(self.session, claims["emailLower"])
        return account

    def reset(self, reset_token: str | None, new_secret: str) -> ResetOutcome:
        """Apply a new password (or PIN for PIN roles) and consume the reset token."""
        details = {"actionType": "password_reset", "step": "reset"}

        def fail(outcome: ResetOutcome, message: str, account: Account | None = None) -> ResetOutcome:
            self._audit("Auth - Forgot Password (Reset Failed)", message, AuthStatus.PASSWORD_RESET_FAILED,
                        {**details, "result": outcome.value.lower()}, account=account)
            return outcome

        claims = self.tokens.decode_scoped(reset_token)
        if claims is None or not claims.get("jti"):
            return fail(ResetOutcome.INVALID_TOKEN, "Invalid or expired reset token.")
        if claims.get("purpose") != PURPOSE_PASSWORD_RESET:
            return fail(ResetOutcome.INVALID_PURPOSE, "Invalid reset token purpose.")

        account = self._account_for_claims(claims)
        if account is None:
            return fail(ResetOutcome.ACCOUNT_NOT_FOUND, "Unable to resolve employee from reset token.")

        mode = login_mode(account, self.settings.pin_roles)
        if mode == MODE_PIN:
            if not PIN_RE.match(new_secret or ""):
                return fail(ResetOutcome.INVALID_SECRET, "PIN must be 6 digits.", account)
        elif len(new_secret or "") < MIN_PASSWORD_LENGTH:
            return fail(ResetOutcome.INVALID_SECRET, "Password is too short.", account)

        new_hash = hash_secret(new_secret)
        now = utcnow()
        try:
            self.session.add(ConsumedResetToken(jti=claims["jti"], employee_id=account.employee_id))
            if mode == MODE_PIN:
                account.pin_hash = new_hash
                account.pin_last_changed = now
            else:
                account.password_hash = new_hash
                account.password_last_changed = now
            self.session.commit()
        except IntegrityError:
            self.session.rollback()
            return fail(ResetOutcome.INVALID_TOKEN, "Reset token already used.")
        except Exception:
            self.session.rollback()
            raise

        logger.info(f"Credential reset ({mode}) for employee {account.employee_id}")
        self._audit("Auth - Password Reset Success", f"{mode.capitalize()} updated via forgot-password flow.",
                    AuthStatus.PASSWORD_RESET_SUCCESS,
                    {**details, "method": "email_otp" if claims.get("emailLower") else "security_question",
                     "result": "password_updated"},
                    account=account)
        return ResetOutcome.OK
