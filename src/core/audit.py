"""
Best-effort audit and login-attempt recording.

Writes happen after the primary operation has committed. A failing write
is rolled back and logged; it never reaches the caller.
"""
import json
from enum import Enum
from typing import Any

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from src.core.db.tables.account import Account
from src.core.db.tables.audit_trail import AuditTrail
from src.core.db.tables.login_attempt import LoginAttempt
from src.core.logger import get_logger

logger = get_logger(__name__)


class AuthStatus(str, Enum):
    """Values of affectedData.statusChange in audit details."""
    NONE = "NONE"

    LOGIN_UNKNOWN_IDENTIFIER = "LOGIN_UNKNOWN_IDENTIFIER"
    LOGIN_ACCOUNT_NOT_ACTIVE = "LOGIN_ACCOUNT_NOT_ACTIVE"
    LOGIN_METHOD_DISABLED = "LOGIN_METHOD_DISABLED"
    LOGIN_SECRET_NOT_SET = "LOGIN_SECRET_NOT_SET"
    LOGIN_BAD_PASSWORD = "LOGIN_BAD_PASSWORD"
    LOGIN_LOCK_TEMP = "LOGIN_LOCK_TEMP"
    LOGIN_LOCK_PERMA = "LOGIN_LOCK_PERMA"
    LOGIN_OK = "LOGIN_OK"
    LOGIN_OK_REALM_DENIED = "LOGIN_OK_REALM_DENIED"
    LOGOUT_OK = "LOGOUT_OK"
    LOGOUT_BLOCKED_OPEN_SHIFT = "LOGOUT_BLOCKED_OPEN_SHIFT"

    OTP_EMAIL_SENT = "OTP_EMAIL_SENT"
    OTP_EMAIL_RESENT = "OTP_EMAIL_RESENT"
    OTP_COOLDOWN_ACTIVE = "OTP_COOLDOWN_ACTIVE"
    OTP_INVALID_OR_EXPIRED = "OTP_INVALID_OR_EXPIRED"
    OTP_EXPIRED = "OTP_EXPIRED"
    OTP_BLOCKED = "OTP_BLOCKED"
    OTP_VERIFIED_RESET_ALLOWED = "OTP_VERIFIED_RESET_ALLOWED"

    SQ_FLOW_STARTED = "SQ_FLOW_STARTED"
    SQ_VERIFY_FAILED = "SQ_VERIFY_FAILED"
    SQ_LOCKED = "SQ_LOCKED"
    SQ_VERIFIED_RESET_ALLOWED = "SQ_VERIFIED_RESET_ALLOWED"

    PASSWORD_RESET_SUCCESS = "PASSWORD_RESET_SUCCESS"
    PASSWORD_RESET_FAILED = "PASSWORD_RESET_FAILED"

    PIN_TICKET_ISSUED = "PIN_TICKET_ISSUED"
    PIN_TICKET_INVALID = "PIN_TICKET_INVALID"
    PIN_TICKET_EXPIRED = "PIN_TICKET_EXPIRED"
    PIN_RESET_SUCCESS = "PIN_RESET_SUCCESS"

    ACCOUNT_UNLOCKED = "ACCOUNT_UNLOCKED"


def build_detail(
    status_message: str,
    status_change: AuthStatus,
    action_details: dict[str, Any] | None = None,
    affected: dict[str, Any] | None = None,
    meta: dict[str, Any] | None = None,
) -> dict[str, Any]:
    return {
        "statusMessage": status_message,
        "actionDetails": action_details or {},
        "affectedData": {"statusChange": status_change.value, "items": [], **(affected or {})},
        "meta": meta or {},
    }


class AuditRecorder:
    def __init__(self, session: Session):
        self.session = session

    def _write(self, row: Any, what: str) -> bool:
        try:
            self.session.add(row)
            self.session.commit()
            return True
        except SQLAlchemyError as exc:
            self.session.rollback()
            logger.warning(f"{what} insert failed: {exc}")
            return False

    def record(
        self,
        action: str,
        detail: dict[str, Any],
        account: Account | None = None,
        actor: str | None = None,
    ) -> bool:
        """Insert one audit_trail row. Returns False when the write was dropped."""
        if account is not None:
            employee, role = account.display_name, account.role or "-"
        else:
            employee, role = actor or "Unknown", "-"
        try:
            payload = json.dumps(detail, default=str)
        except (TypeError, ValueError) as exc:
            logger.warning(f"Audit detail not serializable for '{action}': {exc}")
            payload = "{}"
        return self._write(
            AuditTrail(employee=employee[:256], role=role, action=action, detail=payload),
            "audit_trail",
        )

    def login_attempt(
        self,
        app: str,
        identifier: str,
        reason: str,
        account: Account | None = None,
        success: bool = False,
        ip: str | None = None,
        user_agent: str | None = None,
    ) -> bool:
        return self._write(
            LoginAttempt(
                employee_id=account.employee_id if account is not None else None,
                app=app,
                identifier=identifier[:256],
                success=success,
                reason=reason,
                ip=ip,
                user_agent=user_agent,
            ),
            "login_attempts",
        )
