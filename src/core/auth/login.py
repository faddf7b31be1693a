"""
Login flow: identifier -> lock ledger -> credential check -> session token.
"""
from dataclasses import dataclass, field

from sqlalchemy.orm import Session

from src.core.audit import AuditRecorder, AuthStatus, build_detail
from src.core.auth.credentials import (
    CredentialVerifier,
    LoginFailure,
    login_mode,
    stored_hash,
    MODE_PIN,
)
from src.core.auth.identity import classify_identifier, resolve
from src.core.auth.lockout import LockoutLedger, LockStatus, REALM_BACKOFFICE
from src.core.auth.tokens import TokenIssuer
from src.core.clock import utcnow
from src.core.config import Settings
from src.core.db.tables.account import Account
from src.core.db.tables.pos_shift import has_open_shift
from src.core.logger import get_logger

logger = get_logger(__name__)

# login_attempts.reason for each failure
ATTEMPT_REASONS = {
    LoginFailure.UNKNOWN_IDENTIFIER: "no_account",
    LoginFailure.ACCOUNT_INACTIVE: "not_active",
    LoginFailure.METHOD_DISABLED: "method_disabled",
    LoginFailure.MISSING_SECRET: "missing_secret",
    LoginFailure.SECRET_NOT_SET: "secret_not_set",
    LoginFailure.INVALID_CREDENTIAL: "bad_secret",
    LoginFailure.LOCKED_TEMPORARY: "locked",
    LoginFailure.LOCKED_PERMANENT: "perm_locked",
    LoginFailure.REALM_NOT_ALLOWED: "realm_denied",
}

AUDIT_EVENTS = {
    LoginFailure.UNKNOWN_IDENTIFIER: (
        "Auth - Login Attempt (Unknown ID)", "Invalid Login ID.", AuthStatus.LOGIN_UNKNOWN_IDENTIFIER),
    LoginFailure.ACCOUNT_INACTIVE: (
        "Auth - Login Blocked (Not Active)", "Account is not active.", AuthStatus.LOGIN_ACCOUNT_NOT_ACTIVE),
    LoginFailure.METHOD_DISABLED: (
        "Auth - Login Blocked (Method Disabled)", "Login method is disabled for this account.",
        AuthStatus.LOGIN_METHOD_DISABLED),
    LoginFailure.MISSING_SECRET: (
        "Auth - Login Failed", "Secret is required.", AuthStatus.NONE),
    LoginFailure.SECRET_NOT_SET: (
        "Auth - Login Failed", "No credential has been set for this account.", AuthStatus.LOGIN_SECRET_NOT_SET),
    LoginFailure.INVALID_CREDENTIAL: (
        "Auth - Login Failed", "Invalid credential.", AuthStatus.LOGIN_BAD_PASSWORD),
    LoginFailure.LOCKED_TEMPORARY: (
        "Auth - Login Blocked (Temporary Lock)", "Account temporarily locked due to repeated failed attempts.",
        AuthStatus.LOGIN_LOCK_TEMP),
    LoginFailure.LOCKED_PERMANENT: (
        "Auth - Login Blocked (Permanent Lock)", "Account is permanently locked.", AuthStatus.LOGIN_LOCK_PERMA),
    LoginFailure.REALM_NOT_ALLOWED: (
        "Auth - Login Success (Backoffice Not Allowed)",
        "Login successful but role is not allowed to access the Admin Dashboard.",
        AuthStatus.LOGIN_OK_REALM_DENIED),
}


@dataclass(frozen=True)
class Precheck:
    found: bool
    mode: str | None = None
    pin_unset: bool = False
    lock: LockStatus = field(default_factory=LockStatus)


@dataclass(frozen=True)
class LoginOutcome:
    account: Account | None
    token: str | None = None
    failure: LoginFailure | None = None
    lock: LockStatus = field(default_factory=LockStatus)

    @property
    def ok(self) -> bool:
        return self.failure is None


class LoginService:
    def __init__(self, session: Session, settings: Settings, tokens: TokenIssuer):
        self.session = session
        self.settings = settings
        self.tokens = tokens
        self.ledger = LockoutLedger(session, settings.lockout)
        self.verifier = CredentialVerifier(self.ledger, settings.pin_roles)
        self.audit = AuditRecorder(session)

    def precheck(self, identifier: str, realm: str) -> Precheck:
        """What the login form needs before asking for a secret."""
        resolved = resolve(self.session, identifier)
        if resolved is None:
            return Precheck(found=False)
        account = resolved.account
        mode = login_mode(account, self.settings.pin_roles)
        return Precheck(
            found=True,
            mode=mode,
            pin_unset=mode == MODE_PIN and not stored_hash(account, mode),
            lock=self.ledger.status(account.employee_id, realm),
        )

    def _realm_allows(self, account: Account, realm: str) -> bool:
        if realm != REALM_BACKOFFICE:
            return True
        return (account.role or "").strip().lower() in self.settings.backoffice_roles

    def login(
        self,
        identifier: str,
        secret: str | None,
        realm: str,
        remember: bool = False,
        ip: str | None = None,
        user_agent: str | None = None,
    ) -> LoginOutcome:
        ident = classify_identifier(identifier)
        resolved = resolve(self.session, identifier)

        if resolved is None:
            outcome = LoginOutcome(None, failure=LoginFailure.UNKNOWN_IDENTIFIER)
        else:
            result = self.verifier.verify(resolved.account, resolved.identifier_type, secret, realm)
            if not result.ok:
                outcome = LoginOutcome(result.account, failure=result.failure, lock=result.lock)
            elif not self._realm_allows(result.account, realm):
                outcome = LoginOutcome(result.account, failure=LoginFailure.REALM_NOT_ALLOWED)
            else:
                outcome = LoginOutcome(
                    result.account, token=self.tokens.issue_session(result.account, remember)
                )

        if outcome.account is not None and outcome.failure in (None, LoginFailure.REALM_NOT_ALLOWED):
            outcome.account.last_login_at = utcnow()
            outcome.account.last_login_ip = ip
            self.session.commit()

        self._record(outcome, realm, ident.type, ident.value, ip, user_agent)
        return outcome

    def _record(
        self,
        outcome: LoginOutcome,
        realm: str,
        login_type: str,
        identifier: str,
        ip: str | None,
        user_agent: str | None,
    ) -> None:
        if outcome.failure is None:
            reason = "ok"
            action, message, status = "Auth - Login Success", "User signed in successfully.", AuthStatus.LOGIN_OK
            logger.info(f"Login succeeded for employee {outcome.account.employee_id} ({realm})")
        else:
            reason = ATTEMPT_REASONS[outcome.failure]
            action, message, status = AUDIT_EVENTS[outcome.failure]
            logger.warning(f"Login failed ({reason}) for {login_type} in realm {realm}")

        self.audit.login_attempt(
            app=realm,
            identifier=identifier,
            reason=reason,
            account=outcome.account,
            success=outcome.failure in (None, LoginFailure.REALM_NOT_ALLOWED),
            ip=ip,
            user_agent=user_agent,
        )
        affected = {}
        if outcome.lock.locked:
            affected["lockSeconds"] = outcome.lock.remaining_seconds
        self.audit.record(
            action,
            build_detail(
                message,
                status,
                action_details={
                    "actionType": "login",
                    "app": realm,
                    "loginType": login_type,
                    "identifier": identifier,
                    "result": reason,
                },
                affected=affected,
                meta={"ip": ip, "userAgent": user_agent},
            ),
            account=outcome.account,
        )

    def logout(self, employee_id: str) -> bool:
        """
        False when the employee still has an open POS shift; the caller
        must refuse the logout until the shift is remitted.
        """
        account = self.session.get(Account, str(employee_id))
        if has_open_shift(self.session, employee_id):
            self.audit.record(
                "Auth - Logout Blocked (Open Shift)",
                build_detail(
                    "Cannot logout until the open shift is remitted.",
                    AuthStatus.LOGOUT_BLOCKED_OPEN_SHIFT,
                    action_details={"actionType": "logout", "result": "open_shift"},
                ),
                account=account,
                actor=str(employee_id),
            )
            return False

        self.audit.record(
            "Auth - Logout",
            build_detail(
                "User signed out.",
                AuthStatus.LOGOUT_OK,
                action_details={"actionType": "logout", "result": "ok"},
            ),
            account=account,
            actor=str(employee_id),
        )
        return True
