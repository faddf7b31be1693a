"""
Password / PIN verification for a resolved account.

Preconditions are checked in a fixed order and each has its own failure:
active account, enabled login method, role-appropriate secret supplied and
stored, lock ledger clear. Only then is the secret compared. A locked
account never reaches the hash comparison.
"""
from dataclasses import dataclass, field
from enum import Enum

from src.core.auth.lockout import LockoutLedger, LockStatus
from src.core.auth.identity import login_method_enabled
from src.core.db.tables.account import Account
from src.core.security import verify_secret

MODE_PASSWORD = "password"
MODE_PIN = "pin"


class LoginFailure(str, Enum):
    UNKNOWN_IDENTIFIER = "UNKNOWN_IDENTIFIER"
    ACCOUNT_INACTIVE = "ACCOUNT_INACTIVE"
    METHOD_DISABLED = "METHOD_DISABLED"
    MISSING_SECRET = "MISSING_SECRET"
    SECRET_NOT_SET = "SECRET_NOT_SET"
    INVALID_CREDENTIAL = "INVALID_CREDENTIAL"
    LOCKED_TEMPORARY = "LOCKED_TEMPORARY"
    LOCKED_PERMANENT = "LOCKED_PERMANENT"
    REALM_NOT_ALLOWED = "REALM_NOT_ALLOWED"


def lock_failure(lock: LockStatus) -> LoginFailure | None:
    if lock.permanent:
        return LoginFailure.LOCKED_PERMANENT
    if lock.locked:
        return LoginFailure.LOCKED_TEMPORARY
    return None


@dataclass(frozen=True)
class CredentialResult:
    account: Account | None
    failure: LoginFailure | None = None
    lock: LockStatus = field(default_factory=LockStatus)

    @property
    def ok(self) -> bool:
        return self.failure is None


def login_mode(account: Account, pin_roles: tuple[str, ...]) -> str:
    role = (account.role or "").strip().lower()
    return MODE_PIN if role in pin_roles else MODE_PASSWORD


def stored_hash(account: Account, mode: str) -> str | None:
    return account.pin_hash if mode == MODE_PIN else account.password_hash


class CredentialVerifier:
    def __init__(self, ledger: LockoutLedger, pin_roles: tuple[str, ...]):
        self.ledger = ledger
        self.pin_roles = pin_roles

    def verify(
        self,
        account: Account,
        identifier_type: str,
        secret: str | None,
        realm: str,
    ) -> CredentialResult:
        if not account.is_active:
            return CredentialResult(account, LoginFailure.ACCOUNT_INACTIVE)

        if not login_method_enabled(account, identifier_type):
            return CredentialResult(account, LoginFailure.METHOD_DISABLED)

        mode = login_mode(account, self.pin_roles)
        if not secret:
            return CredentialResult(account, LoginFailure.MISSING_SECRET)
        hashed = stored_hash(account, mode)
        if not hashed:
            return CredentialResult(account, LoginFailure.SECRET_NOT_SET)

        lock = self.ledger.status(account.employee_id, realm)
        failure = lock_failure(lock)
        if failure is not None:
            return CredentialResult(account, failure, lock)

        if not verify_secret(secret, hashed):
            lock = self.ledger.record_failure(account.employee_id, realm)
            return CredentialResult(
                account, lock_failure(lock) or LoginFailure.INVALID_CREDENTIAL, lock
            )

        self.ledger.clear(account.employee_id, realm)
        return CredentialResult(account)
