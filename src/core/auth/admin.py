"""
Administrative account operations: clearing lock state.
"""
from sqlalchemy.orm import Session

from src.core.audit import AuditRecorder, AuthStatus, build_detail
from src.core.auth.lockout import LOGIN_REALMS, LockoutLedger, normalize_realm, sq_realm
from src.core.config import Settings
from src.core.db.tables.account import Account
from src.core.logger import get_logger

logger = get_logger(__name__)


def unlock_realms(app: str | None, include_sq: bool) -> list[str]:
    """Realm keys to clear. No app means every login realm."""
    realms = [normalize_realm(app)] if app else list(LOGIN_REALMS)
    if include_sq:
        realms += [sq_realm(realm) for realm in realms]
    return realms


class AccountAdmin:
    def __init__(self, session: Session, settings: Settings):
        self.session = session
        self.ledger = LockoutLedger(session, settings.lockout)
        self.audit = AuditRecorder(session)

    def unlock(
        self,
        employee_id: str,
        actor: Account,
        app: str | None = None,
        include_sq: bool = False,
    ) -> list[str] | None:
        """
        Clear temporary and permanent locks. This is the only way a
        permanent lock goes away. Returns the cleared realms, or None if
        the account does not exist.
        """
        account = self.session.get(Account, str(employee_id))
        if account is None:
            return None

        realms = unlock_realms(app, include_sq)
        for realm in realms:
            self.ledger.clear(account.employee_id, realm)

        logger.info(f"Employee {account.employee_id} unlocked by {actor.employee_id}: {', '.join(realms)}")
        self.audit.record(
            "Auth - Account Unlocked",
            build_detail(
                f"Lock state cleared for {account.display_name}.",
                AuthStatus.ACCOUNT_UNLOCKED,
                action_details={"actionType": "unlock", "employeeId": account.employee_id,
                                "realms": realms},
            ),
            account=actor,
        )
        return realms
