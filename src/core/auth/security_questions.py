"""
Single security-question recovery.

Every rejection that is not a lock answers the same way, so a caller can't
tell a bad token from a wrong question or a wrong answer. Only answers
that reach the comparison count against the ledger, under the
"<realm>:sq" realm, independent of password/PIN lockout.
"""
from dataclasses import dataclass, field
from enum import Enum
from functools import lru_cache
from typing import Sequence

from sqlalchemy.orm import Session

from src.core.audit import AuditRecorder, AuthStatus, build_detail
from src.core.auth.identity import resolve
from src.core.auth.lockout import LockoutLedger, LockStatus, normalize_realm, sq_realm
from src.core.auth.tokens import TokenIssuer, PURPOSE_SQ_SESSION
from src.core.clock import utcnow
from src.core.config import Settings
from src.core.db.tables.account import Account
from src.core.db.tables.security_answer import SecurityAnswer
from src.core.logger import get_logger
from src.core.security import hash_secret, normalize_answer, verify_secret

logger = get_logger(__name__)

SQ_CATALOG = {
    "pet": "What is the name of your first pet?",
    "school": "What is the name of your elementary school?",
    "city": "In what city were you born?",
    "mother_maiden": "What is your mother's maiden name?",
    "nickname": "What was your childhood nickname?",
}


@lru_cache
def _decoy_hash() -> str:
    return hash_secret("no-answer-configured")


def set_security_answer(session: Session, employee_id: str, question_id: str, answer: str) -> SecurityAnswer:
    """Store the account's one question and its normalized answer, replacing any previous one."""
    if question_id not in SQ_CATALOG:
        raise ValueError("Unknown security question id.")
    normalized = normalize_answer(answer)
    if not normalized:
        raise ValueError("Security answer is required.")

    row = session.get(SecurityAnswer, str(employee_id))
    if row is None:
        row = SecurityAnswer(employee_id=str(employee_id), question_id=question_id, answer_hash="")
        session.add(row)
    row.question_id = question_id
    row.answer_hash = hash_secret(normalized)
    row.updated_at = utcnow()
    session.flush()
    return row


class SqOutcome(str, Enum):
    VERIFIED = "verified"
    REJECTED = "rejected"
    LOCKED = "locked"


@dataclass(frozen=True)
class SqVerifyResult:
    outcome: SqOutcome
    reset_token: str | None = None
    lock: LockStatus = field(default_factory=LockStatus)


class SecurityQuestionService:
    def __init__(self, session: Session, settings: Settings, tokens: TokenIssuer):
        self.session = session
        self.tokens = tokens
        self.ledger = LockoutLedger(session, settings.lockout)
        self.audit = AuditRecorder(session)

    def start(self, identifier: str, realm: str) -> str | None:
        """Scoped token for the SQ step, or None if the identifier is unknown."""
        resolved = resolve(self.session, identifier)
        if resolved is None:
            self.audit.record(
                "Auth - Forgot Password (SQ Start Failed)",
                build_detail(
                    "Account not found for identifier.",
                    AuthStatus.NONE,
                    action_details={"actionType": "password_reset_sq", "step": "start",
                                    "result": "account_not_found"},
                ),
                actor=identifier,
            )
            return None

        account = resolved.account
        # The whole catalog is offered, so the token says nothing about the configured question
        token = self.tokens.issue_sq_session(
            account.employee_id, list(SQ_CATALOG), app=normalize_realm(realm)
        )
        self.audit.record(
            "Auth - Forgot Password (SQ Start)",
            build_detail(
                "Security question flow started.",
                AuthStatus.SQ_FLOW_STARTED,
                action_details={"actionType": "password_reset_sq", "step": "start", "result": "sq_started"},
            ),
            account=account,
        )
        return token

    def verify(self, sq_token: str | None, answers: Sequence[tuple[str, str]]) -> SqVerifyResult:
        rejected = SqVerifyResult(SqOutcome.REJECTED)

        claims = self.tokens.verify_purpose(sq_token, PURPOSE_SQ_SESSION)
        if claims is None or len(answers) != 1:
            return rejected

        employee_id = claims.get("employeeId")
        allowed_ids = claims.get("allowedIds") or []
        question_id, answer = answers[0]
        if not employee_id or not isinstance(allowed_ids, list) or question_id not in allowed_ids:
            return rejected
        if not isinstance(answer, str):
            return rejected

        realm = sq_realm(normalize_realm(claims.get("app")))
        account = self.session.get(Account, str(employee_id))

        lock = self.ledger.status(employee_id, realm)
        if not lock.is_clear:
            self._audit(account, employee_id, question_id, "locked", AuthStatus.SQ_LOCKED,
                        "Security question verification is locked.")
            return SqVerifyResult(SqOutcome.LOCKED, lock=lock)

        row = self.session.get(SecurityAnswer, str(employee_id))
        configured = row is not None and row.question_id == question_id
        matched = verify_secret(
            normalize_answer(answer), row.answer_hash if configured else _decoy_hash()
        ) and configured

        if not matched:
            lock = self.ledger.record_failure(employee_id, realm)
            self._audit(account, employee_id, question_id, "mismatch", AuthStatus.SQ_VERIFY_FAILED,
                        "Security answer did not match.", lock)
            return SqVerifyResult(SqOutcome.REJECTED, lock=lock)

        self.ledger.clear(employee_id, realm)
        reset_token = self.tokens.issue_reset(employee_id)
        self._audit(account, employee_id, question_id, "sq_verified", AuthStatus.SQ_VERIFIED_RESET_ALLOWED,
                    "Security question verified. Reset token issued.")
        logger.info(f"Security question verified for employee {employee_id}")
        return SqVerifyResult(SqOutcome.VERIFIED, reset_token=reset_token)

    def _audit(
        self,
        account: Account | None,
        employee_id: str,
        question_id: str,
        result: str,
        status: AuthStatus,
        message: str,
        lock: LockStatus | None = None,
    ) -> None:
        affected = {}
        if lock is not None and not lock.is_clear:
            affected = {"lock": lock.as_dict()}
        self.audit.record(
            f"Auth - Forgot Password (SQ {'Verified' if status is AuthStatus.SQ_VERIFIED_RESET_ALLOWED else 'Verify Failed'})",
            build_detail(
                message,
                status,
                action_details={"actionType": "password_reset_sq", "step": "verify",
                                "questionId": question_id, "result": result},
                affected=affected,
            ),
            account=account,
            actor=str(employee_id),
        )
