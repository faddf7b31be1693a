"""
Signed, time-boxed tokens.

Session tokens carry the account identity and are signed with the session
secret. Purpose-scoped tokens (password reset, security-question session)
carry only what the next step needs, are signed with the reset secret and
expire in minutes. A token whose purpose differs from the one expected is
treated exactly like an invalid token.
"""
from datetime import timedelta, timezone
from typing import Any

import jwt

from src.core.clock import utcnow
from src.core.config import TokenPolicy
from src.core.db.tables.account import Account
from src.core.logger import get_logger
from src.core.security import new_token_id

logger = get_logger(__name__)

PURPOSE_PASSWORD_RESET = "password-reset"
PURPOSE_SQ_SESSION = "security-question-session"


class TokenIssuer:
    def __init__(self, policy: TokenPolicy):
        self.policy = policy

    def _encode(self, claims: dict[str, Any], secret: str, ttl: timedelta) -> str:
        now = utcnow().replace(tzinfo=timezone.utc)
        payload = {**claims, "iat": now, "exp": now + ttl}
        return jwt.encode(payload, secret, algorithm=self.policy.algorithm)

    def _decode(self, token: str | None, secret: str) -> dict[str, Any] | None:
        if not token:
            return None
        try:
            return jwt.decode(token, secret, algorithms=[self.policy.algorithm])
        except jwt.PyJWTError as exc:
            logger.debug(f"Token rejected: {type(exc).__name__}")
            return None

    def session_ttl(self, remember: bool) -> timedelta:
        days = self.policy.remember_days if remember else self.policy.session_days
        return timedelta(days=days)

    def issue_session(self, account: Account, remember: bool = False) -> str:
        claims = {
            "sub": str(account.employee_id),
            "employeeId": str(account.employee_id),
            "role": account.role,
            "name": account.display_name,
            "username": account.username or "",
            "email": account.email or "",
        }
        return self._encode(claims, self.policy.secret, self.session_ttl(remember))

    def verify_session(self, token: str | None) -> dict[str, Any] | None:
        claims = self._decode(token, self.policy.secret)
        if not claims or "purpose" in claims or not claims.get("sub"):
            return None
        return claims

    def issue_reset(self, employee_id: str | None, email_lower: str | None = None) -> str:
        """
        Password-reset token. References the account, the e-mail it was
        verified through, or both. The jti makes it single use.
        """
        claims: dict[str, Any] = {"purpose": PURPOSE_PASSWORD_RESET, "jti": new_token_id()}
        if employee_id:
            claims["employeeId"] = str(employee_id)
        if email_lower:
            claims["emailLower"] = email_lower
        return self._encode(
            claims, self.policy.reset_secret, timedelta(minutes=self.policy.reset_minutes)
        )

    def issue_sq_session(self, employee_id: str, allowed_ids: list[str], app: str) -> str:
        claims = {
            "purpose": PURPOSE_SQ_SESSION,
            "employeeId": str(employee_id),
            "allowedIds": list(allowed_ids),
            "app": app,
        }
        return self._encode(
            claims, self.policy.reset_secret, timedelta(minutes=self.policy.sq_minutes)
        )

    def decode_scoped(self, token: str | None) -> dict[str, Any] | None:
        """Claims of any purpose-scoped token; the caller checks the purpose."""
        claims = self._decode(token, self.policy.reset_secret)
        if not claims or not claims.get("purpose"):
            return None
        return claims

    def verify_purpose(self, token: str | None, purpose: str) -> dict[str, Any] | None:
        """Claims of a purpose-scoped token, or None if invalid, expired or for another purpose."""
        claims = self.decode_scoped(token)
        if not claims or claims.get("purpose") != purpose:
            return None
        return claims
