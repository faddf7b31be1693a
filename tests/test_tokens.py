"""
Tests for session and purpose-scoped tokens.
"""
from dataclasses import replace

import jwt

from src.core.auth.tokens import (
    PURPOSE_PASSWORD_RESET,
    PURPOSE_SQ_SESSION,
    TokenIssuer,
)


class TestSessionTokens:
    def test_claims(self, tokens, admin_account):
        claims = tokens.verify_session(tokens.issue_session(admin_account))
        assert claims["sub"] == "202500001"
        assert claims["role"] == "admin"
        assert claims["name"] == "Ana Reyes"
        assert "purpose" not in claims

    def test_remember_me_lasts_longer(self, tokens, admin_account, settings):
        short = tokens.verify_session(tokens.issue_session(admin_account))
        long = tokens.verify_session(tokens.issue_session(admin_account, remember=True))

        assert short["exp"] - short["iat"] == settings.tokens.session_days * 86400
        assert long["exp"] - long["iat"] == settings.tokens.remember_days * 86400

    def test_tampered_token_rejected(self, tokens, admin_account, cashier_account):
        header, _, signature = tokens.issue_session(cashier_account).split(".")
        _, payload, _ = tokens.issue_session(admin_account).split(".")
        assert tokens.verify_session(f"{header}.{payload}.{signature}") is None

    def test_other_secret_rejected(self, tokens, admin_account, settings):
        other = TokenIssuer(replace(settings.tokens, secret="another-secret-0123456789abcdefgh"))
        assert tokens.verify_session(other.issue_session(admin_account)) is None

    def test_scoped_token_is_not_a_session(self, tokens):
        reset = tokens.issue_reset("202500001")
        assert tokens.verify_session(reset) is None


class TestPurposeTokens:
    def test_reset_token_claims(self, tokens):
        claims = tokens.verify_purpose(
            tokens.issue_reset("202500001", "ana@quscina.test"), PURPOSE_PASSWORD_RESET
        )
        assert claims["employeeId"] == "202500001"
        assert claims["emailLower"] == "ana@quscina.test"
        assert claims["jti"]

    def test_each_reset_token_has_own_jti(self, tokens):
        first = tokens.decode_scoped(tokens.issue_reset("202500001"))
        second = tokens.decode_scoped(tokens.issue_reset("202500001"))
        assert first["jti"] != second["jti"]

    def test_purpose_mismatch_is_invalid(self, tokens):
        sq_token = tokens.issue_sq_session("202500001", ["pet"], app="pos")
        assert tokens.verify_purpose(sq_token, PURPOSE_PASSWORD_RESET) is None
        assert tokens.verify_purpose(sq_token, PURPOSE_SQ_SESSION)["allowedIds"] == ["pet"]

    def test_session_token_has_no_purpose(self, tokens, admin_account):
        assert tokens.decode_scoped(tokens.issue_session(admin_account)) is None

    def test_expired_token_rejected(self, settings):
        expired = TokenIssuer(replace(settings.tokens, reset_minutes=-1))
        token = expired.issue_reset("202500001")
        assert expired.verify_purpose(token, PURPOSE_PASSWORD_RESET) is None

    def test_unsigned_token_rejected(self, tokens):
        token = jwt.encode({"purpose": PURPOSE_PASSWORD_RESET, "jti": "x"}, key=None, algorithm="none")
        assert tokens.decode_scoped(token) is None
