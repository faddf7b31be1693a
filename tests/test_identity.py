"""
Tests for identifier classification, alias resolution and alias maintenance.
"""
import pytest
from sqlalchemy import select

from src.core.auth.identity import (
    AliasConflictError,
    ID_TYPE_EMAIL,
    ID_TYPE_EMPLOYEE_ID,
    ID_TYPE_USERNAME,
    classify_identifier,
    find_by_email,
    resolve,
    sync_aliases,
)
from src.core.db.tables.alias import Alias


class TestClassifyIdentifier:
    """Tests for shape-based identifier classification."""

    def test_fixed_length_digits_is_employee_id(self):
        assert classify_identifier("202500001") == (ID_TYPE_EMPLOYEE_ID, "202500001")

    def test_wrong_length_digits_is_username(self):
        assert classify_identifier("12345").type == ID_TYPE_USERNAME

    def test_at_sign_is_email_and_lowercased(self):
        assert classify_identifier("  Ana@Quscina.TEST ") == (ID_TYPE_EMAIL, "ana@quscina.test")

    def test_username_is_lowercased(self):
        assert classify_identifier("Admin.One") == (ID_TYPE_USERNAME, "admin.one")


class TestResolve:
    """Tests for alias -> account resolution."""

    def test_resolve_by_employee_id(self, db_session, admin_account):
        resolved = resolve(db_session, "202500001")
        assert resolved.account.employee_id == "202500001"
        assert resolved.identifier_type == ID_TYPE_EMPLOYEE_ID

    def test_resolve_username_case_insensitive(self, db_session, admin_account):
        resolved = resolve(db_session, "ADMIN.one")
        assert resolved.account.employee_id == admin_account.employee_id
        assert resolved.identifier_type == ID_TYPE_USERNAME

    def test_resolve_email_case_insensitive(self, db_session, admin_account):
        resolved = resolve(db_session, "Admin.One@Quscina.Test")
        assert resolved.identifier_type == ID_TYPE_EMAIL

    def test_unknown_identifier(self, db_session, admin_account):
        assert resolve(db_session, "nobody") is None
        assert resolve(db_session, "202599999") is None

    def test_empty_identifier(self, db_session):
        assert resolve(db_session, "   ") is None


class TestAliasMaintenance:
    """Tests for sync_aliases and e-mail lookup."""

    def test_disabled_method_has_no_alias(self, db_session, make_account):
        make_account("202500010", "admin", password="Secret123", username="nouser",
                     login_username=False)
        assert resolve(db_session, "nouser") is None
        assert resolve(db_session, "202500010") is not None

    def test_sync_removes_stale_aliases(self, db_session, admin_account):
        admin_account.username = "ana.r"
        sync_aliases(db_session, admin_account)
        db_session.commit()

        assert resolve(db_session, "admin.one") is None
        assert resolve(db_session, "ana.r").account.employee_id == "202500001"

    def test_conflicting_alias_rejected(self, db_session, admin_account, make_account):
        with pytest.raises(AliasConflictError):
            make_account("202500011", "manager", password="Secret123", username="admin.one")
        db_session.rollback()

        owners = db_session.execute(
            select(Alias).where(Alias.value_lower == "admin.one")
        ).scalars().all()
        assert [a.employee_id for a in owners] == ["202500001"]

    def test_find_by_email_without_email_login(self, db_session, make_account):
        make_account("202500012", "manager", password="Secret123",
                     email="Mgr@Quscina.test", login_email=False)
        account = find_by_email(db_session, "mgr@quscina.test")
        assert account is not None
        assert account.employee_id == "202500012"
