"""
Tests for administrative unlock and ticket issuance.
"""
from sqlalchemy import select

from src.core.audit import AuditRecorder, AuthStatus, build_detail
from src.core.auth.admin import unlock_realms
from src.core.auth.lockout import LockoutLedger, REALM_BACKOFFICE, REALM_POS, sq_realm
from src.core.db.tables.audit_trail import AuditTrail


def lock_permanently(db_session, settings, employee_id, realm):
    ledger = LockoutLedger(db_session, settings.lockout)
    for _ in range(6):
        ledger.record_failure(employee_id, realm)
    return ledger


class TestUnlock:
    def test_requires_session(self, db_session, client_factory, cashier_account):
        client = client_factory(db_session)
        response = client.post("/api/admin/accounts/202500002/unlock")
        assert response.status_code == 401

    def test_requires_manager_role(self, db_session, client_factory, cashier_token):
        client = client_factory(db_session, token=cashier_token)
        response = client.post("/api/admin/accounts/202500002/unlock")
        assert response.status_code == 403

    def test_unlock_clears_permanent_lock(
        self, db_session, client_factory, admin_token, cashier_account, settings
    ):
        ledger = lock_permanently(db_session, settings, "202500002", REALM_POS)
        client = client_factory(db_session, token=admin_token)

        response = client.post("/api/admin/accounts/202500002/unlock", json={"app": "pos"})
        assert response.status_code == 200
        assert response.json()["realms"] == [REALM_POS]
        assert ledger.status("202500002", REALM_POS).is_clear

        login = client.post(
            "/api/auth/login", json={"identifier": "202500002", "pin": "123456", "app": "pos"}
        )
        assert login.status_code == 200

    def test_unlock_leaves_sq_realm_unless_asked(
        self, db_session, client_factory, admin_token, cashier_account, settings
    ):
        ledger = lock_permanently(db_session, settings, "202500002", sq_realm(REALM_POS))
        client = client_factory(db_session, token=admin_token)

        client.post("/api/admin/accounts/202500002/unlock", json={"app": "pos"})
        assert ledger.status("202500002", sq_realm(REALM_POS)).permanent

        response = client.post(
            "/api/admin/accounts/202500002/unlock", json={"app": "pos", "include_sq": True}
        )
        assert response.json()["realms"] == [REALM_POS, sq_realm(REALM_POS)]
        assert ledger.status("202500002", sq_realm(REALM_POS)).is_clear

    def test_unlock_unknown_account(self, db_session, client_factory, admin_token):
        client = client_factory(db_session, token=admin_token)
        assert client.post("/api/admin/accounts/202599999/unlock").status_code == 404

    def test_unlock_is_audited(self, db_session, client_factory, admin_token, cashier_account):
        client = client_factory(db_session, token=admin_token)
        client.post("/api/admin/accounts/202500002/unlock")

        row = db_session.execute(
            select(AuditTrail).where(AuditTrail.action == "Auth - Account Unlocked")
        ).scalar()
        assert row.employee == "Ana Reyes"
        assert AuthStatus.ACCOUNT_UNLOCKED.value in row.detail

    def test_unlock_realms(self):
        assert unlock_realms(None, False) == [REALM_BACKOFFICE, REALM_POS]
        assert unlock_realms("POS", True) == [REALM_POS, "pos:sq"]


class TestPinTickets:
    def test_issue_ticket(self, db_session, client_factory, admin_token, cashier_account):
        client = client_factory(db_session, token=admin_token)
        response = client.post("/api/admin/accounts/202500002/pin-tickets")

        assert response.status_code == 201
        data = response.json()
        assert len(data["code"]) == 8
        assert data["expires_at"]

    def test_password_account_refused(self, db_session, client_factory, admin_token):
        client = client_factory(db_session, token=admin_token)
        response = client.post("/api/admin/accounts/202500001/pin-tickets")
        assert response.status_code == 400
        assert response.json()["detail"]["code"] == "NOT_PIN_ACCOUNT"


class TestAuditRecorder:
    def test_failed_audit_write_is_swallowed(self, db_session, admin_account):
        AuditTrail.__table__.drop(db_session.get_bind())

        recorder = AuditRecorder(db_session)
        ok = recorder.record("Auth - Test", build_detail("x", AuthStatus.NONE), account=admin_account)
        assert ok is False

        # The session is still usable afterwards
        db_session.refresh(admin_account)
        assert admin_account.employee_id == "202500001"
        AuditTrail.__table__.create(db_session.get_bind())

    def test_actor_name_falls_back(self, db_session, make_account):
        account = make_account("202500040", "manager", password="Secret123", username="mgr40")
        AuditRecorder(db_session).record("Auth - Test", build_detail("x", AuthStatus.NONE), account=account)

        row = db_session.execute(select(AuditTrail)).scalar()
        assert row.employee == "mgr40"
        assert row.role == "manager"
