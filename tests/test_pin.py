"""
Tests for PIN-reset ticket endpoints.
"""
import pytest


@pytest.fixture
def ticket(db_session, client_factory, admin_token, cashier_account):
    client = client_factory(db_session, token=admin_token)
    response = client.post("/api/admin/accounts/202500002/pin-tickets")
    assert response.status_code == 201
    return response.json()


class TestTicketEndpoints:
    def test_verify_ticket(self, db_session, client_factory, ticket):
        client = client_factory(db_session)
        response = client.post(
            "/api/auth/pin/ticket/verify",
            json={"employee_id": "202500002", "ticket_code": ticket["code"]},
        )
        assert response.status_code == 200
        assert response.json()["ok"] is True

    def test_redeem_then_login_with_new_pin(self, db_session, client_factory, ticket):
        client = client_factory(db_session)
        response = client.post(
            "/api/auth/pin/ticket/redeem",
            json={
                "employee_id": "202500002",
                "ticket_code": ticket["code"],
                "new_pin": "864209",
                "request_id": "a1b2c3",
            },
        )
        assert response.status_code == 200

        login = client.post(
            "/api/auth/login",
            json={"identifier": "202500002", "pin": "864209", "app": "pos"},
        )
        assert login.status_code == 200

    def test_redeem_twice(self, db_session, client_factory, ticket):
        client = client_factory(db_session)
        body = {"employee_id": "202500002", "ticket_code": ticket["code"], "new_pin": "864209"}

        assert client.post("/api/auth/pin/ticket/redeem", json=body).status_code == 200
        second = client.post("/api/auth/pin/ticket/redeem", json=body)
        assert second.status_code == 400
        assert second.json()["detail"]["code"] == "TICKET_INVALID"

    def test_pin_format_enforced(self, db_session, client_factory, ticket):
        client = client_factory(db_session)
        response = client.post(
            "/api/auth/pin/ticket/redeem",
            json={"employee_id": "202500002", "ticket_code": ticket["code"], "new_pin": "12345a"},
        )
        assert response.status_code == 422

    def test_wrong_code(self, db_session, client_factory, ticket):
        client = client_factory(db_session)
        response = client.post(
            "/api/auth/pin/ticket/redeem",
            json={"employee_id": "202500002", "ticket_code": "ZZZZ9999", "new_pin": "864209"},
        )
        assert response.status_code == 400
        assert response.json()["detail"]["code"] == "TICKET_INVALID"

    def test_password_account(self, db_session, client_factory, admin_account):
        client = client_factory(db_session)
        response = client.post(
            "/api/auth/pin/ticket/verify",
            json={"employee_id": "202500001", "ticket_code": "ABCD1234"},
        )
        assert response.status_code == 400
        assert response.json()["detail"]["code"] == "NOT_PIN_ACCOUNT"
