"""
Test configuration and fixtures for Quscina auth tests.
"""
import os

# Must be set before anything under src is imported
os.environ.setdefault("QUSCINA_DB_URL", "sqlite:///:memory:")
os.environ.setdefault("QUSCINA_BCRYPT_ROUNDS", "4")
os.environ.setdefault("QUSCINA_LOG_TO_FILE", "false")
os.environ.setdefault("QUSCINA_JWT_SECRET", "quscina-test-secret-0123456789abcdef")

from datetime import datetime, timedelta

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from src.core.auth.identity import sync_aliases
from src.core.auth.tokens import TokenIssuer
from src.core.config import get_settings
from src.core.db.tables.account import Account
from src.core.db.tables.base import Base
from src.core.mailer import MailError, Mailer
from src.core.security import hash_secret

ADMIN_PASSWORD = "CorrectHorse1"
CASHIER_PIN = "123456"


class CapturingMailer(Mailer):
    """Mailer that keeps OTP mails in memory instead of sending them."""

    def __init__(self, fail: bool = False):
        super().__init__(get_settings().mail)
        self.outbox: list[dict] = []
        self.fail = fail

    def send_otp(self, to_email: str, code: str, expires_minutes: int) -> None:
        if self.fail:
            raise MailError("SMTP send failed: connection refused")
        self.outbox.append({"to": to_email, "code": code, "expires_minutes": expires_minutes})

    def last_code(self, to_email: str) -> str | None:
        for mail in reversed(self.outbox):
            if mail["to"] == to_email:
                return mail["code"]
        return None


class FrozenClock:
    """Callable clock for services that accept clock=..."""

    def __init__(self, now: datetime | None = None):
        self.now = now or datetime(2025, 1, 15, 9, 0, 0)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now = self.now + timedelta(**kwargs)


@pytest.fixture(scope="function")
def db_session():
    """Create an isolated test database session for each test."""
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)

    Session = sessionmaker(bind=engine, autoflush=False)
    session = Session()

    yield session

    session.close()
    Base.metadata.drop_all(engine)


@pytest.fixture
def file_sessionmaker(tmp_path):
    """Session factory over a file-backed SQLite database, one connection per session."""
    engine = create_engine(
        f"sqlite:///{tmp_path / 'race.db'}",
        connect_args={"check_same_thread": False, "timeout": 30},
    )
    Base.metadata.create_all(engine)

    yield sessionmaker(bind=engine, autoflush=False)

    engine.dispose()


@pytest.fixture
def settings():
    return get_settings()


@pytest.fixture
def tokens(settings):
    return TokenIssuer(settings.tokens)


@pytest.fixture
def clock():
    return FrozenClock()


@pytest.fixture
def mailer():
    return CapturingMailer()


@pytest.fixture
def failing_mailer():
    return CapturingMailer(fail=True)


@pytest.fixture
def client_factory(mailer):
    """Factory to create test clients with a specific db session."""

    def create_client(session, token=None, mail=None):
        from src.app import app
        from src.core.db.session import get_db, get_mailer
        from src.core.rate_limit import limiter

        def override_get_db():
            yield session

        app.dependency_overrides[get_db] = override_get_db
        app.dependency_overrides[get_mailer] = lambda: mail or mailer
        limiter.enabled = False

        client = TestClient(app)
        if token:
            client.headers["Authorization"] = f"Bearer {token}"
        return client

    yield create_client

    # Cleanup
    from src.app import app
    from src.core.rate_limit import limiter

    app.dependency_overrides.clear()
    limiter.enabled = True


@pytest.fixture
def make_account(db_session):
    """Create an account with aliases for every enabled login method."""

    def create(
        employee_id: str,
        role: str,
        password: str | None = None,
        pin: str | None = None,
        username: str | None = None,
        email: str | None = None,
        status: str = "active",
        **fields,
    ) -> Account:
        for method in ("login_employee_id", "login_username", "login_email"):
            fields.setdefault(method, True)
        account = Account(
            employee_id=employee_id,
            role=role,
            status=status,
            username=username,
            email=email,
            password_hash=hash_secret(password) if password else None,
            pin_hash=hash_secret(pin) if pin else None,
            **fields,
        )
        db_session.add(account)
        db_session.flush()
        sync_aliases(db_session, account)
        db_session.commit()
        return account

    return create


@pytest.fixture
def admin_account(make_account):
    return make_account(
        "202500001",
        "admin",
        password=ADMIN_PASSWORD,
        username="Admin.One",
        email="admin.one@quscina.test",
        first_name="Ana",
        last_name="Reyes",
    )


@pytest.fixture
def cashier_account(make_account):
    return make_account(
        "202500002",
        "cashier",
        pin=CASHIER_PIN,
        username="cashier.two",
        email="cashier.two@quscina.test",
        first_name="Ben",
        last_name="Cruz",
    )


@pytest.fixture
def admin_token(admin_account, tokens):
    return tokens.issue_session(admin_account)


@pytest.fixture
def cashier_token(cashier_account, tokens):
    return tokens.issue_session(cashier_account)
