"""
Application configuration for Quscina auth.

Everything is read from environment variables once and frozen into
immutable dataclasses. Policies are handed to the services that need them
instead of being read as module constants.
"""
import os
from dataclasses import dataclass, field
from functools import lru_cache

# Only for local runs; set QUSCINA_JWT_SECRET everywhere else
DEV_SECRET = "quscina-dev-secret-change-me-0123456789"


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return int(raw)


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


def _env_list(name: str, default: str = "") -> tuple[str, ...]:
    raw = os.getenv(name, default)
    return tuple(v.strip().lower() for v in raw.split(",") if v.strip())


@dataclass(frozen=True)
class LockoutPolicy:
    """
    Progressive lockout thresholds.

    temporary_on: failure count that starts a temporary lock
    temporary_minutes: length of that lock
    permanent_on: failure count at or above which the lock becomes permanent
    """
    temporary_on: int = 5
    temporary_minutes: int = 15
    permanent_on: int = 6


@dataclass(frozen=True)
class OtpPolicy:
    ttl_seconds: int = 10 * 60
    max_attempts: int = 5
    purpose: str = "password-reset"
    channel: str = "email"


@dataclass(frozen=True)
class TokenPolicy:
    secret: str = DEV_SECRET
    reset_secret: str = DEV_SECRET
    algorithm: str = "HS256"
    session_days: int = 1
    remember_days: int = 7
    reset_minutes: int = 15
    sq_minutes: int = 10


@dataclass(frozen=True)
class TicketPolicy:
    ttl_minutes: int = 60


@dataclass(frozen=True)
class MailSettings:
    smtp_host: str | None = None
    smtp_port: int = 587
    smtp_user: str | None = None
    smtp_password: str | None = None
    smtp_use_tls: bool = True
    from_email: str | None = None
    app_name: str = "Quscina"


@dataclass(frozen=True)
class Settings:
    database_url: str = "sqlite:///.data/quscina.db"
    debug: bool = False
    bcrypt_rounds: int = 12
    account_id_length: int = 9
    pin_roles: tuple[str, ...] = ("cashier",)
    backoffice_roles: tuple[str, ...] = ("admin", "manager")
    allowed_email_domains: tuple[str, ...] = ()
    cookie_name: str = "qd_token"
    cookie_secure: bool = False
    rate_limit_enabled: bool = True
    lockout: LockoutPolicy = field(default_factory=LockoutPolicy)
    otp: OtpPolicy = field(default_factory=OtpPolicy)
    tokens: TokenPolicy = field(default_factory=TokenPolicy)
    tickets: TicketPolicy = field(default_factory=TicketPolicy)
    mail: MailSettings = field(default_factory=MailSettings)


def load_settings() -> Settings:
    """Build settings from QUSCINA_* environment variables."""
    secret = os.getenv("QUSCINA_JWT_SECRET") or DEV_SECRET
    return Settings(
        database_url=os.getenv("QUSCINA_DB_URL") or "sqlite:///.data/quscina.db",
        debug=_env_bool("QUSCINA_DEBUG", False),
        bcrypt_rounds=_env_int("QUSCINA_BCRYPT_ROUNDS", 12),
        account_id_length=_env_int("QUSCINA_ACCOUNT_ID_LENGTH", 9),
        pin_roles=_env_list("QUSCINA_PIN_ROLES", "cashier"),
        backoffice_roles=_env_list("QUSCINA_BACKOFFICE_ROLES", "admin,manager"),
        allowed_email_domains=_env_list("QUSCINA_ALLOWED_EMAIL_DOMAINS"),
        cookie_name=os.getenv("QUSCINA_COOKIE_NAME") or "qd_token",
        cookie_secure=_env_bool("QUSCINA_COOKIE_SECURE", False),
        rate_limit_enabled=_env_bool("QUSCINA_RATE_LIMIT_ENABLED", True),
        lockout=LockoutPolicy(
            temporary_on=_env_int("QUSCINA_LOCK_TEMPORARY_ON", 5),
            temporary_minutes=_env_int("QUSCINA_LOCK_TEMPORARY_MINUTES", 15),
            permanent_on=_env_int("QUSCINA_LOCK_PERMANENT_ON", 6),
        ),
        otp=OtpPolicy(
            ttl_seconds=_env_int("QUSCINA_OTP_TTL_SEC", 10 * 60),
            max_attempts=_env_int("QUSCINA_OTP_MAX_ATTEMPTS", 5),
        ),
        tokens=TokenPolicy(
            secret=secret,
            reset_secret=os.getenv("QUSCINA_JWT_RESET_SECRET") or secret,
            session_days=_env_int("QUSCINA_SESSION_DAYS", 1),
            remember_days=_env_int("QUSCINA_REMEMBER_DAYS", 7),
            reset_minutes=_env_int("QUSCINA_RESET_TOKEN_MINUTES", 15),
            sq_minutes=_env_int("QUSCINA_SQ_TOKEN_MINUTES", 10),
        ),
        tickets=TicketPolicy(
            ttl_minutes=_env_int("QUSCINA_TICKET_TTL_MINUTES", 60),
        ),
        mail=MailSettings(
            smtp_host=os.getenv("QUSCINA_SMTP_HOST") or None,
            smtp_port=_env_int("QUSCINA_SMTP_PORT", 587),
            smtp_user=os.getenv("QUSCINA_SMTP_USER") or None,
            smtp_password=os.getenv("QUSCINA_SMTP_PASSWORD") or None,
            smtp_use_tls=_env_bool("QUSCINA_SMTP_TLS", True),
            from_email=os.getenv("QUSCINA_MAIL_FROM") or None,
            app_name=os.getenv("QUSCINA_APP_NAME") or "Quscina",
        ),
    )


@lru_cache
def get_settings() -> Settings:
    return load_settings()
