import hashlib
import secrets
import string

import bcrypt

from src.core.config import get_settings


TICKET_ALPHABET = string.ascii_uppercase + string.digits


def new_otp_code() -> str:
    """Generate a 6-digit numeric one-time code."""
    return f"{secrets.randbelow(900000) + 100000}"


def new_ticket_code(length: int = 8) -> str:
    """Generate a PIN-reset ticket code (uppercase letters and digits)."""
    return "".join(secrets.choice(TICKET_ALPHABET) for _ in range(length))


def new_token_id() -> str:
    """Random identifier for the jti claim of reset tokens."""
    return secrets.token_urlsafe(16)


def _prepare_secret_for_bcrypt(secret: str) -> bytes:
    """
    Prepare a secret for bcrypt hashing.
    Bcrypt has a 72 byte limit, so we hash longer secrets with SHA256 first.
    """
    secret_bytes = secret.encode('utf-8')
    if len(secret_bytes) > 72:
        return hashlib.sha256(secret_bytes).hexdigest().encode('utf-8')
    return secret_bytes


def hash_secret(secret: str, rounds: int | None = None) -> str:
    """
    Hash a password, PIN, one-time code, answer or ticket code with bcrypt.

    Args:
        secret: The plain text value to hash
        rounds: bcrypt cost; defaults to QUSCINA_BCRYPT_ROUNDS

    Returns:
        The bcrypt hash as a string
    """
    salt = bcrypt.gensalt(rounds=rounds or get_settings().bcrypt_rounds)
    hashed = bcrypt.hashpw(_prepare_secret_for_bcrypt(secret), salt)
    return hashed.decode('utf-8')


def verify_secret(plain: str, hashed: str | None) -> bool:
    """
    Verify a value against its bcrypt hash.

    A missing or malformed hash never matches.

    Args:
        plain: The plain text value to verify
        hashed: The bcrypt hash to compare against

    Returns:
        True if the value matches, False otherwise
    """
    if not hashed:
        return False
    try:
        return bcrypt.checkpw(_prepare_secret_for_bcrypt(plain), hashed.encode('utf-8'))
    except (ValueError, TypeError):
        return False


def normalize_answer(answer: str | None) -> str:
    """Security answers are compared trimmed and case-folded."""
    return (answer or "").strip().casefold()
