"""
Login identifier resolution through the aliases table.

An identifier is classified by shape: an all-digit string of the configured
account-id length is an employee id, anything containing "@" is an e-mail,
everything else is a username. Usernames and e-mails are matched
lowercased; employee ids are matched verbatim.
"""
from typing import NamedTuple

from sqlalchemy import select, delete, func
from sqlalchemy.orm import Session

from src.core.config import get_settings
from src.core.db.tables.account import Account
from src.core.db.tables.alias import Alias
from src.core.logger import get_logger

logger = get_logger(__name__)

ID_TYPE_EMPLOYEE_ID = "employee_id"
ID_TYPE_USERNAME = "username"
ID_TYPE_EMAIL = "email"


class Identifier(NamedTuple):
    type: str
    value: str


class ResolvedIdentity(NamedTuple):
    account: Account
    identifier_type: str


class AliasConflictError(ValueError):
    """An alias value is already owned by another account."""


def classify_identifier(raw: str | None, id_length: int | None = None) -> Identifier:
    value = (raw or "").strip()
    id_length = id_length or get_settings().account_id_length
    if len(value) == id_length and value.isdigit():
        return Identifier(ID_TYPE_EMPLOYEE_ID, value)
    if "@" in value:
        return Identifier(ID_TYPE_EMAIL, value.lower())
    return Identifier(ID_TYPE_USERNAME, value.lower())


def resolve(session: Session, raw_identifier: str | None) -> ResolvedIdentity | None:
    """Resolve a login identifier to its account, or None if no alias matches."""
    identifier = classify_identifier(raw_identifier)
    if not identifier.value:
        return None

    employee_id = session.execute(
        select(Alias.employee_id).where(
            Alias.type == identifier.type,
            Alias.value_lower == identifier.value,
        ).limit(1)
    ).scalar()
    if employee_id is None:
        return None

    account = session.get(Account, employee_id)
    if account is None:
        return None
    return ResolvedIdentity(account, identifier.type)


def find_by_email(session: Session, email: str | None) -> Account | None:
    email_lower = (email or "").strip().lower()
    if not email_lower:
        return None
    resolved = resolve(session, email_lower)
    if resolved is not None and resolved.identifier_type == ID_TYPE_EMAIL:
        return resolved.account
    # E-mail login may be disabled while the address is still the recovery channel
    return session.execute(
        select(Account).where(func.lower(Account.email) == email_lower).limit(1)
    ).scalar()


def login_method_enabled(account: Account, identifier_type: str) -> bool:
    if identifier_type == ID_TYPE_EMPLOYEE_ID:
        return bool(account.login_employee_id)
    if identifier_type == ID_TYPE_USERNAME:
        return bool(account.login_username)
    if identifier_type == ID_TYPE_EMAIL:
        return bool(account.login_email)
    return False


def desired_aliases(account: Account) -> set[tuple[str, str]]:
    """(type, value) pairs an account should own given its enabled login methods."""
    wanted = set()
    if account.login_employee_id:
        wanted.add((ID_TYPE_EMPLOYEE_ID, str(account.employee_id).strip()))
    if account.login_username and account.username:
        wanted.add((ID_TYPE_USERNAME, account.username.strip().lower()))
    if account.login_email and account.email:
        wanted.add((ID_TYPE_EMAIL, account.email.strip().lower()))
    return wanted


def sync_aliases(session: Session, account: Account) -> None:
    """
    Rebuild the alias rows of an account from its login methods.

    Raises AliasConflictError if a wanted value belongs to another account.
    The caller owns the transaction.
    """
    wanted = desired_aliases(account)

    for alias_type, value in wanted:
        owner = session.execute(
            select(Alias.employee_id).where(
                Alias.type == alias_type, Alias.value_lower == value
            )
        ).scalar()
        if owner is not None and owner != account.employee_id:
            raise AliasConflictError(f"{alias_type} already in use")

    current = session.execute(
        select(Alias).where(Alias.employee_id == account.employee_id)
    ).scalars().all()
    have = {(a.type, a.value_lower) for a in current}

    stale = [a.id for a in current if (a.type, a.value_lower) not in wanted]
    if stale:
        session.execute(delete(Alias).where(Alias.id.in_(stale)))

    for alias_type, value in sorted(wanted - have):
        session.add(Alias(type=alias_type, value_lower=value, employee_id=account.employee_id))
    session.flush()
    logger.info(f"Aliases synced for employee {account.employee_id}: {len(wanted)} active")
