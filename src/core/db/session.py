from typing import Generator

from fastapi import Depends, HTTPException, status, Request
from sqlalchemy.orm import sessionmaker, Session

from src.core.auth.tokens import TokenIssuer
from src.core.config import Settings, get_settings
from src.core.db.engine import engine
from src.core.db.tables.account import Account
from src.core.mailer import Mailer

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def get_db() -> Generator[Session, None, None]:
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_app_settings() -> Settings:
    return get_settings()


def get_token_issuer(settings: Settings = Depends(get_app_settings)) -> TokenIssuer:
    return TokenIssuer(settings.tokens)


def get_mailer(settings: Settings = Depends(get_app_settings)) -> Mailer:
    return Mailer(settings.mail)


def read_session_token(request: Request, settings: Settings) -> str | None:
    """Bearer token from the Authorization header, else the session cookie."""
    auth = request.headers.get("Authorization") or ""
    if auth.lower().startswith("bearer "):
        return auth[7:].strip() or None
    return request.cookies.get(settings.cookie_name)


def get_session_claims(
    request: Request,
    settings: Settings = Depends(get_app_settings),
    tokens: TokenIssuer = Depends(get_token_issuer),
) -> dict | None:
    """Claims of a valid session token, or None. Never raises."""
    return tokens.verify_session(read_session_token(request, settings))


def get_current_account(
    claims: dict | None = Depends(get_session_claims),
    session: Session = Depends(get_db),
) -> Account:
    """Dependency to authenticate an employee via session token (header or HttpOnly cookie)"""
    if not claims:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail={"message": "Not authenticated", "code": "NOT_AUTHENTICATED"},
        )

    account = session.get(Account, str(claims["sub"]))
    if account is None or not account.is_active:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail={"message": "Not authenticated", "code": "NOT_AUTHENTICATED"},
        )
    return account
