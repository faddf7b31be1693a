"""
Helpers shared by the v0 routers: structured error responses and realm selection.
"""
from fastapi import HTTPException, Request

from src.core.auth.lockout import LockStatus, normalize_realm


def api_error(status_code: int, message: str, code: str, **extra) -> HTTPException:
    """HTTPException whose detail is {"message", "code", ...}."""
    return HTTPException(status_code=status_code, detail={"message": message, "code": code, **extra})


def lock_error(lock: LockStatus, temporary_message: str, permanent_message: str) -> HTTPException:
    if lock.permanent:
        return api_error(423, permanent_message, "LOCKED_PERMANENT", permanent=True)
    return api_error(
        423, temporary_message, "LOCKED_TEMPORARY", remaining_seconds=lock.remaining_seconds
    )


def request_realm(request: Request, body_app: str | None = None) -> str:
    """Realm from the body field "app", else the X-App header; defaults to backoffice."""
    return normalize_realm(body_app or request.headers.get("X-App"))
