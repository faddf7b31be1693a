from sqlalchemy.orm import Session
from fastapi import APIRouter, Depends, status, Request, Response

from src.api.v0.common import api_error, lock_error, request_realm
from src.api.v0.auth.models import (
    LockView,
    LoginRequest,
    LoginResponse,
    LogoutResponse,
    MeResponse,
    PrecheckRequest,
    PrecheckResponse,
)
from src.core.auth.credentials import LoginFailure
from src.core.auth.login import LoginService
from src.core.auth.tokens import TokenIssuer
from src.core.config import Settings
from src.core.db.session import get_app_settings, get_db, get_session_claims, get_token_issuer
from src.core.logger import get_logger
from src.core.rate_limit import get_real_client_ip, get_user_agent, limiter

# Initialize logger
logger = get_logger(__name__)

router = APIRouter(prefix="/auth")

# (status, message) per login failure; locks are answered by lock_error
LOGIN_ERRORS = {
    LoginFailure.UNKNOWN_IDENTIFIER: (status.HTTP_404_NOT_FOUND, "Invalid Login ID"),
    LoginFailure.ACCOUNT_INACTIVE: (status.HTTP_403_FORBIDDEN, "Account is not active"),
    LoginFailure.METHOD_DISABLED: (
        status.HTTP_400_BAD_REQUEST, "This login method is disabled for the account"),
    LoginFailure.MISSING_SECRET: (status.HTTP_400_BAD_REQUEST, "Password or PIN is required"),
    LoginFailure.SECRET_NOT_SET: (
        status.HTTP_400_BAD_REQUEST, "No password or PIN has been set for this account"),
    LoginFailure.INVALID_CREDENTIAL: (status.HTTP_401_UNAUTHORIZED, "Invalid credentials"),
    LoginFailure.REALM_NOT_ALLOWED: (
        status.HTTP_403_FORBIDDEN, "Your role is not allowed to access the Admin Dashboard"),
}


@router.post("/precheck", response_model=PrecheckResponse)
@limiter.limit("20/minute")
def precheck(
    request: Request,
    body: PrecheckRequest,
    session: Session = Depends(get_db),
    settings: Settings = Depends(get_app_settings),
    tokens: TokenIssuer = Depends(get_token_issuer),
):
    """
    Tell the login form which secret to ask for.

    Rate limited to 20 requests per minute per IP. Reveals whether the
    identifier exists; the login call re-validates everything on its own.
    """
    result = LoginService(session, settings, tokens).precheck(
        body.identifier, request_realm(request, body.app)
    )
    if not result.found:
        raise api_error(status.HTTP_404_NOT_FOUND, "Invalid Login ID", "UNKNOWN_IDENTIFIER")

    return PrecheckResponse(
        mode=result.mode,
        pin_unset=result.pin_unset,
        lock=LockView(**result.lock.as_dict()),
    )


@router.post("/login", response_model=LoginResponse)
@limiter.limit("10/minute")
def login(
    request: Request,
    response: Response,
    body: LoginRequest,
    session: Session = Depends(get_db),
    settings: Settings = Depends(get_app_settings),
    tokens: TokenIssuer = Depends(get_token_issuer),
):
    """
    Sign in with employee id, username or e-mail plus password or PIN.

    Rate limited to 10 requests per minute per IP.
    With remember=true the session token is also set as an HttpOnly cookie.
    """
    realm = request_realm(request, body.app)
    outcome = LoginService(session, settings, tokens).login(
        body.identifier,
        body.secret,
        realm,
        remember=body.remember,
        ip=get_real_client_ip(request),
        user_agent=get_user_agent(request),
    )

    if outcome.failure in (LoginFailure.LOCKED_TEMPORARY, LoginFailure.LOCKED_PERMANENT):
        raise lock_error(
            outcome.lock,
            "Account temporarily locked. Please wait before trying again.",
            "Account locked. Please contact an Admin or Manager.",
        )
    if outcome.failure is not None:
        status_code, message = LOGIN_ERRORS[outcome.failure]
        raise api_error(status_code, message, outcome.failure.value)

    if body.remember:
        # SameSite=Strict plus HttpOnly; Secure follows QUSCINA_COOKIE_SECURE
        response.set_cookie(
            key=settings.cookie_name,
            value=outcome.token,
            httponly=True,
            secure=settings.cookie_secure,
            samesite="strict",
            max_age=int(tokens.session_ttl(remember=True).total_seconds()),
            path="/",
        )

    return LoginResponse(token=outcome.token, user=outcome.account.public_view())


@router.get("/me", response_model=MeResponse)
def me(
    soft: bool = False,
    claims: dict | None = Depends(get_session_claims),
):
    """
    Current session claims.

    With ?soft=1 an anonymous caller gets authenticated=false instead of a 401.
    """
    if not claims:
        if soft:
            return MeResponse(authenticated=False)
        raise api_error(status.HTTP_401_UNAUTHORIZED, "Not authenticated", "NOT_AUTHENTICATED")

    user = {
        key: claims.get(key)
        for key in ("employeeId", "role", "name", "username", "email")
    }
    return MeResponse(authenticated=True, user=user)


@router.post("/logout", response_model=LogoutResponse)
def logout(
    response: Response,
    session: Session = Depends(get_db),
    settings: Settings = Depends(get_app_settings),
    tokens: TokenIssuer = Depends(get_token_issuer),
    claims: dict | None = Depends(get_session_claims),
):
    """
    Sign out. Refused with 409 while the employee has an open POS shift.
    """
    if claims:
        allowed = LoginService(session, settings, tokens).logout(claims["sub"])
        if not allowed:
            logger.info(f"Logout refused for employee {claims['sub']}: open shift")
            raise api_error(
                status.HTTP_409_CONFLICT,
                "You still have an open shift. Remit it before logging out.",
                "SHIFT_OPEN",
            )

    response.delete_cookie(key=settings.cookie_name, path="/")
    return LogoutResponse()
