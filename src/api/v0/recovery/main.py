from sqlalchemy.orm import Session
from fastapi import APIRouter, Depends, status, Request

from src.api.v0.common import api_error, lock_error, request_realm
from src.api.v0.recovery.models import (
    ForgotStartRequest,
    ForgotStartResponse,
    ForgotVerifyRequest,
    OkResponse,
    ResetRequest,
    ResetTokenResponse,
    SqQuestion,
    SqStartRequest,
    SqStartResponse,
    SqVerifyRequest,
)
from src.core.auth.otp import OtpVerifyStatus
from src.core.auth.recovery import RecoveryFailure, RecoveryService, ResetOutcome
from src.core.auth.security_questions import SQ_CATALOG, SecurityQuestionService, SqOutcome
from src.core.auth.tokens import TokenIssuer
from src.core.config import Settings
from src.core.db.session import get_app_settings, get_db, get_mailer, get_token_issuer
from src.core.logger import get_logger
from src.core.mailer import Mailer
from src.core.rate_limit import limiter

logger = get_logger(__name__)

router = APIRouter(prefix="/auth/forgot")

START_ERRORS = {
    RecoveryFailure.MISSING_EMAIL: (status.HTTP_400_BAD_REQUEST, "Email is required"),
    RecoveryFailure.EMAIL_NOT_ALLOWED: (
        status.HTTP_400_BAD_REQUEST, "Please enter a valid email from an allowed domain"),
    RecoveryFailure.EMAIL_NOT_REGISTERED: (status.HTTP_404_NOT_FOUND, "That email is not registered"),
    RecoveryFailure.EXTRA_VERIFICATION_FAILED: (
        status.HTTP_400_BAD_REQUEST, "The extra verification did not match our records"),
}

VERIFY_ERRORS = {
    OtpVerifyStatus.NOT_FOUND: ("Invalid or expired code", "OTP_NOT_FOUND"),
    OtpVerifyStatus.EXPIRED: ("Code expired. Please request a new one.", "OTP_EXPIRED"),
    OtpVerifyStatus.BLOCKED: ("Too many attempts. Please request a new code.", "OTP_BLOCKED"),
    OtpVerifyStatus.INVALID: ("Invalid code", "OTP_INVALID"),
}

SQ_MISMATCH = "Security answer does not match our records."


def _start(body: ForgotStartRequest, service: RecoveryService, resend: bool) -> ForgotStartResponse:
    result = service.start(body.email, body.verify_type, body.verify_value, resend=resend)
    if result.failure is RecoveryFailure.COOLDOWN_ACTIVE:
        raise api_error(
            status.HTTP_429_TOO_MANY_REQUESTS,
            "A code was already sent. Please wait before requesting another.",
            "COOLDOWN_ACTIVE",
            expires_at=result.expires_at.isoformat() if result.expires_at else None,
        )
    if result.failure is not None:
        status_code, message = START_ERRORS[result.failure]
        raise api_error(status_code, message, result.failure.value)
    return ForgotStartResponse(expires_at=result.expires_at)


@router.post("/start", response_model=ForgotStartResponse)
@limiter.limit("5/minute")
def forgot_start(
    request: Request,
    body: ForgotStartRequest,
    session: Session = Depends(get_db),
    settings: Settings = Depends(get_app_settings),
    tokens: TokenIssuer = Depends(get_token_issuer),
    mailer: Mailer = Depends(get_mailer),
):
    """
    Send a password-reset code to a registered e-mail.

    Rate limited to 5 requests per minute per IP. While a code is pending
    the answer is 429 with the pending code's expiry.
    """
    return _start(body, RecoveryService(session, settings, tokens, mailer), resend=False)


@router.post("/resend", response_model=ForgotStartResponse)
@limiter.limit("5/minute")
def forgot_resend(
    request: Request,
    body: ForgotStartRequest,
    session: Session = Depends(get_db),
    settings: Settings = Depends(get_app_settings),
    tokens: TokenIssuer = Depends(get_token_issuer),
    mailer: Mailer = Depends(get_mailer),
):
    """Same as /start; kept separate for the audit trail."""
    return _start(body, RecoveryService(session, settings, tokens, mailer), resend=True)


@router.post("/verify", response_model=ResetTokenResponse)
@limiter.limit("10/minute")
def forgot_verify(
    request: Request,
    body: ForgotVerifyRequest,
    session: Session = Depends(get_db),
    settings: Settings = Depends(get_app_settings),
    tokens: TokenIssuer = Depends(get_token_issuer),
    mailer: Mailer = Depends(get_mailer),
):
    result = RecoveryService(session, settings, tokens, mailer).verify_code(body.email, body.code)
    if result.status is not OtpVerifyStatus.VERIFIED:
        message, code = VERIFY_ERRORS[result.status]
        raise api_error(status.HTTP_400_BAD_REQUEST, message, code)
    return ResetTokenResponse(reset_token=result.reset_token)


@router.get("/sq/questions", response_model=list[SqQuestion])
def sq_questions():
    return [SqQuestion(id=qid, text=text) for qid, text in SQ_CATALOG.items()]


@router.post("/sq/start", response_model=SqStartResponse)
@limiter.limit("10/minute")
def sq_start(
    request: Request,
    body: SqStartRequest,
    session: Session = Depends(get_db),
    settings: Settings = Depends(get_app_settings),
    tokens: TokenIssuer = Depends(get_token_issuer),
):
    """
    Begin security-question recovery for an employee id, username or e-mail.

    Every catalog question is offered; the token does not reveal which one
    the account configured.
    """
    token = SecurityQuestionService(session, settings, tokens).start(
        body.identifier, request_realm(request, body.app)
    )
    if token is None:
        raise api_error(status.HTTP_404_NOT_FOUND, "Account not found", "UNKNOWN_IDENTIFIER")
    return SqStartResponse(
        sq_token=token,
        questions=[SqQuestion(id=qid, text=text) for qid, text in SQ_CATALOG.items()],
    )


@router.post("/sq/verify", response_model=ResetTokenResponse)
@limiter.limit("10/minute")
def sq_verify(
    request: Request,
    body: SqVerifyRequest,
    session: Session = Depends(get_db),
    settings: Settings = Depends(get_app_settings),
    tokens: TokenIssuer = Depends(get_token_issuer),
):
    """
    Check the security answer.

    Any rejection other than a lock returns the same 400 message.
    """
    result = SecurityQuestionService(session, settings, tokens).verify(
        body.sq_token, [(a.id, a.answer) for a in body.answers]
    )
    if result.outcome is SqOutcome.LOCKED:
        raise lock_error(
            result.lock,
            "Too many incorrect answers. Please wait before trying again.",
            "Security question is locked. Please contact an Admin or Manager.",
        )
    if result.outcome is SqOutcome.REJECTED:
        raise api_error(status.HTTP_400_BAD_REQUEST, SQ_MISMATCH, "SQ_MISMATCH")
    return ResetTokenResponse(reset_token=result.reset_token)


@router.post("/reset", response_model=OkResponse)
@limiter.limit("5/minute")
def forgot_reset(
    request: Request,
    body: ResetRequest,
    session: Session = Depends(get_db),
    settings: Settings = Depends(get_app_settings),
    tokens: TokenIssuer = Depends(get_token_issuer),
    mailer: Mailer = Depends(get_mailer),
):
    """
    Set a new password (or 6-digit PIN for PIN roles) with a reset token.

    The token works once. A token of the wrong purpose answers like an
    invalid one.
    """
    outcome = RecoveryService(session, settings, tokens, mailer).reset(
        body.reset_token, body.new_password
    )
    if outcome in (ResetOutcome.INVALID_TOKEN, ResetOutcome.INVALID_PURPOSE):
        raise api_error(status.HTTP_401_UNAUTHORIZED, "Invalid or expired reset token", "INVALID_TOKEN")
    if outcome is ResetOutcome.ACCOUNT_NOT_FOUND:
        raise api_error(status.HTTP_404_NOT_FOUND, "Account not found", "ACCOUNT_NOT_FOUND")
    if outcome is ResetOutcome.INVALID_SECRET:
        raise api_error(
            status.HTTP_400_BAD_REQUEST,
            "PIN roles need a 6-digit PIN; passwords need at least 8 characters",
            "INVALID_SECRET",
        )
    return OkResponse()
