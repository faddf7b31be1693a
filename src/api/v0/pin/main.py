from sqlalchemy.orm import Session
from fastapi import APIRouter, Depends, status, Request

from src.api.v0.common import api_error
from src.api.v0.pin.models import (
    TicketRedeemRequest,
    TicketRedeemResponse,
    TicketVerifyRequest,
    TicketVerifyResponse,
)
from src.core.auth.tickets import TicketFailure, TicketService
from src.core.config import Settings
from src.core.db.session import get_app_settings, get_db
from src.core.logger import get_logger
from src.core.rate_limit import limiter

logger = get_logger(__name__)

router = APIRouter(prefix="/auth/pin")

TICKET_ERRORS = {
    TicketFailure.ACCOUNT_NOT_FOUND: (status.HTTP_404_NOT_FOUND, "Account not found"),
    TicketFailure.ACCOUNT_INACTIVE: (status.HTTP_403_FORBIDDEN, "Account is not active"),
    TicketFailure.NOT_PIN_ACCOUNT: (status.HTTP_400_BAD_REQUEST, "This account does not sign in with a PIN"),
    TicketFailure.TICKET_INVALID: (status.HTTP_400_BAD_REQUEST, "Invalid ticket"),
    TicketFailure.TICKET_EXPIRED: (status.HTTP_400_BAD_REQUEST, "Ticket expired. Ask an Admin or Manager for a new one."),
}


def _raise_for(failure: TicketFailure):
    status_code, message = TICKET_ERRORS[failure]
    raise api_error(status_code, message, failure.value)


@router.post("/ticket/verify", response_model=TicketVerifyResponse)
@limiter.limit("10/minute")
def verify_ticket(
    request: Request,
    body: TicketVerifyRequest,
    session: Session = Depends(get_db),
    settings: Settings = Depends(get_app_settings),
):
    """Check a PIN-reset ticket without using it up."""
    result = TicketService(session, settings).verify(body.employee_id, body.ticket_code)
    if not result.ok:
        _raise_for(result.failure)
    return TicketVerifyResponse(expires_at=result.expires_at)


@router.post("/ticket/redeem", response_model=TicketRedeemResponse)
@limiter.limit("5/minute")
def redeem_ticket(
    request: Request,
    body: TicketRedeemRequest,
    session: Session = Depends(get_db),
    settings: Settings = Depends(get_app_settings),
):
    """
    Set a new 6-digit PIN with an admin-issued ticket.

    Rate limited to 5 requests per minute per IP.
    A ticket can be redeemed once, even under concurrent requests.
    """
    result = TicketService(session, settings).redeem(
        body.employee_id, body.ticket_code, body.new_pin, request_id=body.request_id
    )
    if not result.ok:
        logger.warning(f"PIN ticket redeem failed for employee {body.employee_id}: {result.failure.value}")
        _raise_for(result.failure)
    return TicketRedeemResponse()
