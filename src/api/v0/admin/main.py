from sqlalchemy.orm import Session
from fastapi import APIRouter, Depends, status

from src.api.v0.admin.models import PinTicketResponse, UnlockRequest, UnlockResponse
from src.api.v0.common import api_error
from src.core.auth.admin import AccountAdmin
from src.core.auth.tickets import IssuedTicket, TicketFailure, TicketService
from src.core.config import Settings
from src.core.db.session import get_app_settings, get_current_account, get_db
from src.core.db.tables.account import Account
from src.core.logger import get_logger

logger = get_logger(__name__)

router = APIRouter(prefix="/admin")


def require_manager(
    account: Account = Depends(get_current_account),
    settings: Settings = Depends(get_app_settings),
) -> Account:
    """Only admin / manager sessions may run account administration."""
    if (account.role or "").strip().lower() not in settings.backoffice_roles:
        logger.warning(f"Admin endpoint refused for employee {account.employee_id} ({account.role})")
        raise api_error(status.HTTP_403_FORBIDDEN, "Admin or Manager role required", "FORBIDDEN")
    return account


@router.post("/accounts/{employee_id}/unlock", response_model=UnlockResponse)
def unlock_account(
    employee_id: str,
    body: UnlockRequest | None = None,
    session: Session = Depends(get_db),
    settings: Settings = Depends(get_app_settings),
    actor: Account = Depends(require_manager),
):
    """
    Clear an account's lockout. Without "app" every login realm is cleared;
    include_sq also clears the matching security-question realms.
    """
    body = body or UnlockRequest()
    realms = AccountAdmin(session, settings).unlock(
        employee_id, actor, app=body.app, include_sq=body.include_sq
    )
    if realms is None:
        raise api_error(status.HTTP_404_NOT_FOUND, "Account not found", "ACCOUNT_NOT_FOUND")
    return UnlockResponse(realms=realms)


@router.post(
    "/accounts/{employee_id}/pin-tickets",
    response_model=PinTicketResponse,
    status_code=status.HTTP_201_CREATED,
)
def issue_pin_ticket(
    employee_id: str,
    session: Session = Depends(get_db),
    settings: Settings = Depends(get_app_settings),
    actor: Account = Depends(require_manager),
):
    """Issue a PIN-reset ticket. Any older pending ticket for the account stops working."""
    issued = TicketService(session, settings).issue(employee_id, created_by=actor.employee_id)
    if not isinstance(issued, IssuedTicket):
        if issued is TicketFailure.ACCOUNT_NOT_FOUND:
            raise api_error(status.HTTP_404_NOT_FOUND, "Account not found", issued.value)
        raise api_error(status.HTTP_400_BAD_REQUEST, "Account cannot receive a PIN ticket", issued.value)
    return PinTicketResponse(ticket_id=issued.ticket_id, code=issued.code, expires_at=issued.expires_at)
