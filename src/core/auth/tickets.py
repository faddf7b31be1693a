"""
Admin-issued PIN-reset tickets.

Redemption runs in one transaction. The account row and the pending ticket
row are selected FOR UPDATE (a no-op on SQLite), and the final status flip
is a compare-and-swap on status = 'pending', so two concurrent redemptions
of the same ticket can never both succeed.
"""
from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum
from typing import Callable

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from src.core.audit import AuditRecorder, AuthStatus, build_detail
from src.core.auth.credentials import MODE_PIN, login_mode
from src.core.clock import utcnow
from src.core.config import Settings
from src.core.db.tables.account import Account
from src.core.db.tables.pin_ticket import PinResetTicket
from src.core.logger import get_logger
from src.core.security import hash_secret, new_ticket_code, verify_secret

logger = get_logger(__name__)

STATUS_PENDING = "pending"
STATUS_USED = "used"
STATUS_EXPIRED = "expired"


class TicketFailure(str, Enum):
    ACCOUNT_NOT_FOUND = "ACCOUNT_NOT_FOUND"
    ACCOUNT_INACTIVE = "ACCOUNT_INACTIVE"
    NOT_PIN_ACCOUNT = "NOT_PIN_ACCOUNT"
    TICKET_INVALID = "TICKET_INVALID"
    TICKET_EXPIRED = "TICKET_EXPIRED"


@dataclass(frozen=True)
class TicketResult:
    failure: TicketFailure | None = None
    expires_at: datetime | None = None

    @property
    def ok(self) -> bool:
        return self.failure is None


@dataclass(frozen=True)
class IssuedTicket:
    ticket_id: int
    code: str
    expires_at: datetime


class _Abort(Exception):
    def __init__(self, failure: TicketFailure):
        self.failure = failure


class TicketService:
    def __init__(
        self,
        session: Session,
        settings: Settings,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.session = session
        self.settings = settings
        self.clock = clock
        self.audit = AuditRecorder(session)

    def _eligible(self, account: Account | None) -> TicketFailure | None:
        if account is None:
            return TicketFailure.ACCOUNT_NOT_FOUND
        if not account.is_active:
            return TicketFailure.ACCOUNT_INACTIVE
        if login_mode(account, self.settings.pin_roles) != MODE_PIN:
            return TicketFailure.NOT_PIN_ACCOUNT
        return None

    def _pending(self, employee_id: str, for_update: bool = False) -> PinResetTicket | None:
        stmt = (
            select(PinResetTicket)
            .where(
                PinResetTicket.employee_id == str(employee_id),
                PinResetTicket.status == STATUS_PENDING,
                PinResetTicket.used_at.is_(None),
            )
            .order_by(PinResetTicket.created_at.desc(), PinResetTicket.id.desc())
            .limit(1)
            .execution_options(populate_existing=True)
        )
        if for_update:
            stmt = stmt.with_for_update()
        return self.session.execute(stmt).scalar()

    def issue(self, employee_id: str, created_by: str | None = None) -> IssuedTicket | TicketFailure:
        """Create a ticket and return its plain code once. Older pending tickets are expired."""
        account = self.session.get(Account, str(employee_id))
        failure = self._eligible(account)
        if failure is not None:
            return failure

        now = self.clock()
        code = new_ticket_code()
        expires_at = now + timedelta(minutes=self.settings.tickets.ttl_minutes)
        try:
            self.session.execute(
                update(PinResetTicket)
                .where(
                    PinResetTicket.employee_id == account.employee_id,
                    PinResetTicket.status == STATUS_PENDING,
                )
                .values(status=STATUS_EXPIRED)
                .execution_options(synchronize_session=False)
            )
            ticket = PinResetTicket(
                employee_id=account.employee_id,
                code_hash=hash_secret(code),
                status=STATUS_PENDING,
                created_by=str(created_by) if created_by else None,
                created_at=now,
                expires_at=expires_at,
            )
            self.session.add(ticket)
            self.session.commit()
        except Exception:
            self.session.rollback()
            raise

        logger.info(f"PIN reset ticket {ticket.id} issued for employee {account.employee_id}")
        self.audit.record(
            "Auth - PIN Reset Ticket Issued",
            build_detail(
                "PIN reset ticket issued.",
                AuthStatus.PIN_TICKET_ISSUED,
                action_details={"actionType": "pin_reset_ticket", "step": "issue",
                                "ticketId": ticket.id, "createdBy": created_by},
                meta={"expiresAt": expires_at},
            ),
            account=account,
        )
        return IssuedTicket(ticket_id=ticket.id, code=code, expires_at=expires_at)

    def verify(self, employee_id: str, code: str) -> TicketResult:
        """Check a ticket code without consuming it."""
        account = self.session.get(Account, str(employee_id))
        failure = self._eligible(account)
        if failure is not None:
            return TicketResult(failure)

        ticket = self._pending(account.employee_id)
        if ticket is None:
            return TicketResult(TicketFailure.TICKET_INVALID)
        if self.clock() >= ticket.expires_at:
            ticket.status = STATUS_EXPIRED
            self.session.commit()
            return TicketResult(TicketFailure.TICKET_EXPIRED)
        if not verify_secret((code or "").strip().upper(), ticket.code_hash):
            return TicketResult(TicketFailure.TICKET_INVALID)
        return TicketResult(expires_at=ticket.expires_at)

    def _claim(self, ticket_id: int, request_id: str | None, now: datetime) -> bool:
        """Flip one ticket from pending to used. False if someone else got there first."""
        claimed = self.session.execute(
            update(PinResetTicket)
            .where(PinResetTicket.id == ticket_id, PinResetTicket.status == STATUS_PENDING)
            .values(status=STATUS_USED, used_at=now, used_request_id=request_id)
            .execution_options(synchronize_session=False)
        ).rowcount
        return claimed == 1

    def redeem(
        self,
        employee_id: str,
        code: str,
        new_pin: str,
        request_id: str | None = None,
    ) -> TicketResult:
        now = self.clock()
        account = None
        try:
            account = self.session.execute(
                select(Account)
                .where(Account.employee_id == str(employee_id))
                .with_for_update()
                .execution_options(populate_existing=True)
            ).scalar()
            failure = self._eligible(account)
            if failure is not None:
                raise _Abort(failure)

            ticket = self._pending(account.employee_id, for_update=True)
            if ticket is None:
                raise _Abort(TicketFailure.TICKET_INVALID)

            if now >= ticket.expires_at:
                ticket.status = STATUS_EXPIRED
                self.session.commit()
                self._audit_failure(account, TicketFailure.TICKET_EXPIRED, request_id)
                return TicketResult(TicketFailure.TICKET_EXPIRED)

            if not verify_secret((code or "").strip().upper(), ticket.code_hash):
                raise _Abort(TicketFailure.TICKET_INVALID)

            if not self._claim(ticket.id, request_id, now):
                raise _Abort(TicketFailure.TICKET_INVALID)

            account.pin_hash = hash_secret(new_pin)
            account.pin_last_changed = now
            self.session.commit()
        except _Abort as abort:
            self.session.rollback()
            if account is not None and abort.failure in (TicketFailure.TICKET_INVALID, TicketFailure.TICKET_EXPIRED):
                self._audit_failure(account, abort.failure, request_id)
            return TicketResult(abort.failure)
        except Exception:
            self.session.rollback()
            raise

        logger.info(f"PIN reset by ticket for employee {account.employee_id}")
        self.audit.record(
            "Auth - PIN Reset (Ticket Redeemed)",
            build_detail(
                "PIN updated with a reset ticket.",
                AuthStatus.PIN_RESET_SUCCESS,
                action_details={"actionType": "pin_reset_ticket", "step": "redeem",
                                "ticketId": ticket.id, "requestId": request_id},
            ),
            account=account,
        )
        return TicketResult()

    def _audit_failure(self, account: Account, failure: TicketFailure, request_id: str | None) -> None:
        status = (
            AuthStatus.PIN_TICKET_EXPIRED
            if failure is TicketFailure.TICKET_EXPIRED
            else AuthStatus.PIN_TICKET_INVALID
        )
        self.audit.record(
            "Auth - PIN Reset (Ticket Rejected)",
            build_detail(
                "PIN reset ticket rejected.",
                status,
                action_details={"actionType": "pin_reset_ticket", "step": "redeem",
                                "result": failure.value.lower(), "requestId": request_id},
            ),
            account=account,
        )
