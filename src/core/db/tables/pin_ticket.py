from sqlalchemy import String, DateTime, ForeignKey
from sqlalchemy.orm import Mapped, mapped_column
from datetime import datetime

from src.core.clock import utcnow
from src.core.db.tables.base import Base


class PinResetTicket(Base):
    """
    Admin-issued ticket that lets an employee set a new PIN without the old one.

    Only one ticket per account is "pending" at a time; issuing a new one
    expires the previous ticket.
    """
    __tablename__ = "pin_reset_tickets"

    id: Mapped[int] = mapped_column(primary_key=True)
    employee_id: Mapped[str] = mapped_column(
        String(16), ForeignKey("employees.employee_id"), index=True
    )
    code_hash: Mapped[str] = mapped_column(String(256))
    status: Mapped[str] = mapped_column(String(16), default="pending")  # "pending", "used", "expired"
    created_by: Mapped[str | None] = mapped_column(String(16), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)
    expires_at: Mapped[datetime] = mapped_column(DateTime)
    used_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    used_request_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
