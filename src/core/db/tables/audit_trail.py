"""
Audit trail table for authentication and recovery events.
"""
from sqlalchemy import String, DateTime, Text
from sqlalchemy.orm import Mapped, mapped_column
from datetime import datetime

from src.core.clock import utcnow
from src.core.db.tables.base import Base


class AuditTrail(Base):
    """
    One row per security-relevant auth event.

    detail is JSON with statusMessage, actionDetails and
    affectedData.statusChange (see src.core.audit.AuthStatus).
    """

    __tablename__ = "audit_trail"

    id: Mapped[int] = mapped_column(primary_key=True)
    employee: Mapped[str] = mapped_column(String(256))  # display name of the actor, "Unknown" or "System"
    role: Mapped[str] = mapped_column(String(32))
    action: Mapped[str] = mapped_column(String(128))
    detail: Mapped[str] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, index=True)
