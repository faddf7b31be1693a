from sqlalchemy import String, DateTime, Integer
from sqlalchemy.orm import Mapped, mapped_column
from datetime import datetime

from src.core.db.tables.base import Base


def pending_key_for(email_lower: str, purpose: str) -> str:
    return f"{purpose}:{email_lower}"


class OtpRecord(Base):
    """
    One-time code bound to an e-mail address and a purpose.

    pending_key holds "<purpose>:<email_lower>" while the row is pending and
    is NULL otherwise. Its plain unique constraint allows a single pending
    row per (email_lower, purpose) on every backend, since unique columns
    accept any number of NULLs.
    """
    __tablename__ = "otp"

    id: Mapped[int] = mapped_column(primary_key=True)
    employee_id: Mapped[str | None] = mapped_column(String(16), nullable=True)
    email_lower: Mapped[str] = mapped_column(String(256), index=True)
    purpose: Mapped[str] = mapped_column(String(32))
    pending_key: Mapped[str | None] = mapped_column(String(300), nullable=True, unique=True)
    channel: Mapped[str] = mapped_column(String(16), default="email")
    code_hash: Mapped[str] = mapped_column(String(256))
    status: Mapped[str] = mapped_column(String(16), default="pending")  # "pending", "used", "expired"
    attempts: Mapped[int] = mapped_column(Integer, default=0)
    created_at: Mapped[datetime] = mapped_column(DateTime)
    expires_at: Mapped[datetime] = mapped_column(DateTime)
    last_attempt_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    used_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    expired_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
