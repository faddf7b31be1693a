from sqlalchemy import String, DateTime, Boolean
from sqlalchemy.orm import Mapped, mapped_column
from datetime import datetime

from src.core.clock import utcnow
from src.core.db.tables.base import Base


class LoginAttempt(Base):
    """Every login attempt, successful or not, with the reason it ended."""

    __tablename__ = "login_attempts"

    id: Mapped[int] = mapped_column(primary_key=True)
    employee_id: Mapped[str | None] = mapped_column(String(16), nullable=True, index=True)
    app: Mapped[str] = mapped_column(String(32))
    identifier: Mapped[str] = mapped_column(String(256))
    success: Mapped[bool] = mapped_column(Boolean, default=False)
    reason: Mapped[str] = mapped_column(String(32))  # "ok", "bad_secret", "locked", "perm_locked", ...
    ip: Mapped[str | None] = mapped_column(String(45), nullable=True)
    user_agent: Mapped[str | None] = mapped_column(String(255), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)
