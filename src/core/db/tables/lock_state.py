from sqlalchemy import String, DateTime, Integer, Boolean
from sqlalchemy.orm import Mapped, mapped_column
from datetime import datetime

from src.core.db.tables.base import Base


class LockState(Base):
    """
    Consecutive-failure counter and lock fields per (account, realm).

    The realm ("app" column) separates backoffice/pos logins and the
    security-question channel, e.g. "backoffice" vs "backoffice:sq".
    """
    __tablename__ = "employee_lock_state"

    employee_id: Mapped[str] = mapped_column(String(16), primary_key=True)
    app: Mapped[str] = mapped_column(String(32), primary_key=True)
    failed_login_count: Mapped[int] = mapped_column(Integer, default=0)
    lock_until: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    permanent_lock: Mapped[bool] = mapped_column(Boolean, default=False)
    last_failed_login: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
