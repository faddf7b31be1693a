from sqlalchemy import String, DateTime, Boolean
from sqlalchemy.orm import Mapped, mapped_column
from datetime import datetime

from src.core.clock import utcnow
from src.core.db.tables.base import Base


class Account(Base):
    """
    An employee account.

    Security design:
    - password_hash / pin_hash: bcrypt hashes; which one is used depends on role
    - login_*: which identifier types may be used to sign in
    - email / username are unique case-insensitively through the aliases table
    """
    __tablename__ = "employees"

    employee_id: Mapped[str] = mapped_column(String(16), primary_key=True)
    role: Mapped[str] = mapped_column(String(32))
    status: Mapped[str] = mapped_column(String(32), default="active")

    first_name: Mapped[str | None] = mapped_column(String(128), nullable=True)
    last_name: Mapped[str | None] = mapped_column(String(128), nullable=True)
    username: Mapped[str | None] = mapped_column(String(128), nullable=True)
    email: Mapped[str | None] = mapped_column(String(256), nullable=True)
    photo_url: Mapped[str | None] = mapped_column(String(512), nullable=True)

    password_hash: Mapped[str | None] = mapped_column(String(256), nullable=True)
    pin_hash: Mapped[str | None] = mapped_column(String(256), nullable=True)
    password_last_changed: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    pin_last_changed: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)

    login_employee_id: Mapped[bool] = mapped_column(Boolean, default=True)
    login_username: Mapped[bool] = mapped_column(Boolean, default=True)
    login_email: Mapped[bool] = mapped_column(Boolean, default=True)

    last_login_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    last_login_ip: Mapped[str | None] = mapped_column(String(45), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)

    @property
    def display_name(self) -> str:
        full = f"{self.first_name or ''} {self.last_name or ''}".strip()
        if full:
            return full
        if self.username:
            return self.username
        return str(self.employee_id or "Unknown")

    @property
    def is_active(self) -> bool:
        return (self.status or "").strip().lower() == "active"

    def public_view(self) -> dict:
        return {
            "employeeId": str(self.employee_id),
            "role": self.role,
            "status": self.status,
            "username": self.username or "",
            "email": self.email or "",
            "firstName": self.first_name or "",
            "lastName": self.last_name or "",
            "photoUrl": self.photo_url or "",
        }
