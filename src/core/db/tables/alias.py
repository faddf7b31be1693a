from sqlalchemy import String, DateTime, ForeignKey, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column
from datetime import datetime

from src.core.clock import utcnow
from src.core.db.tables.base import Base


class Alias(Base):
    """
    Login identifier -> account mapping.

    value_lower holds the lowercased username/email; employee ids are
    stored verbatim. At most one account per (type, value_lower).
    """
    __tablename__ = "aliases"
    __table_args__ = (UniqueConstraint("type", "value_lower", name="uq_alias_type_value"),)

    id: Mapped[int] = mapped_column(primary_key=True)
    type: Mapped[str] = mapped_column(String(16))  # "employee_id", "username", "email"
    value_lower: Mapped[str] = mapped_column(String(256))
    employee_id: Mapped[str] = mapped_column(
        String(16), ForeignKey("employees.employee_id"), index=True
    )
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)
