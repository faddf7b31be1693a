from sqlalchemy import String, DateTime, ForeignKey
from sqlalchemy.orm import Mapped, mapped_column
from datetime import datetime

from src.core.clock import utcnow
from src.core.db.tables.base import Base


class SecurityAnswer(Base):
    """The single security question configured for an account, with its answer hash."""
    __tablename__ = "employee_security_questions"

    employee_id: Mapped[str] = mapped_column(
        String(16), ForeignKey("employees.employee_id"), primary_key=True
    )
    question_id: Mapped[str] = mapped_column(String(32))
    answer_hash: Mapped[str] = mapped_column(String(256))
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, onupdate=utcnow)
