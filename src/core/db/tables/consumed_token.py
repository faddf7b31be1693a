from sqlalchemy import String, DateTime
from sqlalchemy.orm import Mapped, mapped_column
from datetime import datetime

from src.core.clock import utcnow
from src.core.db.tables.base import Base


class ConsumedResetToken(Base):
    """jti of every reset token that has already been used to set a credential."""
    __tablename__ = "consumed_reset_tokens"

    jti: Mapped[str] = mapped_column(String(64), primary_key=True)
    employee_id: Mapped[str] = mapped_column(String(16), index=True)
    consumed_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)
