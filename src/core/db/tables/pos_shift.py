from sqlalchemy import String, DateTime, select
from sqlalchemy.orm import Mapped, mapped_column, Session
from datetime import datetime

from src.core.clock import utcnow
from src.core.db.tables.base import Base


class PosShift(Base):
    """POS cash shift. Owned by the POS module; auth only reads it."""
    __tablename__ = "pos_shifts"

    shift_id: Mapped[int] = mapped_column(primary_key=True)
    employee_id: Mapped[str] = mapped_column(String(16), index=True)
    terminal_id: Mapped[str] = mapped_column(String(64))
    status: Mapped[str] = mapped_column(String(16), default="Open")  # "Open", "Remitted", "Closed"
    opened_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)


def has_open_shift(session: Session, employee_id: str) -> bool:
    """True when the employee still has an un-remitted shift on any terminal."""
    shift_id = session.execute(
        select(PosShift.shift_id).where(
            PosShift.employee_id == str(employee_id),
            PosShift.status == "Open",
        ).limit(1)
    ).scalar()
    return shift_id is not None
