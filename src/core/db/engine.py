from pathlib import Path
from sqlalchemy import create_engine

from src.core.config import get_settings

database_url = get_settings().database_url

engine_kwargs = {"echo": False, "pool_pre_ping": True}
if database_url.startswith("sqlite"):
    if ":memory:" not in database_url and database_url != "sqlite://":
        # Ensure the .data directory exists for the default file database
        Path(".data").mkdir(exist_ok=True)
    engine_kwargs["connect_args"] = {"check_same_thread": False}
else:
    engine_kwargs.update(pool_size=10, max_overflow=20, pool_recycle=3600)

engine = create_engine(database_url, **engine_kwargs)

# Create all tables on import
from src.core.db.tables.base import Base
from src.core.db.tables.account import Account
from src.core.db.tables.alias import Alias
from src.core.db.tables.lock_state import LockState
from src.core.db.tables.otp import OtpRecord
from src.core.db.tables.security_answer import SecurityAnswer
from src.core.db.tables.pin_ticket import PinResetTicket
from src.core.db.tables.consumed_token import ConsumedResetToken
from src.core.db.tables.audit_trail import AuditTrail
from src.core.db.tables.login_attempt import LoginAttempt
from src.core.db.tables.pos_shift import PosShift

Base.metadata.create_all(engine)
