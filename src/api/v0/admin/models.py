from datetime import datetime

from pydantic import BaseModel, Field


class UnlockRequest(BaseModel):
    app: str | None = Field(None, max_length=32)
    include_sq: bool = False


class UnlockResponse(BaseModel):
    ok: bool = True
    realms: list[str]


class PinTicketResponse(BaseModel):
    ticket_id: int
    # Shown once; only its hash is stored
    code: str
    expires_at: datetime
