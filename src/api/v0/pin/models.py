import re
from datetime import datetime

from pydantic import BaseModel, Field, field_validator


PIN_PATTERN = re.compile(r"^\d{6}$")


class TicketVerifyRequest(BaseModel):
    employee_id: str = Field(..., min_length=1, max_length=16)
    ticket_code: str = Field(..., min_length=4, max_length=32)


class TicketVerifyResponse(BaseModel):
    ok: bool = True
    expires_at: datetime | None = None


class TicketRedeemRequest(TicketVerifyRequest):
    new_pin: str
    # Client-generated id, stored on the ticket for tracing retries
    request_id: str | None = Field(None, max_length=64)

    @field_validator("new_pin")
    @classmethod
    def validate_pin(cls, v: str) -> str:
        if not PIN_PATTERN.match(v):
            raise ValueError("PIN must be exactly 6 digits")
        return v


class TicketRedeemResponse(BaseModel):
    ok: bool = True
