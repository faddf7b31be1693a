from datetime import datetime

from pydantic import BaseModel, Field, field_validator


class ForgotStartRequest(BaseModel):
    email: str = Field("", max_length=256)
    verify_type: str | None = Field(None, max_length=32)
    verify_value: str | None = Field(None, max_length=256)


class ForgotStartResponse(BaseModel):
    ok: bool = True
    expires_at: datetime


class ForgotVerifyRequest(BaseModel):
    email: str = Field(..., min_length=3, max_length=256)
    code: str = Field(..., min_length=1, max_length=16)

    @field_validator("code")
    @classmethod
    def strip_code(cls, v: str) -> str:
        return v.strip()


class ResetTokenResponse(BaseModel):
    ok: bool = True
    reset_token: str


class SqQuestion(BaseModel):
    id: str
    text: str


class SqStartRequest(BaseModel):
    identifier: str = Field(..., min_length=1, max_length=256)
    app: str | None = Field(None, max_length=32)


class SqStartResponse(BaseModel):
    sq_token: str
    questions: list[SqQuestion]


class SqAnswer(BaseModel):
    id: str = Field(..., max_length=64)
    answer: str = Field(..., max_length=256)


class SqVerifyRequest(BaseModel):
    sq_token: str = Field(..., max_length=4096)
    answers: list[SqAnswer] = Field(default_factory=list, max_length=10)


class ResetRequest(BaseModel):
    reset_token: str = Field(..., max_length=4096)
    new_password: str = Field(..., min_length=1, max_length=256)


class OkResponse(BaseModel):
    ok: bool = True
