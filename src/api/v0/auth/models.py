from pydantic import BaseModel, Field, field_validator


class PrecheckRequest(BaseModel):
    identifier: str = Field(..., min_length=1, max_length=256)
    app: str | None = Field(None, max_length=32)

    @field_validator("identifier")
    @classmethod
    def strip_identifier(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Identifier is required")
        return v


class LockView(BaseModel):
    locked: bool = False
    permanent: bool = False
    remaining_seconds: int = 0


class PrecheckResponse(BaseModel):
    mode: str
    pin_unset: bool
    lock: LockView


class LoginRequest(PrecheckRequest):
    # One of password / pin, depending on the account's role
    password: str | None = Field(None, max_length=256)
    pin: str | None = Field(None, max_length=32)
    remember: bool = False

    @property
    def secret(self) -> str | None:
        return self.password or self.pin


class LoginResponse(BaseModel):
    ok: bool = True
    token: str
    user: dict


class MeResponse(BaseModel):
    authenticated: bool
    user: dict | None = None


class LogoutResponse(BaseModel):
    ok: bool = True
