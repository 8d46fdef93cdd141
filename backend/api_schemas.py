from typing import Optional

from pydantic import BaseModel, Field, field_validator

# bcrypt only looks at the first 72 bytes of a password
MAX_PASSWORD_BYTES = 72


def _check_password_length(v: Optional[str]) -> Optional[str]:
    if v is not None and len(v.encode("utf-8")) > MAX_PASSWORD_BYTES:
        raise ValueError(f"Password must be at most {MAX_PASSWORD_BYTES} bytes")
    return v


class ChirpRequest(BaseModel):
    body: str


class UserRequest(BaseModel):
    email: str
    password: str

    @field_validator("password")
    @classmethod
    def password_fits_bcrypt(cls, v: str):
        return _check_password_length(v)


class UserUpdateRequest(BaseModel):
    email: str
    password: Optional[str] = None

    @field_validator("password")
    @classmethod
    def password_fits_bcrypt(cls, v: Optional[str]):
        return _check_password_length(v)


class LoginRequest(BaseModel):
    email: str
    password: str
    expires_in_seconds: Optional[int] = Field(None, gt=0)


class WebhookData(BaseModel):
    user_id: int


class WebhookRequest(BaseModel):
    event: str
    data: WebhookData


class ChirpResponse(BaseModel):
    id: int
    body: str
    author_id: int


class UserResponse(BaseModel):
    id: int
    email: str
    is_chirpy_red: bool


class LoginResponse(UserResponse):
    token: str
    refresh_token: str
