import uuid
from datetime import datetime
from pydantic import BaseModel, Field, field_validator
from typing import Optional

from ..utils.br import validate_password_strength


class RegisterRequest(BaseModel):
    username: str = Field(min_length=3, max_length=100)
    password: str
    role: Optional[str] = None  # montador|marcenaria

    @field_validator("username", mode="before")
    @classmethod
    def strip_username(cls, v):
        return str(v).strip() if v is not None else v

    @field_validator("password")
    @classmethod
    def strong_password(cls, v: str) -> str:
        problem = validate_password_strength(v)
        if problem:
            raise ValueError(problem)
        return v


class LoginRequest(BaseModel):
    username: str
    password: str


class UserResponse(BaseModel):
    id: uuid.UUID
    username: str
    is_active: bool
    created_at: Optional[datetime] = None
    last_login_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class AuthResponse(BaseModel):
    user: UserResponse
    access_token: str
    token_type: str = "bearer"
