import uuid
from datetime import datetime
from typing import Optional, List, Literal
from pydantic import BaseModel, Field, field_validator

from ..utils.br import normalize_cpf


RoleName = Literal["montador", "partner", "admin", "marcenaria", "lojista"]
LevelName = Literal["iniciante", "intermediario", "avancado", "especialista"]
SelfServiceRole = Literal["montador", "partner", "marcenaria", "lojista"]


class ProfileBase(BaseModel):
    full_name: Optional[str] = None
    phone: Optional[str] = None
    avatar_url: Optional[str] = None
    bio: Optional[str] = None
    cpf: Optional[str] = None
    skills: Optional[List[str]] = None
    experience_years: Optional[int] = Field(default=None, ge=0, le=80)
    region: Optional[str] = None
    level: Optional[LevelName] = None

    @field_validator("full_name", "phone", "region", "bio", mode="before")
    @classmethod
    def strip_text(cls, v):
        if v is None:
            return None
        return str(v).strip()

    @field_validator("cpf", mode="before")
    @classmethod
    def clean_cpf(cls, v):
        return normalize_cpf(v)


class ProfileCreate(ProfileBase):
    role: SelfServiceRole = "montador"


class ProfileUpdate(ProfileBase):
    pass


class ProfileResponse(BaseModel):
    id: uuid.UUID
    role: str
    approval_status: str
    full_name: Optional[str] = None
    phone: Optional[str] = None
    avatar_url: Optional[str] = None
    bio: Optional[str] = None
    cpf: Optional[str] = None
    skills: Optional[List[str]] = None
    experience_years: Optional[int] = None
    region: Optional[str] = None
    company_id: Optional[uuid.UUID] = None
    score: Optional[int] = 0
    level: Optional[str] = None
    completed_services: Optional[int] = 0
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class FlagCreate(BaseModel):
    reason: str = Field(min_length=3, max_length=2000)
    severity: int = Field(default=1, ge=1, le=5)
    service_id: Optional[uuid.UUID] = None


class FlagResponse(BaseModel):
    id: uuid.UUID
    profile_id: uuid.UUID
    reporter_id: Optional[uuid.UUID] = None
    service_id: Optional[uuid.UUID] = None
    reason: str
    severity: int
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True
