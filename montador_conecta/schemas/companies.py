import uuid
from datetime import datetime
from typing import Optional
from pydantic import BaseModel, Field, field_validator

from ..utils.br import normalize_cnpj


class CompanyBase(BaseModel):
    corporate_name: Optional[str] = None
    cnpj: Optional[str] = None
    phone: Optional[str] = None
    email_contact: Optional[str] = None
    address_full: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = Field(default=None, max_length=2)
    zip_code: Optional[str] = None
    segment: Optional[str] = None
    size: Optional[str] = None
    settings: Optional[dict] = None

    @field_validator('corporate_name', 'phone', 'email_contact', 'address_full', 'city', 'state', 'zip_code', 'segment', 'size', mode='before')
    @classmethod
    def empty_to_none(cls, v):
        if v is None:
            return None
        v = str(v).strip()
        return v or None

    @field_validator('cnpj', mode='before')
    @classmethod
    def clean_cnpj(cls, v):
        return normalize_cnpj(v)


class CompanyCreate(CompanyBase):
    trading_name: str = Field(min_length=1, max_length=255)


class CompanyUpdate(CompanyBase):
    trading_name: Optional[str] = Field(default=None, min_length=1, max_length=255)


class CompanyResponse(CompanyBase):
    id: uuid.UUID
    owner_id: uuid.UUID
    trading_name: str
    is_verified: bool = False
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True
