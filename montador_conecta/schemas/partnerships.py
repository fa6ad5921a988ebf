import uuid
from datetime import datetime
from typing import Optional, Literal
from pydantic import BaseModel


PartnershipStatus = Literal["pending", "active", "rejected", "blocked"]


class PartnershipCreate(BaseModel):
    company_id: uuid.UUID
    montador_id: uuid.UUID
    status: PartnershipStatus = "pending"


class PartnershipUpdate(BaseModel):
    status: PartnershipStatus


class PartnershipResponse(BaseModel):
    id: uuid.UUID
    company_id: uuid.UUID
    montador_id: uuid.UUID
    status: str
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True
