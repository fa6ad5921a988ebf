import uuid
from datetime import datetime
from typing import Optional, List, Literal
from pydantic import BaseModel, Field, field_validator, model_validator


ServiceStatus = Literal[
    "draft",
    "published",
    "awaiting_montador",
    "awaiting_team",
    "scheduled",
    "in_progress",
    "completed_pending_confirmation",
    "completed_pending_evaluation",
    "completed",
    "cancelled",
    "disputed",
]
Category = Literal["moveis_planejados", "cozinhas", "quartos", "escritorios", "comercial", "montagem_geral"]
Complexity = Literal["low", "medium", "high", "expert"]
Level = Literal["iniciante", "intermediario", "avancado", "especialista"]
AssignmentStatus = Literal["invited", "accepted", "rejected", "removed"]


class ServiceBase(BaseModel):
    description: Optional[str] = None
    category: Optional[Category] = None
    complexity: Optional[Complexity] = None
    min_qualification: Optional[Level] = None
    is_urgent: Optional[bool] = None
    client_phone: Optional[str] = None
    client_info: Optional[dict] = None
    scheduled_for: Optional[datetime] = None
    duration_hours: Optional[int] = Field(default=None, ge=0)
    price: Optional[int] = Field(default=None, ge=0, description="Price in cents")
    required_skills: Optional[List[str]] = None
    service_details: Optional[dict] = None
    required_montadores_count: Optional[int] = Field(default=None, ge=1, le=50)


class ServiceCreate(ServiceBase):
    title: str = Field(min_length=1, max_length=255)
    client_name: str = Field(min_length=1, max_length=255)
    address_full: str = Field(min_length=1, max_length=500)
    status: Literal["draft", "published"] = "draft"

    @field_validator("title", "client_name", "address_full", mode="before")
    @classmethod
    def strip_required(cls, v):
        return str(v).strip() if v is not None else v


class ServiceUpdate(ServiceBase):
    title: Optional[str] = Field(default=None, min_length=1, max_length=255)
    client_name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    address_full: Optional[str] = Field(default=None, min_length=1, max_length=500)
    status: Optional[ServiceStatus] = None


class ServiceResponse(BaseModel):
    id: uuid.UUID
    company_id: uuid.UUID
    creator_id: Optional[uuid.UUID] = None
    montador_id: Optional[uuid.UUID] = None
    title: str
    description: Optional[str] = None
    category: Optional[str] = None
    status: str
    complexity: Optional[str] = None
    min_qualification: Optional[str] = None
    is_urgent: Optional[bool] = False
    client_name: str
    client_phone: Optional[str] = None
    client_info: Optional[dict] = None
    address_full: str
    scheduled_for: Optional[datetime] = None
    duration_hours: Optional[int] = None
    price: Optional[int] = None
    required_skills: Optional[List[str]] = None
    service_details: Optional[dict] = None
    required_montadores_count: int = 1
    is_closed: Optional[bool] = False
    pending_confirmation_by: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class AssignmentCreate(BaseModel):
    montador_id: uuid.UUID
    status: Literal["invited"] = "invited"


class AssignmentUpdate(BaseModel):
    status: AssignmentStatus


class AssignmentResponse(BaseModel):
    id: uuid.UUID
    service_id: uuid.UUID
    montador_id: uuid.UUID
    status: str
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class AttachmentResponse(BaseModel):
    id: uuid.UUID
    service_id: uuid.UUID
    file_name: str
    file_type: str
    file_url: str
    content_type: Optional[str] = None
    size_bytes: Optional[int] = None
    uploaded_by: Optional[uuid.UUID] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class ReviewCreate(BaseModel):
    reviewee_id: uuid.UUID
    rating: Optional[int] = Field(default=None, ge=1, le=5)
    quality: int = Field(ge=1, le=5)
    punctuality: int = Field(ge=1, le=5)
    cleanliness: int = Field(ge=1, le=5)
    professionalism: int = Field(ge=1, le=5)
    comment: Optional[str] = Field(default=None, max_length=2000)

    @model_validator(mode="after")
    def default_overall_rating(self):
        if self.rating is None:
            dims = [self.quality, self.punctuality, self.cleanliness, self.professionalism]
            # halves round up
            self.rating = int(sum(dims) / len(dims) + 0.5)
        return self


class ReviewResponse(BaseModel):
    id: uuid.UUID
    service_id: uuid.UUID
    reviewer_id: uuid.UUID
    reviewee_id: uuid.UUID
    rating: int
    quality: Optional[int] = None
    punctuality: Optional[int] = None
    cleanliness: Optional[int] = None
    professionalism: Optional[int] = None
    comment: Optional[str] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class ConfirmCompletionResponse(BaseModel):
    message: str
    status: str
    outcome: Literal["pending", "completed", "already_confirmed"]
