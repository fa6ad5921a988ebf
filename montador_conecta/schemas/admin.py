import uuid
from datetime import datetime
from typing import Optional
from pydantic import BaseModel


class AuditLogResponse(BaseModel):
    id: uuid.UUID
    action: str
    actor_id: Optional[str] = None
    target_id: Optional[str] = None
    details: Optional[dict] = None
    integrity_hash: Optional[str] = None
    created_at: datetime

    class Config:
        from_attributes = True
