import uuid
from datetime import datetime
from typing import Optional, Literal
from pydantic import BaseModel, Field, model_validator


class CalendarEventBase(BaseModel):
    service_id: Optional[uuid.UUID] = None
    description: Optional[str] = None
    type: Optional[Literal["appointment", "availability", "service"]] = None
    is_available: Optional[bool] = None


class CalendarEventCreate(CalendarEventBase):
    title: str = Field(min_length=1, max_length=255)
    start_time: datetime
    end_time: datetime

    @model_validator(mode="after")
    def end_after_start(self):
        if self.end_time <= self.start_time:
            raise ValueError("end_time must be after start_time")
        return self


class CalendarEventUpdate(CalendarEventBase):
    title: Optional[str] = Field(default=None, min_length=1, max_length=255)
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None


class CalendarEventResponse(BaseModel):
    id: uuid.UUID
    profile_id: uuid.UUID
    service_id: Optional[uuid.UUID] = None
    title: str
    description: Optional[str] = None
    start_time: datetime
    end_time: datetime
    type: str
    is_available: Optional[bool] = True
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True
