import uuid
from datetime import datetime, timezone
from typing import List

from fastapi import APIRouter, Depends, HTTPException, Response

from ..auth.security import require_profile
from ..crud import DatabaseStorage, get_storage
from ..models.models import Profile, CalendarEvent
from ..schemas.calendar import CalendarEventCreate, CalendarEventUpdate, CalendarEventResponse


router = APIRouter(prefix="/api/calendar", tags=["calendar"])


def _utc_naive(value: datetime) -> datetime:
    # SQLite returns naive datetimes; stored values are UTC
    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def _own_event_or_404(storage: DatabaseStorage, event_id: uuid.UUID, profile: Profile) -> CalendarEvent:
    event = storage.get_calendar_event(event_id)
    if not event:
        raise HTTPException(status_code=404, detail="Event not found")
    if event.profile_id != profile.id:
        raise HTTPException(status_code=403, detail="Forbidden")
    return event


@router.get("", response_model=List[CalendarEventResponse])
def list_events(storage: DatabaseStorage = Depends(get_storage), profile: Profile = Depends(require_profile)):
    return storage.list_calendar_events(profile.id)


@router.post("", response_model=CalendarEventResponse, status_code=201)
def create_event(
    payload: CalendarEventCreate,
    storage: DatabaseStorage = Depends(get_storage),
    profile: Profile = Depends(require_profile),
):
    if payload.service_id and not storage.get_service(payload.service_id):
        raise HTTPException(status_code=404, detail="Service not found")
    return storage.create_calendar_event(profile_id=profile.id, **payload.model_dump(exclude_none=True))


@router.put("/{event_id}", response_model=CalendarEventResponse)
def update_event(
    event_id: uuid.UUID,
    payload: CalendarEventUpdate,
    storage: DatabaseStorage = Depends(get_storage),
    profile: Profile = Depends(require_profile),
):
    event = _own_event_or_404(storage, event_id, profile)
    values = payload.model_dump(exclude_none=True)
    start = values.get("start_time", event.start_time)
    end = values.get("end_time", event.end_time)
    if _utc_naive(end) <= _utc_naive(start):
        raise HTTPException(status_code=400, detail="end_time must be after start_time")
    if values.get("service_id") and not storage.get_service(values["service_id"]):
        raise HTTPException(status_code=404, detail="Service not found")
    return storage.update_calendar_event(event, values)


@router.delete("/{event_id}", status_code=204)
def delete_event(
    event_id: uuid.UUID,
    storage: DatabaseStorage = Depends(get_storage),
    profile: Profile = Depends(require_profile),
):
    event = _own_event_or_404(storage, event_id, profile)
    storage.delete_calendar_event(event)
    return Response(status_code=204)
