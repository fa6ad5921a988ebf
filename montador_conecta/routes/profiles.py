import uuid

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.exc import IntegrityError

from ..auth.security import get_current_user, get_current_profile, require_profile
from ..crud import DatabaseStorage, get_storage
from ..models.models import User, Profile
from ..schemas.profiles import ProfileCreate, ProfileUpdate, ProfileResponse, FlagCreate, FlagResponse
from ..services.governance import GovernanceService, get_governance, compute_diff


router = APIRouter(prefix="/api/profiles", tags=["profiles"])


@router.get("/me", response_model=ProfileResponse)
def my_profile(profile=Depends(get_current_profile)):
    if profile is None:
        raise HTTPException(status_code=404, detail="Profile not found")
    return profile


@router.post("", response_model=ProfileResponse, status_code=201)
def create_profile(
    payload: ProfileCreate,
    storage: DatabaseStorage = Depends(get_storage),
    governance: GovernanceService = Depends(get_governance),
    user: User = Depends(get_current_user),
):
    if storage.get_profile(user.id):
        raise HTTPException(status_code=409, detail="Profile already exists")
    try:
        profile = storage.create_profile(id=user.id, **payload.model_dump(exclude_none=True))
    except IntegrityError:
        storage.rollback()
        raise HTTPException(status_code=409, detail="CPF já cadastrado")
    governance.log_action("profile_created", user.id, profile.id, {"role": profile.role})
    return profile


@router.put("/me", response_model=ProfileResponse)
def update_my_profile(
    payload: ProfileUpdate,
    storage: DatabaseStorage = Depends(get_storage),
    governance: GovernanceService = Depends(get_governance),
    profile: Profile = Depends(require_profile),
):
    values = payload.model_dump(exclude_unset=True)
    if values.get("level", "") is None:
        values.pop("level")
    before = {k: getattr(profile, k) for k in values}
    try:
        profile = storage.update_profile(profile, values)
    except IntegrityError:
        storage.rollback()
        raise HTTPException(status_code=409, detail="CPF já cadastrado")
    diff = compute_diff(before, {k: getattr(profile, k) for k in values})
    if diff:
        governance.log_action("profile_updated", profile.id, profile.id, {"changes": diff})
    return profile


@router.post("/{profile_id}/flags", response_model=FlagResponse, status_code=201)
def report_profile(
    profile_id: uuid.UUID,
    payload: FlagCreate,
    storage: DatabaseStorage = Depends(get_storage),
    governance: GovernanceService = Depends(get_governance),
    reporter: Profile = Depends(require_profile),
):
    if profile_id == reporter.id:
        raise HTTPException(status_code=400, detail="Cannot flag your own profile")
    if not storage.get_profile(profile_id):
        raise HTTPException(status_code=404, detail="Profile not found")
    if payload.service_id and not storage.get_service(payload.service_id):
        raise HTTPException(status_code=404, detail="Service not found")
    return governance.report_flag(
        profile_id,
        payload.reason,
        severity=payload.severity,
        service_id=payload.service_id,
        reporter_id=reporter.id,
    )
