"""
Admin panel endpoints: profile approval, blocking, audit trail and flags.
All routes require the ``admin`` role.
"""
import uuid
from typing import Optional, List

import structlog
from fastapi import APIRouter, Depends, HTTPException, Query

from ..auth.security import require_roles
from ..crud import DatabaseStorage, get_storage
from ..models.models import Profile
from ..schemas.admin import AuditLogResponse
from ..schemas.profiles import ProfileResponse, FlagResponse
from ..services.governance import GovernanceService, get_governance


router = APIRouter(prefix="/api/admin", tags=["admin"])
log = structlog.get_logger(__name__)


def _set_approval(
    storage: DatabaseStorage,
    governance: GovernanceService,
    admin: Profile,
    profile_id: uuid.UUID,
    new_status: str,
    action: str,
) -> Profile:
    profile = storage.get_profile(profile_id)
    if not profile:
        raise HTTPException(status_code=404, detail="Profile not found")
    previous = profile.approval_status
    if previous == new_status:
        # Repeating the call leaves no extra audit row
        return profile
    profile = storage.update_profile(profile, {"approval_status": new_status})
    governance.log_action(action, admin.id, profile_id, {"from": previous, "to": new_status})
    log.info(action, profile_id=str(profile_id), admin_id=str(admin.id))
    return profile


@router.get("/pending-profiles", response_model=List[ProfileResponse])
def pending_profiles(storage: DatabaseStorage = Depends(get_storage), _=Depends(require_roles("admin"))):
    return storage.list_profiles(approval_status="pending")


@router.post("/approve-profile/{profile_id}", response_model=ProfileResponse)
def approve_profile(
    profile_id: uuid.UUID,
    storage: DatabaseStorage = Depends(get_storage),
    governance: GovernanceService = Depends(get_governance),
    admin: Profile = Depends(require_roles("admin")),
):
    return _set_approval(storage, governance, admin, profile_id, "approved", "profile_approved")


@router.post("/block-profile/{profile_id}", response_model=ProfileResponse)
def block_profile(
    profile_id: uuid.UUID,
    storage: DatabaseStorage = Depends(get_storage),
    governance: GovernanceService = Depends(get_governance),
    admin: Profile = Depends(require_roles("admin")),
):
    if profile_id == admin.id:
        raise HTTPException(status_code=400, detail="Cannot block your own profile")
    return _set_approval(storage, governance, admin, profile_id, "blocked", "profile_blocked")


@router.get("/audit-logs", response_model=List[AuditLogResponse])
def audit_logs(
    action: Optional[str] = None,
    target_id: Optional[str] = None,
    limit: int = Query(100, ge=1, le=500),
    offset: int = Query(0, ge=0),
    governance: GovernanceService = Depends(get_governance),
    _=Depends(require_roles("admin")),
):
    return governance.list_logs(action=action, target_id=target_id, limit=limit, offset=offset)


@router.get("/flags", response_model=List[FlagResponse])
def list_flags(
    profile_id: Optional[uuid.UUID] = None,
    storage: DatabaseStorage = Depends(get_storage),
    _=Depends(require_roles("admin")),
):
    return storage.list_flags(profile_id)
