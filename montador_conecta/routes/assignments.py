import uuid
from typing import Optional, List

import structlog
from fastapi import APIRouter, Depends, HTTPException

from ..auth.security import require_profile, is_admin
from ..crud import DatabaseStorage, get_storage
from ..models.models import Profile, Service, ServiceAssignment
from ..schemas.services import AssignmentUpdate, AssignmentResponse
from ..services.access import can_manage_service
from ..services.governance import GovernanceService, get_governance
from ..services.lifecycle import ServiceLifecycle, get_lifecycle


router = APIRouter(prefix="/api/assignments", tags=["assignments"])
log = structlog.get_logger(__name__)

# Moves a montador may make on their own assignment, keyed by current status
MONTADOR_RESPONSES = {
    "invited": ("accepted", "rejected"),
    "accepted": ("rejected",),
}


def _release_service_montador(storage: DatabaseStorage, service: Service, assignment: ServiceAssignment) -> None:
    if service.montador_id != assignment.montador_id:
        return
    remaining = [a for a in storage.list_service_assignments(service.id, status="accepted") if a.id != assignment.id]
    storage.update_service(service.id, {"montador_id": remaining[0].montador_id if remaining else None})


@router.get("", response_model=List[AssignmentResponse])
def my_assignments(
    status: Optional[str] = None,
    storage: DatabaseStorage = Depends(get_storage),
    profile: Profile = Depends(require_profile),
):
    return storage.list_assignments_for_montador(profile.id, status=status)


@router.put("/{assignment_id}", response_model=AssignmentResponse)
def update_assignment(
    assignment_id: uuid.UUID,
    payload: AssignmentUpdate,
    storage: DatabaseStorage = Depends(get_storage),
    governance: GovernanceService = Depends(get_governance),
    lifecycle: ServiceLifecycle = Depends(get_lifecycle),
    profile: Profile = Depends(require_profile),
):
    assignment = storage.get_assignment(assignment_id)
    if not assignment:
        raise HTTPException(status_code=404, detail="Assignment not found")
    service = storage.get_service(assignment.service_id)
    if not service:
        raise HTTPException(status_code=404, detail="Service not found")

    previous = assignment.status
    if assignment.montador_id == profile.id:
        allowed = MONTADOR_RESPONSES.get(previous, ())
        if payload.status != previous and payload.status not in allowed:
            log.warning(
                "assignment_response_forbidden",
                assignment_id=str(assignment_id),
                previous=previous,
                requested=payload.status,
            )
            raise HTTPException(status_code=403, detail="Montadores can only accept or reject invitations")
    elif is_admin(profile):
        log.info("assignment_admin_override", assignment_id=str(assignment_id), profile_id=str(profile.id))
    elif can_manage_service(profile, service):
        if payload.status != "removed":
            raise HTTPException(status_code=403, detail="Companies can only remove montadores")
    else:
        log.warning("assignment_update_forbidden", assignment_id=str(assignment_id), profile_id=str(profile.id))
        raise HTTPException(status_code=403, detail="Forbidden")

    if previous == payload.status:
        return assignment
    assignment = storage.update_assignment(assignment, {"status": payload.status})
    governance.log_action(
        "assignment_status_change",
        profile.id,
        assignment.id,
        {"service_id": service.id, "montador_id": assignment.montador_id, "from": previous, "to": payload.status},
    )

    if payload.status == "accepted":
        if not service.montador_id:
            storage.update_service(service.id, {"montador_id": assignment.montador_id})
        lifecycle.check_team_formation(service.id, profile.id)
    else:
        _release_service_montador(storage, service, assignment)
    return assignment
