import uuid
from typing import List

import structlog
from fastapi import APIRouter, Depends, HTTPException

from ..auth.security import require_profile, is_admin
from ..crud import DatabaseStorage, get_storage
from ..models.models import Profile, Partnership
from ..schemas.partnerships import PartnershipCreate, PartnershipUpdate, PartnershipResponse
from ..services.governance import GovernanceService, get_governance


router = APIRouter(prefix="/api/partnerships", tags=["partnerships"])
log = structlog.get_logger(__name__)


def _is_party(profile: Profile, partnership: Partnership) -> bool:
    return partnership.montador_id == profile.id or (
        profile.company_id is not None and partnership.company_id == profile.company_id
    )


@router.get("", response_model=List[PartnershipResponse])
def list_partnerships(storage: DatabaseStorage = Depends(get_storage), profile: Profile = Depends(require_profile)):
    if is_admin(profile):
        return storage.list_partnerships()
    return storage.list_partnerships(company_id=profile.company_id, montador_id=profile.id)


@router.post("", response_model=PartnershipResponse, status_code=201)
def create_partnership(
    payload: PartnershipCreate,
    storage: DatabaseStorage = Depends(get_storage),
    governance: GovernanceService = Depends(get_governance),
    profile: Profile = Depends(require_profile),
):
    involved = payload.montador_id == profile.id or payload.company_id == profile.company_id
    if not (involved or is_admin(profile)):
        raise HTTPException(status_code=403, detail="Forbidden")
    if not storage.get_company(payload.company_id):
        raise HTTPException(status_code=404, detail="Company not found")
    montador = storage.get_profile(payload.montador_id)
    if not montador or montador.role != "montador":
        raise HTTPException(status_code=404, detail="Montador not found")
    # A repeated (company, montador) pair is rejected by the unique constraint
    partnership = storage.create_partnership(**payload.model_dump())
    governance.log_action("partnership_created", profile.id, partnership.id, payload.model_dump())
    return partnership


@router.put("/{partnership_id}", response_model=PartnershipResponse)
def update_partnership(
    partnership_id: uuid.UUID,
    payload: PartnershipUpdate,
    storage: DatabaseStorage = Depends(get_storage),
    governance: GovernanceService = Depends(get_governance),
    profile: Profile = Depends(require_profile),
):
    partnership = storage.get_partnership(partnership_id)
    if not partnership:
        raise HTTPException(status_code=404, detail="Partnership not found")
    if not (_is_party(profile, partnership) or is_admin(profile)):
        log.warning("partnership_update_forbidden", partnership_id=str(partnership_id), profile_id=str(profile.id))
        raise HTTPException(status_code=403, detail="Forbidden")
    previous = partnership.status
    partnership = storage.update_partnership(partnership, {"status": payload.status})
    if previous != payload.status:
        governance.log_action("partnership_status_change", profile.id, partnership_id, {"from": previous, "to": payload.status})
    return partnership
