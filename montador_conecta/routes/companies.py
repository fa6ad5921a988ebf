import uuid
from typing import List

import structlog
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.exc import IntegrityError

from ..auth.security import get_current_user, require_profile
from ..crud import DatabaseStorage, get_storage
from ..models.models import Profile
from ..schemas.companies import CompanyCreate, CompanyUpdate, CompanyResponse
from ..services.governance import GovernanceService, get_governance, compute_diff


router = APIRouter(prefix="/api/companies", tags=["companies"])
log = structlog.get_logger(__name__)


@router.get("", response_model=List[CompanyResponse])
def list_companies(storage: DatabaseStorage = Depends(get_storage), _=Depends(get_current_user)):
    return storage.list_companies()


@router.get("/{company_id}", response_model=CompanyResponse)
def get_company(company_id: uuid.UUID, storage: DatabaseStorage = Depends(get_storage), _=Depends(get_current_user)):
    company = storage.get_company(company_id)
    if not company:
        raise HTTPException(status_code=404, detail="Company not found")
    return company


@router.post("", response_model=CompanyResponse, status_code=201)
def create_company(
    payload: CompanyCreate,
    storage: DatabaseStorage = Depends(get_storage),
    governance: GovernanceService = Depends(get_governance),
    profile: Profile = Depends(require_profile),
):
    if storage.get_company_by_owner(profile.id):
        raise HTTPException(status_code=409, detail="You already own a company")
    try:
        company = storage.create_company(owner_id=profile.id, **payload.model_dump(exclude_none=True))
    except IntegrityError:
        storage.rollback()
        raise HTTPException(status_code=409, detail="CNPJ já cadastrado")
    storage.update_profile(profile, {"company_id": company.id})
    governance.log_action("company_created", profile.id, company.id, {"trading_name": company.trading_name})
    return company


@router.put("/{company_id}", response_model=CompanyResponse)
def update_company(
    company_id: uuid.UUID,
    payload: CompanyUpdate,
    storage: DatabaseStorage = Depends(get_storage),
    governance: GovernanceService = Depends(get_governance),
    profile: Profile = Depends(require_profile),
):
    company = storage.get_company(company_id)
    if not company:
        raise HTTPException(status_code=404, detail="Company not found")
    if company.owner_id != profile.id:
        log.warning("company_update_forbidden", company_id=str(company_id), profile_id=str(profile.id))
        raise HTTPException(status_code=403, detail="Only the owner can update the company")

    values = payload.model_dump(exclude_unset=True)
    if values.get("trading_name", "") is None:
        values.pop("trading_name")
    before = {k: getattr(company, k) for k in values}
    try:
        company = storage.update_company(company, values)
    except IntegrityError:
        storage.rollback()
        raise HTTPException(status_code=409, detail="CNPJ já cadastrado")
    diff = compute_diff(before, {k: getattr(company, k) for k in values})
    if diff:
        governance.log_action("company_updated", profile.id, company_id, {"changes": diff})
    return company
