import uuid
from typing import Optional, List

import structlog
from fastapi import APIRouter, Depends, HTTPException, Response, UploadFile, File

from ..auth.security import get_current_user, require_profile
from ..config import settings
from ..crud import DatabaseStorage, get_storage
from ..models.models import Profile, Service, SERVICE_STATUSES
from ..schemas.services import (
    ServiceCreate,
    ServiceUpdate,
    ServiceResponse,
    AssignmentCreate,
    AssignmentResponse,
    AttachmentResponse,
    ReviewCreate,
    ReviewResponse,
    ConfirmCompletionResponse,
)
from ..services.access import (
    can_manage_service,
    is_company_side,
    is_service_montador,
    is_review_counterpart,
    confirmation_side,
)
from ..services.governance import GovernanceService, get_governance, compute_diff
from ..services.lifecycle import ServiceLifecycle, get_lifecycle
from ..storage.provider import StorageProvider
from ..storage.uploads import get_upload_provider, provider_for, canonical_key, detect_file_type


router = APIRouter(prefix="/api/services", tags=["services"])
log = structlog.get_logger(__name__)

REVIEWABLE_STATUSES = ("completed_pending_evaluation", "completed")
CONFIRMATION_MESSAGES = {
    "pending": "Confirmação registrada. Aguardando a outra parte.",
    "completed": "Serviço concluído. Aguardando avaliação.",
    "already_confirmed": "Confirmação já registrada.",
}


def _get_service_or_404(storage: DatabaseStorage, service_id: uuid.UUID) -> Service:
    service = storage.get_service(service_id)
    if not service:
        raise HTTPException(status_code=404, detail="Service not found")
    return service


# ----- Services -----
@router.get("", response_model=List[ServiceResponse])
def list_services(
    status: Optional[str] = None,
    company_id: Optional[uuid.UUID] = None,
    storage: DatabaseStorage = Depends(get_storage),
    _=Depends(get_current_user),
):
    # Unknown statuses are ignored rather than rejected
    if status not in SERVICE_STATUSES:
        status = None
    return storage.list_services(status=status, company_id=company_id)


@router.get("/{service_id}", response_model=ServiceResponse)
def get_service(service_id: uuid.UUID, storage: DatabaseStorage = Depends(get_storage), _=Depends(get_current_user)):
    return _get_service_or_404(storage, service_id)


@router.post("", response_model=ServiceResponse, status_code=201)
def create_service(
    payload: ServiceCreate,
    storage: DatabaseStorage = Depends(get_storage),
    governance: GovernanceService = Depends(get_governance),
    profile: Profile = Depends(require_profile),
):
    if not profile.company_id:
        raise HTTPException(status_code=400, detail="Must belong to a company to create services")
    service = storage.create_service(
        **payload.model_dump(exclude_none=True),
        company_id=profile.company_id,
        creator_id=profile.id,
    )
    governance.log_action("service_created", profile.id, service.id, {"title": service.title, "status": service.status})
    return service


@router.put("/{service_id}", response_model=ServiceResponse)
def update_service(
    service_id: uuid.UUID,
    payload: ServiceUpdate,
    storage: DatabaseStorage = Depends(get_storage),
    governance: GovernanceService = Depends(get_governance),
    lifecycle: ServiceLifecycle = Depends(get_lifecycle),
    profile: Profile = Depends(require_profile),
):
    service = _get_service_or_404(storage, service_id)
    values = payload.model_dump(exclude_none=True)
    next_status = values.pop("status", None)

    if not can_manage_service(profile, service):
        # The assigned montador may only move the status
        if values or not is_service_montador(storage, profile, service):
            log.warning("service_update_forbidden", service_id=str(service_id), profile_id=str(profile.id))
            raise HTTPException(status_code=403, detail="Forbidden")

    if values:
        before = {k: getattr(service, k) for k in values}
        service = storage.update_service(service_id, values)
        after = {k: getattr(service, k) for k in values}
        diff = compute_diff(before, after)
        if diff:
            governance.log_action("service_updated", profile.id, service_id, {"changes": diff})

    if next_status and next_status != service.status:
        service = lifecycle.transition_status(service_id, next_status, profile.id, {"reason": "manual_update"})
    return service


@router.delete("/{service_id}", status_code=204)
def delete_service(
    service_id: uuid.UUID,
    storage: DatabaseStorage = Depends(get_storage),
    governance: GovernanceService = Depends(get_governance),
    profile: Profile = Depends(require_profile),
):
    service = _get_service_or_404(storage, service_id)
    if not can_manage_service(profile, service):
        raise HTTPException(status_code=403, detail="Forbidden")
    title = service.title
    stored_files = [(a.provider, a.storage_key) for a in storage.list_attachments(service_id) if a.storage_key]
    storage.delete_service(service)
    for provider_name, key in stored_files:
        provider_for(provider_name).delete(key)
    governance.log_action("service_deleted", profile.id, service_id, {"title": title, "files_removed": len(stored_files)})
    return Response(status_code=204)


# ----- Assignments -----
@router.get("/{service_id}/assignments", response_model=List[AssignmentResponse])
def list_assignments(service_id: uuid.UUID, storage: DatabaseStorage = Depends(get_storage), _=Depends(get_current_user)):
    _get_service_or_404(storage, service_id)
    return storage.list_service_assignments(service_id)


@router.post("/{service_id}/assignments", response_model=AssignmentResponse, status_code=201)
def invite_montador(
    service_id: uuid.UUID,
    payload: AssignmentCreate,
    storage: DatabaseStorage = Depends(get_storage),
    governance: GovernanceService = Depends(get_governance),
    lifecycle: ServiceLifecycle = Depends(get_lifecycle),
    profile: Profile = Depends(require_profile),
):
    service = _get_service_or_404(storage, service_id)
    if not can_manage_service(profile, service):
        raise HTTPException(status_code=403, detail="Forbidden")
    montador = storage.get_profile(payload.montador_id)
    if not montador or montador.role != "montador":
        raise HTTPException(status_code=404, detail="Montador not found")
    if montador.approval_status == "blocked":
        raise HTTPException(status_code=400, detail="Montador is blocked")
    if storage.get_assignment_for(service_id, payload.montador_id):
        raise HTTPException(status_code=409, detail="Montador already invited")

    assignment = storage.create_assignment(service_id=service_id, montador_id=payload.montador_id, status="invited")
    governance.log_action("assignment_invited", profile.id, assignment.id, {"service_id": service_id, "montador_id": payload.montador_id})
    lifecycle.mark_awaiting_montador(service_id, profile.id)
    return assignment


# ----- Attachments -----
@router.get("/{service_id}/attachments", response_model=List[AttachmentResponse])
def list_attachments(service_id: uuid.UUID, storage: DatabaseStorage = Depends(get_storage), _=Depends(get_current_user)):
    _get_service_or_404(storage, service_id)
    return storage.list_attachments(service_id)


@router.post("/{service_id}/attachments", response_model=AttachmentResponse, status_code=201)
def upload_attachment(
    service_id: uuid.UUID,
    file: Optional[UploadFile] = File(None),
    storage: DatabaseStorage = Depends(get_storage),
    governance: GovernanceService = Depends(get_governance),
    provider: StorageProvider = Depends(get_upload_provider),
    profile: Profile = Depends(require_profile),
):
    service = _get_service_or_404(storage, service_id)
    if not (can_manage_service(profile, service) or is_service_montador(storage, profile, service)):
        raise HTTPException(status_code=403, detail="Forbidden")
    if file is None or not file.filename:
        raise HTTPException(status_code=400, detail="No file uploaded")

    max_bytes = settings.max_upload_mb * 1024 * 1024
    content = file.file.read(max_bytes + 1)
    if len(content) > max_bytes:
        log.info("upload_too_large", service_id=str(service_id), max_bytes=max_bytes)
        raise HTTPException(status_code=413, detail=f"File exceeds {settings.max_upload_mb} MB")

    key = canonical_key(service_id, file.filename)
    provider.copy_in(content, key, content_type=file.content_type)
    attachment = storage.create_attachment(
        service_id=service_id,
        file_name=file.filename,
        file_type=detect_file_type(file.content_type, file.filename),
        file_url=f"/api/uploads/{key}",
        storage_key=key,
        provider=provider.name,
        content_type=file.content_type,
        size_bytes=len(content),
        uploaded_by=profile.id,
    )
    governance.log_action("attachment_uploaded", profile.id, service_id, {"attachment_id": attachment.id, "file_name": file.filename})
    return attachment


# ----- Reviews -----
@router.get("/{service_id}/reviews", response_model=List[ReviewResponse])
def list_reviews(service_id: uuid.UUID, storage: DatabaseStorage = Depends(get_storage), _=Depends(get_current_user)):
    _get_service_or_404(storage, service_id)
    return storage.list_reviews_for_service(service_id)


@router.post("/{service_id}/reviews", response_model=ReviewResponse, status_code=201)
def submit_review(
    service_id: uuid.UUID,
    payload: ReviewCreate,
    storage: DatabaseStorage = Depends(get_storage),
    governance: GovernanceService = Depends(get_governance),
    lifecycle: ServiceLifecycle = Depends(get_lifecycle),
    profile: Profile = Depends(require_profile),
):
    service = _get_service_or_404(storage, service_id)
    if service.status not in REVIEWABLE_STATUSES:
        raise HTTPException(status_code=400, detail="Reviews are only allowed for completed services")
    if not (is_company_side(profile, service) or is_service_montador(storage, profile, service)):
        raise HTTPException(status_code=403, detail="Forbidden")
    if payload.reviewee_id == profile.id:
        raise HTTPException(status_code=400, detail="Cannot review yourself")
    reviewee = storage.get_profile(payload.reviewee_id)
    if not reviewee:
        raise HTTPException(status_code=404, detail="Reviewee not found")
    if not is_review_counterpart(storage, profile, reviewee, service):
        raise HTTPException(status_code=400, detail="Reviewee did not take part in this service")
    if storage.get_review_for(service_id, profile.id, reviewee.id):
        raise HTTPException(status_code=409, detail="Review already submitted")

    review = storage.create_review(service_id=service_id, reviewer_id=profile.id, **payload.model_dump())
    average = storage.average_rating_for(reviewee.id)
    if average is not None:
        storage.update_profile(reviewee, {"score": min(100, int(round(float(average) * 20)))})
    governance.log_action("review_submitted", profile.id, reviewee.id, {"service_id": service_id, "rating": review.rating})
    lifecycle.finish_evaluation(service_id, profile.id)
    return review


# ----- Completion -----
@router.post("/{service_id}/confirm-completion", response_model=ConfirmCompletionResponse)
def confirm_completion(
    service_id: uuid.UUID,
    storage: DatabaseStorage = Depends(get_storage),
    lifecycle: ServiceLifecycle = Depends(get_lifecycle),
    profile: Profile = Depends(require_profile),
):
    service = _get_service_or_404(storage, service_id)
    side = confirmation_side(storage, profile, service)
    if side is None:
        raise HTTPException(status_code=403, detail="Forbidden")
    service, outcome = lifecycle.confirm_completion(service_id, profile.id, side)
    return ConfirmCompletionResponse(message=CONFIRMATION_MESSAGES[outcome], status=service.status, outcome=outcome)
