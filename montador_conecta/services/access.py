from typing import Optional

from ..auth.security import is_admin
from ..crud import DatabaseStorage
from ..models.models import Profile, Service


def is_company_side(profile: Profile, service: Service) -> bool:
    return profile.company_id is not None and profile.company_id == service.company_id


def is_service_montador(storage: DatabaseStorage, profile: Profile, service: Service) -> bool:
    """Holder of an accepted invitation, or the directly assigned montador when no invitation exists."""
    assignment = storage.get_assignment_for(service.id, profile.id)
    if assignment is not None:
        return assignment.status == "accepted"
    return service.montador_id == profile.id


def can_manage_service(profile: Profile, service: Service) -> bool:
    return is_admin(profile) or is_company_side(profile, service)


def confirmation_side(storage: DatabaseStorage, profile: Profile, service: Service) -> Optional[str]:
    if is_company_side(profile, service):
        return "company"
    if is_service_montador(storage, profile, service):
        return "montador"
    return None


def is_review_counterpart(storage: DatabaseStorage, reviewer: Profile, reviewee: Profile, service: Service) -> bool:
    """The company reviews its montadores; montadores review the company's people."""
    if is_company_side(reviewer, service):
        return is_service_montador(storage, reviewee, service)
    if is_company_side(reviewee, service) or reviewee.id == service.creator_id:
        return True
    company = storage.get_company(service.company_id)
    return company is not None and company.owner_id == reviewee.id
