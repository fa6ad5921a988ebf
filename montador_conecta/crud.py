"""
Data access layer.
One method per entity per CRUD operation; every write commits its own transaction.
No business rules live here.
"""
import uuid
from typing import Optional, List, Any

from fastapi import Depends
from sqlalchemy import func
from sqlalchemy.orm import Session

from .db import get_db
from .models.models import (
    User,
    Profile,
    Company,
    Service,
    ServiceAssignment,
    ServiceAttachment,
    Review,
    Partnership,
    CalendarEvent,
    AuditLog,
    Flag,
)


class DatabaseStorage:
    def __init__(self, db: Session):
        self.db = db

    # ----- helpers -----
    def _create(self, row):
        self.db.add(row)
        self.db.commit()
        self.db.refresh(row)
        return row

    def _update(self, row, values: dict[str, Any]):
        for key, value in values.items():
            setattr(row, key, value)
        self.db.commit()
        self.db.refresh(row)
        return row

    def _delete(self, row) -> None:
        self.db.delete(row)
        self.db.commit()

    # ----- users -----
    def get_user(self, user_id: uuid.UUID) -> Optional[User]:
        return self.db.query(User).filter(User.id == user_id).first()

    def get_user_by_username(self, username: str) -> Optional[User]:
        return self.db.query(User).filter(User.username == username).first()

    def create_user(self, **values) -> User:
        return self._create(User(**values))

    def update_user(self, user: User, values: dict) -> User:
        return self._update(user, values)

    # ----- profiles -----
    def get_profile(self, profile_id: uuid.UUID) -> Optional[Profile]:
        return self.db.query(Profile).filter(Profile.id == profile_id).first()

    def list_profiles(
        self,
        role: Optional[str] = None,
        approval_status: Optional[str] = None,
        exclude_status: Optional[str] = None,
        region: Optional[str] = None,
    ) -> List[Profile]:
        q = self.db.query(Profile)
        if role:
            q = q.filter(Profile.role == role)
        if approval_status:
            q = q.filter(Profile.approval_status == approval_status)
        if exclude_status:
            q = q.filter(Profile.approval_status != exclude_status)
        if region:
            q = q.filter(Profile.region.ilike(f"%{region}%"))
        return q.order_by(Profile.created_at.asc()).all()

    def create_profile(self, **values) -> Profile:
        return self._create(Profile(**values))

    def update_profile(self, profile: Profile, values: dict) -> Profile:
        return self._update(profile, values)

    # ----- companies -----
    def list_companies(self) -> List[Company]:
        return self.db.query(Company).order_by(Company.created_at.asc()).all()

    def get_company(self, company_id: uuid.UUID) -> Optional[Company]:
        return self.db.query(Company).filter(Company.id == company_id).first()

    def get_company_by_owner(self, owner_id: uuid.UUID) -> Optional[Company]:
        return self.db.query(Company).filter(Company.owner_id == owner_id).first()

    def create_company(self, **values) -> Company:
        return self._create(Company(**values))

    def update_company(self, company: Company, values: dict) -> Company:
        return self._update(company, values)

    # ----- services -----
    def list_services(self, status: Optional[str] = None, company_id: Optional[uuid.UUID] = None) -> List[Service]:
        q = self.db.query(Service)
        if status:
            q = q.filter(Service.status == status)
        if company_id:
            q = q.filter(Service.company_id == company_id)
        return q.order_by(Service.created_at.desc()).all()

    def get_service(self, service_id: uuid.UUID) -> Optional[Service]:
        return self.db.query(Service).filter(Service.id == service_id).first()

    def create_service(self, **values) -> Service:
        return self._create(Service(**values))

    def update_service(self, service_id: uuid.UUID, values: dict) -> Optional[Service]:
        service = self.get_service(service_id)
        if service is None:
            return None
        return self._update(service, values)

    def delete_service(self, service: Service) -> None:
        self._delete(service)

    # ----- assignments -----
    def list_service_assignments(self, service_id: uuid.UUID, status: Optional[str] = None) -> List[ServiceAssignment]:
        q = self.db.query(ServiceAssignment).filter(ServiceAssignment.service_id == service_id)
        if status:
            q = q.filter(ServiceAssignment.status == status)
        return q.order_by(ServiceAssignment.created_at.asc()).all()

    def get_assignment(self, assignment_id: uuid.UUID) -> Optional[ServiceAssignment]:
        return self.db.query(ServiceAssignment).filter(ServiceAssignment.id == assignment_id).first()

    def get_assignment_for(self, service_id: uuid.UUID, montador_id: uuid.UUID) -> Optional[ServiceAssignment]:
        return (
            self.db.query(ServiceAssignment)
            .filter(ServiceAssignment.service_id == service_id, ServiceAssignment.montador_id == montador_id)
            .first()
        )

    def list_assignments_for_montador(self, montador_id: uuid.UUID, status: Optional[str] = None) -> List[ServiceAssignment]:
        q = self.db.query(ServiceAssignment).filter(ServiceAssignment.montador_id == montador_id)
        if status:
            q = q.filter(ServiceAssignment.status == status)
        return q.order_by(ServiceAssignment.created_at.desc()).all()

    def create_assignment(self, **values) -> ServiceAssignment:
        return self._create(ServiceAssignment(**values))

    def update_assignment(self, assignment: ServiceAssignment, values: dict) -> ServiceAssignment:
        return self._update(assignment, values)

    # ----- attachments -----
    def list_attachments(self, service_id: uuid.UUID) -> List[ServiceAttachment]:
        return (
            self.db.query(ServiceAttachment)
            .filter(ServiceAttachment.service_id == service_id)
            .order_by(ServiceAttachment.created_at.asc())
            .all()
        )

    def get_attachment_by_key(self, storage_key: str) -> Optional[ServiceAttachment]:
        return self.db.query(ServiceAttachment).filter(ServiceAttachment.storage_key == storage_key).first()

    def create_attachment(self, **values) -> ServiceAttachment:
        return self._create(ServiceAttachment(**values))

    # ----- reviews -----
    def list_reviews_for_service(self, service_id: uuid.UUID) -> List[Review]:
        return self.db.query(Review).filter(Review.service_id == service_id).order_by(Review.created_at.asc()).all()

    def average_rating_for(self, reviewee_id: uuid.UUID) -> Optional[float]:
        return self.db.query(func.avg(Review.rating)).filter(Review.reviewee_id == reviewee_id).scalar()

    def get_review_for(self, service_id: uuid.UUID, reviewer_id: uuid.UUID, reviewee_id: uuid.UUID) -> Optional[Review]:
        return (
            self.db.query(Review)
            .filter(Review.service_id == service_id, Review.reviewer_id == reviewer_id, Review.reviewee_id == reviewee_id)
            .first()
        )

    def create_review(self, **values) -> Review:
        return self._create(Review(**values))

    # ----- partnerships -----
    def list_partnerships(
        self,
        company_id: Optional[uuid.UUID] = None,
        montador_id: Optional[uuid.UUID] = None,
    ) -> List[Partnership]:
        q = self.db.query(Partnership)
        if company_id and montador_id:
            q = q.filter((Partnership.company_id == company_id) | (Partnership.montador_id == montador_id))
        elif company_id:
            q = q.filter(Partnership.company_id == company_id)
        elif montador_id:
            q = q.filter(Partnership.montador_id == montador_id)
        return q.order_by(Partnership.created_at.desc()).all()

    def get_partnership(self, partnership_id: uuid.UUID) -> Optional[Partnership]:
        return self.db.query(Partnership).filter(Partnership.id == partnership_id).first()

    def create_partnership(self, **values) -> Partnership:
        return self._create(Partnership(**values))

    def update_partnership(self, partnership: Partnership, values: dict) -> Partnership:
        return self._update(partnership, values)

    # ----- calendar -----
    def list_calendar_events(self, profile_id: uuid.UUID) -> List[CalendarEvent]:
        return (
            self.db.query(CalendarEvent)
            .filter(CalendarEvent.profile_id == profile_id)
            .order_by(CalendarEvent.start_time.asc())
            .all()
        )

    def get_calendar_event(self, event_id: uuid.UUID) -> Optional[CalendarEvent]:
        return self.db.query(CalendarEvent).filter(CalendarEvent.id == event_id).first()

    def create_calendar_event(self, **values) -> CalendarEvent:
        return self._create(CalendarEvent(**values))

    def update_calendar_event(self, event: CalendarEvent, values: dict) -> CalendarEvent:
        return self._update(event, values)

    def delete_calendar_event(self, event: CalendarEvent) -> None:
        self._delete(event)

    # ----- governance -----
    def create_audit_log(self, **values) -> AuditLog:
        return self._create(AuditLog(**values))

    def list_audit_logs(
        self,
        action: Optional[str] = None,
        target_id: Optional[str] = None,
        limit: int = 100,
        offset: int = 0,
    ) -> List[AuditLog]:
        q = self.db.query(AuditLog)
        if action:
            q = q.filter(AuditLog.action == action)
        if target_id:
            q = q.filter(AuditLog.target_id == target_id)
        return q.order_by(AuditLog.created_at.desc()).limit(limit).offset(offset).all()

    def create_flag(self, **values) -> Flag:
        return self._create(Flag(**values))

    def list_flags(self, profile_id: Optional[uuid.UUID] = None) -> List[Flag]:
        q = self.db.query(Flag)
        if profile_id:
            q = q.filter(Flag.profile_id == profile_id)
        return q.order_by(Flag.created_at.desc()).all()

    def count_flags(self, profile_id: uuid.UUID) -> int:
        return self.db.query(Flag).filter(Flag.profile_id == profile_id).count()

    def rollback(self) -> None:
        self.db.rollback()


def get_storage(db: Session = Depends(get_db)) -> DatabaseStorage:
    return DatabaseStorage(db)
