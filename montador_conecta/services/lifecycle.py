"""
Service lifecycle.

Status transitions for a service, team formation and the two-sided completion
confirmation. Transitions are not checked for reachability: any status in
SERVICE_STATUSES may follow any other. Every transition leaves a
``service_status_change`` audit entry.
"""
import uuid
from datetime import datetime, timezone
from typing import Optional, Any

import structlog
from fastapi import Depends

from ..crud import DatabaseStorage, get_storage
from ..models.models import Service, SERVICE_STATUSES, CONFIRMATION_SIDES
from .governance import GovernanceService, get_governance


log = structlog.get_logger(__name__)

TEAM_PENDING_STATUSES = ("awaiting_montador", "awaiting_team")
CONFIRMABLE_STATUSES = ("in_progress", "completed_pending_confirmation")


class ServiceNotFound(Exception):
    pass


class InvalidLifecycleState(ValueError):
    pass


class ServiceLifecycle:
    def __init__(self, storage: DatabaseStorage, governance: GovernanceService):
        self.storage = storage
        self.governance = governance

    def _get(self, service_id: uuid.UUID) -> Service:
        service = self.storage.get_service(service_id)
        if service is None:
            raise ServiceNotFound(f"Service {service_id} not found")
        return service

    def transition_status(
        self,
        service_id: uuid.UUID,
        next_status: str,
        actor_id: Optional[Any],
        details: Optional[dict] = None,
        extra_fields: Optional[dict] = None,
    ) -> Service:
        """Overwrite the status and record the from/to pair.

        ``extra_fields`` are written in the same commit as the status.
        """
        if next_status not in SERVICE_STATUSES:
            raise InvalidLifecycleState(f"Unknown service status: {next_status}")
        service = self._get(service_id)
        previous = service.status
        log.info("service_status_change", service_id=str(service_id), from_status=previous, to_status=next_status)
        values = {"status": next_status}
        if extra_fields:
            values.update(extra_fields)
        updated = self.storage.update_service(service_id, values)
        self.governance.log_action(
            "service_status_change",
            actor_id,
            service_id,
            {"from": previous, "to": next_status, **(details or {})},
        )
        return updated

    def mark_awaiting_montador(self, service_id: uuid.UUID, actor_id: Optional[Any]) -> Service:
        service = self._get(service_id)
        if service.status == "published":
            return self.transition_status(service_id, "awaiting_montador", actor_id, {"reason": "first_invite"})
        return service

    def check_team_formation(self, service_id: uuid.UUID, actor_id: Optional[Any]) -> Optional[Service]:
        service = self.storage.get_service(service_id)
        if service is None:
            return None

        accepted = self.storage.list_service_assignments(service_id, status="accepted")
        count = len(accepted)

        if count >= service.required_montadores_count:
            if service.status in TEAM_PENDING_STATUSES:
                return self.transition_status(
                    service_id,
                    "in_progress",
                    actor_id,
                    {"reason": "team_formed", "accepted_count": count},
                    extra_fields={"is_closed": True},
                )
        elif count > 0 and service.status == "awaiting_montador":
            return self.transition_status(service_id, "awaiting_team", actor_id, {"current_count": count})
        return service

    def confirm_completion(self, service_id: uuid.UUID, actor_id: Optional[Any], side: str) -> tuple[Service, str]:
        """Record one side's confirmation.

        Returns the service and one of ``pending``, ``completed`` or
        ``already_confirmed``.
        """
        if side not in CONFIRMATION_SIDES:
            raise InvalidLifecycleState(f"Invalid confirmation side: {side}")
        service = self._get(service_id)
        if service.status not in CONFIRMABLE_STATUSES:
            raise InvalidLifecycleState("Invalid status for completion confirmation")

        if service.status == "in_progress":
            updated = self.transition_status(
                service_id,
                "completed_pending_confirmation",
                actor_id,
                {"confirmed_by": side},
                extra_fields={"pending_confirmation_by": side},
            )
            return updated, "pending"

        first_side = service.pending_confirmation_by
        if first_side and first_side != side:
            updated = self.transition_status(
                service_id,
                "completed_pending_evaluation",
                actor_id,
                {"reason": "double_confirmation_complete", "confirmed_by": side},
                extra_fields={"completed_at": datetime.now(timezone.utc), "pending_confirmation_by": None},
            )
            self._credit_montadores(updated)
            return updated, "completed"

        log.info("completion_already_confirmed", service_id=str(service_id), side=side)
        return service, "already_confirmed"

    def finish_evaluation(self, service_id: uuid.UUID, actor_id: Optional[Any]) -> Service:
        service = self._get(service_id)
        if service.status == "completed_pending_evaluation":
            return self.transition_status(service_id, "completed", actor_id, {"reason": "evaluation_submitted"})
        return service

    def _credit_montadores(self, service: Service) -> None:
        montador_ids = {a.montador_id for a in self.storage.list_service_assignments(service.id, status="accepted")}
        # A direct assignment only counts when no invitation row says otherwise
        if service.montador_id and self.storage.get_assignment_for(service.id, service.montador_id) is None:
            montador_ids.add(service.montador_id)
        for montador_id in montador_ids:
            profile = self.storage.get_profile(montador_id)
            if profile is not None:
                self.storage.update_profile(profile, {"completed_services": (profile.completed_services or 0) + 1})


def get_lifecycle(
    storage: DatabaseStorage = Depends(get_storage),
    governance: GovernanceService = Depends(get_governance),
) -> ServiceLifecycle:
    return ServiceLifecycle(storage, governance)
