"""
Governance service.
Append-only audit log with integrity hashing, plus complaint flags per profile.
"""
import hashlib
import json
import uuid
from datetime import datetime, timezone
from typing import Optional, Dict, Any, List

import structlog
from fastapi import Depends
from sqlalchemy.exc import SQLAlchemyError

from ..config import settings
from ..crud import DatabaseStorage, get_storage
from ..models.models import AuditLog, Flag


log = structlog.get_logger(__name__)


def compute_integrity_hash(
    action: str,
    actor_id: Optional[str],
    target_id: Optional[str],
    details: Optional[Dict],
    created_at: datetime,
    secret: Optional[str] = None,
) -> Optional[str]:
    """SHA256 over the canonical JSON of the entry salted with the JWT secret."""
    secret = settings.jwt_secret if secret is None else secret
    if not secret:
        return None
    canonical_data = {
        "action": action,
        "actor_id": actor_id,
        "target_id": target_id,
        "details": details,
        "created_at": created_at.isoformat(),
    }
    # Remove None values and sort keys for consistency
    canonical_data = {k: v for k, v in canonical_data.items() if v is not None}
    canonical_json = json.dumps(canonical_data, sort_keys=True, default=str)
    return hashlib.sha256(f"{canonical_json}:{secret}".encode()).hexdigest()


def compute_diff(before: Dict, after: Dict) -> Dict:
    """
    Compute a diff between two dictionaries.

    Returns:
        Dict with before/after values for changed fields
    """
    diff = {}
    for key in set(before.keys()) | set(after.keys()):
        before_val = before.get(key)
        after_val = after.get(key)
        if before_val != after_val:
            diff[key] = {"before": before_val, "after": after_val}
    return diff


class GovernanceService:
    def __init__(self, storage: DatabaseStorage):
        self.storage = storage

    def log_action(
        self,
        action: str,
        actor_id: Optional[Any],
        target_id: Optional[Any],
        details: Optional[Dict] = None,
    ) -> Optional[AuditLog]:
        """
        Append an audit entry.

        Write failures are rolled back and logged but never raised, so callers
        cannot rely on the entry being persisted.
        """
        actor = str(actor_id) if actor_id else None
        target = str(target_id) if target_id else None
        details = json.loads(json.dumps(details or {}, default=str))
        created_at = datetime.now(timezone.utc)
        try:
            row = self.storage.create_audit_log(
                action=action,
                actor_id=actor,
                target_id=target,
                details=details,
                created_at=created_at,
                integrity_hash=compute_integrity_hash(action, actor, target, details, created_at),
            )
        except SQLAlchemyError as e:
            self.storage.rollback()
            log.error("audit_log_failed", action=action, actor_id=actor, target_id=target, error=str(e))
            return None
        log.info("audit_log", action=action, actor_id=actor, target_id=target)
        return row

    def report_flag(
        self,
        profile_id: uuid.UUID,
        reason: str,
        severity: int = 1,
        service_id: Optional[uuid.UUID] = None,
        reporter_id: Optional[uuid.UUID] = None,
    ) -> Flag:
        """Record a complaint; past the threshold only recommend a manual review."""
        flag = self.storage.create_flag(
            profile_id=profile_id,
            reason=reason,
            severity=severity,
            service_id=service_id,
            reporter_id=reporter_id,
        )
        self.log_action("flag_reported", reporter_id, profile_id, {"flag_id": flag.id, "severity": severity})
        count = self.storage.count_flags(profile_id)
        if count >= settings.flag_review_threshold:
            log.warning("flag_threshold_reached", profile_id=str(profile_id), count=count)
            self.log_action("flag_threshold_reached", None, profile_id, {"count": count})
        return flag

    def list_logs(
        self,
        action: Optional[str] = None,
        target_id: Optional[str] = None,
        limit: int = 100,
        offset: int = 0,
    ) -> List[AuditLog]:
        return self.storage.list_audit_logs(action=action, target_id=target_id, limit=limit, offset=offset)


def get_governance(storage: DatabaseStorage = Depends(get_storage)) -> GovernanceService:
    return GovernanceService(storage)
