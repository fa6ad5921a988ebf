import uuid
from datetime import datetime, timezone

from sqlalchemy.exc import SQLAlchemyError

from montador_conecta.crud import DatabaseStorage
from montador_conecta.models.models import AuditLog
from montador_conecta.services.governance import GovernanceService, compute_integrity_hash, compute_diff


class FailingAuditStorage(DatabaseStorage):
    def create_audit_log(self, **values):
        raise SQLAlchemyError("database is gone")


class TestIntegrityHash:
    """Tests for the audit integrity hash."""

    def test_hash_is_deterministic(self):
        ts = datetime(2024, 1, 1, tzinfo=timezone.utc)
        a = compute_integrity_hash("x", "1", "2", {"k": 1}, ts, secret="s")
        b = compute_integrity_hash("x", "1", "2", {"k": 1}, ts, secret="s")
        assert a == b
        assert len(a) == 64

    def test_hash_depends_on_secret_and_content(self):
        ts = datetime(2024, 1, 1, tzinfo=timezone.utc)
        base = compute_integrity_hash("x", "1", "2", {"k": 1}, ts, secret="s")
        assert compute_integrity_hash("x", "1", "2", {"k": 1}, ts, secret="other") != base
        assert compute_integrity_hash("x", "1", "2", {"k": 2}, ts, secret="s") != base

    def test_compute_diff_reports_changed_keys_only(self):
        diff = compute_diff({"a": 1, "b": 2}, {"a": 1, "b": 3})
        assert diff == {"b": {"before": 2, "after": 3}}


class TestGovernanceService:
    """Tests for audit logging and flags."""

    def test_log_action_persists_entry(self, db_session):
        governance = GovernanceService(DatabaseStorage(db_session))
        target = uuid.uuid4()
        row = governance.log_action("profile_approved", None, target, {"service_id": uuid.uuid4()})

        assert row is not None
        assert row.target_id == str(target)
        assert row.actor_id is None
        assert isinstance(row.details["service_id"], str)
        assert len(row.integrity_hash) == 64

    def test_log_action_failure_does_not_propagate(self, db_session):
        governance = GovernanceService(FailingAuditStorage(db_session))
        assert governance.log_action("anything", None, None, {}) is None

    def test_list_logs_filters_by_action(self, db_session):
        governance = GovernanceService(DatabaseStorage(db_session))
        governance.log_action("a", None, "t1")
        governance.log_action("b", None, "t1")
        governance.log_action("a", None, "t2")

        assert {r.target_id for r in governance.list_logs(action="a")} == {"t1", "t2"}
        assert [r.action for r in governance.list_logs(action="a", target_id="t2")] == ["a"]
        assert len(governance.list_logs(limit=2)) == 2

    def test_fifth_flag_records_threshold(self, db_session, make):
        governance = GovernanceService(DatabaseStorage(db_session))
        target = make.profile()
        reporter = make.profile(role="partner")

        for _ in range(4):
            governance.report_flag(target.id, "não compareceu", reporter_id=reporter.id)
        threshold = db_session.query(AuditLog).filter(AuditLog.action == "flag_threshold_reached").all()
        assert threshold == []

        governance.report_flag(target.id, "não compareceu", severity=3, reporter_id=reporter.id)
        threshold = db_session.query(AuditLog).filter(AuditLog.action == "flag_threshold_reached").all()
        assert len(threshold) == 1
        assert threshold[0].details == {"count": 5}
        assert threshold[0].target_id == str(target.id)

    def test_flag_never_blocks_profile(self, db_session, make):
        governance = GovernanceService(DatabaseStorage(db_session))
        target = make.profile()
        for _ in range(6):
            governance.report_flag(target.id, "reclamação")
        db_session.refresh(target)
        assert target.approval_status == "pending"
