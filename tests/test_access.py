import pytest

from montador_conecta.crud import DatabaseStorage
from montador_conecta.services.access import (
    can_manage_service,
    confirmation_side,
    is_review_counterpart,
    is_service_montador,
)


@pytest.fixture
def storage(db_session):
    return DatabaseStorage(db_session)


@pytest.fixture
def owner(make):
    return make.profile(role="partner")


@pytest.fixture
def service(make, owner):
    return make.service(make.company(owner), status="in_progress")


class TestServiceMontador:
    """Tests for who counts as a montador of a service."""

    def test_direct_assignment_without_invitation(self, storage, make, owner):
        montador = make.profile()
        service = make.service(make.company(owner), montador_id=montador.id)
        assert is_service_montador(storage, montador, service) is True

    def test_invitation_status_wins_over_direct_assignment(self, storage, make, service):
        montador = make.profile()
        service.montador_id = montador.id
        make.assignment(service, montador, status="removed")
        assert is_service_montador(storage, montador, service) is False
        assert confirmation_side(storage, montador, service) is None

    def test_only_accepted_invitations_count(self, storage, make, service):
        invited, accepted = make.profile(), make.profile()
        make.assignment(service, invited, status="invited")
        make.assignment(service, accepted, status="accepted")
        assert is_service_montador(storage, invited, service) is False
        assert confirmation_side(storage, accepted, service) == "montador"


class TestManagement:
    """Tests for company-side and admin rights."""

    def test_admin_and_company_members_manage(self, make, owner, service):
        assert can_manage_service(owner, service) is True
        assert can_manage_service(make.profile(role="admin"), service) is True
        assert can_manage_service(make.profile(), service) is False


class TestReviewCounterpart:
    """Tests for who may be reviewed on a service."""

    def test_company_reviews_its_montadores_only(self, storage, make, owner, service):
        accepted, stranger = make.profile(), make.profile()
        make.assignment(service, accepted, status="accepted")
        assert is_review_counterpart(storage, owner, accepted, service) is True
        assert is_review_counterpart(storage, owner, stranger, service) is False

    def test_montador_reviews_the_company_side(self, storage, make, owner, service):
        montador = make.profile()
        make.assignment(service, montador, status="accepted")
        other_montador = make.profile()
        assert is_review_counterpart(storage, montador, owner, service) is True
        assert is_review_counterpart(storage, montador, other_montador, service) is False
