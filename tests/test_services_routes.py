import io

import pytest
from fastapi import HTTPException, UploadFile

from montador_conecta.config import settings
from montador_conecta.crud import DatabaseStorage
from montador_conecta.models.models import AuditLog
from montador_conecta.routes.services import upload_attachment
from montador_conecta.services.governance import GovernanceService
from montador_conecta.storage.local_provider import LocalStorageProvider


class RecordingStream(io.BytesIO):
    """Remembers how many bytes each read asked for."""

    def __init__(self, data: bytes):
        super().__init__(data)
        self.requested = []

    def read(self, size=-1):
        self.requested.append(size)
        return super().read(size)


@pytest.fixture
def owner(api):
    headers, profile, company = api.company_owner()
    return headers, profile, company


class TestServiceCrud:
    """Tests for /api/services."""

    def test_create_without_company(self, api, client):
        headers, _ = api.montador()
        resp = client.post(
            "/api/services",
            json={"title": "Montagem", "client_name": "João", "address_full": "Rua 1"},
            headers=headers,
        )
        assert resp.status_code == 400

    def test_create_sets_company_and_creator(self, api, owner):
        headers, profile, company = owner
        service = api.service(headers, price=15000, required_montadores_count=2)
        assert service["company_id"] == company["id"]
        assert service["creator_id"] == profile["id"]
        assert service["status"] == "draft"
        assert service["required_montadores_count"] == 2

    def test_validation_errors(self, client, owner):
        headers = owner[0]
        resp = client.post("/api/services", json={"client_name": "João", "address_full": "Rua 1"}, headers=headers)
        assert resp.status_code == 400
        assert resp.json()["errors"][0]["field"] == "title"

        resp = client.post(
            "/api/services",
            json={"title": "X", "client_name": "J", "address_full": "R", "price": -1},
            headers=headers,
        )
        assert resp.status_code == 400

    def test_list_filters_and_ignores_unknown_status(self, api, client, owner):
        headers = owner[0]
        api.service(headers, title="Rascunho")
        api.service(headers, title="Publicado", status="published")

        published = client.get("/api/services", params={"status": "published"}, headers=headers).json()
        assert [s["title"] for s in published] == ["Publicado"]
        everything = client.get("/api/services", params={"status": "bogus"}, headers=headers).json()
        assert len(everything) == 2

    def test_get_missing(self, client, owner):
        resp = client.get("/api/services/00000000-0000-0000-0000-000000000000", headers=owner[0])
        assert resp.status_code == 404

    def test_status_update_is_audited(self, api, client, owner, db_session):
        headers = owner[0]
        service = api.service(headers)
        resp = client.put(f"/api/services/{service['id']}", json={"status": "published", "price": 500}, headers=headers)
        assert resp.status_code == 200
        assert resp.json()["status"] == "published"
        assert resp.json()["price"] == 500

        entry = (
            db_session.query(AuditLog)
            .filter(AuditLog.action == "service_status_change", AuditLog.target_id == service["id"])
            .one()
        )
        assert entry.details["from"] == "draft"
        assert entry.details["to"] == "published"

    def test_unknown_status_rejected(self, api, client, owner):
        service = api.service(owner[0])
        resp = client.put(f"/api/services/{service['id']}", json={"status": "teleported"}, headers=owner[0])
        assert resp.status_code == 400

    def test_outsider_cannot_update_or_delete(self, api, client, owner):
        service = api.service(owner[0])
        outsider, _ = api.montador()
        assert client.put(f"/api/services/{service['id']}", json={"title": "X"}, headers=outsider).status_code == 403
        assert client.delete(f"/api/services/{service['id']}", headers=outsider).status_code == 403

    def test_delete(self, api, client, owner):
        service = api.service(owner[0])
        assert client.delete(f"/api/services/{service['id']}", headers=owner[0]).status_code == 204
        assert client.get(f"/api/services/{service['id']}", headers=owner[0]).status_code == 404


class TestAssignments:
    """Tests for invitations and acceptance."""

    def test_invite_moves_published_service_to_awaiting(self, api, client, owner):
        headers = owner[0]
        service = api.service(headers, status="published")
        _, montador = api.montador()

        assignment = api.invite(headers, service["id"], montador["id"])
        assert assignment["status"] == "invited"
        assert client.get(f"/api/services/{service['id']}", headers=headers).json()["status"] == "awaiting_montador"

        listed = client.get(f"/api/services/{service['id']}/assignments", headers=headers).json()
        assert [a["id"] for a in listed] == [assignment["id"]]

    def test_duplicate_invite(self, api, client, owner):
        headers = owner[0]
        service = api.service(headers, status="published")
        _, montador = api.montador()
        api.invite(headers, service["id"], montador["id"])
        resp = client.post(f"/api/services/{service['id']}/assignments", json={"montador_id": montador["id"]}, headers=headers)
        assert resp.status_code == 409

    def test_only_montadores_can_be_invited(self, api, client, owner):
        headers, profile, _ = owner
        service = api.service(headers, status="published")
        resp = client.post(f"/api/services/{service['id']}/assignments", json={"montador_id": profile["id"]}, headers=headers)
        assert resp.status_code == 404

    def test_acceptance_forms_team(self, api, client, owner):
        headers = owner[0]
        service = api.service(headers, status="published")
        montador_headers, montador = api.montador()
        assignment = api.invite(headers, service["id"], montador["id"])

        assert client.get("/api/assignments", headers=montador_headers).json()[0]["id"] == assignment["id"]
        api.accept(montador_headers, assignment["id"])

        current = client.get(f"/api/services/{service['id']}", headers=headers).json()
        assert current["status"] == "in_progress"
        assert current["is_closed"] is True
        assert current["montador_id"] == montador["id"]

    def test_montador_cannot_remove_and_company_cannot_accept(self, api, client, owner):
        headers = owner[0]
        service = api.service(headers, status="published")
        montador_headers, montador = api.montador()
        assignment = api.invite(headers, service["id"], montador["id"])

        url = f"/api/assignments/{assignment['id']}"
        assert client.put(url, json={"status": "removed"}, headers=montador_headers).status_code == 403
        assert client.put(url, json={"status": "accepted"}, headers=headers).status_code == 403
        assert client.put(url, json={"status": "removed"}, headers=headers).json()["status"] == "removed"

    def test_removed_montador_cannot_reaccept(self, api, client, owner):
        headers = owner[0]
        service = api.service(headers, status="published")
        montador_headers, montador = api.montador()
        assignment = api.invite(headers, service["id"], montador["id"])
        api.accept(montador_headers, assignment["id"])

        url = f"/api/assignments/{assignment['id']}"
        assert client.put(url, json={"status": "removed"}, headers=headers).status_code == 200
        assert client.get(f"/api/services/{service['id']}", headers=headers).json()["montador_id"] is None

        assert client.put(url, json={"status": "accepted"}, headers=montador_headers).status_code == 403
        assert client.put(url, json={"status": "rejected"}, headers=montador_headers).status_code == 403
        assert client.get("/api/assignments", headers=montador_headers).json()[0]["status"] == "removed"

    def test_rejected_invitation_stays_rejected(self, api, client, owner):
        headers = owner[0]
        service = api.service(headers, status="published")
        montador_headers, montador = api.montador()
        assignment = api.invite(headers, service["id"], montador["id"])

        url = f"/api/assignments/{assignment['id']}"
        assert client.put(url, json={"status": "rejected"}, headers=montador_headers).status_code == 200
        assert client.put(url, json={"status": "accepted"}, headers=montador_headers).status_code == 403

    def test_withdrawal_hands_service_to_remaining_montador(self, api, client, owner):
        headers = owner[0]
        service = api.service(headers, status="published", required_montadores_count=2)
        first_headers, first = api.montador()
        second_headers, second = api.montador()
        first_assignment = api.invite(headers, service["id"], first["id"])
        second_assignment = api.invite(headers, service["id"], second["id"])
        api.accept(first_headers, first_assignment["id"])
        api.accept(second_headers, second_assignment["id"])

        url = f"/api/assignments/{first_assignment['id']}"
        assert client.put(url, json={"status": "rejected"}, headers=first_headers).status_code == 200
        current = client.get(f"/api/services/{service['id']}", headers=headers).json()
        assert current["montador_id"] == second["id"]


class TestCompletionAndReviews:
    """Tests for confirm-completion and reviews."""

    @pytest.fixture
    def running(self, api, owner):
        headers = owner[0]
        service = api.service(headers, status="published")
        montador_headers, montador = api.montador()
        assignment = api.invite(headers, service["id"], montador["id"])
        api.accept(montador_headers, assignment["id"])
        return headers, montador_headers, montador, service

    def test_double_confirmation(self, client, running):
        company_headers, montador_headers, _, service = running
        url = f"/api/services/{service['id']}/confirm-completion"

        first = client.post(url, headers=company_headers).json()
        assert first["outcome"] == "pending"
        assert first["status"] == "completed_pending_confirmation"

        again = client.post(url, headers=company_headers).json()
        assert again["outcome"] == "already_confirmed"
        assert again["status"] == "completed_pending_confirmation"

        done = client.post(url, headers=montador_headers).json()
        assert done["outcome"] == "completed"
        assert done["status"] == "completed_pending_evaluation"

        current = client.get(f"/api/services/{service['id']}", headers=company_headers).json()
        assert current["completed_at"] is not None
        assert client.get("/api/profiles/me", headers=montador_headers).json()["completed_services"] == 1

    def test_outsider_cannot_confirm(self, api, client, running):
        outsider, _ = api.montador()
        resp = client.post(f"/api/services/{running[3]['id']}/confirm-completion", headers=outsider)
        assert resp.status_code == 403

    def test_confirm_on_draft_is_rejected(self, api, client, owner):
        service = api.service(owner[0])
        resp = client.post(f"/api/services/{service['id']}/confirm-completion", headers=owner[0])
        assert resp.status_code == 400

    def test_review_only_after_completion(self, client, running):
        company_headers, montador_headers, montador, service = running
        review = {"reviewee_id": montador["id"], "quality": 5, "punctuality": 4, "cleanliness": 5, "professionalism": 4}
        url = f"/api/services/{service['id']}/reviews"
        assert client.post(url, json=review, headers=company_headers).status_code == 400

        confirm = f"/api/services/{service['id']}/confirm-completion"
        client.post(confirm, headers=company_headers)
        client.post(confirm, headers=montador_headers)

        resp = client.post(url, json=review, headers=company_headers)
        assert resp.status_code == 201
        assert resp.json()["rating"] == 5

        assert client.get("/api/profiles/me", headers=montador_headers).json()["score"] == 100
        assert client.get(f"/api/services/{service['id']}", headers=company_headers).json()["status"] == "completed"
        assert len(client.get(url, headers=company_headers).json()) == 1

    def test_removed_montador_loses_montador_rights(self, client, running):
        company_headers, montador_headers, _, service = running
        [assignment] = client.get("/api/assignments", headers=montador_headers).json()
        resp = client.put(f"/api/assignments/{assignment['id']}", json={"status": "removed"}, headers=company_headers)
        assert resp.status_code == 200

        confirm = f"/api/services/{service['id']}/confirm-completion"
        assert client.post(confirm, headers=company_headers).json()["outcome"] == "pending"
        assert client.post(confirm, headers=montador_headers).status_code == 403

        upload = client.post(
            f"/api/services/{service['id']}/attachments",
            files={"file": ("foto.jpg", b"jpeg", "image/jpeg")},
            headers=montador_headers,
        )
        assert upload.status_code == 403
        assert client.get(f"/api/services/{service['id']}", headers=company_headers).json()["status"] == (
            "completed_pending_confirmation"
        )

    def test_reviewee_must_belong_to_the_service(self, api, client, owner, running):
        company_headers, montador_headers, montador, service = running
        confirm = f"/api/services/{service['id']}/confirm-completion"
        client.post(confirm, headers=company_headers)
        client.post(confirm, headers=montador_headers)

        _, stranger = api.montador()
        url = f"/api/services/{service['id']}/reviews"
        review = {"quality": 1, "punctuality": 1, "cleanliness": 1, "professionalism": 1}
        resp = client.post(url, json={**review, "reviewee_id": stranger["id"]}, headers=company_headers)
        assert resp.status_code == 400

        resp = client.post(url, json={**review, "reviewee_id": montador["id"]}, headers=company_headers)
        assert resp.status_code == 201
        resp = client.post(url, json={**review, "reviewee_id": montador["id"]}, headers=company_headers)
        assert resp.status_code == 409

        company_owner = owner[1]
        resp = client.post(url, json={**review, "reviewee_id": company_owner["id"]}, headers=montador_headers)
        assert resp.status_code == 201
        assert len(client.get(url, headers=company_headers).json()) == 2

    def test_review_dimension_out_of_range(self, client, running):
        company_headers, _, montador, service = running
        review = {"reviewee_id": montador["id"], "quality": 6, "punctuality": 4, "cleanliness": 5, "professionalism": 4}
        resp = client.post(f"/api/services/{service['id']}/reviews", json=review, headers=company_headers)
        assert resp.status_code == 400


class TestAttachments:
    """Tests for attachment upload and download."""

    def test_upload_and_download(self, api, client, owner):
        headers = owner[0]
        service = api.service(headers)
        resp = client.post(
            f"/api/services/{service['id']}/attachments",
            files={"file": ("Projeto Cozinha.pdf", b"%PDF-1.4 test", "application/pdf")},
            headers=headers,
        )
        assert resp.status_code == 201
        attachment = resp.json()
        assert attachment["file_type"] == "pdf"
        assert attachment["size_bytes"] == len(b"%PDF-1.4 test")
        assert attachment["file_url"].startswith("/api/uploads/services/")

        download = client.get(attachment["file_url"], headers=headers)
        assert download.status_code == 200
        assert download.content == b"%PDF-1.4 test"

        listed = client.get(f"/api/services/{service['id']}/attachments", headers=headers).json()
        assert [a["id"] for a in listed] == [attachment["id"]]

    def test_missing_file(self, api, client, owner):
        service = api.service(owner[0])
        resp = client.post(f"/api/services/{service['id']}/attachments", headers=owner[0])
        assert resp.status_code == 400

    def test_file_too_large(self, api, client, owner, monkeypatch):
        monkeypatch.setattr(settings, "max_upload_mb", 0)
        service = api.service(owner[0])
        resp = client.post(
            f"/api/services/{service['id']}/attachments",
            files={"file": ("video.mp4", b"0123456789", "video/mp4")},
            headers=owner[0],
        )
        assert resp.status_code == 413

    def test_unknown_upload_key(self, client, owner):
        assert client.get("/api/uploads/services/nothing-here.pdf", headers=owner[0]).status_code == 404

    def test_deleting_service_removes_stored_files(self, api, client, owner):
        headers = owner[0]
        service = api.service(headers)
        attachment = client.post(
            f"/api/services/{service['id']}/attachments",
            files={"file": ("planta.pdf", b"%PDF-1.4 planta", "application/pdf")},
            headers=headers,
        ).json()
        stored = LocalStorageProvider().get_path(attachment["file_url"][len("/api/uploads/"):])
        assert stored.exists()

        assert client.delete(f"/api/services/{service['id']}", headers=headers).status_code == 204
        assert not stored.exists()

    def test_oversize_upload_is_read_only_past_the_limit(self, make, db_session, tmp_path, monkeypatch):
        monkeypatch.setattr(settings, "max_upload_mb", 1)
        limit = 1024 * 1024
        owner = make.profile(role="partner")
        service = make.service(make.company(owner))
        stream = RecordingStream(b"0" * (limit * 3))
        storage = DatabaseStorage(db_session)

        with pytest.raises(HTTPException) as exc:
            upload_attachment(
                service.id,
                file=UploadFile(file=stream, filename="obra.mp4"),
                storage=storage,
                governance=GovernanceService(storage),
                provider=LocalStorageProvider(str(tmp_path)),
                profile=owner,
            )

        assert exc.value.status_code == 413
        assert stream.requested == [limit + 1]
        assert list(tmp_path.iterdir()) == []
