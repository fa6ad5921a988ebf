"""
Pytest configuration.

Points the app at throwaway settings, builds an in-memory SQLite database per
test and drives the API through FastAPI's TestClient.
"""
import os
import tempfile

# Settings are read at import time; set them before importing the app
os.environ["ENVIRONMENT"] = "test"
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["AUTO_CREATE_DB"] = "false"
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["JWT_SECRET"] = "test-secret"
os.environ["STORAGE_PROVIDER"] = "local"
os.environ["LOCAL_STORAGE_DIR"] = tempfile.mkdtemp(prefix="montador-uploads-")

import uuid

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from montador_conecta.db import Base, get_db, enable_sqlite_foreign_keys
from montador_conecta.main import app
from montador_conecta.models.models import User, Profile, Company, Service, ServiceAssignment


PASSWORD = "Senha1234"


@pytest.fixture
def engine():
    eng = create_engine(
        "sqlite://",
        future=True,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    enable_sqlite_foreign_keys(eng)
    Base.metadata.create_all(bind=eng)
    yield eng
    eng.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, autoflush=False, autocommit=False, future=True)


@pytest.fixture
def db_session(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def client(session_factory):
    def override_get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    yield TestClient(app)
    app.dependency_overrides.clear()


class Factory:
    """Builds rows directly through a session, for service-level tests."""

    def __init__(self, session):
        self.session = session

    def profile(self, role: str = "montador", **fields) -> Profile:
        user = User(username=f"user-{uuid.uuid4().hex[:10]}", password_hash="x")
        self.session.add(user)
        self.session.flush()
        profile = Profile(id=user.id, role=role, **fields)
        self.session.add(profile)
        self.session.commit()
        return profile

    def company(self, owner: Profile, **fields) -> Company:
        company = Company(owner_id=owner.id, trading_name=fields.pop("trading_name", "Móveis Teste"), **fields)
        self.session.add(company)
        self.session.flush()
        owner.company_id = company.id
        self.session.commit()
        return company

    def service(self, company: Company, **fields) -> Service:
        values = {
            "title": "Montagem de cozinha",
            "client_name": "Cliente",
            "address_full": "Rua A, 1",
            "status": "published",
        }
        values.update(fields)
        service = Service(company_id=company.id, **values)
        self.session.add(service)
        self.session.commit()
        return service

    def assignment(self, service: Service, montador: Profile, status: str = "invited") -> ServiceAssignment:
        assignment = ServiceAssignment(service_id=service.id, montador_id=montador.id, status=status)
        self.session.add(assignment)
        self.session.commit()
        return assignment


@pytest.fixture
def make(db_session):
    return Factory(db_session)


class Api:
    """Thin helpers over the HTTP API returning auth headers and JSON bodies."""

    def __init__(self, client: TestClient, session_factory):
        self.client = client
        self.session_factory = session_factory

    def register(self, username=None, role=None) -> dict:
        payload = {"username": username or f"user-{uuid.uuid4().hex[:10]}", "password": PASSWORD}
        if role:
            payload["role"] = role
        resp = self.client.post("/api/register", json=payload)
        assert resp.status_code == 201, resp.text
        return {"Authorization": f"Bearer {resp.json()['access_token']}"}

    def profile(self, headers, role="montador", **fields) -> dict:
        resp = self.client.post("/api/profiles", json={"role": role, **fields}, headers=headers)
        assert resp.status_code == 201, resp.text
        return resp.json()

    def montador(self, **fields):
        headers = self.register()
        return headers, self.profile(headers, "montador", **fields)

    def company_owner(self, role="partner"):
        headers = self.register()
        profile = self.profile(headers, role)
        resp = self.client.post("/api/companies", json={"trading_name": "Loja Teste"}, headers=headers)
        assert resp.status_code == 201, resp.text
        return headers, profile, resp.json()

    def admin(self):
        headers = self.register()
        profile = self.profile(headers, "montador")
        self.set_profile(profile["id"], role="admin", approval_status="approved")
        return headers, profile

    def set_profile(self, profile_id, **values) -> None:
        session = self.session_factory()
        try:
            row = session.get(Profile, uuid.UUID(str(profile_id)))
            for key, value in values.items():
                setattr(row, key, value)
            session.commit()
        finally:
            session.close()

    def service(self, headers, **fields) -> dict:
        payload = {"title": "Montagem de guarda-roupa", "client_name": "João", "address_full": "Av. Paulista, 1000"}
        payload.update(fields)
        resp = self.client.post("/api/services", json=payload, headers=headers)
        assert resp.status_code == 201, resp.text
        return resp.json()

    def invite(self, headers, service_id, montador_id) -> dict:
        resp = self.client.post(
            f"/api/services/{service_id}/assignments", json={"montador_id": montador_id}, headers=headers
        )
        assert resp.status_code == 201, resp.text
        return resp.json()

    def accept(self, headers, assignment_id) -> dict:
        resp = self.client.put(f"/api/assignments/{assignment_id}", json={"status": "accepted"}, headers=headers)
        assert resp.status_code == 200, resp.text
        return resp.json()


@pytest.fixture
def api(client, session_factory):
    return Api(client, session_factory)
