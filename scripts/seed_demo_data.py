"""
Seed the local database with a demo partner, their company and two published services.

Usage:
  python scripts/seed_demo_data.py [--password SENHA] [--with-admin]

This script is idempotent: the demo user, profile and company are looked up
by username/owner, and services are only inserted when the company has none
with the same title.
"""
import argparse
import os
import sys

# Add parent directory to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from montador_conecta.db import SessionLocal, Base, engine
from montador_conecta.models.models import User, Profile, Company, Service
from montador_conecta.auth.security import get_password_hash


DEMO_SERVICES = [
    {
        "title": "Montagem de Guarda-Roupa",
        "description": "Montagem de guarda-roupa 6 portas com espelho. Necessário levar parafusadeira.",
        "client_name": "João Silva",
        "address_full": "Av. Paulista, 1000 - Bela Vista, São Paulo - SP",
        "price": 15000,
        "status": "published",
        "complexity": "medium",
        "duration_hours": 3,
    },
    {
        "title": "Instalação de Painel de TV",
        "description": "Painel suspenso para TV de até 65 polegadas.",
        "client_name": "Maria Souza",
        "address_full": "Rua Augusta, 500 - Consolação, São Paulo - SP",
        "price": 8000,
        "status": "published",
        "complexity": "low",
        "duration_hours": 1,
    },
]


def ensure_user(session, username: str, password: str) -> User:
    user = session.query(User).filter(User.username == username).first()
    if user:
        return user
    user = User(username=username, password_hash=get_password_hash(password), is_active=True)
    session.add(user)
    session.flush()
    return user


def ensure_profile(session, user: User, role: str, **fields) -> Profile:
    profile = session.query(Profile).filter(Profile.id == user.id).first()
    if profile:
        return profile
    profile = Profile(id=user.id, role=role, approval_status="approved", **fields)
    session.add(profile)
    session.flush()
    return profile


def ensure_company(session, owner: Profile) -> Company:
    company = session.query(Company).filter(Company.owner_id == owner.id).first()
    if not company:
        company = Company(
            owner_id=owner.id,
            trading_name="Móveis Demo Ltda",
            corporate_name="Móveis Demo Comércio de Móveis",
            cnpj="00000000000100",
            city="São Paulo",
            state="SP",
            phone="(11) 99999-9999",
        )
        session.add(company)
        session.flush()
    owner.company_id = company.id
    return company


def seed(password: str, with_admin: bool = False) -> None:
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    try:
        user = ensure_user(session, "demo.partner", password)
        profile = ensure_profile(
            session,
            user,
            "partner",
            full_name="Demo Partner",
            bio="A demo furniture store partner",
            region="São Paulo, SP",
        )
        company = ensure_company(session, profile)

        created = 0
        for data in DEMO_SERVICES:
            exists = (
                session.query(Service)
                .filter(Service.company_id == company.id, Service.title == data["title"])
                .first()
            )
            if exists:
                continue
            session.add(Service(company_id=company.id, creator_id=profile.id, **data))
            created += 1

        if with_admin:
            admin = ensure_user(session, "admin", password)
            ensure_profile(session, admin, "admin", full_name="Administrador")

        session.commit()
        print(f"Seed complete: company={company.id} services_created={created}")
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Seed demo partner, company and services")
    parser.add_argument("--password", default="Demo12345", help="Password for seeded users")
    parser.add_argument("--with-admin", action="store_true", help="Also create an 'admin' user")
    args = parser.parse_args()
    seed(args.password, with_admin=args.with_admin)
