from datetime import datetime, timezone

import structlog
from fastapi import APIRouter, Depends, HTTPException, Request, Response
from sqlalchemy.exc import SQLAlchemyError

from ..config import settings
from ..crud import DatabaseStorage, get_storage
from ..models.models import User
from ..rate_limit import limiter
from ..schemas.auth import RegisterRequest, LoginRequest, UserResponse, AuthResponse
from .security import (
    get_password_hash,
    verify_password,
    create_access_token,
    get_current_user,
    set_session_cookie,
    clear_session_cookie,
)


router = APIRouter(prefix="/api", tags=["auth"])
log = structlog.get_logger(__name__)


def _initial_role(requested: str) -> str:
    # Self-registration can only produce these two roles
    return "marcenaria" if requested == "marcenaria" else "montador"


@router.post("/register", response_model=AuthResponse, status_code=201)
@limiter.limit(settings.auth_rate_limit)
def register(
    request: Request,
    response: Response,
    payload: RegisterRequest,
    storage: DatabaseStorage = Depends(get_storage),
):
    if storage.get_user_by_username(payload.username):
        log.info("register_duplicate_username", username=payload.username)
        raise HTTPException(status_code=400, detail="Username already exists")

    user = storage.create_user(
        username=payload.username,
        password_hash=get_password_hash(payload.password),
    )
    role = None
    if payload.role:
        role = _initial_role(payload.role)
        try:
            storage.create_profile(id=user.id, role=role)
        except SQLAlchemyError as e:
            # The account stays usable; the profile can be created later
            storage.rollback()
            role = None
            log.warning("register_profile_create_failed", user_id=str(user.id), error=str(e))

    token = create_access_token(str(user.id), role=role)
    set_session_cookie(response, token)
    log.info("user_registered", user_id=str(user.id), role=role)
    return AuthResponse(user=UserResponse.model_validate(user), access_token=token)


@router.post("/login", response_model=AuthResponse)
@limiter.limit(settings.auth_rate_limit)
def login(
    request: Request,
    response: Response,
    payload: LoginRequest,
    storage: DatabaseStorage = Depends(get_storage),
):
    user = storage.get_user_by_username(payload.username.strip())
    if not user or not user.is_active or not verify_password(payload.password, user.password_hash):
        log.warning("login_failed", username=payload.username)
        raise HTTPException(status_code=401, detail="Invalid credentials")
    user = storage.update_user(user, {"last_login_at": datetime.now(timezone.utc)})
    profile = storage.get_profile(user.id)
    token = create_access_token(str(user.id), role=profile.role if profile else None)
    set_session_cookie(response, token)
    return AuthResponse(user=UserResponse.model_validate(user), access_token=token)


@router.post("/logout")
def logout(response: Response):
    clear_session_cookie(response)
    return {"message": "Logged out"}


@router.get("/auth/user", response_model=UserResponse)
def current_user(user: User = Depends(get_current_user)):
    return user
