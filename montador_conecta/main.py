import os

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from prometheus_fastapi_instrumentator import Instrumentator
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware

from .config import settings, Settings
from .db import Base, engine
from .errors import register_exception_handlers
from .logging import setup_logging, RequestIdMiddleware
from .rate_limit import limiter, rate_limit_exceeded_handler
from .auth.router import router as auth_router
from .routes.profiles import router as profiles_router
from .routes.companies import router as companies_router
from .routes.services import router as services_router
from .routes.assignments import router as assignments_router
from .routes.partnerships import router as partnerships_router
from .routes.montadores import router as montadores_router
from .routes.calendar import router as calendar_router
from .routes.admin import router as admin_router
from .routes.uploads import router as uploads_router


DEFAULT_JWT_SECRET = "change-me"


def check_production_settings(cfg: Settings) -> None:
    if cfg.environment == "prod" and cfg.jwt_secret == DEFAULT_JWT_SECRET:
        raise RuntimeError("JWT_SECRET must be set when ENVIRONMENT=prod")


def create_app() -> FastAPI:
    setup_logging()
    check_production_settings(settings)
    log = structlog.get_logger(__name__)
    app = FastAPI(title=settings.app_name)

    # Middlewares
    app.add_middleware(RequestIdMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origin_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)
    app.add_middleware(SlowAPIMiddleware)
    register_exception_handlers(app)

    # Routers
    app.include_router(auth_router)
    app.include_router(profiles_router)
    app.include_router(companies_router)
    app.include_router(services_router)
    app.include_router(assignments_router)
    app.include_router(partnerships_router)
    app.include_router(montadores_router)
    app.include_router(calendar_router)
    app.include_router(admin_router)
    app.include_router(uploads_router)

    # Metrics
    Instrumentator().instrument(app).expose(app)

    @app.get("/healthz")
    def healthz():
        return {"status": "ok"}

    @app.on_event("startup")
    def _startup():
        log.info("startup", environment=settings.environment, storage_provider=settings.storage_provider)
        # Ensure local SQLite directory exists
        if settings.database_url.startswith("sqlite:///./"):
            os.makedirs("var", exist_ok=True)
        if settings.auto_create_db:
            Base.metadata.create_all(bind=engine)
            log.info("tables_created_or_verified")

    return app


app = create_app()
