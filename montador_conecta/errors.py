"""
Exception handlers.

Validation errors become 400 with per-field messages, integrity errors map to
409 (unique) or 400 (foreign key), lifecycle errors map to 404/400, and
anything else is logged and returned as a generic 500.
"""
import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import IntegrityError

from .config import settings
from .services.lifecycle import ServiceNotFound, InvalidLifecycleState


log = structlog.get_logger(__name__)

UNIQUE_VIOLATION = "23505"
FOREIGN_KEY_VIOLATION = "23503"


def _field_name(loc) -> str:
    parts = [str(p) for p in loc if p not in ("body", "query", "path")]
    return ".".join(parts) or "body"


def _clean_message(msg: str) -> str:
    # pydantic prefixes messages raised from validators
    return msg[len("Value error, "):] if msg.startswith("Value error, ") else msg


def integrity_error_kind(exc: IntegrityError) -> str:
    """``unique``, ``foreign_key`` or ``other``, for Postgres and SQLite drivers."""
    pgcode = getattr(exc.orig, "pgcode", None)
    text = str(exc.orig)
    if pgcode == UNIQUE_VIOLATION or "UNIQUE constraint failed" in text:
        return "unique"
    if pgcode == FOREIGN_KEY_VIOLATION or "FOREIGN KEY constraint failed" in text:
        return "foreign_key"
    return "other"


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = [{"field": _field_name(e.get("loc", ())), "message": _clean_message(e.get("msg", ""))} for e in exc.errors()]
    log.info("validation_failed", path=request.url.path, errors=errors)
    return JSONResponse(status_code=400, content={"message": "Erro de validação", "errors": errors})


async def integrity_error_handler(request: Request, exc: IntegrityError) -> JSONResponse:
    kind = integrity_error_kind(exc)
    log.warning("integrity_error", path=request.url.path, kind=kind, error=str(exc.orig))
    if kind == "unique":
        return JSONResponse(status_code=409, content={"message": "Registro duplicado"})
    if kind == "foreign_key":
        return JSONResponse(status_code=400, content={"message": "Referência inválida"})
    return JSONResponse(status_code=500, content={"message": "Erro interno do servidor"})


async def service_not_found_handler(request: Request, exc: ServiceNotFound) -> JSONResponse:
    return JSONResponse(status_code=404, content={"detail": "Service not found"})


async def invalid_state_handler(request: Request, exc: InvalidLifecycleState) -> JSONResponse:
    log.info("invalid_lifecycle_state", path=request.url.path, error=str(exc))
    return JSONResponse(status_code=400, content={"detail": str(exc)})


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    log.exception("unhandled_error", path=request.url.path, method=request.method)
    content = {"message": "Erro interno do servidor"}
    if settings.environment == "dev":
        content["error"] = str(exc)
    return JSONResponse(status_code=500, content=content)


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(IntegrityError, integrity_error_handler)
    app.add_exception_handler(ServiceNotFound, service_not_found_handler)
    app.add_exception_handler(InvalidLifecycleState, invalid_state_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)
