import structlog
from fastapi import Request
from fastapi.responses import JSONResponse
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address

from .config import settings


limiter = Limiter(
    key_func=get_remote_address,
    default_limits=[settings.rate_limit],
    enabled=settings.rate_limit_enabled,
)


def rate_limit_exceeded_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    structlog.get_logger(__name__).warning(
        "rate_limit_exceeded", ip=get_remote_address(request), path=request.url.path, limit=str(exc.detail)
    )
    return JSONResponse(
        status_code=429,
        content={"message": "Muitas tentativas. Tente novamente em alguns minutos."},
    )
