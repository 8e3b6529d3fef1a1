"""
Rate limiting with slowapi, keyed by client IP.

Applied to the mutating order endpoints so a stuck terminal retrying in
a loop cannot flood the order tables.

Usage in routers:
    @router.post("/api/orders")
    @limiter.limit(ORDER_WRITE_LIMIT)
    def open_order(request: Request, ...):
        ...
"""

from fastapi import Request
from fastapi.responses import JSONResponse
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address

from shared.config.logging import get_logger
from shared.config.settings import settings

logger = get_logger(__name__)

limiter = Limiter(key_func=get_remote_address, enabled=settings.rate_limit_enabled)

ORDER_WRITE_LIMIT = settings.order_write_rate_limit


def rate_limit_exceeded_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    """429 in the standard response envelope, with Retry-After."""
    logger.warning(
        "Rate limit exceeded",
        path=request.url.path,
        client=get_remote_address(request),
        limit=str(exc.detail),
    )
    return JSONResponse(
        status_code=429,
        content={
            "success": False,
            "error": "Límite de solicitudes excedido. Intente más tarde.",
            "message": str(exc.detail),
        },
        headers={"Retry-After": "60"},
    )
