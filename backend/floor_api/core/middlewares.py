"""
HTTP middlewares: security headers, JSON content-type check, correlation id.
"""

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from shared.config.settings import settings
from shared.infrastructure.correlation import CorrelationIdMiddleware


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Add security headers to all responses."""

    async def dispatch(self, request: Request, call_next):
        response = await call_next(request)
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        response.headers["Content-Security-Policy"] = "default-src 'none'; frame-ancestors 'none'"
        if "server" in response.headers:
            del response.headers["server"]

        if settings.environment == "production":
            response.headers["Strict-Transport-Security"] = "max-age=31536000; includeSubDomains"

        return response


class ContentTypeValidationMiddleware(BaseHTTPMiddleware):
    """
    Reject request bodies that are not JSON.

    Returns 415 in the response envelope. Requests without a Content-Type
    (empty bodies) pass through.
    """

    METHODS_WITH_BODY = {"POST", "PUT", "PATCH", "DELETE"}

    async def dispatch(self, request: Request, call_next):
        if request.method in self.METHODS_WITH_BODY:
            content_type = request.headers.get("content-type", "")
            if content_type and not content_type.startswith("application/json"):
                return JSONResponse(
                    status_code=415,
                    content={
                        "success": False,
                        "error": "Tipo de contenido no soportado. Use application/json",
                    },
                )
        return await call_next(request)


def register_middlewares(app: FastAPI) -> None:
    """
    Middlewares run in reverse order of registration: correlation id is
    bound first so every later log line carries it.
    """
    app.add_middleware(SecurityHeadersMiddleware)
    app.add_middleware(ContentTypeValidationMiddleware)
    app.add_middleware(CorrelationIdMiddleware)
