"""
Exception handlers that render every error in the response envelope:

    {"success": false, "error": "...", "message": "..."}

Domain errors (AppException) keep their status code and headers;
body validation errors become 400 naming the offending field.
"""

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from starlette.exceptions import HTTPException as StarletteHTTPException

from shared.config.logging import floor_logger as logger
from shared.security.rate_limit import rate_limit_exceeded_handler

GENERIC_ERROR = "Error interno del servidor"


def error_body(error: str, message: str | None = None) -> dict:
    body = {"success": False, "error": error}
    if message:
        body["message"] = message
    return body


def _field_name(loc: tuple) -> str:
    # ("body", "items", 0, "quantity") -> "items[0].quantity"
    parts: list[str] = []
    for part in loc:
        if part in ("body", "query", "path"):
            continue
        if isinstance(part, int):
            if parts:
                parts[-1] = f"{parts[-1]}[{part}]"
            continue
        parts.append(str(part))
    return ".".join(parts) or "body"


async def http_error_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content=error_body(str(exc.detail)),
        headers=getattr(exc, "headers", None),
    )


async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = exc.errors()
    first = errors[0] if errors else {}
    field = _field_name(tuple(first.get("loc", ())))
    message = first.get("msg", "Solicitud inválida")
    logger.warning(
        "Request validation failed",
        path=request.url.path,
        field=field,
        error_count=len(errors),
    )
    return JSONResponse(
        status_code=400,
        content=error_body(f"Campo inválido: {field}", message),
    )


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error(
        "Unhandled error",
        path=request.url.path,
        error_type=type(exc).__name__,
        exc_info=True,
    )
    return JSONResponse(status_code=500, content=error_body(GENERIC_ERROR))


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(StarletteHTTPException, http_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)
