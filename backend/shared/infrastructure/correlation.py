"""
Request correlation.

Every HTTP request and every background cycle (outbox batch, floor
reconciliation) runs under a correlation id that the logging filter
copies onto each record.
"""

import uuid
from contextlib import contextmanager
from contextvars import ContextVar
from typing import Callable, Iterator

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

request_id_var: ContextVar[str] = ContextVar("request_id", default="")


def get_request_id() -> str:
    """Get the current correlation id (empty outside a request or cycle)."""
    return request_id_var.get()


@contextmanager
def correlation_scope(prefix: str) -> Iterator[str]:
    """
    Bind a fresh correlation id for work that does not come from a request.

    Usage:
        with correlation_scope("reconcile"):
            await reconciler.run_once()
    """
    token = request_id_var.set(f"{prefix}-{uuid.uuid4().hex[:12]}")
    try:
        yield request_id_var.get()
    finally:
        request_id_var.reset(token)


class CorrelationIdMiddleware(BaseHTTPMiddleware):
    """
    Reads X-Request-ID (or generates one), exposes it on request.state
    and echoes it back in the response headers.
    """

    HEADER_NAME = "X-Request-ID"

    async def dispatch(
        self,
        request: Request,
        call_next: Callable,
    ) -> Response:
        request_id = request.headers.get(self.HEADER_NAME) or str(uuid.uuid4())
        token = request_id_var.set(request_id)

        try:
            request.state.request_id = request_id
            response = await call_next(request)
            response.headers[self.HEADER_NAME] = request_id
            return response
        finally:
            request_id_var.reset(token)


class CorrelationIdFilter:
    """
    Logging filter that adds request_id to log records.

    Usage:
        handler = logging.StreamHandler()
        handler.addFilter(CorrelationIdFilter())
    """

    def filter(self, record) -> bool:
        record.request_id = request_id_var.get() or "-"
        return True
