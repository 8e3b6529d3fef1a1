"""
Common utilities shared across routers.
"""

from .envelope import ok
from .deps import (
    get_order_service,
    get_table_registry,
    get_dispatch_service,
    get_session_query,
)

__all__ = [
    "ok",
    "get_order_service",
    "get_table_registry",
    "get_dispatch_service",
    "get_session_query",
]
