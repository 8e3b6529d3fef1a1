"""
Security module: rate limiting.
"""

from shared.security.rate_limit import (
    limiter,
    rate_limit_exceeded_handler,
    ORDER_WRITE_LIMIT,
)

__all__ = [
    "limiter",
    "rate_limit_exceeded_handler",
    "ORDER_WRITE_LIMIT",
]
