"""
API routers.
"""

from .orders import router as orders_router
from .tables import router as tables_router
from .floor import router as floor_router
from .health import router as health_router
from .metrics import router as metrics_router

__all__ = [
    "orders_router",
    "tables_router",
    "floor_router",
    "health_router",
    "metrics_router",
]
