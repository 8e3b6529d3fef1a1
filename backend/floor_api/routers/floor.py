"""
Floor router: the whole-floor views served from the floor cache.
"""

from fastapi import APIRouter, Depends

from floor_api.routers._common import get_table_registry, ok
from floor_api.services.domain import TableRegistryService

router = APIRouter(prefix="/api/floor", tags=["floor"])


@router.get("")
def floor_snapshot(registry: TableRegistryService = Depends(get_table_registry)):
    """Tables per zone with state, color, waiter and elapsed occupancy."""
    return ok(registry.floor_snapshot())


@router.get("/stats")
def floor_stats(registry: TableRegistryService = Depends(get_table_registry)):
    return ok(registry.floor_stats())


@router.get("/alerts")
def occupancy_alerts(registry: TableRegistryService = Depends(get_table_registry)):
    """Occupied tables near or past the occupancy limit."""
    return ok(registry.occupancy_alerts())
