"""
Tables router.

State changes, waitstaff assignment and lookups for single tables.
"""

from fastapi import APIRouter, Depends, Query

from floor_api.routers._common import get_session_query, get_table_registry, ok
from floor_api.services.domain import SessionQueryService, TableRegistryService
from shared.config.constants import Limits
from shared.utils.schemas import AssignTableRequest, ReleaseTableRequest, TableStateRequest

router = APIRouter(prefix="/api/tables", tags=["tables"])


@router.get("/available")
def find_available_tables(
    party_size: int = Query(..., alias="partySize", ge=1),
    zone_id: int | None = Query(None, alias="zoneId", gt=0),
    registry: TableRegistryService = Depends(get_table_registry),
):
    """Free tables that seat the party: smallest fit first, VIP first."""
    return ok(registry.find_available_tables(party_size, zone_id))


@router.get("/{table_id}/open-session")
def get_open_session(
    table_id: int,
    query: SessionQueryService = Depends(get_session_query),
):
    return ok({"session_id": query.get_open_session_for_table(table_id)})


@router.put("/{table_id}/state")
def change_table_state(
    table_id: int,
    body: TableStateRequest,
    registry: TableRegistryService = Depends(get_table_registry),
):
    table = registry.transition(
        table_id,
        body.new_state,
        staff_code=body.waitstaff_id,
        observations=body.observations,
        estimated_minutes=body.estimated_minutes,
        party_size=body.party_size,
        reason=body.reason,
    )
    return ok(table, "Estado de mesa actualizado")


@router.post("/{table_id}/assign")
def assign_table(
    table_id: int,
    body: AssignTableRequest,
    registry: TableRegistryService = Depends(get_table_registry),
):
    table = registry.assign(table_id, body.waitstaff_id, body.assignment_kind)
    return ok(table, "Mesa asignada")


@router.put("/{table_id}/release")
def release_table(
    table_id: int,
    body: ReleaseTableRequest,
    registry: TableRegistryService = Depends(get_table_registry),
):
    return ok(registry.release_table(table_id, body.waitstaff_id), "Mesa liberada")


@router.get("/{table_id}/history")
def table_history(
    table_id: int,
    limit: int = Query(Limits.DEFAULT_HISTORY_LIMIT, ge=1, le=Limits.MAX_HISTORY_LIMIT),
    registry: TableRegistryService = Depends(get_table_registry),
):
    return ok(registry.state_history(table_id, limit))
