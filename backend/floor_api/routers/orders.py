"""
Orders router.

Order sessions from the waiter terminals: take order, send to kitchen,
remove lines, cancel, close. Read endpoints feed the terminals, the
kitchen display and payment/printing.
"""

from fastapi import APIRouter, Body, Depends, Query, Request

from floor_api.routers._common import (
    get_dispatch_service,
    get_order_service,
    get_session_query,
    ok,
)
from floor_api.services.domain import (
    ItemRequest,
    KitchenDispatchService,
    OrderSessionService,
    SessionQueryService,
)
from shared.security.rate_limit import ORDER_WRITE_LIMIT, limiter
from shared.utils.exceptions import ValidationError
from shared.utils.schemas import (
    CancelOrderRequest,
    CloseOrderRequest,
    DispatchRequest,
    OpenOrderRequest,
    RemoveLineRequest,
)

router = APIRouter(prefix="/api/orders", tags=["orders"])


@router.post("")
@limiter.limit(ORDER_WRITE_LIMIT)
def open_order(
    request: Request,
    body: OpenOrderRequest,
    service: OrderSessionService = Depends(get_order_service),
):
    """
    Take an order for a table.

    Occupies the table if needed, opens (or reuses) its session and adds
    the items, all in one transaction.
    """
    result = service.open_order(
        table_id=body.table_id,
        party_size=body.party_size,
        staff_code=body.waitstaff_id,
        items=[
            ItemRequest(
                product_id=item.product_id,
                quantity=item.quantity,
                observations=item.observations,
            )
            for item in body.items
        ],
        customer_id=body.customer_id,
        cash_register_id=body.cash_register_id,
        warehouse_id=body.warehouse_id,
        observations=body.observations,
    )
    message = "Venta creada" if result.created else "Productos agregados a la venta"
    return ok(result, message)


@router.get("/active")
def list_active_sessions(query: SessionQueryService = Depends(get_session_query)):
    return ok(query.list_active_sessions())


@router.get("/kitchen/pending")
def kitchen_pending(
    session_id: int | None = Query(None, alias="sessionId", gt=0),
    dispatch: KitchenDispatchService = Depends(get_dispatch_service),
):
    """Kitchen display backlog."""
    return ok(dispatch.pending_lines(session_id))


@router.get("/{session_id}")
def get_session_detail(
    session_id: int,
    query: SessionQueryService = Depends(get_session_query),
):
    return ok(query.get_session_detail(session_id))


@router.post("/{session_id}/dispatch")
@limiter.limit(ORDER_WRITE_LIMIT)
def dispatch_session(
    request: Request,
    session_id: int,
    body: DispatchRequest,
    dispatch: KitchenDispatchService = Depends(get_dispatch_service),
):
    result = dispatch.dispatch(
        session_id,
        cash_register_id=body.cash_register_id,
        staff_code=body.waitstaff_id,
    )
    if result.dispatched_lines == 0:
        return ok(result, "No hay productos pendientes de envío")
    return ok(result, "Pedido enviado a cocina")


@router.post("/{session_id}/cancel")
@limiter.limit(ORDER_WRITE_LIMIT)
def cancel_session(
    request: Request,
    session_id: int,
    body: CancelOrderRequest,
    service: OrderSessionService = Depends(get_order_service),
):
    result = service.cancel_session(
        session_id,
        actor_code=body.actor_id,
        reason=body.reason,
        warehouse_id=body.warehouse_id,
    )
    return ok(result, "Venta cancelada")


@router.post("/{session_id}/close")
@limiter.limit(ORDER_WRITE_LIMIT)
def close_session(
    request: Request,
    session_id: int,
    body: CloseOrderRequest,
    service: OrderSessionService = Depends(get_order_service),
):
    return ok(service.close_session(session_id, actor_code=body.actor_id), "Venta cerrada")


@router.delete("/lines/{line_id}")
@limiter.limit(ORDER_WRITE_LIMIT)
def remove_line(
    request: Request,
    line_id: int,
    body: RemoveLineRequest | None = Body(None),
    actor_id: str | None = Query(None, alias="actorId", max_length=32),
    warehouse_id: int | None = Query(None, alias="warehouseId", gt=0),
    service: OrderSessionService = Depends(get_order_service),
):
    """actorId and warehouseId may come in the JSON body or the query string."""
    if body is not None:
        actor_id = body.actor_id
        warehouse_id = body.warehouse_id or warehouse_id
    if not actor_id:
        raise ValidationError("actorId es requerido", field="actorId")

    result = service.remove_line(line_id, actor_code=actor_id, warehouse_id=warehouse_id)
    return ok(result, "Línea eliminada")
