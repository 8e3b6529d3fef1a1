"""
Shared Pydantic schemas for request bodies and responses.

Request bodies use the camelCase field names floor terminals send;
responses are snake_case.
"""

from datetime import datetime
from typing import Annotated, Any, Literal

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field

from shared.config.constants import Limits


# =============================================================================
# Common Types
# =============================================================================

SessionStatusName = Literal["OPEN", "CLOSED", "CANCELLED"]
AssignmentKindName = Literal["PRINCIPAL", "APOYO", "TEMPORAL"]
AlertLevelName = Literal["warning", "exceeded"]


class CamelRequest(BaseModel):
    """Base for request bodies: accepts the camelCase alias or the field name."""

    model_config = ConfigDict(populate_by_name=True, str_strip_whitespace=True)


def _coerce_staff_code(value: Any) -> Any:
    # Terminals send staff codes either as strings ("M01") or bare numbers (7)
    if isinstance(value, int) and not isinstance(value, bool):
        return str(value)
    return value


StaffCode = Annotated[str, BeforeValidator(_coerce_staff_code), Field(min_length=1, max_length=32)]


# =============================================================================
# Response Envelope
# =============================================================================


class ApiResponse(BaseModel):
    """{success, data|error, message?} envelope used by every endpoint."""

    success: bool
    data: Any | None = None
    error: str | None = None
    message: str | None = None


# =============================================================================
# Order Requests
# =============================================================================


class OrderItemInput(CamelRequest):
    """One item of an add-items request."""

    product_id: int = Field(alias="productId", gt=0)
    quantity: int = Field(ge=1, le=Limits.MAX_LINE_QUANTITY)
    observations: str | None = Field(default=None, max_length=Limits.MAX_OBSERVATIONS_LENGTH)


class OpenOrderRequest(CamelRequest):
    """POST /api/orders"""

    table_id: int = Field(alias="tableId", gt=0)
    party_size: int = Field(alias="partySize", ge=1, le=Limits.MAX_PARTY_SIZE)
    waitstaff_id: StaffCode = Field(alias="waitstaffId")
    cash_register_id: int = Field(alias="cashRegisterId", gt=0)
    customer_id: int | None = Field(default=None, alias="customerId", gt=0)
    warehouse_id: int | None = Field(default=None, alias="warehouseId", gt=0)
    items: list[OrderItemInput] = Field(min_length=1, max_length=Limits.MAX_ITEMS_PER_REQUEST)
    observations: str | None = Field(default=None, max_length=Limits.MAX_OBSERVATIONS_LENGTH)


class DispatchRequest(CamelRequest):
    """POST /api/orders/{id}/dispatch"""

    cash_register_id: int = Field(alias="cashRegisterId", gt=0)
    waitstaff_id: StaffCode | None = Field(default=None, alias="waitstaffId")


class CancelOrderRequest(CamelRequest):
    """POST /api/orders/{id}/cancel"""

    actor_id: StaffCode = Field(alias="actorId")
    reason: str | None = Field(default=None, max_length=Limits.MAX_OBSERVATIONS_LENGTH)
    warehouse_id: int | None = Field(default=None, alias="warehouseId", gt=0)


class CloseOrderRequest(CamelRequest):
    """POST /api/orders/{id}/close"""

    actor_id: StaffCode = Field(alias="actorId")


class RemoveLineRequest(CamelRequest):
    """DELETE /api/orders/lines/{lineId}"""

    actor_id: StaffCode = Field(alias="actorId")
    warehouse_id: int | None = Field(default=None, alias="warehouseId", gt=0)


# =============================================================================
# Table Requests
# =============================================================================


class TableStateRequest(CamelRequest):
    """PUT /api/tables/{id}/state"""

    new_state: str = Field(alias="newState", min_length=1, max_length=32)
    waitstaff_id: StaffCode | None = Field(default=None, alias="waitstaffId")
    observations: str | None = Field(default=None, max_length=Limits.MAX_OBSERVATIONS_LENGTH)
    estimated_minutes: int | None = Field(
        default=None, alias="estimatedMinutes", ge=1, le=Limits.MAX_RESERVATION_MINUTES
    )
    party_size: int | None = Field(default=None, alias="partySize", ge=1, le=Limits.MAX_PARTY_SIZE)
    reason: str | None = Field(default=None, max_length=Limits.MAX_OBSERVATIONS_LENGTH)


class AssignTableRequest(CamelRequest):
    """POST /api/tables/{id}/assign"""

    waitstaff_id: StaffCode = Field(alias="waitstaffId")
    assignment_kind: AssignmentKindName = Field(default="PRINCIPAL", alias="assignmentKind")


class ReleaseTableRequest(CamelRequest):
    """PUT /api/tables/{id}/release"""

    waitstaff_id: StaffCode = Field(alias="waitstaffId")


# =============================================================================
# Order Outputs
# =============================================================================


class OrderLineOutput(BaseModel):
    id: int
    product_id: int
    product_name: str
    category_name: str | None = None
    quantity: int
    unit_price_cents: int
    subtotal_cents: int
    observations: str
    dispatched_quantity: int
    pending_quantity: int
    dispatched_at: datetime | None = None
    created_at: datetime


class SessionSummary(BaseModel):
    total_items: int
    total_quantity: int
    pending_dispatch: int
    subtotal_cents: int


class SessionDetailOutput(BaseModel):
    """Session header plus lines; handed to payment and printing."""

    id: int
    table_id: int
    table_number: int
    zone_name: str | None = None
    party_size: int
    staff_id: int | None = None
    staff_name: str | None = None
    customer_id: int | None = None
    cash_register_id: int | None = None
    status: SessionStatusName
    total_cents: int
    observations: str
    opened_at: datetime
    closed_at: datetime | None = None
    cancelled_at: datetime | None = None
    lines: list[OrderLineOutput]
    summary: SessionSummary


class ActiveSessionOutput(BaseModel):
    id: int
    table_id: int
    table_number: int
    zone_name: str | None = None
    staff_name: str | None = None
    party_size: int
    opened_at: datetime
    line_count: int
    total_cents: int


class PendingLineOutput(BaseModel):
    """Kitchen display backlog entry."""

    line_id: int
    session_id: int
    table_number: int
    product_name: str
    pending_quantity: int
    observations: str
    created_at: datetime


class OpenOrderResult(BaseModel):
    session_id: int
    table_id: int
    created: bool
    total_cents: int
    lines_touched: int
    stock_warnings: int


class DispatchResult(BaseModel):
    session_id: int
    dispatched_lines: int
    dispatched_units: int
    dispatch_event_id: int | None = None


class CancelResult(BaseModel):
    session_id: int
    status: SessionStatusName
    stock_warnings: int


class RemoveLineResult(BaseModel):
    session_id: int
    line_id: int
    total_cents: int
    stock_warnings: int


class CloseResult(BaseModel):
    session_id: int
    table_id: int
    status: SessionStatusName
    total_cents: int


# =============================================================================
# Table Outputs
# =============================================================================


class TableOutput(BaseModel):
    id: int
    number: int
    name: str | None = None
    zone_id: int | None = None
    zone_name: str | None = None
    capacity: int
    state: str
    color: str
    assigned_staff_id: int | None = None
    assigned_staff_name: str | None = None
    assignment_kind: str | None = None
    party_size: int | None = None
    occupied_since: datetime | None = None
    elapsed_minutes: int | None = None
    elapsed_label: str | None = None
    reservation_expires_at: datetime | None = None
    observations: str | None = None
    version: int


class ZoneFloorOutput(BaseModel):
    zone_id: int | None = None
    zone_name: str
    tables: list[TableOutput]


class FloorStatsOutput(BaseModel):
    total_tables: int
    by_state: dict[str, int]
    by_zone: dict[str, dict[str, int]]
    occupancy_percent: float


class OccupancyAlertOutput(BaseModel):
    table_id: int
    table_number: int
    zone_name: str | None = None
    elapsed_minutes: int
    limit_minutes: int
    level: AlertLevelName
    assigned_staff_name: str | None = None


class TableHistoryOutput(BaseModel):
    id: int
    previous_state: str
    new_state: str
    staff_id: int | None = None
    reason: str | None = None
    party_size: int | None = None
    created_at: datetime
