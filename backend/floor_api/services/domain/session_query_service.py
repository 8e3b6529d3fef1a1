"""
Session Query Domain Service.

Read-side assembly of order sessions for the floor terminals, the
payment collaborator and ticket printing.
"""

from __future__ import annotations

from sqlalchemy import func, select
from sqlalchemy.orm import Session, joinedload, selectinload

from floor_api.models import (
    FloorTable,
    OrderLine,
    OrderSession,
    Product,
    as_utc,
)
from shared.config.constants import SessionStatus
from shared.utils.schemas import (
    ActiveSessionOutput,
    OrderLineOutput,
    SessionDetailOutput,
    SessionSummary,
)

from .order_session_service import SessionNotFoundError
from .table_registry_service import TableNotFoundError


def build_line_output(line: OrderLine) -> OrderLineOutput:
    product = line.product
    return OrderLineOutput(
        id=line.id,
        product_id=line.product_id,
        product_name=product.name,
        category_name=product.category.name if product.category else None,
        quantity=line.quantity,
        unit_price_cents=line.unit_price_cents,
        subtotal_cents=line.subtotal_cents,
        observations=line.observations,
        dispatched_quantity=line.dispatched_quantity,
        pending_quantity=line.pending_quantity,
        dispatched_at=as_utc(line.dispatched_at),
        created_at=as_utc(line.created_at),
    )


def build_summary(lines: list[OrderLine]) -> SessionSummary:
    return SessionSummary(
        total_items=len(lines),
        total_quantity=sum(line.quantity for line in lines),
        pending_dispatch=sum(line.pending_quantity for line in lines),
        subtotal_cents=sum(line.subtotal_cents for line in lines),
    )


class SessionQueryService:
    def __init__(self, db: Session):
        self._db = db

    def get_open_session_for_table(self, table_id: int) -> int | None:
        """Id of the table's most recent OPEN session, or None."""
        table_exists = self._db.scalar(
            select(FloorTable.id).where(
                FloorTable.id == table_id,
                FloorTable.is_active.is_(True),
            )
        )
        if table_exists is None:
            raise TableNotFoundError(table_id)

        return self._db.scalar(
            select(OrderSession.id)
            .where(
                OrderSession.table_id == table_id,
                OrderSession.status == SessionStatus.OPEN,
            )
            .order_by(OrderSession.id.desc())
            .limit(1)
        )

    def get_session_detail(self, session_id: int) -> SessionDetailOutput:
        """Header plus lines (ordered by id) with product and category names."""
        session = self._db.scalar(
            select(OrderSession)
            .options(
                joinedload(OrderSession.table).joinedload(FloorTable.zone),
                joinedload(OrderSession.staff),
                selectinload(OrderSession.lines)
                .joinedload(OrderLine.product)
                .joinedload(Product.category),
            )
            .where(OrderSession.id == session_id)
        )
        if not session:
            raise SessionNotFoundError(session_id)

        lines = list(session.lines)
        table = session.table
        return SessionDetailOutput(
            id=session.id,
            table_id=session.table_id,
            table_number=table.number,
            zone_name=table.zone.name if table.zone else None,
            party_size=session.party_size,
            staff_id=session.staff_id,
            staff_name=session.staff.full_name if session.staff else None,
            customer_id=session.customer_id,
            cash_register_id=session.cash_register_id,
            status=session.status,
            total_cents=session.total_cents,
            observations=session.observations,
            opened_at=as_utc(session.opened_at),
            closed_at=as_utc(session.closed_at),
            cancelled_at=as_utc(session.cancelled_at),
            lines=[build_line_output(line) for line in lines],
            summary=build_summary(lines),
        )

    def list_active_sessions(self) -> list[ActiveSessionOutput]:
        """Open sessions, oldest first."""
        line_counts = (
            select(OrderLine.session_id, func.count(OrderLine.id).label("line_count"))
            .group_by(OrderLine.session_id)
            .subquery()
        )
        rows = self._db.execute(
            select(OrderSession, func.coalesce(line_counts.c.line_count, 0))
            .outerjoin(line_counts, line_counts.c.session_id == OrderSession.id)
            .options(
                joinedload(OrderSession.table).joinedload(FloorTable.zone),
                joinedload(OrderSession.staff),
            )
            .where(OrderSession.status == SessionStatus.OPEN)
            .order_by(OrderSession.opened_at.asc(), OrderSession.id.asc())
        ).all()

        return [
            ActiveSessionOutput(
                id=session.id,
                table_id=session.table_id,
                table_number=session.table.number,
                zone_name=session.table.zone.name if session.table.zone else None,
                staff_name=session.staff.full_name if session.staff else None,
                party_size=session.party_size,
                opened_at=as_utc(session.opened_at),
                line_count=line_count,
                total_cents=session.total_cents,
            )
            for session, line_count in rows
        ]
