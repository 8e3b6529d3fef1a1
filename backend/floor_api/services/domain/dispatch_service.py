"""
Kitchen Dispatch Domain Service.

Sends pending lines to the preparation area. Dispatch is whole-line: every
line with something pending is marked fully sent. A session with nothing
pending is a successful no-op, so a double tap on "send" is harmless.
"""

from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, joinedload

from floor_api.models import DispatchEvent, FloorTable, OrderLine, OrderSession, as_utc, utcnow
from floor_api.services.collaborators import StaffDirectory
from floor_api.services.events import write_session_outbox_event
from shared.config.constants import SessionStatus
from shared.config.logging import kitchen_logger as logger
from shared.infrastructure.db import safe_commit
from shared.infrastructure.events import ORDER_DISPATCHED
from shared.infrastructure.metrics import get_metrics
from shared.utils.exceptions import DatabaseError
from shared.utils.schemas import DispatchResult, PendingLineOutput

from .order_session_service import SessionNotFoundError, SessionNotOpenError


class KitchenDispatchService:
    def __init__(self, db: Session, staff_directory: StaffDirectory | None = None):
        self._db = db
        self._staff = staff_directory or StaffDirectory(db)

    def dispatch(
        self,
        session_id: int,
        cash_register_id: int | None = None,
        staff_code: str | int | None = None,
    ) -> DispatchResult:
        """
        Mark every pending line of an open session as sent.

        Raises:
            UnauthorizedError: staff_code given but unknown.
            SessionNotFoundError / SessionNotOpenError
        """
        staff = self._staff.resolve_optional(staff_code)
        staff_id = staff.id if staff else None

        try:
            session = self._db.scalar(
                select(OrderSession).where(OrderSession.id == session_id).with_for_update()
            )
            if not session:
                raise SessionNotFoundError(session_id)
            if session.status != SessionStatus.OPEN:
                raise SessionNotOpenError(session)

            pending = self._db.execute(
                select(OrderLine)
                .where(
                    OrderLine.session_id == session_id,
                    OrderLine.dispatched_quantity < OrderLine.quantity,
                )
                .order_by(OrderLine.id)
                .with_for_update()
            ).scalars().all()

            if not pending:
                self._db.rollback()
                logger.info("Nothing pending to dispatch", session_id=session_id)
                return DispatchResult(session_id=session_id, dispatched_lines=0, dispatched_units=0)

            now = utcnow()
            units = 0
            for line in pending:
                units += line.quantity - line.dispatched_quantity
                line.dispatched_quantity = line.quantity
                line.dispatched_at = now
                line.dispatched_by_id = staff_id

            event = DispatchEvent(
                session_id=session_id,
                cash_register_id=cash_register_id or session.cash_register_id,
                dispatched_by_id=staff_id,
                line_count=len(pending),
                unit_count=units,
                created_at=now,
            )
            self._db.add(event)
            self._db.flush()

            write_session_outbox_event(
                self._db,
                ORDER_DISPATCHED,
                session_id=session_id,
                table_id=session.table_id,
                actor_staff_id=staff_id,
                extra_data={
                    "dispatch_event_id": event.id,
                    "line_ids": [line.id for line in pending],
                    "units": units,
                },
            )
            safe_commit(self._db)
        except SQLAlchemyError as e:
            self._db.rollback()
            raise DatabaseError("envío a cocina", session_id=session_id, error=str(e)) from e
        except Exception:
            self._db.rollback()
            raise

        get_metrics().inc("dispatches_total")
        get_metrics().inc("dispatched_units_total", units)
        logger.info(
            "Lines dispatched",
            session_id=session_id,
            lines=event.line_count,
            units=units,
        )
        return DispatchResult(
            session_id=session_id,
            dispatched_lines=event.line_count,
            dispatched_units=units,
            dispatch_event_id=event.id,
        )

    def pending_lines(self, session_id: int | None = None) -> list[PendingLineOutput]:
        """Kitchen backlog: lines not yet sent, across open sessions, oldest first."""
        query = (
            select(OrderLine, FloorTable.number)
            .join(OrderSession, OrderLine.session_id == OrderSession.id)
            .join(FloorTable, OrderSession.table_id == FloorTable.id)
            .options(joinedload(OrderLine.product))
            .where(
                OrderSession.status == SessionStatus.OPEN,
                OrderLine.dispatched_quantity < OrderLine.quantity,
            )
            .order_by(OrderLine.created_at.asc(), OrderLine.id.asc())
        )
        if session_id is not None:
            query = query.where(OrderLine.session_id == session_id)

        rows = self._db.execute(query).all()
        return [
            PendingLineOutput(
                line_id=line.id,
                session_id=line.session_id,
                table_number=table_number,
                product_name=line.product.name,
                pending_quantity=line.pending_quantity,
                observations=line.observations,
                created_at=as_utc(line.created_at),
            )
            for line, table_number in rows
        ]
