"""
Tests for KitchenDispatchService: send-to-kitchen and the kitchen backlog.
"""

import pytest
from sqlalchemy import func, select

from floor_api.models import DispatchEvent, OrderLine, OutboxEvent
from floor_api.services.domain import (
    ItemRequest,
    SessionNotFoundError,
    SessionNotOpenError,
)
from shared.infrastructure.events import ORDER_DISPATCHED
from shared.infrastructure.metrics import get_metrics
from shared.utils.exceptions import UnauthorizedError


def take_order(order_service, floor, table_number, *entries):
    return order_service.open_order(
        table_id=floor.tables[table_number].id,
        party_size=2,
        staff_code="M01",
        items=[
            ItemRequest(product_id=floor.products[name].id, quantity=qty)
            for name, qty in entries
        ],
    )


def session_lines(db_session, session_id):
    return db_session.execute(
        select(OrderLine).where(OrderLine.session_id == session_id).order_by(OrderLine.id)
    ).scalars().all()


class TestDispatch:

    def test_dispatch_marks_pending_lines_sent(
        self, db_session, floor, order_service, dispatch_service
    ):
        opened = take_order(order_service, floor, 1, ("lomo", 2), ("bebida", 1))

        result = dispatch_service.dispatch(opened.session_id, cash_register_id=4, staff_code="M02")

        assert result.dispatched_lines == 2
        assert result.dispatched_units == 3
        assert result.dispatch_event_id is not None

        for line in session_lines(db_session, opened.session_id):
            assert line.dispatched_quantity == line.quantity
            assert line.dispatched_at is not None
            assert line.dispatched_by_id == floor.staff["M02"].id

        event = db_session.get(DispatchEvent, result.dispatch_event_id)
        assert event.cash_register_id == 4
        assert event.line_count == 2
        assert event.unit_count == 3

        outbox = db_session.scalar(
            select(OutboxEvent).where(OutboxEvent.event_type == ORDER_DISPATCHED)
        )
        assert outbox is not None
        assert get_metrics().get("dispatches_total") == 1
        assert get_metrics().get("dispatched_units_total") == 3

    def test_second_dispatch_is_a_noop(self, db_session, floor, order_service, dispatch_service):
        opened = take_order(order_service, floor, 1, ("lomo", 1))
        dispatch_service.dispatch(opened.session_id)

        result = dispatch_service.dispatch(opened.session_id)

        assert result.dispatched_lines == 0
        assert result.dispatched_units == 0
        assert result.dispatch_event_id is None
        assert db_session.scalar(select(func.count(DispatchEvent.id))) == 1

    def test_dispatched_line_no_longer_absorbs_merges(
        self, db_session, floor, order_service, dispatch_service
    ):
        """After sending, the same product goes on a fresh line."""
        opened = take_order(order_service, floor, 1, ("lomo", 2))
        dispatch_service.dispatch(opened.session_id)

        result = take_order(order_service, floor, 1, ("lomo", 1))

        lines = session_lines(db_session, opened.session_id)
        assert [(line.quantity, line.dispatched_quantity) for line in lines] == [(2, 2), (1, 0)]
        assert result.total_cents == 7500

        second = dispatch_service.dispatch(opened.session_id)
        assert second.dispatched_lines == 1
        assert second.dispatched_units == 1

    def test_dispatch_uses_session_cash_register_by_default(
        self, db_session, floor, order_service, dispatch_service
    ):
        opened = order_service.open_order(
            table_id=floor.tables[2].id,
            party_size=2,
            staff_code="M01",
            items=[ItemRequest(product_id=floor.products["postre"].id, quantity=1)],
            cash_register_id=9,
        )

        result = dispatch_service.dispatch(opened.session_id)

        event = db_session.get(DispatchEvent, result.dispatch_event_id)
        assert event.cash_register_id == 9
        assert event.dispatched_by_id is None

    def test_dispatch_unknown_session(self, floor, dispatch_service):
        with pytest.raises(SessionNotFoundError):
            dispatch_service.dispatch(9999)

    def test_dispatch_closed_session(self, floor, order_service, dispatch_service):
        opened = take_order(order_service, floor, 1, ("lomo", 1))
        order_service.close_session(opened.session_id, actor_code="M01")

        with pytest.raises(SessionNotOpenError):
            dispatch_service.dispatch(opened.session_id)

    def test_dispatch_unknown_staff(self, floor, order_service, dispatch_service):
        opened = take_order(order_service, floor, 1, ("lomo", 1))

        with pytest.raises(UnauthorizedError):
            dispatch_service.dispatch(opened.session_id, staff_code="NOPE")


class TestPendingLines:

    def test_pending_lines_across_open_sessions(self, floor, order_service, dispatch_service):
        first = take_order(order_service, floor, 1, ("lomo", 2))
        second = take_order(order_service, floor, 4, ("bebida", 1), ("postre", 1))

        pending = dispatch_service.pending_lines()

        assert [(p.table_number, p.product_name, p.pending_quantity) for p in pending] == [
            (1, "Lomo a lo pobre", 2),
            (4, "Bebida", 1),
            (4, "Postre", 1),
        ]
        assert {p.session_id for p in pending} == {first.session_id, second.session_id}

    def test_pending_lines_filtered_by_session(self, floor, order_service, dispatch_service):
        take_order(order_service, floor, 1, ("lomo", 2))
        second = take_order(order_service, floor, 4, ("bebida", 1))

        pending = dispatch_service.pending_lines(second.session_id)

        assert [p.session_id for p in pending] == [second.session_id]

    def test_dispatched_and_cancelled_lines_leave_backlog(
        self, floor, order_service, dispatch_service
    ):
        first = take_order(order_service, floor, 1, ("lomo", 2))
        second = take_order(order_service, floor, 4, ("bebida", 1))

        dispatch_service.dispatch(first.session_id)
        order_service.cancel_session(second.session_id, actor_code="M01")

        assert dispatch_service.pending_lines() == []
