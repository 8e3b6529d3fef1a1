"""
Tests for SessionQueryService: open-session lookup, detail and active list.
"""

import pytest

from floor_api.services.domain import (
    ItemRequest,
    SessionNotFoundError,
    TableNotFoundError,
)
from shared.config.constants import SessionStatus


def take_order(order_service, floor, table_number, *entries, staff="M01", party_size=2):
    return order_service.open_order(
        table_id=floor.tables[table_number].id,
        party_size=party_size,
        staff_code=staff,
        items=[
            ItemRequest(product_id=floor.products[name].id, quantity=qty, observations=obs)
            for name, qty, obs in entries
        ],
    )


class TestOpenSessionForTable:

    def test_returns_open_session_id(self, floor, order_service, query_service):
        opened = take_order(order_service, floor, 2, ("lomo", 1, None))

        assert query_service.get_open_session_for_table(floor.tables[2].id) == opened.session_id

    def test_none_when_table_has_no_open_session(self, floor, order_service, query_service):
        opened = take_order(order_service, floor, 2, ("lomo", 1, None))
        order_service.close_session(opened.session_id, actor_code="M01")

        assert query_service.get_open_session_for_table(floor.tables[2].id) is None

    def test_unknown_table(self, floor, query_service):
        with pytest.raises(TableNotFoundError):
            query_service.get_open_session_for_table(9999)


class TestSessionDetail:

    def test_detail_with_lines_and_summary(self, floor, order_service, dispatch_service,
                                           query_service):
        opened = take_order(
            order_service, floor, 3,
            ("lomo", 2, None), ("postre", 1, "con helado"),
            party_size=4,
        )
        dispatch_service.dispatch(opened.session_id)
        take_order(order_service, floor, 3, ("bebida", 2, None), party_size=4)

        detail = query_service.get_session_detail(opened.session_id)

        assert detail.table_number == 3
        assert detail.zone_name == "Salón"
        assert detail.staff_name == "Ana Rojas"
        assert detail.party_size == 4
        assert detail.status == SessionStatus.OPEN
        assert detail.total_cents == 11000
        assert detail.opened_at.tzinfo is not None

        assert [line.product_name for line in detail.lines] == [
            "Lomo a lo pobre", "Postre", "Bebida",
        ]
        lomo, postre, bebida = detail.lines
        assert lomo.category_name == "Fondos"
        assert lomo.subtotal_cents == 5000
        assert lomo.pending_quantity == 0
        assert lomo.dispatched_at is not None
        assert postre.category_name is None
        assert postre.observations == "con helado"
        assert bebida.pending_quantity == 2

        assert detail.summary.total_items == 3
        assert detail.summary.total_quantity == 5
        assert detail.summary.pending_dispatch == 2
        assert detail.summary.subtotal_cents == detail.total_cents

    def test_detail_of_cancelled_session(self, floor, order_service, query_service):
        opened = take_order(order_service, floor, 3, ("lomo", 1, None))
        order_service.cancel_session(opened.session_id, actor_code="M01", reason="Error")

        detail = query_service.get_session_detail(opened.session_id)

        assert detail.status == SessionStatus.CANCELLED
        assert detail.cancelled_at is not None
        assert "CANCELADA: Error" in detail.observations

    def test_unknown_session(self, floor, query_service):
        with pytest.raises(SessionNotFoundError):
            query_service.get_session_detail(9999)


class TestActiveSessions:

    def test_lists_open_sessions_oldest_first(self, floor, order_service, query_service):
        first = take_order(order_service, floor, 4, ("lomo", 1, None), ("bebida", 1, None))
        second = take_order(order_service, floor, 1, ("postre", 1, None), staff="M02")
        closed = take_order(order_service, floor, 2, ("lomo", 1, None))
        order_service.close_session(closed.session_id, actor_code="M01")

        active = query_service.list_active_sessions()

        assert [s.id for s in active] == [first.session_id, second.session_id]
        assert active[0].table_number == 4
        assert active[0].zone_name == "Terraza"
        assert active[0].line_count == 2
        assert active[0].total_cents == 4000
        assert active[1].staff_name == "Luis Soto"

    def test_session_without_lines_counts_zero(self, floor, order_service, query_service):
        session = order_service.create_or_attach_session(
            floor.tables[5].id, party_size=2, staff_code="M01"
        )

        active = query_service.list_active_sessions()

        assert [(s.id, s.line_count, s.total_cents) for s in active] == [(session.id, 0, 0)]
