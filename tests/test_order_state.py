"""Unit tests for order entity state transitions (State Pattern)."""

from datetime import datetime, timezone

import pytest

from order_service.domain.entities import IllegalTransition, Order
from order_service.domain.enums import OrderAction, OrderStatus, TERMINAL_STATUSES

NOW = datetime(2026, 10, 19, 9, 30, tzinfo=timezone.utc)


class TestOrderStateMachine:
    def test_initial_status_is_assigning(self):
        order = Order()
        assert order.status == OrderStatus.ASSIGNING

    def test_terminal_statuses(self):
        assert TERMINAL_STATUSES == {OrderStatus.COMPLETED, OrderStatus.CANCELLED}

    # ── Valid transitions ─────────────────────────────────────────

    def test_assigning_to_ongoing(self):
        order = Order(status=OrderStatus.ASSIGNING)
        order.transition_to(OrderStatus.ONGOING)
        assert order.status == OrderStatus.ONGOING

    def test_assigning_to_cancelled(self):
        order = Order(status=OrderStatus.ASSIGNING)
        order.transition_to(OrderStatus.CANCELLED)
        assert order.status == OrderStatus.CANCELLED

    def test_ongoing_to_completed(self):
        order = Order(status=OrderStatus.ONGOING)
        order.transition_to(OrderStatus.COMPLETED)
        assert order.status == OrderStatus.COMPLETED

    def test_ongoing_to_cancelled(self):
        order = Order(status=OrderStatus.ONGOING)
        order.transition_to(OrderStatus.CANCELLED)
        assert order.status == OrderStatus.CANCELLED

    # ── Invalid transitions ───────────────────────────────────────

    def test_assigning_to_completed_fails(self):
        order = Order(status=OrderStatus.ASSIGNING)
        with pytest.raises(IllegalTransition):
            order.transition_to(OrderStatus.COMPLETED)

    def test_ongoing_to_ongoing_fails(self):
        order = Order(status=OrderStatus.ONGOING)
        with pytest.raises(IllegalTransition):
            order.transition_to(OrderStatus.ONGOING)

    @pytest.mark.parametrize("terminal", [OrderStatus.COMPLETED, OrderStatus.CANCELLED])
    @pytest.mark.parametrize("target", list(OrderStatus))
    def test_terminal_to_anything_fails(self, terminal, target):
        order = Order(status=terminal)
        with pytest.raises(IllegalTransition):
            order.transition_to(target)


# Which actions succeed from which status
ACTION_TABLE = {
    OrderStatus.ASSIGNING: {OrderAction.TAKE, OrderAction.CANCEL},
    OrderStatus.ONGOING: {OrderAction.COMPLETE, OrderAction.CANCEL},
    OrderStatus.COMPLETED: set(),
    OrderStatus.CANCELLED: set(),
}


class TestOrderActions:
    @pytest.mark.parametrize("status", list(OrderStatus))
    @pytest.mark.parametrize("action", list(OrderAction))
    def test_action_legality_table(self, status, action):
        order = Order(id=1, status=status)
        if action in ACTION_TABLE[status]:
            updated = order.applied(action, NOW)
            assert updated.status == action.target
        else:
            with pytest.raises(IllegalTransition):
                order.applied(action, NOW)

    def test_applied_sets_action_timestamp(self):
        order = Order(id=1, status=OrderStatus.ASSIGNING)
        taken = order.applied(OrderAction.TAKE, NOW)
        assert taken.ongoing_time == NOW
        assert taken.completed_at is None
        assert taken.cancelled_at is None

    def test_applied_does_not_mutate_original(self):
        order = Order(id=1, status=OrderStatus.ASSIGNING)
        order.applied(OrderAction.CANCEL, NOW)
        assert order.status == OrderStatus.ASSIGNING
        assert order.cancelled_at is None

    def test_failed_action_leaves_order_untouched(self):
        order = Order(id=1, status=OrderStatus.COMPLETED, completed_at=NOW)
        with pytest.raises(IllegalTransition):
            order.applied(OrderAction.CANCEL, NOW)
        assert order.status == OrderStatus.COMPLETED
        assert order.cancelled_at is None

    def test_action_targets_and_timestamps(self):
        assert OrderAction.TAKE.target == OrderStatus.ONGOING
        assert OrderAction.COMPLETE.target == OrderStatus.COMPLETED
        assert OrderAction.CANCEL.target == OrderStatus.CANCELLED
        assert OrderAction.TAKE.timestamp_field == "ongoing_time"
        assert OrderAction.COMPLETE.timestamp_field == "completed_at"
        assert OrderAction.CANCEL.timestamp_field == "cancelled_at"
