"""Domain enumerations and state-transition rules."""

import enum


class OrderStatus(str, enum.Enum):
    ASSIGNING = "ASSIGNING"
    ONGOING = "ONGOING"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


# State machine: maps current status -> set of valid next statuses
ORDER_TRANSITIONS: dict[OrderStatus, set[OrderStatus]] = {
    OrderStatus.ASSIGNING: {OrderStatus.ONGOING, OrderStatus.CANCELLED},
    OrderStatus.ONGOING: {OrderStatus.COMPLETED, OrderStatus.CANCELLED},
    OrderStatus.COMPLETED: set(),
    OrderStatus.CANCELLED: set(),
}

TERMINAL_STATUSES = frozenset(
    status for status, targets in ORDER_TRANSITIONS.items() if not targets
)


class OrderAction(str, enum.Enum):
    """Driver-initiated lifecycle operations exposed over the API."""

    TAKE = "take"
    COMPLETE = "complete"
    CANCEL = "cancel"

    @property
    def target(self) -> OrderStatus:
        return _ACTION_TARGETS[self]

    @property
    def timestamp_field(self) -> str:
        """Name of the order attribute stamped when the action succeeds."""
        return _ACTION_TIMESTAMPS[self]


_ACTION_TARGETS = {
    OrderAction.TAKE: OrderStatus.ONGOING,
    OrderAction.COMPLETE: OrderStatus.COMPLETED,
    OrderAction.CANCEL: OrderStatus.CANCELLED,
}

_ACTION_TIMESTAMPS = {
    OrderAction.TAKE: "ongoing_time",
    OrderAction.COMPLETE: "completed_at",
    OrderAction.CANCEL: "cancelled_at",
}
