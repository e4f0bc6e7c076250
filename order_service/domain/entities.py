"""
Domain entities with business logic.

Patterns used
-------------
- **State Pattern** on ``Order``: enforces valid lifecycle transitions
  (ASSIGNING -> ONGOING -> COMPLETED, ASSIGNING | ONGOING -> CANCELLED).
- ``Fare`` renders its amount as a fixed two-decimal string.
"""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Optional

from .enums import ORDER_TRANSITIONS, OrderAction, OrderStatus
from .errors import IllegalTransition


# ── Value Objects ─────────────────────────────────────────────────────


@dataclass(frozen=True)
class Location:
    lat: float
    lng: float


@dataclass(frozen=True)
class Fare:
    amount: Decimal
    currency: str

    @property
    def formatted_amount(self) -> str:
        """Fixed-point rendering, e.g. ``Decimal("235.1")`` -> ``"235.10"``."""
        return f"{self.amount:.2f}"


@dataclass(frozen=True)
class OrderRequest:
    """A validated creation request: at least two stops, optional schedule."""

    stops: tuple[Location, ...]
    order_at: Optional[datetime] = None

    @property
    def legs(self) -> list[tuple[Location, Location]]:
        return list(zip(self.stops, self.stops[1:]))


# ── Entities ──────────────────────────────────────────────────────────


@dataclass
class Order:
    id: Optional[int] = None
    stops: tuple[Location, ...] = ()
    driving_distances_m: tuple[int, ...] = ()
    fare: Optional[Fare] = None
    status: OrderStatus = OrderStatus.ASSIGNING
    created_time: Optional[datetime] = None
    order_date_time: Optional[datetime] = None
    ongoing_time: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None

    def can_transition_to(self, new_status: OrderStatus) -> bool:
        return new_status in ORDER_TRANSITIONS.get(self.status, set())

    def transition_to(self, new_status: OrderStatus) -> None:
        """Move to *new_status* if the transition is legal, else raise."""
        if not self.can_transition_to(new_status):
            raise IllegalTransition(
                f"Cannot transition order {self.id} "
                f"from {self.status.value} to {new_status.value}"
            )
        self.status = new_status

    def applied(self, action: OrderAction, at: datetime) -> Order:
        """Return a copy with *action* applied and its timestamp set."""
        updated = dataclasses.replace(self)
        updated.transition_to(action.target)
        setattr(updated, action.timestamp_field, at)
        return updated
