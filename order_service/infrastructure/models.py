"""
SQLAlchemy ORM models.

Tables
------
* ``orders`` -- trip orders with their stops, leg distances, fare and
  lifecycle timestamps

Stops and leg distances are written once at creation and stored as JSON
arrays; only ``status`` and the transition timestamps ever change.

Indexes
-------
* **B-Tree** on ``status`` and ``created_time`` for look-ups and the
  newest-first listing.
"""

from sqlalchemy import (
    JSON,
    CHAR,
    Column,
    DateTime,
    Enum,
    Index,
    Integer,
    Numeric,
)

from .database import Base
from order_service.domain.enums import OrderStatus


class OrderModel(Base):
    __tablename__ = "orders"

    id = Column(Integer, primary_key=True, autoincrement=True)

    # [{"lat": 22.34, "lng": 114.12}, ...]
    stops = Column(JSON, nullable=False)
    # one integer per consecutive stop pair
    driving_distances_m = Column(JSON, nullable=False)

    fare_amount = Column(Numeric(10, 2), nullable=False)
    fare_currency = Column(CHAR(3), nullable=False)

    status = Column(
        Enum(OrderStatus, name="orderstatus"),
        default=OrderStatus.ASSIGNING,
        nullable=False,
    )

    created_time = Column(DateTime(timezone=True), nullable=False)
    order_date_time = Column(DateTime(timezone=True), nullable=False)
    ongoing_time = Column(DateTime(timezone=True), nullable=True)
    completed_at = Column(DateTime(timezone=True), nullable=True)
    cancelled_at = Column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        Index("idx_orders_status", "status"),
        Index("idx_orders_created", "created_time"),
    )
