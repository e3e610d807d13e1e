"""Store commerce models: order statuses, orders, order items."""

from datetime import date, datetime
from typing import Optional

from libs.common.datetime_utils import utc_now
from libs.db.base import Base
from sqlalchemy import (
    CheckConstraint,
    Date,
    DateTime,
    ForeignKey,
    Integer,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

NEW_ORDER_STATUS = "New"


class OrderStatus(Base):
    """Free-form status label. Rows are created on first use of a name."""

    __tablename__ = "order_statuses"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(50), unique=True, nullable=False)

    orders = relationship("Order", back_populates="status")

    def __repr__(self):
        return f"<OrderStatus {self.name}>"


class Order(Base):
    """Customer order. Only status and delivery date change after creation."""

    __tablename__ = "orders"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(
        ForeignKey("users.id"), nullable=False, index=True
    )
    status_id: Mapped[int] = mapped_column(
        ForeignKey("order_statuses.id"), nullable=False, index=True
    )

    order_date: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, nullable=False, index=True
    )
    delivery_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    pickup_code: Mapped[int] = mapped_column(Integer, nullable=False)

    # Relationships
    user = relationship("User", back_populates="orders")
    status = relationship("OrderStatus", back_populates="orders")
    items = relationship(
        "OrderItem", back_populates="order", cascade="all, delete-orphan"
    )

    def __repr__(self):
        return f"<Order {self.id}>"


class OrderItem(Base):
    """One product line of an order."""

    __tablename__ = "order_items"
    __table_args__ = (
        UniqueConstraint("order_id", "product_id", name="uq_order_items_order_product"),
        CheckConstraint("quantity > 0", name="quantity_positive"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    order_id: Mapped[int] = mapped_column(
        ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True
    )
    product_id: Mapped[int] = mapped_column(
        ForeignKey("products.id"), nullable=False
    )
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)

    order = relationship("Order", back_populates="items")
    product = relationship("Product", back_populates="order_items")

    def __repr__(self):
        return f"<OrderItem order={self.order_id} product={self.product_id} x{self.quantity}>"
