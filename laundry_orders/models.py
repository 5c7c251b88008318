"""
SQLAlchemy ORM models for the laundry orders service.

Defines the database schema for pressings, plants, clients, the per-pressing
item catalog, orders with their lines, status history and payments.
"""
from datetime import datetime, timezone
from sqlalchemy import (
    Boolean, Column, Date, DateTime, ForeignKey, Integer, Numeric, String,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship
from .database import Base


def utcnow() -> datetime:
    """Naive UTC timestamp, the convention for every DateTime column here."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class Pressing(Base):
    """
    A drop-off/pickup location. Scopes clients, orders and catalog items.

    Attributes:
        min_order_amount (Decimal): Optional minimum order total; None disables the check
    """
    __tablename__ = "pressings"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False)
    address = Column(String, nullable=True)
    active = Column(Boolean, default=True, nullable=False)
    min_order_amount = Column(Numeric(10, 2), nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)


class Plant(Base):
    """A processing facility where the cleaning work happens."""
    __tablename__ = "plants"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False)
    address = Column(String, nullable=True)
    active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)


class Client(Base):
    __tablename__ = "clients"

    id = Column(Integer, primary_key=True, index=True)
    full_name = Column(String, nullable=False)
    phone = Column(String, nullable=True)
    pressing_id = Column(Integer, ForeignKey("pressings.id"), nullable=False, index=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)

    pressing = relationship("Pressing")


class PressingItem(Base):
    """
    Catalog entry: a reusable (label, price) template owned by a pressing.

    Attributes:
        label (str): Label as first entered
        label_key (str): Normalized label (stripped, lower-cased); unique per pressing
        price (Decimal): Suggested unit price
    """
    __tablename__ = "pressing_items"
    __table_args__ = (
        UniqueConstraint("pressing_id", "label_key", name="uq_pressing_items_pressing_label"),
    )

    id = Column(Integer, primary_key=True, index=True)
    pressing_id = Column(Integer, ForeignKey("pressings.id"), nullable=False, index=True)
    label = Column(String, nullable=False)
    label_key = Column(String, nullable=False)
    price = Column(Numeric(10, 2), nullable=False)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)


class Order(Base):
    """
    Order model representing a client's laundry order.

    Attributes:
        id (int): Primary key
        reference_code (str): Counter lookup code, e.g. "P3-20261019-0007"
        pressing_id (int): Pressing where the order was placed (immutable)
        client_id (int): Owning client (immutable)
        plant_id (int): Plant that received the order; None until RECEIVED_AT_PLANT
        status (str): One of the eight workflow stages
        total_amount (Decimal): Sum of quantity x unit price, fixed at creation
        created_by_user_id (int): Staff member who created the order
        created_at (datetime): Timestamp when the order was created
    """
    __tablename__ = "orders"

    id = Column(Integer, primary_key=True, index=True)
    reference_code = Column(String, unique=True, index=True, nullable=False)
    pressing_id = Column(Integer, ForeignKey("pressings.id"), nullable=False, index=True)
    client_id = Column(Integer, ForeignKey("clients.id"), nullable=False, index=True)
    plant_id = Column(Integer, ForeignKey("plants.id"), nullable=True, index=True)
    status = Column(String, nullable=False, default="CREATED", index=True)
    total_amount = Column(Numeric(10, 2), nullable=False)
    created_by_user_id = Column(Integer, nullable=False)
    created_at = Column(DateTime, default=utcnow, nullable=False)

    pressing = relationship("Pressing")
    client = relationship("Client")
    plant = relationship("Plant")
    items = relationship(
        "OrderItem", order_by="OrderItem.position", cascade="all, delete-orphan"
    )
    status_history = relationship(
        "OrderStatusHistory",
        order_by="OrderStatusHistory.id",
        cascade="all, delete-orphan",
    )
    payment = relationship("Payment", uselist=False, back_populates="order")

    @property
    def pressing_name(self):
        return self.pressing.name if self.pressing else None

    @property
    def client_name(self):
        return self.client.full_name if self.client else None

    @property
    def plant_name(self):
        return self.plant.name if self.plant else None


class OrderItem(Base):
    """A single order line. The unit price is captured by value at creation."""
    __tablename__ = "order_items"

    id = Column(Integer, primary_key=True, index=True)
    order_id = Column(Integer, ForeignKey("orders.id"), nullable=False, index=True)
    position = Column(Integer, nullable=False)
    label = Column(String, nullable=False)
    quantity = Column(Integer, nullable=False)
    unit_price = Column(Numeric(10, 2), nullable=False)


class OrderStatusHistory(Base):
    """
    Append-only record of every status an order has reached.

    Attributes:
        status (str): Status the order moved to
        changed_by_user_id (int): Acting staff member
        changed_by_user_name (str): Name from the acting user's token
        changed_at (datetime): When the transition was applied
    """
    __tablename__ = "order_status_history"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    order_id = Column(Integer, ForeignKey("orders.id"), nullable=False, index=True)
    status = Column(String, nullable=False)
    changed_by_user_id = Column(Integer, nullable=False)
    changed_by_user_name = Column(String, nullable=True)
    changed_at = Column(DateTime, default=utcnow, nullable=False)


class Payment(Base):
    """Payment recorded after delivery. At most one per order."""
    __tablename__ = "payments"

    id = Column(Integer, primary_key=True, index=True)
    order_id = Column(Integer, ForeignKey("orders.id"), nullable=False, unique=True)
    amount = Column(Numeric(10, 2), nullable=False)
    method = Column(String, nullable=False)
    status = Column(String, nullable=False)
    paid_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)

    order = relationship("Order", back_populates="payment")


class OrderReferenceSequence(Base):
    """Daily per-pressing counter behind order reference codes."""
    __tablename__ = "order_reference_sequences"

    pressing_id = Column(Integer, ForeignKey("pressings.id"), primary_key=True)
    sequence_date = Column(Date, primary_key=True)
    last_value = Column(Integer, nullable=False, default=0)
