"""
Pydantic schemas for request/response validation in the laundry orders service.

These schemas define the structure of data for API requests and responses.
Business rules (positive quantities, non-negative prices, minimum amounts)
are enforced by the validators module so callers get the violated rule back.
"""
from datetime import datetime
from enum import Enum
from typing import Optional, List
from decimal import Decimal
from pydantic import BaseModel, Field

from .workflow import OrderStatus


class PaymentMethod(str, Enum):
    CASH = "CASH"
    WALLET = "WALLET"


class PaymentStatus(str, Enum):
    PAID = "PAID"


class ListScope(str, Enum):
    """Order listing scopes."""
    ALL = "all"
    PRESSING = "pressing"
    PLANT = "plant"
    COLLECTED = "collected"


class OrderItemInput(BaseModel):
    """Schema for an order line submitted at creation."""
    label: str = Field(..., description="Free-text label, matched case-insensitively against the catalog")
    quantity: int = Field(..., description="Number of pieces, at least 1")
    price: Decimal = Field(..., description="Unit price for this order, at least 0")


class OrderCreate(BaseModel):
    """Schema for creating a new order. The pressing comes from the caller's token."""
    client_id: int
    items: List[OrderItemInput] = Field(default_factory=list, description="Order lines")


class StatusUpdate(BaseModel):
    """Schema for moving a single order to its next status."""
    status: OrderStatus
    plant_id: Optional[int] = Field(None, description="Required when status is RECEIVED_AT_PLANT")


class BulkStatusUpdate(BaseModel):
    """Schema for moving several orders that share a status to the same next status."""
    order_ids: List[int]
    new_status: OrderStatus
    plant_id: Optional[int] = Field(None, description="Required when new_status is RECEIVED_AT_PLANT")


class PaymentCreate(BaseModel):
    method: PaymentMethod


class OrderItem(BaseModel):
    id: int
    label: str
    quantity: int
    unit_price: Decimal

    class Config:
        from_attributes = True


class StatusHistoryEntry(BaseModel):
    """
    Schema for order timeline entries.

    Attributes:
        id (int): Entry ID
        status (OrderStatus): Status the order moved to
        changed_by_user_id (int): Acting staff member
        changed_by_user_name (str): Acting staff member's name (optional)
        changed_at (datetime): When the transition was applied
    """
    id: int
    status: OrderStatus
    changed_by_user_id: int
    changed_by_user_name: Optional[str] = None
    changed_at: datetime

    class Config:
        from_attributes = True


class Payment(BaseModel):
    id: int
    order_id: int
    amount: Decimal
    method: PaymentMethod
    status: PaymentStatus
    paid_at: Optional[datetime] = None
    created_at: datetime

    class Config:
        from_attributes = True


class Order(BaseModel):
    """
    Schema for order responses, includes all database fields.

    Attributes:
        id (int): Order's numeric identifier
        reference_code (str): Human-readable code used at the counter
        pressing_id (int): Pressing where the order was placed
        client_id (int): Owning client
        plant_id (int): Plant that received the order (None before RECEIVED_AT_PLANT)
        status (OrderStatus): Current workflow stage
        total_amount (Decimal): Total fixed at creation
        items (List[OrderItem]): Order lines
        payment (Payment): Payment, once recorded
        status_history (List[StatusHistoryEntry]): Timeline, oldest first
        created_at (datetime): When the order was created
    """
    id: int
    reference_code: str
    pressing_id: int
    pressing_name: Optional[str] = None
    client_id: int
    client_name: Optional[str] = None
    plant_id: Optional[int] = None
    plant_name: Optional[str] = None
    status: OrderStatus
    total_amount: Decimal
    items: List[OrderItem] = Field(default_factory=list)
    payment: Optional[Payment] = None
    status_history: List[StatusHistoryEntry] = Field(default_factory=list)
    created_at: datetime

    class Config:
        from_attributes = True


class PressingItemCreate(BaseModel):
    label: str
    price: Decimal


class PressingItemUpdate(BaseModel):
    """Schema for updating a catalog entry. All fields are optional."""
    label: Optional[str] = None
    price: Optional[Decimal] = None


class PressingItem(BaseModel):
    id: int
    pressing_id: int
    label: str
    price: Decimal
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class PressingCreate(BaseModel):
    name: str
    address: Optional[str] = None
    active: bool = True
    min_order_amount: Optional[Decimal] = Field(None, ge=0)


class Pressing(PressingCreate):
    id: int
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class PlantCreate(BaseModel):
    name: str
    address: Optional[str] = None
    active: bool = True


class Plant(PlantCreate):
    id: int
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class ClientCreate(BaseModel):
    """Schema for creating a client. Supervisors always create in their own pressing."""
    full_name: str
    phone: Optional[str] = None
    pressing_id: Optional[int] = Field(None, description="Used for admins only")


class Client(BaseModel):
    id: int
    full_name: str
    phone: Optional[str] = None
    pressing_id: int
    created_at: datetime

    class Config:
        from_attributes = True

