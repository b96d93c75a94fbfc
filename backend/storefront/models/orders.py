"""
Pydantic Order and User Models
"""
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Optional, List
from pydantic import BaseModel, Field


class OrderStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"
    REFUNDED = "refunded"


class OrderItem(BaseModel):
    """Individual product line item."""
    product_id: str
    name: str
    price: Decimal = Field(ge=0, max_digits=12, decimal_places=2)
    quantity: int = Field(gt=0)


class CreateOrderInput(BaseModel):
    user_id: str
    items: List[OrderItem] = Field(min_length=1)
    shipping_address: Optional[str] = None


class Order(BaseModel):
    id: str = Field(pattern="^ord_")
    user_id: str
    items: List[OrderItem]
    shipping_address: Optional[str] = None
    total: Decimal = Field(ge=0, max_digits=12, decimal_places=2)
    status: OrderStatus
    created_at: datetime
    updated_at: Optional[datetime] = None


class CreateUserInput(BaseModel):
    email: str = Field(pattern=r"^[^@\s]+@[^@\s]+$")
    name: str = Field(min_length=1)


class UpdateUserInput(BaseModel):
    email: Optional[str] = Field(default=None, pattern=r"^[^@\s]+@[^@\s]+$")
    name: Optional[str] = Field(default=None, min_length=1)


class User(BaseModel):
    id: str = Field(pattern="^usr_")
    email: str
    name: str
    created_at: datetime
    updated_at: Optional[datetime] = None
