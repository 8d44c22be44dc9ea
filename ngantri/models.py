"""
Data models for the Ngantri food-court ordering system
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Dict, List, Optional, Any

import uuid6
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy import (
    Column, Integer, String, DateTime, Text, Boolean, ForeignKey, UniqueConstraint
)
from sqlalchemy.orm import declarative_base

Base = declarative_base()


def new_id() -> str:
    """Time-sortable UUIDv7 primary key"""
    return str(uuid6.uuid7())


def utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


class OrderStatus(str, Enum):
    """Order status enumeration"""
    PENDING = "pending"
    ACCEPTED = "accepted"
    PREPARING = "preparing"
    READY = "ready"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class PaymentStatus(str, Enum):
    """Payment status enumeration"""
    PENDING = "pending"
    PAID = "paid"
    EXPIRED = "expired"
    FAILED = "failed"
    CANCELLED = "cancelled"


# SQLAlchemy Models
class TimestampMixin:
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)
    deleted_at = Column(DateTime, nullable=True)


class Merchant(TimestampMixin, Base):
    """Registered food court vendor"""
    __tablename__ = "merchants"

    id = Column(String(36), primary_key=True, default=new_id)
    phone_number = Column(String(20), unique=True, nullable=False)
    password_hash = Column(String(255), nullable=False)
    merchant_number = Column(Integer, unique=True, nullable=False)
    name = Column(String(100), nullable=False)
    image_url = Column(String(255), nullable=True)
    description = Column(Text, nullable=True)
    is_available = Column(Boolean, nullable=False, default=True)


class MenuCategory(TimestampMixin, Base):
    """Organizational grouping of a merchant's menus"""
    __tablename__ = "menu_categories"
    __table_args__ = (UniqueConstraint("merchant_id", "name"),)

    id = Column(String(36), primary_key=True, default=new_id)
    merchant_id = Column(String(36), ForeignKey("merchants.id"), nullable=False, index=True)
    name = Column(String(100), nullable=False)


class Menu(TimestampMixin, Base):
    """Individual food item with pricing"""
    __tablename__ = "menus"

    id = Column(String(36), primary_key=True, default=new_id)
    merchant_id = Column(String(36), ForeignKey("merchants.id"), nullable=False, index=True)
    category_id = Column(String(36), ForeignKey("menu_categories.id"), nullable=False, index=True)
    name = Column(String(100), nullable=False)
    image_url = Column(String(255), nullable=True)
    description = Column(Text, nullable=True)
    price = Column(Integer, nullable=False)  # IDR
    is_available = Column(Boolean, nullable=False, default=True)


class BuyerSession(TimestampMixin, Base):
    """Anonymous customer session"""
    __tablename__ = "buyer_sessions"

    id = Column(String(36), primary_key=True, default=new_id)
    table_number = Column(Integer, nullable=True)


class CartItem(TimestampMixin, Base):
    """Shopping cart contents before checkout"""
    __tablename__ = "cart_items"

    id = Column(String(36), primary_key=True, default=new_id)
    session_id = Column(String(36), ForeignKey("buyer_sessions.id"), nullable=False, index=True)
    merchant_id = Column(String(36), ForeignKey("merchants.id"), nullable=False)
    menu_id = Column(String(36), ForeignKey("menus.id"), nullable=False)
    quantity = Column(Integer, nullable=False, default=1)
    price_snapshot = Column(Integer, nullable=False)  # IDR price when added
    notes = Column(Text, nullable=True)


class Order(TimestampMixin, Base):
    """Confirmed order for a single merchant"""
    __tablename__ = "orders"

    id = Column(String(36), primary_key=True, default=new_id)
    session_id = Column(String(36), ForeignKey("buyer_sessions.id"), nullable=False, index=True)
    merchant_id = Column(String(36), ForeignKey("merchants.id"), nullable=False, index=True)
    status = Column(String(20), nullable=False, default=OrderStatus.PENDING.value)
    total_amount = Column(Integer, nullable=False)  # IDR
    customer_name = Column(String(100), nullable=True)
    customer_phone = Column(String(20), nullable=True)
    notes = Column(Text, nullable=True)


class OrderItem(TimestampMixin, Base):
    """Line item of an order, denormalized for history"""
    __tablename__ = "order_items"

    id = Column(String(36), primary_key=True, default=new_id)
    order_id = Column(String(36), ForeignKey("orders.id"), nullable=False, index=True)
    menu_id = Column(String(36), ForeignKey("menus.id"), nullable=False)
    menu_name = Column(String(100), nullable=False)
    menu_image_url = Column(String(255), nullable=True)
    quantity = Column(Integer, nullable=False)
    unit_price = Column(Integer, nullable=False)
    subtotal = Column(Integer, nullable=False)


class OrderPayment(TimestampMixin, Base):
    """Payment attempt for an order (Xendit invoice or cash)"""
    __tablename__ = "order_payments"

    id = Column(String(36), primary_key=True, default=new_id)
    order_id = Column(String(36), ForeignKey("orders.id"), nullable=False, index=True)
    xendit_invoice_id = Column(String(255), unique=True, nullable=True)
    payment_url = Column(String(500), nullable=True)
    amount = Column(Integer, nullable=False)
    status = Column(String(20), nullable=False, default=PaymentStatus.PENDING.value)
    payment_method = Column(String(50), nullable=True)
    paid_at = Column(DateTime, nullable=True)
    expires_at = Column(DateTime, nullable=True)
    webhook_data = Column(Text, nullable=True)


# Pydantic Models for API
class SessionCreate(BaseModel):
    table_number: Optional[int] = Field(None, ge=1)


class SessionResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    table_number: Optional[int] = None
    created_at: datetime


class CartItemAdd(BaseModel):
    menu_id: str
    quantity: int = Field(1, ge=1, le=99)
    notes: Optional[str] = Field(None, max_length=500)


class CartItemUpdate(BaseModel):
    quantity: int = Field(..., ge=1, le=99)
    notes: Optional[str] = Field(None, max_length=500)


class CartBulkRequest(BaseModel):
    items: List[CartItemAdd]
    replace: bool = False


class CartItemResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    merchant_id: str
    menu_id: str
    quantity: int
    price_snapshot: int
    notes: Optional[str] = None


class MerchantRegister(BaseModel):
    phone_number: str
    password: str = Field(..., min_length=8)
    name: str = Field(..., min_length=1, max_length=100)
    description: Optional[str] = Field(None, max_length=500)
    image_url: Optional[str] = Field(None, max_length=255)


class MerchantLogin(BaseModel):
    phone_number: str
    password: str = Field(..., min_length=1)


class MerchantProfileUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    description: Optional[str] = Field(None, max_length=500)
    image_url: Optional[str] = Field(None, max_length=255)
    is_available: Optional[bool] = None


class PasswordChange(BaseModel):
    current_password: str = Field(..., min_length=1)
    new_password: str = Field(..., min_length=8)


class MerchantResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    phone_number: str
    merchant_number: int
    name: str
    image_url: Optional[str] = None
    description: Optional[str] = None
    is_available: bool
    created_at: datetime


class PublicMerchantResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    merchant_number: int
    name: str
    image_url: Optional[str] = None
    description: Optional[str] = None
    is_available: bool


class CategoryCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)


class CategoryResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    merchant_id: str
    name: str


class MenuCreate(BaseModel):
    category_id: str
    name: str = Field(..., min_length=1, max_length=100)
    description: Optional[str] = Field(None, max_length=500)
    image_url: Optional[str] = Field(None, max_length=255)
    price: int = Field(..., ge=0)
    is_available: bool = True


class MenuUpdate(BaseModel):
    category_id: Optional[str] = None
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    description: Optional[str] = Field(None, max_length=500)
    image_url: Optional[str] = Field(None, max_length=255)
    price: Optional[int] = Field(None, ge=0)
    is_available: Optional[bool] = None


class MenuResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    merchant_id: str
    category_id: str
    name: str
    image_url: Optional[str] = None
    description: Optional[str] = None
    price: int
    is_available: bool


class AvailabilityUpdate(BaseModel):
    is_available: bool


class OrderStatusUpdate(BaseModel):
    status: OrderStatus


class PaymentStatusUpdate(BaseModel):
    status: PaymentStatus = PaymentStatus.PAID


class CancelOrderRequest(BaseModel):
    session_id: str = Field(..., min_length=1)


class PaymentCreateRequest(BaseModel):
    order_id: str = Field(..., min_length=1)


class AdminLogin(BaseModel):
    username: str = Field(..., min_length=1)
    password: str = Field(..., min_length=1)


class OrderItemResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    menu_id: str
    menu_name: str
    menu_image_url: Optional[str] = None
    quantity: int
    unit_price: int
    subtotal: int


class OrderResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    session_id: str
    merchant_id: str
    status: OrderStatus
    total_amount: int
    customer_name: Optional[str] = None
    customer_phone: Optional[str] = None
    notes: Optional[str] = None
    created_at: datetime
    updated_at: datetime


class OrderDetailResponse(OrderResponse):
    items: List[OrderItemResponse] = []
    payment_status: str = "unpaid"
    merchant: Dict[str, Any] = {}


class PaymentResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    order_id: str
    xendit_invoice_id: Optional[str] = None
    payment_url: Optional[str] = None
    amount: int
    status: PaymentStatus
    payment_method: Optional[str] = None
    paid_at: Optional[datetime] = None
    expires_at: Optional[datetime] = None
