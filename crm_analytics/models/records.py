"""
Transactional Records

Read-only input records consumed by the aggregation engine. Records are
validated on construction, so dicts from any data source (REST payloads,
database rows, fixtures) can be passed straight to `Model.model_validate`.
"""

from datetime import date, datetime
from enum import Enum
from typing import Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator

from crm_analytics.metrics.primitives import as_utc


class OrderStatus(str, Enum):
    """Order status enumeration"""
    PENDING = "pending"
    CONFIRMED = "confirmed"
    PROCESSING = "processing"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"


class PartnerPaymentStatus(str, Enum):
    """Settlement state of the cash a delivery partner collected"""
    NONE = "none"
    PENDING = "pending"
    RECEIVED = "received"


class Record(BaseModel):
    """Base class for immutable input records"""

    model_config = ConfigDict(frozen=True, extra="ignore")


def _utc(value: Optional[datetime]) -> Optional[datetime]:
    return as_utc(value) if value is not None else None


class Order(Record):
    id: str
    order_number: str
    status: OrderStatus
    total: float = Field(ge=0)
    created_at: datetime
    return_requested_at: Optional[datetime] = None
    delivery_partner_id: Optional[str] = None
    partner_payment_status: PartnerPaymentStatus = PartnerPaymentStatus.NONE
    partner_payment_amount: Optional[float] = None
    partner_payment_due_date: Optional[date] = None

    # Display-only fields for the order and payment reports
    customer_name: Optional[str] = None
    phone: Optional[str] = None
    district: Optional[str] = None
    payment_method: Optional[str] = None

    @field_validator("partner_payment_status", mode="before")
    @classmethod
    def default_payment_status(cls, v):
        return PartnerPaymentStatus.NONE if v is None else v

    @field_validator("created_at", "return_requested_at")
    @classmethod
    def normalize_instant(cls, v: Optional[datetime]) -> Optional[datetime]:
        return _utc(v)

    @property
    def is_delivered(self) -> bool:
        return self.status == OrderStatus.DELIVERED

    @property
    def is_returned(self) -> bool:
        return self.return_requested_at is not None


class OrderLineItem(Record):
    order_id: str
    product_id: str
    quantity: int = Field(ge=1)
    unit_price: float = Field(ge=0)


class Customer(Record):
    id: str
    total_orders: int = Field(default=0, ge=0)
    total_spent: float = Field(default=0.0, ge=0)
    is_premium: bool = False
    created_at: datetime
    full_name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None

    @field_validator("is_premium", mode="before")
    @classmethod
    def default_premium(cls, v):
        return False if v is None else v

    @field_validator("created_at")
    @classmethod
    def normalize_instant(cls, v: datetime) -> datetime:
        return as_utc(v)


class Product(Record):
    id: str
    name: str
    images: Tuple[str, ...] = ()
    stock_quantity: int = Field(default=0, ge=0)
    price: float = Field(default=0.0, ge=0)
    is_active: bool = True
    sku: Optional[str] = None
    category: Optional[str] = None

    @field_validator("images", mode="before")
    @classmethod
    def default_images(cls, v):
        return () if v is None else v


class AbandonedCart(Record):
    id: Optional[str] = None
    cart_total: float = 0.0
    is_recovered: bool = False
    created_at: Optional[datetime] = None

    @field_validator("cart_total", mode="before")
    @classmethod
    def default_total(cls, v):
        return 0.0 if v is None else v

    @field_validator("is_recovered", mode="before")
    @classmethod
    def default_recovered(cls, v):
        return False if v is None else v


class DeliveryPartner(Record):
    id: str
    name: str
    is_active: bool = True
