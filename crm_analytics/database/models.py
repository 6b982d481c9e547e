"""
Database Models - Storefront Tables

Read models for the storefront tables the CRM dashboard reports on:

- orders / order_items: transactions and their lines
- customers: customer profiles with lifetime counters
- products: catalog with stock levels
- abandoned_carts: carts left before checkout
- delivery_partners: courier companies orders are dispatched to

Each row maps to its validated record type through `to_record()`.
"""

from datetime import date, datetime
from typing import List, Optional
import uuid

from sqlalchemy import (
    JSON,
    Boolean,
    Date,
    DateTime,
    Enum as SQLEnum,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    func,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from crm_analytics.models.records import (
    AbandonedCart,
    Customer,
    DeliveryPartner,
    Order,
    OrderLineItem,
    OrderStatus,
    Product,
)


def _uuid() -> str:
    return str(uuid.uuid4())


Money = Numeric(12, 2, asdecimal=False)


class Base(DeclarativeBase):
    """Base class for all database models"""
    pass


class DeliveryPartnerRow(Base):
    __tablename__ = "delivery_partners"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)

    def to_record(self) -> DeliveryPartner:
        return DeliveryPartner(id=self.id, name=self.name, is_active=bool(self.is_active))


class CustomerRow(Base):
    __tablename__ = "customers"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    full_name: Mapped[Optional[str]] = mapped_column(String(200))
    email: Mapped[Optional[str]] = mapped_column(String(255))
    phone: Mapped[Optional[str]] = mapped_column(String(50))
    total_orders: Mapped[int] = mapped_column(Integer, default=0)
    total_spent: Mapped[float] = mapped_column(Money, default=0)
    is_premium: Mapped[Optional[bool]] = mapped_column(Boolean, default=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())

    def to_record(self) -> Customer:
        return Customer(
            id=self.id,
            full_name=self.full_name,
            email=self.email,
            phone=self.phone,
            total_orders=self.total_orders or 0,
            total_spent=self.total_spent or 0,
            is_premium=self.is_premium,
            created_at=self.created_at,
        )


class ProductRow(Base):
    __tablename__ = "products"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    name: Mapped[str] = mapped_column(String(300), nullable=False)
    sku: Mapped[Optional[str]] = mapped_column(String(100))
    category: Mapped[Optional[str]] = mapped_column(String(100))
    images: Mapped[Optional[List[str]]] = mapped_column(JSON, default=list)
    stock_quantity: Mapped[int] = mapped_column(Integer, default=0)
    price: Mapped[float] = mapped_column(Money, default=0)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())

    def to_record(self) -> Product:
        return Product(
            id=self.id,
            name=self.name,
            sku=self.sku,
            category=self.category,
            images=self.images or (),
            stock_quantity=self.stock_quantity or 0,
            price=self.price or 0,
            is_active=bool(self.is_active),
        )


class OrderRow(Base):
    __tablename__ = "orders"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    order_number: Mapped[str] = mapped_column(String(50), unique=True, nullable=False)
    status: Mapped[OrderStatus] = mapped_column(
        SQLEnum(
            OrderStatus,
            name="order_status",
            values_callable=lambda enum: [member.value for member in enum],
        ),
        default=OrderStatus.PENDING,
        nullable=False,
    )
    total: Mapped[float] = mapped_column(Money, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    return_requested_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))

    delivery_partner_id: Mapped[Optional[str]] = mapped_column(ForeignKey("delivery_partners.id"))
    partner_payment_status: Mapped[Optional[str]] = mapped_column(String(20))
    partner_payment_amount: Mapped[Optional[float]] = mapped_column(Money)
    partner_payment_due_date: Mapped[Optional[date]] = mapped_column(Date)

    customer_name: Mapped[Optional[str]] = mapped_column(String(200))
    phone: Mapped[Optional[str]] = mapped_column(String(50))
    district: Mapped[Optional[str]] = mapped_column(String(100))
    payment_method: Mapped[Optional[str]] = mapped_column(String(30))

    __table_args__ = (
        Index("ix_orders_created_at", "created_at"),
        Index("ix_orders_status_created", "status", "created_at"),
    )

    def to_record(self) -> Order:
        return Order(
            id=self.id,
            order_number=self.order_number,
            status=self.status,
            total=self.total,
            created_at=self.created_at,
            return_requested_at=self.return_requested_at,
            delivery_partner_id=self.delivery_partner_id,
            partner_payment_status=self.partner_payment_status,
            partner_payment_amount=self.partner_payment_amount,
            partner_payment_due_date=self.partner_payment_due_date,
            customer_name=self.customer_name,
            phone=self.phone,
            district=self.district,
            payment_method=self.payment_method,
        )


class OrderItemRow(Base):
    __tablename__ = "order_items"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    order_id: Mapped[str] = mapped_column(ForeignKey("orders.id"), nullable=False)
    product_id: Mapped[str] = mapped_column(ForeignKey("products.id"), nullable=False)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    unit_price: Mapped[float] = mapped_column(Money, nullable=False)

    __table_args__ = (
        Index("ix_order_items_product", "product_id"),
    )

    def to_record(self) -> OrderLineItem:
        return OrderLineItem(
            order_id=self.order_id,
            product_id=self.product_id,
            quantity=self.quantity,
            unit_price=self.unit_price,
        )


class AbandonedCartRow(Base):
    __tablename__ = "abandoned_carts"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    cart_total: Mapped[Optional[float]] = mapped_column(Money)
    is_recovered: Mapped[Optional[bool]] = mapped_column(Boolean, default=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())

    def to_record(self) -> AbandonedCart:
        return AbandonedCart(
            id=self.id,
            cart_total=self.cart_total,
            is_recovered=self.is_recovered,
            created_at=self.created_at,
        )
