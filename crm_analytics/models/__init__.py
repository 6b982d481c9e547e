"""
Record and Derived Types
"""
from .records import (
    AbandonedCart,
    Customer,
    DeliveryPartner,
    Order,
    OrderLineItem,
    OrderStatus,
    PartnerPaymentStatus,
    Product,
)
from .derived import (
    DailyRevenuePoint,
    DashboardSnapshot,
    MetricsSnapshot,
    PartnerPerformance,
    RankedCustomer,
    RankedProduct,
)

__all__ = [
    "AbandonedCart",
    "Customer",
    "DeliveryPartner",
    "Order",
    "OrderLineItem",
    "OrderStatus",
    "PartnerPaymentStatus",
    "Product",
    "DailyRevenuePoint",
    "DashboardSnapshot",
    "MetricsSnapshot",
    "PartnerPerformance",
    "RankedCustomer",
    "RankedProduct",
]
