"""
In-Memory Data Source

Serves report inputs from record lists held in memory. Used for demo mode,
where the lists come from the synthetic generator, and in tests.
"""

from datetime import datetime
from typing import Iterable, List, Optional

from crm_analytics.metrics.primitives import as_utc
from crm_analytics.models.records import (
    AbandonedCart,
    Customer,
    DeliveryPartner,
    Order,
    OrderLineItem,
    OrderStatus,
    Product,
)
from crm_analytics.sources.base import ReportDataSource


class InMemoryDataSource(ReportDataSource):
    """
    Data source over plain record lists.

    Example:
        source = InMemoryDataSource(orders=orders, products=products)
        recent = await source.fetch_orders(start, end)
    """

    def __init__(
        self,
        orders: Iterable[Order] = (),
        order_items: Iterable[OrderLineItem] = (),
        customers: Iterable[Customer] = (),
        products: Iterable[Product] = (),
        abandoned_carts: Iterable[AbandonedCart] = (),
        delivery_partners: Iterable[DeliveryPartner] = (),
    ):
        self.orders: List[Order] = list(orders)
        self.order_items: List[OrderLineItem] = list(order_items)
        self.customers: List[Customer] = list(customers)
        self.products: List[Product] = list(products)
        self.abandoned_carts: List[AbandonedCart] = list(abandoned_carts)
        self.delivery_partners: List[DeliveryPartner] = list(delivery_partners)

    async def fetch_orders(
        self,
        start: datetime,
        end: datetime,
        status: Optional[OrderStatus] = None,
    ) -> List[Order]:
        start, end = as_utc(start), as_utc(end)
        # Newest first, like the admin console lists them
        matching = [
            o for o in self.orders
            if start <= o.created_at <= end and (status is None or o.status == status)
        ]
        return sorted(matching, key=lambda o: o.created_at, reverse=True)

    async def fetch_order_items(self) -> List[OrderLineItem]:
        return list(self.order_items)

    async def fetch_customers(self) -> List[Customer]:
        return list(self.customers)

    async def fetch_products(self) -> List[Product]:
        return list(self.products)

    async def fetch_abandoned_carts(self) -> List[AbandonedCart]:
        return [c for c in self.abandoned_carts if not c.is_recovered]

    async def fetch_delivery_partners(self) -> List[DeliveryPartner]:
        return [p for p in self.delivery_partners if p.is_active]
