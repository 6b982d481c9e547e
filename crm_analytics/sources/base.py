"""
Report Data Sources

Abstract query capability the dashboard reads its raw collections from. The
aggregation layer does not care whether records come from the database, a
REST backend or memory.
"""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import List, Optional

from crm_analytics.models.records import (
    AbandonedCart,
    Customer,
    DeliveryPartner,
    Order,
    OrderLineItem,
    OrderStatus,
    Product,
)


class ReportDataSource(ABC):
    """Abstract base class for report input providers"""

    @abstractmethod
    async def fetch_orders(
        self,
        start: datetime,
        end: datetime,
        status: Optional[OrderStatus] = None,
    ) -> List[Order]:
        """
        Orders created within [start, end].

        Args:
            start: Inclusive lower bound (aware)
            end: Inclusive upper bound (aware)
            status: Only return orders in this status when given
        """

    @abstractmethod
    async def fetch_order_items(self) -> List[OrderLineItem]:
        """All order line items, across all time"""

    @abstractmethod
    async def fetch_customers(self) -> List[Customer]:
        """All customers"""

    @abstractmethod
    async def fetch_products(self) -> List[Product]:
        """All products, in catalog order"""

    @abstractmethod
    async def fetch_abandoned_carts(self) -> List[AbandonedCart]:
        """Abandoned carts that were not recovered"""

    @abstractmethod
    async def fetch_delivery_partners(self) -> List[DeliveryPartner]:
        """Active delivery partners"""

    async def close(self) -> None:
        """Release any resources held by the source"""
