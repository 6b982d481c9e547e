"""
Database Data Source

Reads report inputs from the storefront tables. Every fetch opens its own
session so the dashboard service can run all fetches concurrently.
"""

from datetime import datetime
from typing import Callable, List, Optional

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from crm_analytics.database.connection import get_session_factory
from crm_analytics.database.models import (
    AbandonedCartRow,
    CustomerRow,
    DeliveryPartnerRow,
    OrderItemRow,
    OrderRow,
    ProductRow,
)
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

logger = structlog.get_logger(__name__)


class DatabaseDataSource(ReportDataSource):
    """
    Data source backed by SQLAlchemy async sessions.

    Example:
        source = DatabaseDataSource()
        orders = await source.fetch_orders(window.start, window.end)
    """

    def __init__(self, session_factory: Optional[async_sessionmaker[AsyncSession]] = None):
        self._session_factory = session_factory

    @property
    def session_factory(self) -> Callable[[], AsyncSession]:
        return self._session_factory or get_session_factory()

    async def _scalars(self, stmt) -> list:
        async with self.session_factory() as session:
            result = await session.execute(stmt)
            return list(result.scalars().all())

    async def fetch_orders(
        self,
        start: datetime,
        end: datetime,
        status: Optional[OrderStatus] = None,
    ) -> List[Order]:
        stmt = (
            select(OrderRow)
            .where(OrderRow.created_at >= as_utc(start), OrderRow.created_at <= as_utc(end))
            .order_by(OrderRow.created_at.desc())
        )
        if status is not None:
            stmt = stmt.where(OrderRow.status == status)
        rows = await self._scalars(stmt)
        logger.debug("Fetched orders", count=len(rows), status=status.value if status else None)
        return [row.to_record() for row in rows]

    async def fetch_order_items(self) -> List[OrderLineItem]:
        rows = await self._scalars(select(OrderItemRow).order_by(OrderItemRow.id))
        return [row.to_record() for row in rows]

    async def fetch_customers(self) -> List[Customer]:
        rows = await self._scalars(select(CustomerRow).order_by(CustomerRow.created_at, CustomerRow.id))
        return [row.to_record() for row in rows]

    async def fetch_products(self) -> List[Product]:
        rows = await self._scalars(select(ProductRow).order_by(ProductRow.created_at, ProductRow.id))
        return [row.to_record() for row in rows]

    async def fetch_abandoned_carts(self) -> List[AbandonedCart]:
        stmt = select(AbandonedCartRow).where(
            (AbandonedCartRow.is_recovered.is_(False)) | (AbandonedCartRow.is_recovered.is_(None))
        )
        rows = await self._scalars(stmt)
        return [row.to_record() for row in rows]

    async def fetch_delivery_partners(self) -> List[DeliveryPartner]:
        stmt = (
            select(DeliveryPartnerRow)
            .where(DeliveryPartnerRow.is_active.is_(True))
            .order_by(DeliveryPartnerRow.name)
        )
        rows = await self._scalars(stmt)
        return [row.to_record() for row in rows]
