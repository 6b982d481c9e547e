"""
Database Seeding

Loads a generated demo dataset into the storefront tables, for local
development databases and tests.
"""

from typing import Dict, List

import structlog
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from crm_analytics.data.generators import DemoDataset
from crm_analytics.database.models import (
    AbandonedCartRow,
    CustomerRow,
    DeliveryPartnerRow,
    OrderItemRow,
    OrderRow,
    ProductRow,
)

logger = structlog.get_logger(__name__)


def dataset_rows(dataset: DemoDataset) -> Dict[str, List]:
    """Map each collection of the dataset to ORM rows, in insert order"""
    return {
        "delivery_partners": [
            DeliveryPartnerRow(**p.model_dump()) for p in dataset.delivery_partners
        ],
        "customers": [CustomerRow(**c.model_dump()) for c in dataset.customers],
        "products": [
            ProductRow(**p.model_dump(exclude={"images"}), images=list(p.images))
            for p in dataset.products
        ],
        "orders": [
            OrderRow(
                **o.model_dump(exclude={"partner_payment_status"}),
                partner_payment_status=o.partner_payment_status.value,
            )
            for o in dataset.orders
        ],
        "order_items": [OrderItemRow(**i.model_dump()) for i in dataset.order_items],
        "abandoned_carts": [AbandonedCartRow(**c.model_dump()) for c in dataset.abandoned_carts],
    }


async def seed_database(
    session_factory: async_sessionmaker[AsyncSession],
    dataset: DemoDataset,
) -> Dict[str, int]:
    """
    Insert every collection of the dataset in one transaction.

    Returns:
        Number of rows inserted per table
    """
    counts = {}
    async with session_factory() as session:
        async with session.begin():
            for table, rows in dataset_rows(dataset).items():
                session.add_all(rows)
                # Parents first so foreign keys resolve
                await session.flush()
                counts[table] = len(rows)

    logger.info("Demo data seeded", **counts)
    return counts
