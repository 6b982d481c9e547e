"""
Demo Database Seeder

Creates the storefront tables in the configured database and fills them
with a generated dataset.

Usage:
    python scripts/seed_demo_db.py --orders 5000 --seed 7
"""

import argparse
import asyncio

from crm_analytics.config.logging import configure_logging
from crm_analytics.data.generators import DemoDataGenerator
from crm_analytics.database.connection import (
    close_database,
    create_tables,
    get_session_factory,
    init_database,
)
from crm_analytics.database.seed import seed_database


async def main(orders: int, seed: int) -> None:
    engine = await init_database()
    try:
        await create_tables(engine)
        dataset = DemoDataGenerator(seed=seed).generate_all(n_orders=orders)
        counts = await seed_database(get_session_factory(), dataset)
        for table, count in counts.items():
            print(f"  {table}: {count:,} rows")
    finally:
        await close_database()


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Seed the storefront database with demo data")
    parser.add_argument("--orders", type=int, default=1000, help="Number of orders (default: 1000)")
    parser.add_argument("--seed", type=int, default=42, help="Random seed (default: 42)")
    args = parser.parse_args()

    configure_logging()
    asyncio.run(main(args.orders, args.seed))
