"""
Test Suite Configuration
"""
from datetime import date, datetime, timezone
from typing import Callable

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from crm_analytics.aggregation.engine import AggregationEngine
from crm_analytics.aggregation.period import ReportingPeriod
from crm_analytics.config import Settings, get_settings
from crm_analytics.data.generators import DemoDataGenerator, DemoDataset
from crm_analytics.database.models import Base
from crm_analytics.models.records import (
    AbandonedCart,
    Customer,
    DeliveryPartner,
    Order,
    OrderLineItem,
    Product,
)
from crm_analytics.sources.memory import InMemoryDataSource

FIXED_NOW = datetime(2025, 1, 8, 12, 0, tzinfo=timezone.utc)


def utc(year: int, month: int, day: int, hour: int = 12, minute: int = 0) -> datetime:
    return datetime(year, month, day, hour, minute, tzinfo=timezone.utc)


@pytest.fixture(autouse=True)
def fresh_settings():
    """Each test sees settings built from its own environment"""
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def test_settings() -> Settings:
    """Create test settings"""
    return Settings(
        APP_ENV="testing",
        DEBUG=True,
    )


@pytest.fixture
def make_order() -> Callable[..., Order]:
    """Factory for orders with sensible defaults"""
    counter = {"n": 0}

    def _make(**overrides) -> Order:
        counter["n"] += 1
        values = {
            "id": f"ord-{counter['n']}",
            "order_number": f"ORD-{counter['n']:03d}",
            "status": "pending",
            "total": 100.0,
            "created_at": utc(2025, 1, 2),
        }
        values.update(overrides)
        return Order.model_validate(values)

    return _make


@pytest.fixture
def engine() -> AggregationEngine:
    """Engine bucketing in UTC with a fixed clock"""
    return AggregationEngine(tz=timezone.utc, top_n=10, low_stock_threshold=5, clock=lambda: FIXED_NOW)


@pytest.fixture
def week_period() -> ReportingPeriod:
    return ReportingPeriod(date(2025, 1, 1), date(2025, 1, 7))


@pytest.fixture
def scenario_orders(make_order) -> list:
    """Two delivered orders on Jan 2 and a pending one on Jan 3"""
    return [
        make_order(status="delivered", total=1000, created_at=utc(2025, 1, 2, 9)),
        make_order(status="pending", total=500, created_at=utc(2025, 1, 3, 15)),
        make_order(status="delivered", total=2000, created_at=utc(2025, 1, 2, 18)),
    ]


@pytest.fixture
def sample_products() -> list:
    return [
        Product(id="A", name="Canvas Tote", images=["a.jpg"], stock_quantity=3, price=100),
        Product(id="B", name="Leather Satchel", images=None, stock_quantity=0, price=300),
        Product(id="C", name="Silk Scarf", stock_quantity=40, price=50),
        Product(id="D", name="Retired Clutch", stock_quantity=0, price=80, is_active=False),
    ]


@pytest.fixture
def sample_line_items() -> list:
    return [
        OrderLineItem(order_id="o1", product_id="A", quantity=2, unit_price=100),
        OrderLineItem(order_id="o2", product_id="B", quantity=1, unit_price=300),
        OrderLineItem(order_id="o3", product_id="A", quantity=1, unit_price=100),
    ]


@pytest.fixture
def sample_customers() -> list:
    return [
        Customer(id="c1", full_name="Amina Rahman", email="amina@example.com",
                 total_orders=3, total_spent=900, is_premium=True, created_at=utc(2024, 6, 1)),
        Customer(id="c2", full_name="Bilal Khan", email="bilal@example.com",
                 total_orders=1, total_spent=1500, created_at=utc(2025, 1, 3)),
        Customer(id="c3", full_name="Chandni Das", email=None,
                 total_orders=2, total_spent=900, is_premium=None, created_at=utc(2025, 1, 1, 0)),
    ]


@pytest.fixture
def sample_partners() -> list:
    return [
        DeliveryPartner(id="p1", name="Pathao"),
        DeliveryPartner(id="p2", name="Steadfast"),
        DeliveryPartner(id="p3", name="Dormant Courier", is_active=False),
    ]


@pytest.fixture
def sample_carts() -> list:
    return [
        AbandonedCart(id="cart-1", cart_total=250),
        AbandonedCart(id="cart-2", cart_total=None),
        AbandonedCart(id="cart-3", cart_total=999, is_recovered=True),
    ]


@pytest.fixture
def sample_source(
    scenario_orders, sample_line_items, sample_customers, sample_products, sample_carts, sample_partners
) -> InMemoryDataSource:
    return InMemoryDataSource(
        orders=scenario_orders,
        order_items=sample_line_items,
        customers=sample_customers,
        products=sample_products,
        abandoned_carts=sample_carts,
        delivery_partners=sample_partners,
    )


@pytest.fixture(scope="session")
def demo_dataset() -> DemoDataset:
    """Small generated storefront, identical for every test run"""
    return DemoDataGenerator(seed=7, now=FIXED_NOW).generate_all(
        n_customers=40, n_products=25, n_orders=200, n_abandoned_carts=20, days=30
    )


@pytest_asyncio.fixture
async def sqlite_session_factory(tmp_path):
    """Session factory over a fresh file-backed SQLite database"""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'storefront.db'}", echo=False)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield async_sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False)

    await engine.dispose()
