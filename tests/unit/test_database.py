"""
Unit Tests - Database Connection
"""
import pytest

from crm_analytics.database import (
    check_database_health,
    close_database,
    create_tables,
    get_engine,
    get_session_factory,
    init_database,
)
from crm_analytics.database.seed import seed_database
from crm_analytics.sources.database import DatabaseDataSource


class TestConnectionLifecycle:
    """Tests for the global engine and session factory"""

    @pytest.mark.asyncio
    async def test_uninitialized(self):
        await close_database()
        with pytest.raises(RuntimeError):
            get_engine()
        health = await check_database_health()
        assert health["status"] == "unhealthy"

    @pytest.mark.asyncio
    async def test_init_seed_and_read(self, tmp_path, demo_dataset):
        engine = await init_database(f"sqlite+aiosqlite:///{tmp_path / 'crm.db'}")
        try:
            assert get_engine() is engine
            await create_tables(engine)
            await seed_database(get_session_factory(), demo_dataset)

            health = await check_database_health()
            assert health["status"] == "healthy"
            assert health["latency_ms"] >= 0

            # Falls back to the global session factory
            partners = await DatabaseDataSource().fetch_delivery_partners()
            assert len(partners) == 4
        finally:
            await close_database()

        with pytest.raises(RuntimeError):
            get_session_factory()
