"""Shared fixtures: an in-memory SQLite store with the trigger catalog seeded."""

from __future__ import annotations

from typing import AsyncIterator, Callable, Optional

import pytest
import pytest_asyncio
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from foodlog.database import enable_sqlite_foreign_keys, init_db
from foodlog.services.dish_resolution import DishResolutionService
from foodlog.services.extraction import ExtractionOrchestrator
from foodlog.services.food_entry_repo import FoodEntryRepository
from foodlog.services.food_entry_service import FoodEntryService
from foodlog.services.identity import StaticIdentityProvider
from foodlog.services.oracles import StubExtractionOracle, StubTriggerOracle
from foodlog.services.trigger_catalog import TriggerCatalog, seed_trigger_catalog
from foodlog.services.trigger_prediction import TriggerOrchestrator

USER_ID = "11111111-1111-4111-8111-111111111111"
OTHER_USER_ID = "22222222-2222-4222-8222-222222222222"


@pytest_asyncio.fixture
async def engine():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    enable_sqlite_foreign_keys(engine)
    await init_db(engine)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture
async def db(engine) -> AsyncIterator[AsyncSession]:
    session_factory = async_sessionmaker(bind=engine, expire_on_commit=False)
    async with session_factory() as session:
        yield session


@pytest.fixture
def repo(db) -> FoodEntryRepository:
    return FoodEntryRepository(db)


@pytest_asyncio.fixture
async def catalog(repo) -> TriggerCatalog:
    return await seed_trigger_catalog(repo)


@pytest.fixture
def make_service(repo, catalog) -> Callable[..., FoodEntryService]:
    """Build a FoodEntryService for a user; oracles default to the keyword stubs."""

    def _make(
        user_id: Optional[str] = USER_ID,
        extraction_oracle=None,
        trigger_oracle=None,
    ) -> FoodEntryService:
        dish_resolution = DishResolutionService(repo, catalog)
        return FoodEntryService(
            repo=repo,
            identity=StaticIdentityProvider(user_id),
            catalog=catalog,
            extraction=ExtractionOrchestrator(extraction_oracle or StubExtractionOracle()),
            triggers=TriggerOrchestrator(trigger_oracle or StubTriggerOracle(), dish_resolution),
            dish_resolution=dish_resolution,
        )

    return _make


@pytest.fixture
def service(make_service) -> FoodEntryService:
    return make_service()


@pytest.fixture
def count_rows(db) -> Callable:
    """await count_rows("table", column=value) → number of matching rows."""

    async def _count(table: str, **filters: object) -> int:
        where = " AND ".join(f"{column} = :{column}" for column in filters) or "1 = 1"
        result = await db.execute(text(f"SELECT COUNT(*) FROM {table} WHERE {where}"), filters)
        return result.scalar_one()

    return _count
