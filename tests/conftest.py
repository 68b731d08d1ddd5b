from datetime import date

import pytest
import structlog
from sqlalchemy.ext.asyncio import create_async_engine

from tripfood.application.services import (
    Repositories,
    Services,
    create_repositories,
    create_services,
)
from tripfood.infrastructure.database.database import SQLRecordStore, init_async_db
from tripfood.infrastructure.database.store import InMemoryRecordStore

BEACH_WEEK_START = date(2024, 7, 1)
BEACH_WEEK_END = date(2024, 7, 7)


@pytest.fixture(autouse=True)
def reset_structlog():
    yield
    structlog.reset_defaults()


@pytest.fixture
async def sql_store(tmp_path):
    """A record store on a throwaway SQLite file."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'tripfood.db'}")
    await init_async_db(engine)
    yield SQLRecordStore(engine)
    await engine.dispose()


@pytest.fixture
def memory_store() -> InMemoryRecordStore:
    return InMemoryRecordStore()


@pytest.fixture(params=["memory", "sql"])
async def store(request, tmp_path):
    """Every record store implementation, one test run each."""
    if request.param == "memory":
        yield InMemoryRecordStore()
        return

    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'store.db'}")
    await init_async_db(engine)
    yield SQLRecordStore(engine)
    await engine.dispose()


@pytest.fixture
def repositories(store) -> Repositories:
    return create_repositories(store)


@pytest.fixture
def services(repositories: Repositories) -> Services:
    return create_services(repositories)


@pytest.fixture
async def beach_week(services: Services):
    return await services.trips.create_trip(
        name="Beach Week",
        start_date=BEACH_WEEK_START,
        end_date=BEACH_WEEK_END,
        description="Seven days at the coast",
    )
