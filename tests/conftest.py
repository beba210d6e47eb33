from datetime import datetime, timedelta
from decimal import Decimal

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from parking.database import init_db
from parking.tariff import PricingPolicy


def _make_policy(
    grace: int = 0,
    block: int = 60,
    block_value: str = "5.00",
    unit: int = 30,
    unit_value: str = "2.00",
    effective_from: datetime = datetime(2024, 1, 1),
    effective_to=None,
) -> PricingPolicy:
    return PricingPolicy(
        effective_from=effective_from,
        effective_to=effective_to,
        grace_period=timedelta(minutes=grace),
        initial_block=timedelta(minutes=block),
        initial_block_value=Decimal(block_value),
        increment_unit=timedelta(minutes=unit),
        increment_value=Decimal(unit_value),
    )


@pytest.fixture
def make_policy():
    return _make_policy


@pytest.fixture
def policy(make_policy) -> PricingPolicy:
    return make_policy()


@pytest_asyncio.fixture
async def engine():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    await init_db(engine)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture
async def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session
