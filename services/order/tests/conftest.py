import os

# main.py reads DATABASE_URL at import time; endpoint tests override every dependency
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite://")

from decimal import Decimal

import pytest
import pytest_asyncio
from redis.exceptions import ConnectionError as RedisConnectionError
from sqlalchemy import func, insert, select
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine

from order_service.aggregate import Product
from order_service.schema import customers, inventory, metadata, products


@pytest_asyncio.fixture
async def engine(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'orders.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, expire_on_commit=False)


@pytest_asyncio.fixture
async def seeded(engine):
    """
    customers: 7, 8
    products:  A 10.00 / B 5.00 / C 2.50 / D 1.00 (D has no inventory record)
    stock:     A 100 / B 100 / C 10
    """
    async with engine.begin() as conn:
        await conn.execute(
            insert(customers),
            [
                {"customer_id": 7, "customer_name": "Alice", "email": "alice@example.com"},
                {"customer_id": 8, "customer_name": "Bob", "email": "bob@example.com"},
            ],
        )
        await conn.execute(
            insert(products),
            [
                {"product_id": 1, "product_name": "A", "price": Decimal("10.00"), "category": "tools"},
                {"product_id": 2, "product_name": "B", "price": Decimal("5.00"), "category": "tools"},
                {"product_id": 3, "product_name": "C", "price": Decimal("2.50"), "category": "garden"},
                {"product_id": 4, "product_name": "D", "price": Decimal("1.00"), "category": "garden"},
            ],
        )
        await conn.execute(
            insert(inventory),
            [
                {"product_id": 1, "quantity_in_stock": 100},
                {"product_id": 2, "quantity_in_stock": 100},
                {"product_id": 3, "quantity_in_stock": 10},
            ],
        )
    return engine


@pytest.fixture
def product_a():
    return Product(product_id=1, name="A", unit_price=Decimal("10.00"), category="tools")


@pytest.fixture
def product_b():
    return Product(product_id=2, name="B", unit_price=Decimal("5.00"), category="tools")


@pytest.fixture
def product_c():
    return Product(product_id=3, name="C", unit_price=Decimal("2.50"), category="garden")


@pytest.fixture
def product_d():
    return Product(product_id=4, name="D", unit_price=Decimal("1.00"), category="garden")


@pytest.fixture
def stock_of(engine):
    async def _stock_of(product_id):
        async with engine.connect() as conn:
            result = await conn.execute(
                select(inventory.c.quantity_in_stock).where(
                    inventory.c.product_id == product_id
                )
            )
            return result.scalar_one_or_none()

    return _stock_of


@pytest.fixture
def row_count(engine):
    async def _row_count(table):
        async with engine.connect() as conn:
            result = await conn.execute(select(func.count()).select_from(table))
            return result.scalar_one()

    return _row_count


class FakeRedis:
    def __init__(self, fail_with=None):
        self.published = []
        self.fail_with = fail_with

    async def publish(self, channel, message):
        if self.fail_with is not None:
            raise self.fail_with
        self.published.append((channel, message))
        return 1


@pytest.fixture
def fake_redis():
    return FakeRedis()


@pytest.fixture
def failing_redis():
    return FakeRedis(fail_with=RedisConnectionError("Connection refused"))
