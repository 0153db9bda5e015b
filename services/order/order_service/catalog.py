"""
Catalog — 商品・顧客の参照 (読み取り専用)

注文集約に明細を追加する前に呼ぶ。注文トランザクションの中では使わない。
返す Product はその時点の価格のスナップショット。
"""

import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from .aggregate import Product
from .errors import CustomerNotFoundError, ProductNotFoundError
from .schema import customers, inventory, products

logger = logging.getLogger(__name__)


def _to_product(row) -> Product:
    return Product(
        product_id=row.product_id,
        name=row.product_name,
        unit_price=row.price,
        category=row.category,
    )


class Catalog:
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self.session_factory = session_factory

    async def resolve_product(self, product_id: int) -> Product:
        async with self.session_factory() as session:
            result = await session.execute(
                select(products).where(products.c.product_id == product_id)
            )
            row = result.fetchone()
        if not row:
            raise ProductNotFoundError(product_id)
        return _to_product(row)

    async def resolve_customer(self, customer_id: int) -> int:
        async with self.session_factory() as session:
            result = await session.execute(
                select(customers.c.customer_id).where(
                    customers.c.customer_id == customer_id
                )
            )
            found = result.scalar_one_or_none()
        if found is None:
            raise CustomerNotFoundError(customer_id)
        return found

    async def list_products(self, category: str | None = None) -> list[Product]:
        stmt = select(products).order_by(products.c.product_name)
        if category is not None:
            stmt = stmt.where(products.c.category == category)
        async with self.session_factory() as session:
            result = await session.execute(stmt)
            return [_to_product(row) for row in result.fetchall()]

    async def list_categories(self) -> list[str]:
        async with self.session_factory() as session:
            result = await session.execute(
                select(products.c.category)
                .where(products.c.category.is_not(None))
                .distinct()
                .order_by(products.c.category)
            )
            return list(result.scalars().all())

    async def low_stock_products(self, threshold: int) -> list[dict]:
        """在庫数が threshold 未満の商品 (在庫数付き)"""
        async with self.session_factory() as session:
            result = await session.execute(
                select(products, inventory.c.quantity_in_stock)
                .join(inventory, products.c.product_id == inventory.c.product_id)
                .where(inventory.c.quantity_in_stock < threshold)
                .order_by(inventory.c.quantity_in_stock, products.c.product_name)
            )
            rows = result.fetchall()

        low_stock = []
        for row in rows:
            logger.info(
                "Low stock: %s (product_id=%s, in stock=%s)",
                row.product_name,
                row.product_id,
                row.quantity_in_stock,
            )
            low_stock.append(
                {
                    "product": _to_product(row),
                    "quantity_in_stock": row.quantity_in_stock,
                }
            )
        return low_stock
