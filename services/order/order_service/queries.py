"""
Order Service — クエリハンドラ (読み取り側)

orders / orderlines / products を結合し、顧客ごとの注文履歴を
(注文, 明細) 1 行の非正規化された形で返す。
同じ注文の行には注文単位の金額が繰り返し入る (表示用であり、重複ではない)。

並び順: order_date 降順 → order_id 昇順 → product_name 昇順
"""

import logging
from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel
from sqlalchemy import Select, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from .errors import HistoryReadError
from .schema import orderlines, orders, products

logger = logging.getLogger(__name__)


class OrderHistoryRow(BaseModel):
    order_id: int
    order_date: datetime
    net_amount: Decimal
    tax: Decimal
    total_amount: Decimal
    product_name: str
    quantity: int
    unit_price: Decimal


def _history_select() -> Select:
    return select(
        orders.c.order_id,
        orders.c.order_date,
        orders.c.net_amount,
        orders.c.tax,
        orders.c.total_amount,
        products.c.product_name,
        orderlines.c.quantity,
        orderlines.c.unit_price,
    ).select_from(
        orders.join(orderlines, orders.c.order_id == orderlines.c.order_id).join(
            products, orderlines.c.product_id == products.c.product_id
        )
    )


class OrderHistoryReader:
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self.session_factory = session_factory

    async def get_order_history(self, customer_id: int) -> list[OrderHistoryRow]:
        """顧客の注文履歴。注文がなければ空リスト。"""
        stmt = (
            _history_select()
            .where(orders.c.customer_id == customer_id)
            .order_by(
                orders.c.order_date.desc(),
                orders.c.order_id,
                products.c.product_name,
            )
        )
        return await self._fetch(stmt, f"customer {customer_id}")

    async def get_order(self, order_id: int) -> list[OrderHistoryRow]:
        """1 注文分の行。存在しなければ空リスト。"""
        stmt = (
            _history_select()
            .where(orders.c.order_id == order_id)
            .order_by(products.c.product_name)
        )
        return await self._fetch(stmt, f"order {order_id}")

    async def _fetch(self, stmt: Select, subject: str) -> list[OrderHistoryRow]:
        try:
            async with self.session_factory() as session:
                result = await session.execute(stmt)
                rows = result.fetchall()
        except SQLAlchemyError as e:
            logger.warning("Failed to read order history for %s: %s", subject, e)
            raise HistoryReadError(f"Failed to read order history for {subject}") from e

        return [
            OrderHistoryRow(
                order_id=row.order_id,
                order_date=row.order_date,
                net_amount=row.net_amount,
                tax=row.tax,
                total_amount=row.total_amount,
                product_name=row.product_name,
                quantity=row.quantity,
                unit_price=row.unit_price,
            )
            for row in rows
        ]
