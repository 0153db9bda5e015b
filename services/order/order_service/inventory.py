"""
Inventory — 在庫減算 (Inventory Adjuster)

注文トランザクションの内側で呼ばれる。自分ではコミットもロールバックもしない。

減算は 1 本の条件付き UPDATE で行う:

    UPDATE inventory
    SET quantity_in_stock = quantity_in_stock - :qty
    WHERE product_id = :pid AND quantity_in_stock >= :qty

在庫の確認と書き込みが同じ行ロックの下で行われるため、
同じ商品への同時注文があっても在庫を売り越さない (lost update が起きない)。

更新行数が 0 の場合の扱いはポリシーで決まる:
  STRICT  (既定) → StockExhaustedError を送出し、注文全体をロールバックさせる
  LENIENT        → 警告ログを出して注文はそのまま確定する
"""

import enum
import logging

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from .errors import StockExhaustedError
from .schema import inventory

logger = logging.getLogger(__name__)


class InventoryPolicy(str, enum.Enum):
    STRICT = "strict"
    LENIENT = "lenient"


class InventoryAdjuster:
    def __init__(self, policy: InventoryPolicy = InventoryPolicy.STRICT) -> None:
        self.policy = InventoryPolicy(policy)

    async def decrement(
        self,
        session: AsyncSession,
        product_id: int,
        quantity: int,
    ) -> bool:
        """
        在庫を quantity だけ減らす。

        減算できたら True。LENIENT で減算できなかった場合は False。
        """
        result = await session.execute(
            update(inventory)
            .where(
                inventory.c.product_id == product_id,
                inventory.c.quantity_in_stock >= quantity,
            )
            .values(quantity_in_stock=inventory.c.quantity_in_stock - quantity)
        )
        if result.rowcount == 1:
            return True

        available = await self.current_stock(session, product_id)
        if self.policy is InventoryPolicy.STRICT:
            raise StockExhaustedError(product_id, quantity, available)

        logger.warning(
            "Stock not updated for product_id=%s (requested=%s, available=%s); "
            "committing order anyway",
            product_id,
            quantity,
            available,
        )
        return False

    async def current_stock(self, session: AsyncSession, product_id: int) -> int | None:
        result = await session.execute(
            select(inventory.c.quantity_in_stock).where(
                inventory.c.product_id == product_id
            )
        )
        return result.scalar_one_or_none()
