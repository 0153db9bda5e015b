"""
Order Service — コマンドハンドラ (書き込み側)

注文の確定は 1 つのトランザクションで次の 3 つをまとめて行う:

  ┌──────────────────────────────────────────────────────────┐
  │  1. orders にヘッダを INSERT (order_id を採番)             │
  │  2. orderlines に明細をまとめて INSERT (スナップショット単価) │
  │  3. inventory の在庫を明細ごとに減算                        │
  │     ├─ すべて成功 → COMMIT                                 │
  │     └─ どれか失敗 → ROLLBACK (ヘッダ・明細・在庫すべて元通り) │
  └──────────────────────────────────────────────────────────┘

失敗は OrderWriteError として送出し、step で失敗箇所を示す。
途中まで書き込まれた注文が呼び出し側から見えることはない。
"""

import json
import logging
from collections.abc import Callable
from datetime import datetime, timezone

import redis.asyncio as aioredis
from redis.exceptions import RedisError
from sqlalchemy import insert
from sqlalchemy.exc import (
    DBAPIError,
    IntegrityError,
    InterfaceError,
    OperationalError,
    SQLAlchemyError,
)
from sqlalchemy.exc import TimeoutError as PoolTimeoutError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from .aggregate import OrderAggregate
from .errors import (
    EmptyOrderError,
    OrderIntegrityError,
    OrderWriteError,
    StockExhaustedError,
    TransientStorageError,
)
from .events import OrderCreated, OrderLinePlaced
from .inventory import InventoryAdjuster
from .schema import orderlines, orders

logger = logging.getLogger(__name__)

STEP_HEADER = "insert_order_header"
STEP_LINES = "insert_order_lines"
STEP_INVENTORY = "adjust_inventory"
STEP_COMMIT = "commit"

ORDER_EVENTS_CHANNEL = "order_events"

# serialization_failure, deadlock_detected, lock_not_available, query_canceled
TRANSIENT_SQLSTATES = {"40001", "40P01", "55P03", "57014"}


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _sqlstate(exc: DBAPIError) -> str | None:
    orig = exc.orig
    return getattr(orig, "sqlstate", None) or getattr(orig, "pgcode", None)


def wrap_storage_error(step: str, exc: Exception) -> OrderWriteError:
    """ストレージ層の例外を retryable / non-retryable に振り分ける。"""
    if isinstance(exc, (OperationalError, InterfaceError, PoolTimeoutError, OSError)):
        return TransientStorageError(step, str(exc))
    if isinstance(exc, DBAPIError):
        if exc.connection_invalidated or _sqlstate(exc) in TRANSIENT_SQLSTATES:
            return TransientStorageError(step, str(exc))
        if isinstance(exc, IntegrityError):
            return OrderIntegrityError(step, str(exc.orig))
    return OrderIntegrityError(step, str(exc))


class OrderWriter:
    """
    注文の唯一の書き込み口。

    セッションは呼び出しごとに session_factory から取得し、
    成功・業務エラー・一時的エラーのどの経路でも必ず閉じる。
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        inventory: InventoryAdjuster | None = None,
        redis: aioredis.Redis | None = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.session_factory = session_factory
        self.inventory = inventory or InventoryAdjuster()
        self.redis = redis
        self.clock = clock

    async def create_order(self, order: OrderAggregate) -> int:
        """
        注文作成コマンド

        集約のヘッダ・明細・在庫減算をアトミックに確定し、採番された order_id を返す。
        """
        if order.is_empty:
            raise EmptyOrderError(order.customer_id)

        order_date = self.clock()
        step = STEP_HEADER
        try:
            async with self.session_factory() as session:
                async with session.begin():
                    # 1. ヘッダ
                    order_id = await self._insert_header(session, order, order_date)

                    # 2. 明細 (ヘッダの order_id を参照する)
                    step = STEP_LINES
                    await self._insert_lines(session, order_id, order)

                    # 3. 在庫減算 (明細の数量をそのまま使う)
                    step = STEP_INVENTORY
                    for line in order.lines:
                        await self.inventory.decrement(
                            session, line.product_id, line.quantity
                        )

                    step = STEP_COMMIT
        except StockExhaustedError as e:
            logger.warning(
                "Order for customer %s rolled back at step %s: %s",
                order.customer_id,
                step,
                e,
            )
            raise OrderIntegrityError(step, str(e)) from e
        except (SQLAlchemyError, OSError) as e:
            error = wrap_storage_error(step, e)
            logger.warning(
                "Order for customer %s rolled back at step %s (retryable=%s): %s",
                order.customer_id,
                step,
                error.retryable,
                e,
            )
            raise error from e

        logger.info(
            "Order created: order_id=%s customer_id=%s lines=%s total=%s",
            order_id,
            order.customer_id,
            len(order.lines),
            order.total_amount,
        )

        if self.redis is not None:
            await self._publish_order_created(order_id, order, order_date)

        return order_id

    async def _insert_header(
        self,
        session: AsyncSession,
        order: OrderAggregate,
        order_date: datetime,
    ) -> int:
        result = await session.execute(
            insert(orders)
            .values(
                customer_id=order.customer_id,
                order_date=order_date,
                net_amount=order.net_amount,
                tax=order.tax,
                total_amount=order.total_amount,
            )
            .returning(orders.c.order_id)
        )
        return result.scalar_one()

    async def _insert_lines(
        self,
        session: AsyncSession,
        order_id: int,
        order: OrderAggregate,
    ) -> None:
        await session.execute(
            insert(orderlines),
            [
                {
                    "order_id": order_id,
                    "product_id": line.product_id,
                    "quantity": line.quantity,
                    # カタログを引き直さず、追加時点の単価を保存する
                    "unit_price": line.unit_price,
                }
                for line in order.lines
            ],
        )

    async def _publish_order_created(
        self,
        order_id: int,
        order: OrderAggregate,
        order_date: datetime,
    ) -> None:
        """
        OrderCreated を Redis に発行する。

        注文はコミット済みなので、発行に失敗しても結果は変えずログだけ残す。
        """
        event = OrderCreated(
            order_id=order_id,
            customer_id=order.customer_id,
            order_date=order_date,
            net_amount=order.net_amount,
            tax=order.tax,
            total_amount=order.total_amount,
            lines=[
                OrderLinePlaced(
                    product_id=line.product_id,
                    quantity=line.quantity,
                    unit_price=line.unit_price,
                )
                for line in order.lines
            ],
        )
        try:
            await self.redis.publish(
                ORDER_EVENTS_CHANNEL,
                json.dumps(
                    {
                        "event_type": "OrderCreated",
                        "data": event.model_dump(mode="json"),
                    }
                ),
            )
        except RedisError:
            logger.exception("Failed to publish OrderCreated for order_id=%s", order_id)
