"""
Order Service — FastAPI エントリーポイント

Command (POST) と Query (GET) のエンドポイントを分離する。
エンジンとセッションファクトリはこのモジュールが持ち、
Writer / Reader / Catalog には依存関係 (Depends) として渡す。
"""

from contextlib import asynccontextmanager

import redis.asyncio as aioredis
from fastapi import Depends, FastAPI, HTTPException
from pydantic import BaseModel
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine

from .aggregate import OrderAggregate
from .catalog import Catalog
from .commands import OrderWriter
from .config import Settings
from .errors import (
    HistoryReadError,
    NotFoundError,
    OrderValidationError,
    OrderWriteError,
    TransientStorageError,
)
from .inventory import InventoryAdjuster
from .queries import OrderHistoryReader

settings = Settings.from_env()

engine = create_async_engine(settings.database_url, echo=False)
async_session = async_sessionmaker(engine, expire_on_commit=False)
redis_pool: aioredis.Redis | None = None


@asynccontextmanager
async def lifespan(app: FastAPI):
    global redis_pool
    if settings.redis_url:
        redis_pool = aioredis.from_url(settings.redis_url, decode_responses=True)
    yield
    if redis_pool is not None:
        await redis_pool.aclose()
    await engine.dispose()


app = FastAPI(title="Order Service", lifespan=lifespan)


# ── Dependencies ─────────────────────────────────


def get_settings() -> Settings:
    return settings


def get_catalog() -> Catalog:
    return Catalog(async_session)


def get_writer() -> OrderWriter:
    return OrderWriter(
        async_session,
        inventory=InventoryAdjuster(settings.inventory_policy),
        redis=redis_pool,
    )


def get_reader() -> OrderHistoryReader:
    return OrderHistoryReader(async_session)


# ── Request Models ───────────────────────────────


class OrderLineRequest(BaseModel):
    product_id: int
    quantity: int


class CreateOrderRequest(BaseModel):
    customer_id: int
    lines: list[OrderLineRequest]


# ── Command Endpoints (Write 側) ─────────────────


@app.post("/commands/orders")
async def cmd_create_order(
    req: CreateOrderRequest,
    config: Settings = Depends(get_settings),
    catalog: Catalog = Depends(get_catalog),
    writer: OrderWriter = Depends(get_writer),
):
    """
    注文作成コマンド

    1. 顧客と商品をカタログで解決 (トランザクションの外)
    2. 注文集約を組み立てて金額を計算
    3. Writer がヘッダ・明細・在庫減算をまとめて確定
    """
    try:
        await catalog.resolve_customer(req.customer_id)
        order = OrderAggregate(req.customer_id, tax_rate=config.tax_rate)
        for line in req.lines:
            product = await catalog.resolve_product(line.product_id)
            order.add_line(product, line.quantity)
        order_id = await writer.create_order(order)
    except NotFoundError as e:
        raise HTTPException(404, str(e))
    except OrderValidationError as e:
        raise HTTPException(422, str(e))
    except TransientStorageError as e:
        raise HTTPException(503, str(e))
    except OrderWriteError as e:
        raise HTTPException(409, str(e))
    except SQLAlchemyError as e:
        # カタログ参照の失敗 (Writer の失敗は OrderWriteError に包まれている)
        raise HTTPException(503, f"Catalog lookup failed: {e}")

    return {
        "order_id": order_id,
        "net_amount": order.net_amount,
        "tax": order.tax,
        "total_amount": order.total_amount,
    }


# ── Query Endpoints (Read 側) ────────────────────


@app.get("/queries/customers/{customer_id}/orders")
async def query_order_history(
    customer_id: int,
    reader: OrderHistoryReader = Depends(get_reader),
):
    """顧客の注文履歴 (新しい注文が先)"""
    try:
        return await reader.get_order_history(customer_id)
    except HistoryReadError as e:
        raise HTTPException(503, str(e))


@app.get("/queries/orders/{order_id}")
async def query_get_order(
    order_id: int,
    reader: OrderHistoryReader = Depends(get_reader),
):
    try:
        rows = await reader.get_order(order_id)
    except HistoryReadError as e:
        raise HTTPException(503, str(e))
    if not rows:
        raise HTTPException(404, "Order not found")
    return rows


@app.get("/queries/products")
async def query_list_products(
    category: str | None = None,
    catalog: Catalog = Depends(get_catalog),
):
    return await catalog.list_products(category)


@app.get("/queries/products/categories")
async def query_list_categories(catalog: Catalog = Depends(get_catalog)):
    return await catalog.list_categories()


@app.get("/queries/products/low-stock")
async def query_low_stock(
    threshold: int | None = None,
    config: Settings = Depends(get_settings),
    catalog: Catalog = Depends(get_catalog),
):
    """在庫が閾値未満の商品 (閾値省略時は LOW_STOCK_THRESHOLD)"""
    if threshold is None:
        threshold = config.low_stock_threshold
    return await catalog.low_stock_products(threshold)


@app.get("/health")
async def health():
    return {"status": "ok", "service": "order-service"}
