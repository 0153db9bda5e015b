"""
Order Service — テーブル定義

customers / products は外部 (顧客・商品管理) が所有し、このサービスは読むだけ。
orders / orderlines はこのサービスが書き込み、確定後は更新しない。
inventory は在庫減算 (inventory.py) だけが更新する。
"""

from sqlalchemy import (
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    MetaData,
    Numeric,
    String,
    Table,
)

metadata = MetaData()

customers = Table(
    "customers",
    metadata,
    Column("customer_id", Integer, primary_key=True),
    Column("customer_name", String(255), nullable=False),
    Column("email", String(255)),
    Column("phone", String(64)),
)

products = Table(
    "products",
    metadata,
    Column("product_id", Integer, primary_key=True),
    Column("product_name", String(255), nullable=False),
    Column("price", Numeric(12, 2), nullable=False),
    Column("category", String(255)),
)

inventory = Table(
    "inventory",
    metadata,
    Column(
        "product_id",
        Integer,
        ForeignKey("products.product_id"),
        primary_key=True,
    ),
    Column("quantity_in_stock", Integer, nullable=False, default=0),
    # 在庫の下限。条件付き UPDATE をすり抜けた減算もここで止まる
    CheckConstraint("quantity_in_stock >= 0", name="ck_inventory_stock_floor"),
)

orders = Table(
    "orders",
    metadata,
    Column("order_id", Integer, primary_key=True, autoincrement=True),
    Column("customer_id", Integer, ForeignKey("customers.customer_id"), nullable=False),
    Column("order_date", DateTime(timezone=True), nullable=False),
    Column("net_amount", Numeric(12, 2), nullable=False),
    Column("tax", Numeric(12, 2), nullable=False),
    Column("total_amount", Numeric(12, 2), nullable=False),
)

orderlines = Table(
    "orderlines",
    metadata,
    Column("order_id", Integer, ForeignKey("orders.order_id"), nullable=False),
    Column("product_id", Integer, ForeignKey("products.product_id"), nullable=False),
    Column("quantity", Integer, nullable=False),
    Column("unit_price", Numeric(12, 2), nullable=False),
    CheckConstraint("quantity > 0", name="ck_orderlines_quantity_positive"),
)
