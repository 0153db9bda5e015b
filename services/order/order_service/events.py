"""
Order Service — イベント定義

コミット後に Redis Pub/Sub (order_events) で他サービスへ通知する事実。
過去形で命名し、不変として扱う。
"""

from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel


class OrderLinePlaced(BaseModel):
    product_id: int
    quantity: int
    unit_price: Decimal


class OrderCreated(BaseModel):
    """注文が確定された (ヘッダ・明細・在庫減算がコミット済み)"""
    order_id: int
    customer_id: int
    order_date: datetime
    net_amount: Decimal
    tax: Decimal
    total_amount: Decimal
    lines: list[OrderLinePlaced]
