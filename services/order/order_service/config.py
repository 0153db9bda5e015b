"""
Order Service — 設定

環境変数から読み込む。DATABASE_URL のみ必須。
"""

import os
from decimal import Decimal

from pydantic import BaseModel, Field

from .aggregate import DEFAULT_TAX_RATE
from .inventory import InventoryPolicy


class Settings(BaseModel):
    database_url: str
    redis_url: str | None = None
    tax_rate: Decimal = Field(default=DEFAULT_TAX_RATE, ge=0)
    inventory_policy: InventoryPolicy = InventoryPolicy.STRICT
    low_stock_threshold: int = Field(default=5, ge=0)

    @classmethod
    def from_env(cls) -> "Settings":
        return cls(
            database_url=os.environ["DATABASE_URL"],
            redis_url=os.environ.get("REDIS_URL") or None,
            tax_rate=os.environ.get("TAX_RATE", str(DEFAULT_TAX_RATE)),
            inventory_policy=os.environ.get("INVENTORY_POLICY", "strict").lower(),
            low_stock_threshold=os.environ.get("LOW_STOCK_THRESHOLD", "5"),
        )
