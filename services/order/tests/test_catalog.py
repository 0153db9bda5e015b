"""Tests for order_service.catalog."""

import logging
from decimal import Decimal

import pytest

from order_service.catalog import Catalog
from order_service.errors import CustomerNotFoundError, ProductNotFoundError


class TestCatalog:
    async def test_resolve_product(self, seeded, session_factory):
        product = await Catalog(session_factory).resolve_product(1)
        assert product.product_id == 1
        assert product.name == "A"
        assert product.unit_price == Decimal("10.00")
        assert product.category == "tools"

    async def test_resolve_unknown_product(self, seeded, session_factory):
        with pytest.raises(ProductNotFoundError):
            await Catalog(session_factory).resolve_product(999)

    async def test_resolve_customer(self, seeded, session_factory):
        catalog = Catalog(session_factory)
        assert await catalog.resolve_customer(7) == 7
        with pytest.raises(CustomerNotFoundError):
            await catalog.resolve_customer(999)

    async def test_list_products(self, seeded, session_factory):
        catalog = Catalog(session_factory)
        assert [p.name for p in await catalog.list_products()] == ["A", "B", "C", "D"]
        assert [p.name for p in await catalog.list_products("garden")] == ["C", "D"]
        assert await catalog.list_products("unknown") == []

    async def test_list_categories(self, seeded, session_factory):
        assert await Catalog(session_factory).list_categories() == ["garden", "tools"]

    async def test_low_stock_products(self, seeded, session_factory, caplog):
        with caplog.at_level(logging.INFO, logger="order_service.catalog"):
            low = await Catalog(session_factory).low_stock_products(50)

        assert [(item["product"].name, item["quantity_in_stock"]) for item in low] == [
            ("C", 10)
        ]
        assert "Low stock: C" in caplog.text
