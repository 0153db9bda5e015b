"""
Order Service — 注文集約 (Order Aggregate)

確定前の注文をメモリ上で組み立てる。I/O は一切行わない。

add_line のたびに全明細から金額を再計算する:
    net_amount   = Σ(quantity × unit_price)
    tax          = net_amount × tax_rate (小数第 2 位に四捨五入)
    total_amount = net_amount + tax

明細は追加したら変更・削除できない。間違えた場合は集約ごと作り直す。
"""

from decimal import ROUND_HALF_UP, Decimal

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .errors import InvalidQuantityError, ProductNotFoundError

DEFAULT_TAX_RATE = Decimal("0.20")
CENTS = Decimal("0.01")


def to_money(value: Decimal) -> Decimal:
    return Decimal(value).quantize(CENTS, rounding=ROUND_HALF_UP)


class Product(BaseModel):
    """カタログから取得した商品 (取得時点のスナップショット)"""

    model_config = ConfigDict(frozen=True)

    product_id: int
    name: str
    unit_price: Decimal = Field(ge=0)
    category: str | None = None

    @field_validator("unit_price")
    @classmethod
    def _round_to_cents(cls, value: Decimal) -> Decimal:
        # orderlines.unit_price は Numeric(12, 2)。保存値と金額計算を一致させる
        return to_money(value)


class OrderLine(BaseModel):
    """注文明細。単価は追加時点の product.unit_price で固定される"""

    model_config = ConfigDict(frozen=True)

    product: Product
    quantity: int

    @property
    def product_id(self) -> int:
        return self.product.product_id

    @property
    def unit_price(self) -> Decimal:
        return self.product.unit_price

    @property
    def line_total(self) -> Decimal:
        return self.unit_price * self.quantity


class OrderAggregate:
    """
    注文集約 — 1 顧客分の未確定注文。

    commands.OrderWriter.create_order に渡されて初めて永続化される。
    """

    def __init__(self, customer_id: int, tax_rate: Decimal = DEFAULT_TAX_RATE) -> None:
        self.customer_id = customer_id
        self.tax_rate = Decimal(str(tax_rate))
        self._lines: list[OrderLine] = []
        self.net_amount = to_money(Decimal(0))
        self.tax = to_money(Decimal(0))
        self.total_amount = to_money(Decimal(0))

    @property
    def lines(self) -> tuple[OrderLine, ...]:
        return tuple(self._lines)

    @property
    def is_empty(self) -> bool:
        return not self._lines

    def add_line(self, product: Product | None, quantity: int) -> OrderLine:
        if product is None:
            raise ProductNotFoundError(None)
        if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity <= 0:
            raise InvalidQuantityError(quantity)

        line = OrderLine(product=product, quantity=quantity)
        self._lines.append(line)
        self.recalculate_totals()
        return line

    def recalculate_totals(self) -> None:
        net = sum((line.line_total for line in self._lines), Decimal(0))
        self.net_amount = to_money(net)
        self.tax = to_money(self.net_amount * self.tax_rate)
        self.total_amount = self.net_amount + self.tax

    def __repr__(self) -> str:
        return (
            f"OrderAggregate(customer_id={self.customer_id}, lines={len(self._lines)}, "
            f"total_amount={self.total_amount})"
        )
