"""
Order Service — エラー定義

- 入力エラー: 永続化の前に弾く (呼び出し側の責任)
- 書き込みエラー: ロールバック済み。retryable で再試行可否を示す
- 読み取りエラー: 部分的な結果は返さない
"""


class OrderServiceError(Exception):
    """このサービスが送出する例外の基底クラス"""


# ── 入力エラー ───────────────────────────────────


class OrderValidationError(OrderServiceError, ValueError):
    pass


class InvalidQuantityError(OrderValidationError):
    def __init__(self, quantity: int) -> None:
        super().__init__(f"Quantity must be a positive integer: {quantity!r}")
        self.quantity = quantity


class EmptyOrderError(OrderValidationError):
    def __init__(self, customer_id: int) -> None:
        super().__init__(f"Order for customer {customer_id} has no lines")
        self.customer_id = customer_id


class NotFoundError(OrderServiceError, LookupError):
    pass


class ProductNotFoundError(NotFoundError):
    def __init__(self, product_id: int | None) -> None:
        super().__init__(f"Product not found: {product_id}")
        self.product_id = product_id


class CustomerNotFoundError(NotFoundError):
    def __init__(self, customer_id: int) -> None:
        super().__init__(f"Customer not found: {customer_id}")
        self.customer_id = customer_id


# ── 在庫 ─────────────────────────────────────────


class StockExhaustedError(OrderServiceError):
    """在庫不足、または在庫レコードが存在しない (available is None)"""

    def __init__(self, product_id: int, requested: int, available: int | None) -> None:
        if available is None:
            reason = f"No inventory record for product {product_id}"
        else:
            reason = (
                f"Insufficient stock for product {product_id}: "
                f"requested={requested}, available={available}"
            )
        super().__init__(reason)
        self.product_id = product_id
        self.requested = requested
        self.available = available


# ── 書き込み / 読み取りエラー ────────────────────


class OrderWriteError(OrderServiceError):
    """
    注文トランザクションの失敗。

    送出された時点でトランザクションはロールバック済み。
    step は失敗したステップ名、retryable は注文全体を再送してよいかを示す。
    """

    retryable = False

    def __init__(self, step: str, message: str) -> None:
        super().__init__(f"Order creation failed at step '{step}': {message}")
        self.step = step


class TransientStorageError(OrderWriteError):
    """接続断・ロックタイムアウト・デッドロックなど"""

    retryable = True


class OrderIntegrityError(OrderWriteError):
    """制約違反・参照先なし・在庫不足 (strict モード)"""

    retryable = False


class HistoryReadError(OrderServiceError):
    pass
