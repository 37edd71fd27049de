"""
Order Service - エラー定義

ユニットオブワーク内で送出された例外はすべてロールバックを引き起こす。
HTTP ステータスへの対応付けは main.py の例外ハンドラで行う。
"""


class OrderEngineError(Exception):
    pass


class ValidationError(OrderEngineError):
    """リクエストの形が不正 (フィールド単位のエラーを持つ)"""

    def __init__(self, errors: dict[str, str]) -> None:
        self.errors = errors
        super().__init__("; ".join(f"{k}: {v}" for k, v in errors.items()))


class NotFound(OrderEngineError):
    def __init__(self, entity: str, entity_id: object) -> None:
        self.entity = entity
        self.entity_id = str(entity_id)
        super().__init__(f"{entity} not found")


class InsufficientStock(OrderEngineError):
    """在庫不足。最初に不足が見つかった商品を報告する。"""

    def __init__(
        self,
        product_id: object,
        product_name: str,
        available: int,
        requested: int,
    ) -> None:
        self.product_id = str(product_id)
        self.product_name = product_name
        self.available = available
        self.requested = requested
        super().__init__(
            f"Insufficient stock for {product_name}. Available: {available}"
        )


class PersistenceFailure(OrderEngineError):
    """ストア側の予期しないエラー。呼び出し側には詳細を返さない。"""


class AuditNotifyFailure(OrderEngineError):
    """監査シンクへの通知失敗。ログに残すだけで伝播させない。"""
