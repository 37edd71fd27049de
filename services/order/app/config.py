"""
Order Service - 設定

環境変数から読み込む。起動時に一度だけ評価される。
"""

import os


def _flag(name: str, default: str = "false") -> bool:
    return os.environ.get(name, default).strip().lower() in ("1", "true", "yes", "on")


DATABASE_URL = os.environ.get("DATABASE_URL", "sqlite+aiosqlite:///./orders.db")
REDIS_URL = os.environ.get("REDIS_URL", "redis://localhost:6379")

# 監査イベントを発行する Redis チャネル
AUDIT_CHANNEL = os.environ.get("AUDIT_CHANNEL", "activity_log")

LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")
DB_ECHO = _flag("DB_ECHO")

# true の場合、申告された合計金額をスナップショット価格から再計算して検証する
ENFORCE_ORDER_TOTAL = _flag("ENFORCE_ORDER_TOTAL")
