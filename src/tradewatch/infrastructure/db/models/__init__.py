# --- src/tradewatch/infrastructure/db/models/__init__.py ---
"""
Makes every ORM model discoverable by Alembic and `create_tables()`.
"""

from .base import Base
from .trade_activity import TradeActivity
from .trade_position import TradePosition

__all__ = [
    "Base",
    "TradeActivity",
    "TradePosition",
]
