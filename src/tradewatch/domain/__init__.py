# src/tradewatch/domain/__init__.py
from .entities import (
    AccountCategory,
    AccountRecord,
    BootstrapPhase,
    BootstrapState,
    DeliveryTier,
    FastCycle,
    LedgerEntry,
    Standard,
    category_name,
    is_fast_cycle,
)

__all__ = [
    "AccountCategory",
    "AccountRecord",
    "BootstrapPhase",
    "BootstrapState",
    "DeliveryTier",
    "FastCycle",
    "LedgerEntry",
    "Standard",
    "category_name",
    "is_fast_cycle",
]
