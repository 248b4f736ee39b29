# --- START OF FILE: src/tradewatch/infrastructure/market/schemas.py ---
"""
Wire models for the Polymarket data API (`/activity`, `/positions`).

Parsing is lenient: a malformed timestamp becomes `None` and the classifier
treats the event as too old instead of failing the whole response.
"""
from __future__ import annotations
import math
from typing import Any
from pydantic import BaseModel, ConfigDict, field_validator
from pydantic.alias_generators import to_camel

def _to_int(v: Any) -> int | None:
    f = _to_float(v)
    return int(f) if f is not None else None

def _to_float(v: Any) -> float | None:
    if v is None or isinstance(v, bool): return None
    try:
        f = float(v)
    except (TypeError, ValueError, OverflowError):
        return None
    # NaN and +-inf (e.g. 1e400, "Infinity") count as malformed.
    return f if math.isfinite(f) else None

def _to_str(v: Any) -> str | None:
    if v is None: return None
    s = str(v).strip()
    return s or None

class _WireModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
        extra="ignore",
    )

class TradeEvent(_WireModel):
    proxy_wallet: str | None = None
    timestamp: int | None = None
    condition_id: str | None = None
    type: str | None = None
    size: float | None = None
    usdc_size: float | None = None
    transaction_hash: str | None = None
    price: float | None = None
    asset: str | None = None
    side: str | None = None
    outcome_index: int | None = None
    title: str | None = None
    slug: str | None = None
    icon: str | None = None
    event_slug: str | None = None
    outcome: str | None = None
    name: str | None = None
    pseudonym: str | None = None
    bio: str | None = None
    profile_image: str | None = None
    profile_image_optimized: str | None = None

    @field_validator("timestamp", "outcome_index", mode="before")
    def _v_int(cls, v): return _to_int(v)
    @field_validator("size", "usdc_size", "price", mode="before")
    def _v_float(cls, v): return _to_float(v)
    @field_validator("proxy_wallet", "condition_id", "type", "transaction_hash", "asset", "side",
                     "title", "slug", "icon", "event_slug", "outcome", "name", "pseudonym",
                     "bio", "profile_image", "profile_image_optimized", mode="before")
    def _v_str(cls, v): return _to_str(v)

class PositionSnapshot(_WireModel):
    proxy_wallet: str | None = None
    asset: str
    condition_id: str
    size: float | None = None
    avg_price: float | None = None
    initial_value: float | None = None
    current_value: float | None = None
    cash_pnl: float | None = None
    percent_pnl: float | None = None
    total_bought: float | None = None
    realized_pnl: float | None = None
    percent_realized_pnl: float | None = None
    cur_price: float | None = None
    redeemable: bool | None = None
    mergeable: bool | None = None
    title: str | None = None
    slug: str | None = None
    icon: str | None = None
    event_slug: str | None = None
    outcome: str | None = None
    outcome_index: int | None = None
    opposite_outcome: str | None = None
    opposite_asset: str | None = None
    end_date: str | None = None
    negative_risk: bool | None = None

    @field_validator("outcome_index", mode="before")
    def _v_int(cls, v): return _to_int(v)
    @field_validator("size", "avg_price", "initial_value", "current_value", "cash_pnl", "percent_pnl",
                     "total_bought", "realized_pnl", "percent_realized_pnl", "cur_price", mode="before")
    def _v_float(cls, v): return _to_float(v)
    @field_validator("proxy_wallet", "title", "slug", "icon", "event_slug", "outcome",
                     "opposite_outcome", "opposite_asset", "end_date", mode="before")
    def _v_str(cls, v): return _to_str(v)
# --- END OF FILE ---
