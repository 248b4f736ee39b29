# src/tradewatch/infrastructure/db/models/trade_position.py
"""
SQLAlchemy ORM model for the latest position snapshot per (account, asset, condition).
Rows are overwritten on every refresh; there is no history.
"""

from sqlalchemy import (
    Column, Integer, String, Text, Float, Boolean, DateTime, UniqueConstraint, func
)
from .base import Base


class TradePosition(Base):
    __tablename__ = 'trade_positions'

    id = Column(Integer, primary_key=True, autoincrement=True)
    account_id = Column(String(42), nullable=False, index=True)
    asset = Column(String(100), nullable=False)
    condition_id = Column(String(80), nullable=False)

    size = Column(Float, nullable=True)
    avg_price = Column(Float, nullable=True)
    initial_value = Column(Float, nullable=True)
    current_value = Column(Float, nullable=True)
    cash_pnl = Column(Float, nullable=True)
    percent_pnl = Column(Float, nullable=True)
    total_bought = Column(Float, nullable=True)
    realized_pnl = Column(Float, nullable=True)
    percent_realized_pnl = Column(Float, nullable=True)
    cur_price = Column(Float, nullable=True)
    redeemable = Column(Boolean, nullable=True)
    mergeable = Column(Boolean, nullable=True)

    title = Column(Text, nullable=True)
    slug = Column(String(255), nullable=True)
    icon = Column(Text, nullable=True)
    event_slug = Column(String(255), nullable=True)
    outcome = Column(String(100), nullable=True)
    outcome_index = Column(Integer, nullable=True)
    opposite_outcome = Column(String(100), nullable=True)
    opposite_asset = Column(String(100), nullable=True)
    end_date = Column(String(40), nullable=True)
    negative_risk = Column(Boolean, nullable=True)

    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    __table_args__ = (
        UniqueConstraint('account_id', 'asset', 'condition_id', name='uq_position_account_asset_condition'),
    )

    def __repr__(self):
        return f"<TradePosition(account={self.account_id}, asset={self.asset}, size={self.size})>"
