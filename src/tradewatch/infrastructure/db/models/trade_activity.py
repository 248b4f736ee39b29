# src/tradewatch/infrastructure/db/models/trade_activity.py
"""
SQLAlchemy ORM model for observed trade events (the events ledger).
One row per (account, transaction hash); the unique constraint is the only
deduplication key the monitor relies on.
"""

from sqlalchemy import (
    Column, Integer, BigInteger, String, Text, Float, Boolean, DateTime,
    Enum, UniqueConstraint, Index, func
)
from .base import Base

from tradewatch.domain.entities import DeliveryTier


class TradeActivity(Base):
    __tablename__ = 'trade_activities'

    id = Column(Integer, primary_key=True, autoincrement=True)

    # Partition key: the monitored proxy wallet
    account_id = Column(String(42), nullable=False, index=True)

    transaction_hash = Column(String(80), nullable=False)
    timestamp = Column(BigInteger, nullable=False, index=True)
    condition_id = Column(String(80), nullable=True)
    type = Column(String(20), nullable=True)
    size = Column(Float, nullable=True)
    usdc_size = Column(Float, nullable=True)
    price = Column(Float, nullable=True)
    asset = Column(String(100), nullable=True)
    side = Column(String(10), nullable=True)
    outcome_index = Column(Integer, nullable=True)

    # Market metadata, stored as observed
    title = Column(Text, nullable=True)
    slug = Column(String(255), nullable=True)
    icon = Column(Text, nullable=True)
    event_slug = Column(String(255), nullable=True)
    outcome = Column(String(100), nullable=True)
    name = Column(String(255), nullable=True)
    pseudonym = Column(String(255), nullable=True)
    bio = Column(Text, nullable=True)
    profile_image = Column(Text, nullable=True)
    profile_image_optimized = Column(Text, nullable=True)

    # Handoff control fields: delivered=False means "act on this"
    delivered = Column(Boolean, default=False, nullable=False)
    delivered_tier = Column(Enum(DeliveryTier, name="delivery_tier_enum"), nullable=True)
    delivered_at = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    __table_args__ = (
        UniqueConstraint('account_id', 'transaction_hash', name='uq_activity_account_hash'),
        Index('ix_activity_account_delivered', 'account_id', 'delivered'),
    )

    def __repr__(self):
        return (
            f"<TradeActivity(account={self.account_id}, hash={self.transaction_hash}, "
            f"delivered={self.delivered})>"
        )
