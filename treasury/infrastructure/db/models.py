"""
Database Models (SQLAlchemy ORM)
Insert-only audit tables - NO DELETES
"""

from sqlalchemy import Column, DateTime, Integer, Numeric, String, Text
from sqlalchemy.sql import func

from treasury.infrastructure.db.database import Base


class RebalanceAttemptModel(Base):
    """One keeper cycle: skip reason or the rebalance attempt it produced"""
    __tablename__ = "rebalance_attempt"

    id = Column(Integer, primary_key=True, autoincrement=True)
    trigger = Column(String(20), nullable=False)
    cycle_status = Column(String(20), nullable=False, index=True)
    mode = Column(String(40), nullable=False)
    reason = Column(String(100), nullable=True)

    direction = Column(String(10), nullable=True)
    amount_in = Column(Numeric(28, 8), nullable=True)
    min_amount_out = Column(Numeric(28, 8), nullable=True)
    amount_out = Column(Numeric(28, 8), nullable=True)
    slippage_bps = Column(Integer, nullable=True)
    fee_bps = Column(Integer, nullable=True)
    outcome = Column(String(30), nullable=True, index=True)
    gas_cost = Column(Numeric(28, 8), nullable=True)

    attempted_at = Column(Integer, nullable=True)
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
