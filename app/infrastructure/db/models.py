"""
Database Models (SQLAlchemy ORM)
Raw trade ticks - written by the ingestion side, read by the signal engine
"""

from sqlalchemy import BigInteger, Column, Date, DateTime, Index, Integer, Numeric, String, Time

from app.infrastructure.db.database import Base
from app.utils.time import now_vn_naive


class TradeModel(Base):
    """One matched trade"""
    __tablename__ = "trades"

    id = Column(Integer, primary_key=True, autoincrement=True)
    code = Column(String(20), nullable=False, index=True)
    price = Column(Numeric(18, 2), nullable=False)
    volume = Column(BigInteger, nullable=False)
    side = Column(String(10), nullable=False)
    trade_date = Column(Date, nullable=False)
    trade_time = Column(Time, nullable=False)
    created_at = Column(DateTime, nullable=False, default=now_vn_naive)

    __table_args__ = (
        Index("ix_trades_code_trade_date", "code", "trade_date"),
    )
