"""
Domain Models - Trading Signals
Pure domain objects with no infrastructure dependencies
"""

from dataclasses import dataclass
from datetime import date, datetime, time
from decimal import Decimal
from enum import Enum
from typing import Optional, Tuple


class Vote(str, Enum):
    """Single formula vote"""
    BUY = "BUY"
    SELL = "SELL"
    NEUTRAL = "NEUTRAL"


class FormulaName(str, Enum):
    """Ensemble formula identifiers (fixed combiner order)"""
    VOLUME_PRICE_MOMENTUM = "VolumePriceMomentum"
    MA_CROSSOVER = "MACrossover"
    RSI = "RSI"
    TREND_STRENGTH = "TrendStrength"


class Action(str, Enum):
    """Recommended action"""
    BUY = "buy"
    SELL = "sell"
    HOLD = "hold"


class Strength(str, Enum):
    """Recommendation strength"""
    STRONG = "strong"
    MODERATE = "moderate"
    WEAK = "weak"
    NEUTRAL = "neutral"


class SignalType(str, Enum):
    """Intraday alert direction"""
    BUY = "BUY"
    SELL = "SELL"


class TradeSide(str, Enum):
    """Aggressor side of a tick"""
    BUY = "buy"
    SELL = "sell"
    OTHER = "other"

    @classmethod
    def parse(cls, value: str) -> "TradeSide":
        normalized = (value or "").strip().lower()
        for side in cls:
            if side.value == normalized:
                return side
        return cls.OTHER


@dataclass(frozen=True)
class DailyStat:
    """One trading day of aggregated activity for a security - Immutable"""
    date: date
    open_price: Optional[Decimal]
    high_price: Optional[Decimal]
    low_price: Optional[Decimal]
    close_price: Optional[Decimal]
    buy_volume: int = 0
    sell_volume: int = 0
    total_volume: int = 0
    large_buy_blocks: int = 0
    large_sell_blocks: int = 0
    medium_buy_blocks: int = 0
    medium_sell_blocks: int = 0

    def __post_init__(self):
        for name in (
            "buy_volume",
            "sell_volume",
            "total_volume",
            "large_buy_blocks",
            "large_sell_blocks",
            "medium_buy_blocks",
            "medium_sell_blocks",
        ):
            value = getattr(self, name)
            if not isinstance(value, int):
                raise TypeError(f"{name} must be an int, got {type(value).__name__}")
            if value < 0:
                raise ValueError(f"{name} cannot be negative")
        for name in ("open_price", "high_price", "low_price", "close_price"):
            value = getattr(self, name)
            if value is not None and not isinstance(value, Decimal):
                raise TypeError(f"{name} must be a Decimal, got {type(value).__name__}")

    @property
    def is_valid(self) -> bool:
        """A day without a positive close is excluded from every series"""
        return self.close_price is not None and self.close_price > Decimal('0')


@dataclass(frozen=True)
class IntradayTrade:
    """Single same-day trade tick - Immutable"""
    code: str
    price: Decimal
    volume: int
    side: TradeSide
    trade_date: date
    trade_time: time

    def __post_init__(self):
        if not isinstance(self.price, Decimal):
            raise TypeError("Trade price must be a Decimal")
        if self.volume < 0:
            raise ValueError("Trade volume cannot be negative")


@dataclass(frozen=True)
class FormulaResult:
    """Output of a single ensemble formula"""
    name: FormulaName
    score: float
    vote: Vote
    confidence: float
    reason: str


@dataclass(frozen=True)
class CombinedResult:
    """Merged view of the four formula results"""
    weighted_score: float
    buy_votes: int
    sell_votes: int
    neutral_votes: int
    consensus: float
    confidence: float
    formula_details: Tuple[FormulaResult, ...]


@dataclass(frozen=True)
class RecommendationResult:
    """Final multi-day recommendation for a security"""
    code: str
    action: Action
    strength: Strength
    confidence: float
    current_price: Optional[Decimal]
    target_price: Optional[Decimal]
    score: float
    consensus: float
    buy_votes: int
    sell_votes: int
    reason: str
    volume_24h: Optional[int]

    @property
    def is_actionable(self) -> bool:
        return self.action != Action.HOLD

    def to_dict(self) -> dict:
        return {
            "code": self.code,
            "action": self.action.value,
            "strength": self.strength.value,
            "confidence": round(self.confidence, 4),
            "current_price": str(self.current_price) if self.current_price is not None else None,
            "target_price": str(self.target_price) if self.target_price is not None else None,
            "score": round(self.score, 2),
            "consensus": round(self.consensus, 4),
            "buy_votes": self.buy_votes,
            "sell_votes": self.sell_votes,
            "reason": self.reason,
            "volume_24h": self.volume_24h,
        }


@dataclass(frozen=True)
class IntradaySignal:
    """Same-day BUY/SELL alert; only exists when a signal fires"""
    code: str
    signal_type: SignalType
    score: int
    reason: str
    buy_volume: int
    sell_volume: int
    last_price: Decimal
    price_change: Decimal
    timestamp: datetime

    def to_dict(self) -> dict:
        return {
            "code": self.code,
            "signal_type": self.signal_type.value,
            "score": self.score,
            "reason": self.reason,
            "buy_volume": self.buy_volume,
            "sell_volume": self.sell_volume,
            "last_price": str(self.last_price),
            "price_change": float(self.price_change),
            "timestamp": self.timestamp.isoformat(),
        }
