"""
Domain Models Package
Export all domain entities
"""

from .signals import (
    # Enums
    Action,
    FormulaName,
    SignalType,
    Strength,
    TradeSide,
    Vote,

    # Entities
    CombinedResult,
    DailyStat,
    FormulaResult,
    IntradaySignal,
    IntradayTrade,
    RecommendationResult,
)

__all__ = [
    # Enums
    "Action",
    "FormulaName",
    "SignalType",
    "Strength",
    "TradeSide",
    "Vote",

    # Entities
    "CombinedResult",
    "DailyStat",
    "FormulaResult",
    "IntradaySignal",
    "IntradayTrade",
    "RecommendationResult",
]
