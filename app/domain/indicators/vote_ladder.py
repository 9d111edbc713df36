"""
Score -> (vote, confidence) ladders.

A ladder is an ordered tuple of rules evaluated top-to-bottom; the first
rule whose predicate matches the score wins. Keeping the order as data
makes the tie-break visible and testable.
"""

from dataclasses import dataclass
from typing import Callable, Sequence, Tuple

from app.domain.models import Vote


@dataclass(frozen=True)
class VoteRule:
    """One rung of a ladder"""
    label: str
    matches: Callable[[float], bool]
    vote: Vote
    confidence: Callable[[float], float]


def resolve_vote(score: float, ladder: Sequence[VoteRule]) -> Tuple[Vote, float, str]:
    """
    Walk the ladder and return (vote, confidence, label) of the first match.

    Raises:
        ValueError: if no rule matches (a ladder must end with a catch-all)
    """
    for rule in ladder:
        if rule.matches(score):
            return rule.vote, rule.confidence(score), rule.label
    raise ValueError(f"No ladder rule matched score {score}")


def _fixed(value: float) -> Callable[[float], float]:
    return lambda _score: value


def four_tier_ladder(
    strong: float,
    moderate: float,
    strong_confidence: float = 0.8,
    moderate_confidence: float = 0.6,
    neutral_confidence: float = 0.4,
) -> Tuple[VoteRule, ...]:
    """
    Symmetric BUY/SELL ladder with fixed confidences.

    score >= strong    -> BUY  (strong_confidence)
    score >= moderate  -> BUY  (moderate_confidence)
    score <= -strong   -> SELL (strong_confidence)
    score <= -moderate -> SELL (moderate_confidence)
    otherwise          -> NEUTRAL (neutral_confidence)
    """
    return (
        VoteRule("strong_buy", lambda s: s >= strong, Vote.BUY, _fixed(strong_confidence)),
        VoteRule("buy", lambda s: s >= moderate, Vote.BUY, _fixed(moderate_confidence)),
        VoteRule("strong_sell", lambda s: s <= -strong, Vote.SELL, _fixed(strong_confidence)),
        VoteRule("sell", lambda s: s <= -moderate, Vote.SELL, _fixed(moderate_confidence)),
        VoteRule("neutral", lambda s: True, Vote.NEUTRAL, _fixed(neutral_confidence)),
    )


def momentum_ladder(strong: float = 40, moderate: float = 20) -> Tuple[VoteRule, ...]:
    """
    Ladder whose confidence grows with the magnitude of the score.

    Strong tiers: min(0.9, 0.5 + |score|/200)
    Moderate tiers: min(0.7, 0.4 + |score|/200)
    Neutral: 0.3
    """
    return (
        VoteRule("strong_buy", lambda s: s >= strong, Vote.BUY,
                 lambda s: min(0.9, 0.5 + s / 200)),
        VoteRule("buy", lambda s: s >= moderate, Vote.BUY,
                 lambda s: min(0.7, 0.4 + s / 200)),
        VoteRule("strong_sell", lambda s: s <= -strong, Vote.SELL,
                 lambda s: min(0.9, 0.5 + abs(s) / 200)),
        VoteRule("sell", lambda s: s <= -moderate, Vote.SELL,
                 lambda s: min(0.7, 0.4 + abs(s) / 200)),
        VoteRule("neutral", lambda s: True, Vote.NEUTRAL, _fixed(0.3)),
    )
