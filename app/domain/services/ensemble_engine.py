"""
ENSEMBLE RECOMMENDATION ENGINE (ENGINE-2)
Turn 5-10 days of daily aggregates into a BUY / SELL / HOLD recommendation

RESPONSIBILITIES:
- Run the four ensemble formulas over one shared series
- Combine them into weighted score, vote tally, consensus, confidence
- Apply the decision matrix (first match wins)
- Project a target price for buy / sell outcomes

RULES:
❌ No DB / network access
❌ No exceptions for missing data (hold/neutral instead)
✅ Pure function of the input aggregates
✅ Decimal for prices, float for heuristic scores
"""

import logging
import statistics
from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP
from enum import Enum
from typing import Callable, Iterable, List, Optional, Sequence, Tuple

from app.domain.indicators.daily_series import (
    DEFAULT_LOOKBACK_DAYS,
    DailySeries,
    prepare_series,
)
from app.domain.indicators.ensemble_formulas import (
    DEFAULT_FORMULA_CONFIG,
    FormulaConfig,
    evaluate_all,
)
from app.domain.models import (
    Action,
    CombinedResult,
    DailyStat,
    FormulaResult,
    RecommendationResult,
    Strength,
    Vote,
)

logger = logging.getLogger(__name__)


class TargetDirection(str, Enum):
    UP = "up"
    DOWN = "down"


@dataclass(frozen=True)
class DecisionRule:
    """One row of the decision matrix"""
    action: Action
    strength: Strength
    matches: Callable[[CombinedResult], bool]


DEFAULT_DECISION_MATRIX: Tuple[DecisionRule, ...] = (
    DecisionRule(
        Action.BUY, Strength.STRONG,
        lambda c: c.weighted_score >= 60 and c.consensus >= 0.7 and c.buy_votes >= 3,
    ),
    DecisionRule(
        Action.SELL, Strength.STRONG,
        lambda c: c.weighted_score <= -60 and c.consensus >= 0.7 and c.sell_votes >= 3,
    ),
    DecisionRule(
        Action.BUY, Strength.MODERATE,
        lambda c: c.weighted_score >= 40 and c.consensus >= 0.5 and c.buy_votes >= 2,
    ),
    DecisionRule(
        Action.SELL, Strength.MODERATE,
        lambda c: c.weighted_score <= -40 and c.consensus >= 0.5 and c.sell_votes >= 2,
    ),
    DecisionRule(
        Action.BUY, Strength.WEAK,
        lambda c: c.weighted_score >= 20 and c.buy_votes >= 2,
    ),
    DecisionRule(
        Action.SELL, Strength.WEAK,
        lambda c: c.weighted_score <= -20 and c.sell_votes >= 2,
    ),
    DecisionRule(Action.HOLD, Strength.NEUTRAL, lambda c: True),
)


@dataclass(frozen=True)
class EnsembleConfig:
    """Combiner weights, data requirements and target projection settings"""
    # Applied in formula order: momentum, MA crossover, RSI, trend strength
    weights: Tuple[float, ...] = (0.30, 0.25, 0.25, 0.20)
    min_days: int = 5
    lookback_days: int = DEFAULT_LOOKBACK_DAYS
    target_pairs: int = 5
    projection_days: int = 5
    max_target_pct: Decimal = Decimal('10')
    price_unit: Decimal = Decimal('1')
    formulas: FormulaConfig = DEFAULT_FORMULA_CONFIG
    decision_matrix: Tuple[DecisionRule, ...] = DEFAULT_DECISION_MATRIX

    def __post_init__(self):
        if self.min_days < 1:
            raise ValueError("min_days must be at least 1")
        if self.lookback_days < self.min_days:
            raise ValueError("lookback_days cannot be smaller than min_days")
        if self.price_unit <= Decimal('0'):
            raise ValueError("price_unit must be positive")


class EnsembleRecommendationEngine:
    """
    Ensemble Recommendation Engine
    Scores a security from its daily aggregates, does NOT fetch them
    """

    def __init__(self, config: Optional[EnsembleConfig] = None):
        self.config = config or EnsembleConfig()

    def evaluate(self, code: str, stats: Iterable[DailyStat]) -> RecommendationResult:
        """
        Full pipeline for one security.

        Args:
            code: Security code
            stats: Daily aggregates in any order (invalid days are dropped)

        Returns:
            RecommendationResult (hold/neutral when there is not enough data)

        Raises:
            TypeError / ValueError: malformed aggregates
        """
        prepared = prepare_series(stats, self.config.lookback_days)

        if not prepared:
            return self._hold(code, prepared, "No trading data available")
        if len(prepared) < self.config.min_days:
            return self._hold(
                code, prepared, f"Insufficient data (need at least {self.config.min_days} days)"
            )

        series = DailySeries.from_stats(prepared)
        results = evaluate_all(series, self.config.formulas)
        combined = self.combine(results)
        recommendation = self.decide(code, combined, series, volume_24h=prepared[0].total_volume)

        logger.debug(
            "%s: %s/%s score=%.2f consensus=%.2f",
            code,
            recommendation.action.value,
            recommendation.strength.value,
            recommendation.score,
            recommendation.consensus,
        )
        return recommendation

    def combine(self, results: Sequence[FormulaResult]) -> CombinedResult:
        """Weighted score, vote tally, consensus and mean confidence"""
        weights = self.config.weights
        if len(results) != len(weights):
            raise ValueError(f"Expected {len(weights)} formula results, got {len(results)}")

        scores = [r.score for r in results]
        weighted_score = sum(score * weight for score, weight in zip(scores, weights))

        buy_votes = sum(1 for r in results if r.vote == Vote.BUY)
        sell_votes = sum(1 for r in results if r.vote == Vote.SELL)
        neutral_votes = len(results) - buy_votes - sell_votes

        # Population std dev of scores; 100 apart on average -> no agreement
        consensus = max(0.0, 1.0 - statistics.pstdev(scores) / 100)
        confidence = statistics.fmean([r.confidence for r in results])

        return CombinedResult(
            weighted_score=weighted_score,
            buy_votes=buy_votes,
            sell_votes=sell_votes,
            neutral_votes=neutral_votes,
            consensus=consensus,
            confidence=confidence,
            formula_details=tuple(results),
        )

    def decide(
        self,
        code: str,
        combined: CombinedResult,
        series: DailySeries,
        volume_24h: Optional[int] = None,
    ) -> RecommendationResult:
        """Apply the decision matrix to a combined result"""
        rule = self._match_rule(combined)
        current_price = series.closes[0]

        if rule.action == Action.BUY:
            target_price = self.calculate_target_price(series, TargetDirection.UP)
        elif rule.action == Action.SELL:
            target_price = self.calculate_target_price(series, TargetDirection.DOWN)
        else:
            target_price = current_price

        return RecommendationResult(
            code=code,
            action=rule.action,
            strength=rule.strength,
            confidence=combined.confidence,
            current_price=current_price,
            target_price=target_price,
            score=combined.weighted_score,
            consensus=combined.consensus,
            buy_votes=combined.buy_votes,
            sell_votes=combined.sell_votes,
            reason=self.build_reason(combined),
            volume_24h=volume_24h,
        )

    def calculate_target_price(self, series: DailySeries, direction: TargetDirection) -> Decimal:
        """
        Project the recent average daily change forward.

        avg = mean pct change over the most recent <= 5 day pairs
              (each pair's ratio rounded HALF_UP to 4 dp, then x100)
        up:   avg > 0 -> min(avg * 5, 10)
        down: avg < 0 -> max(avg * 5, -10)
        otherwise the current price is returned unchanged
        """
        current_price = series.closes[0]

        changes: List[Decimal] = []
        for i in range(min(series.size - 1, self.config.target_pairs)):
            previous = series.closes[i + 1]
            if previous > Decimal('0'):
                ratio = ((series.closes[i] - previous) / previous).quantize(
                    Decimal('0.0001'), rounding=ROUND_HALF_UP
                )
                changes.append(ratio * Decimal('100'))

        avg_change = sum(changes, Decimal('0')) / len(changes) if changes else Decimal('0')
        projected = avg_change * self.config.projection_days
        cap = self.config.max_target_pct

        if direction == TargetDirection.UP and avg_change > 0:
            target_pct = min(projected, cap)
        elif direction == TargetDirection.DOWN and avg_change < 0:
            target_pct = max(projected, -cap)
        else:
            return current_price

        target = current_price * (Decimal('1') + target_pct / Decimal('100'))
        return self._round_to_unit(target)

    def build_reason(self, combined: CombinedResult) -> str:
        buy_votes, sell_votes = combined.buy_votes, combined.sell_votes
        parts = [
            f"Consensus: {max(buy_votes, sell_votes)} of {len(combined.formula_details)} "
            f"formulas suggest {'buying' if buy_votes > sell_votes else 'selling'}.",
            f"Weighted score: {combined.weighted_score:.1f}/100.",
            f"Formula agreement: {combined.consensus * 100:.0f}%.",
        ]
        for result in combined.formula_details:
            if abs(result.score) > 50:
                parts.append(f"{result.name.value}: {result.vote.value} (score: {result.score:.1f}).")
        return " ".join(parts)

    def _match_rule(self, combined: CombinedResult) -> DecisionRule:
        for rule in self.config.decision_matrix:
            if rule.matches(combined):
                return rule
        raise ValueError("Decision matrix has no catch-all rule")

    def _round_to_unit(self, value: Decimal) -> Decimal:
        unit = self.config.price_unit
        return (value / unit).quantize(Decimal('1'), rounding=ROUND_HALF_UP) * unit

    def _hold(self, code: str, prepared: List[DailyStat], reason: str) -> RecommendationResult:
        current_price = prepared[0].close_price if prepared else None
        return RecommendationResult(
            code=code,
            action=Action.HOLD,
            strength=Strength.NEUTRAL,
            confidence=0.0,
            current_price=current_price,
            target_price=current_price,
            score=0.0,
            consensus=0.0,
            buy_votes=0,
            sell_votes=0,
            reason=reason,
            volume_24h=prepared[0].total_volume if prepared else None,
        )
