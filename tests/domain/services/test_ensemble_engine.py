"""
Unit Tests for Ensemble Recommendation Engine
Combiner, decision matrix, target price and the full pipeline
"""

from decimal import Decimal, ROUND_HALF_UP

import pytest

from app.domain.indicators.daily_series import DailySeries, prepare_series
from app.domain.indicators.ensemble_formulas import volume_price_momentum
from app.domain.models import (
    Action,
    CombinedResult,
    FormulaName,
    FormulaResult,
    Strength,
    Vote,
)
from app.domain.services.ensemble_engine import (
    EnsembleConfig,
    EnsembleRecommendationEngine,
    TargetDirection,
)


@pytest.fixture
def engine():
    """Fixture for EnsembleRecommendationEngine"""
    return EnsembleRecommendationEngine()


def formula_results(*scores, vote=Vote.NEUTRAL, confidence=0.5):
    return tuple(
        FormulaResult(name=name, score=score, vote=vote, confidence=confidence, reason="")
        for name, score in zip(FormulaName, scores)
    )


def combined(score, consensus, buy_votes, sell_votes):
    return CombinedResult(
        weighted_score=score,
        buy_votes=buy_votes,
        sell_votes=sell_votes,
        neutral_votes=4 - buy_votes - sell_votes,
        consensus=consensus,
        confidence=0.6,
        formula_details=formula_results(0, 0, 0, 0),
    )


def series_from(stats):
    return DailySeries.from_stats(prepare_series(stats))


def rounded(value: Decimal) -> Decimal:
    return value.quantize(Decimal('1'), rounding=ROUND_HALF_UP)


class TestCombiner:
    """Weighted score, votes, consensus"""

    def test_identical_scores_give_full_consensus(self, engine):
        result = engine.combine(formula_results(50, 50, 50, 50))
        assert result.consensus == pytest.approx(1.0)
        assert result.weighted_score == pytest.approx(50)

    def test_maximally_divergent_scores_give_no_consensus(self, engine):
        result = engine.combine(formula_results(100, 100, -100, -100))
        assert result.consensus == pytest.approx(0.0)
        assert 0 <= result.consensus <= 1

    @pytest.mark.parametrize("scores", [
        (0, 0, 0, 0),
        (100, -100, 100, -100),
        (100, 0, 0, 0),
        (-100, -100, -100, 100),
        (47.5, 40, -20, 60),
    ])
    def test_consensus_is_bounded(self, engine, scores):
        assert 0 <= engine.combine(formula_results(*scores)).consensus <= 1

    def test_weights_follow_formula_order(self, engine):
        result = engine.combine(formula_results(100, 0, 0, 0))
        assert result.weighted_score == pytest.approx(30)

        result = engine.combine(formula_results(0, 0, 0, 100))
        assert result.weighted_score == pytest.approx(20)

    def test_vote_tally_and_mean_confidence(self, engine):
        results = (
            FormulaResult(FormulaName.VOLUME_PRICE_MOMENTUM, 50, Vote.BUY, 0.7, ""),
            FormulaResult(FormulaName.MA_CROSSOVER, 60, Vote.BUY, 0.8, ""),
            FormulaResult(FormulaName.RSI, -50, Vote.SELL, 0.6, ""),
            FormulaResult(FormulaName.TREND_STRENGTH, 0, Vote.NEUTRAL, 0.4, ""),
        )
        result = engine.combine(results)

        assert (result.buy_votes, result.sell_votes, result.neutral_votes) == (2, 1, 1)
        assert result.confidence == pytest.approx(0.625)
        assert result.formula_details == results

    def test_wrong_number_of_results_is_rejected(self, engine):
        with pytest.raises(ValueError, match="Expected 4 formula results"):
            engine.combine(formula_results(10, 10, 10))


class TestDecisionMatrix:
    """First matching row wins"""

    @pytest.mark.parametrize("score,consensus,buys,sells,expected", [
        (70, 0.8, 3, 0, (Action.BUY, Strength.STRONG)),
        (60, 0.7, 3, 0, (Action.BUY, Strength.STRONG)),
        (70, 0.6, 3, 0, (Action.BUY, Strength.MODERATE)),
        (70, 0.8, 2, 0, (Action.BUY, Strength.MODERATE)),
        (45, 0.4, 2, 0, (Action.BUY, Strength.WEAK)),
        (25, 0.1, 2, 1, (Action.BUY, Strength.WEAK)),
        (25, 0.9, 1, 0, (Action.HOLD, Strength.NEUTRAL)),
        (-65, 0.75, 0, 3, (Action.SELL, Strength.STRONG)),
        (-45, 0.55, 0, 2, (Action.SELL, Strength.MODERATE)),
        (-20, 0.0, 0, 2, (Action.SELL, Strength.WEAK)),
        (10, 1.0, 4, 0, (Action.HOLD, Strength.NEUTRAL)),
        (-19.9, 1.0, 0, 4, (Action.HOLD, Strength.NEUTRAL)),
    ])
    def test_decision_rows(self, engine, rising_series_stats, score, consensus, buys, sells, expected):
        series = series_from(rising_series_stats)
        result = engine.decide("FPT", combined(score, consensus, buys, sells), series)
        assert (result.action, result.strength) == expected

    def test_strong_buy_projects_target_up(self, engine, rising_series_stats):
        series = series_from(rising_series_stats)
        result = engine.decide("FPT", combined(75, 0.9, 4, 0), series)

        assert result.action == Action.BUY
        assert result.strength == Strength.STRONG
        # +2%/day projected five days hits the 10% cap
        assert result.target_price == rounded(series.closes[0] * Decimal('1.1'))

    def test_hold_keeps_current_price(self, engine, rising_series_stats):
        series = series_from(rising_series_stats)
        result = engine.decide("FPT", combined(0, 1.0, 0, 0), series)

        assert result.action == Action.HOLD
        assert result.target_price == result.current_price == series.closes[0]


class TestTargetPrice:
    """Average recent change projected five days, capped at 10%"""

    def test_one_percent_a_day_projects_five_percent(self, engine, stats_factory):
        closes = [Decimal(c) for c in ("100000", "99010", "98030", "97059", "96098", "95147")]
        series = series_from(stats_factory(closes))

        assert engine.calculate_target_price(series, TargetDirection.UP) == Decimal('105000')

    def test_direction_disagreement_returns_current_price(self, engine, stats_factory):
        closes = [Decimal(c) for c in ("100000", "99010", "98030", "97059", "96098", "95147")]
        series = series_from(stats_factory(closes))

        assert engine.calculate_target_price(series, TargetDirection.DOWN) == Decimal('100000')

    def test_falling_prices_project_down(self, engine, stats_factory):
        closes = [Decimal(c) for c in ("100000", "101010", "102030", "103061", "104102", "105154")]
        series = series_from(stats_factory(closes))

        assert engine.calculate_target_price(series, TargetDirection.DOWN) == Decimal('95000')

    def test_projection_is_capped(self, engine, stats_factory, closes_factory):
        closes = closes_factory(6, Decimal('80000'), Decimal('3'))
        series = series_from(stats_factory(closes))

        target = engine.calculate_target_price(series, TargetDirection.UP)
        assert target == rounded(closes[0] * Decimal('1.1'))

    def test_only_five_most_recent_pairs_count(self, engine, stats_factory):
        # Older crash is outside the five-pair window
        closes = [Decimal(c) for c in (
            "100000", "99010", "98030", "97059", "96098", "95147", "190000", "200000",
        )]
        series = series_from(stats_factory(closes))

        assert engine.calculate_target_price(series, TargetDirection.UP) == Decimal('105000')

    def test_rounds_to_price_unit(self, stats_factory):
        engine = EnsembleRecommendationEngine(EnsembleConfig(price_unit=Decimal('100')))
        closes = [Decimal(c) for c in ("100050", "99059", "98078", "97108", "96147", "95195")]
        series = series_from(stats_factory(closes))

        # 100050 * 1.05 = 105052.5 -> nearest 100
        assert engine.calculate_target_price(series, TargetDirection.UP) == Decimal('105100')


class TestEvaluate:
    """Full pipeline from daily aggregates"""

    def test_rising_accumulation_series(self, engine, rising_series_stats):
        result = engine.evaluate("FPT", rising_series_stats)

        # RSI ~99 without selling pressure stays NEUTRAL, which caps
        # the weighted score near 31 and the recommendation at weak
        assert result.action == Action.BUY
        assert result.strength == Strength.WEAK
        assert result.buy_votes == 3
        assert result.sell_votes == 0
        assert result.score == pytest.approx(31.26, abs=0.01)
        assert result.consensus == pytest.approx(0.692, abs=0.005)
        assert result.current_price == rising_series_stats[0].close_price
        assert result.target_price == rounded(rising_series_stats[0].close_price * Decimal('1.1'))
        assert result.volume_24h == 300_000
        assert result.reason == (
            "Consensus: 3 of 4 formulas suggest buying. Weighted score: 31.3/100. "
            "Formula agreement: 69%. TrendStrength: BUY (score: 60.0)."
        )

    def test_falling_distribution_series(self, engine, falling_series_stats):
        result = engine.evaluate("FPT", falling_series_stats)

        assert result.action == Action.SELL
        assert result.strength == Strength.WEAK
        assert result.sell_votes == 3
        assert result.score == pytest.approx(-31.26, abs=0.01)
        assert result.target_price == rounded(falling_series_stats[0].close_price * Decimal('0.9'))

    def test_fewer_than_five_days_holds(self, engine, rising_series_stats):
        result = engine.evaluate("FPT", rising_series_stats[:4])

        assert result.action == Action.HOLD
        assert result.strength == Strength.NEUTRAL
        assert result.confidence == 0.0
        assert result.reason == "Insufficient data (need at least 5 days)"
        assert result.current_price == rising_series_stats[0].close_price

    def test_invalid_days_do_not_count_towards_minimum(self, engine, stats_factory):
        closes = [Decimal('100'), Decimal('0'), Decimal('101'), Decimal('-1'), Decimal('102'), Decimal('103')]
        result = engine.evaluate("FPT", stats_factory(closes))

        assert result.action == Action.HOLD
        assert result.reason == "Insufficient data (need at least 5 days)"

    def test_no_data_holds(self, engine):
        result = engine.evaluate("FPT", [])

        assert result.action == Action.HOLD
        assert result.strength == Strength.NEUTRAL
        assert result.confidence == 0.0
        assert result.reason == "No trading data available"
        assert result.current_price is None

    def test_evaluation_is_idempotent(self, engine, rising_series_stats):
        first = engine.evaluate("FPT", rising_series_stats)
        second = engine.evaluate("FPT", list(rising_series_stats))

        assert first == second
        assert first.to_dict() == second.to_dict()

    def test_input_order_does_not_matter(self, engine, rising_series_stats):
        assert engine.evaluate("FPT", rising_series_stats) == engine.evaluate(
            "FPT", list(reversed(rising_series_stats))
        )

    def test_alternate_weights_without_touching_formulas(self, rising_series_stats):
        engine = EnsembleRecommendationEngine(EnsembleConfig(weights=(1.0, 0.0, 0.0, 0.0)))
        result = engine.evaluate("FPT", rising_series_stats)

        expected = volume_price_momentum(series_from(rising_series_stats)).score
        assert result.score == pytest.approx(expected)

    def test_malformed_input_fails_loudly(self, engine, rising_series_stats):
        with pytest.raises(ValueError, match="Duplicate"):
            engine.evaluate("FPT", rising_series_stats + rising_series_stats[:1])


def test_config_rejects_nonsense():
    with pytest.raises(ValueError):
        EnsembleConfig(min_days=0)
    with pytest.raises(ValueError):
        EnsembleConfig(price_unit=Decimal('0'))
    with pytest.raises(ValueError):
        EnsembleConfig(min_days=5, lookback_days=3)
