"""
ENSEMBLE FORMULAS
Four independent scorers over a newest-first daily series

RULES:
❌ No DB / network access
❌ No mutation of the input series
✅ Pure functions: same series + same config -> same FormulaResult
✅ Score always clamped to [-100, 100]
✅ Vote derived from the score through an explicit ladder
"""

import logging
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Callable, Dict, Tuple

from app.domain.indicators.daily_series import DailySeries, decimal_mean, percent_change
from app.domain.indicators.vote_ladder import (
    VoteRule,
    four_tier_ladder,
    momentum_ladder,
    resolve_vote,
)
from app.domain.models import FormulaName, FormulaResult, Vote

logger = logging.getLogger(__name__)

# Recency decay, index 0 = today
DAY_WEIGHTS: Tuple[float, ...] = (1.0, 1.0, 0.9, 0.8, 0.7, 0.6, 0.5, 0.4, 0.3, 0.2)


@dataclass(frozen=True)
class FormulaConfig:
    """Weight and threshold tables shared by the four formulas"""
    day_weights: Tuple[float, ...] = DAY_WEIGHTS
    momentum_ladder: Tuple[VoteRule, ...] = field(default_factory=momentum_ladder)
    ma_ladder: Tuple[VoteRule, ...] = field(default_factory=lambda: four_tier_ladder(60, 40))
    rsi_ladder: Tuple[VoteRule, ...] = field(default_factory=lambda: four_tier_ladder(60, 40))
    # Lower tier boundaries than the MA / RSI ladders
    trend_ladder: Tuple[VoteRule, ...] = field(default_factory=lambda: four_tier_ladder(40, 20))


DEFAULT_FORMULA_CONFIG = FormulaConfig()


def clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


def _neutral(name: FormulaName, reason: str) -> FormulaResult:
    return FormulaResult(name=name, score=0.0, vote=Vote.NEUTRAL, confidence=0.0, reason=reason)


def _finish(
    name: FormulaName,
    score: float,
    ladder: Tuple[VoteRule, ...],
    reasons: Dict[str, Callable[[], str]],
) -> FormulaResult:
    vote, confidence, label = resolve_vote(score, ladder)
    reason = reasons[label]()
    logger.debug("%s score=%.2f vote=%s confidence=%.2f", name.value, score, vote.value, confidence)
    return FormulaResult(name=name, score=score, vote=vote, confidence=confidence, reason=reason)


# -------------------------------------------------------------------
# FORMULA 1: WEIGHTED VOLUME-PRICE MOMENTUM
# -------------------------------------------------------------------

def volume_price_momentum(
    series: DailySeries,
    config: FormulaConfig = DEFAULT_FORMULA_CONFIG,
) -> FormulaResult:
    """
    Volume accumulation + decayed price momentum + large block balance.

    volume score  = sum(((buy - sell) / (buy + sell)) * W[i] * 10), clamp +-30
    price momentum = sum(pct_change(close[i], close[i+1]) * W[i] * 0.5), clamp +-30
    block score   = ((large buys - large sells) / all large blocks) * 20
    """
    name = FormulaName.VOLUME_PRICE_MOMENTUM
    if series.size < 2:
        return _neutral(name, "Insufficient data")

    weights = config.day_weights

    volume_score = 0.0
    for i in range(min(series.size, len(weights))):
        day_volume = series.buy_volumes[i] + series.sell_volumes[i]
        if day_volume > 0:
            day_ratio = (series.buy_volumes[i] - series.sell_volumes[i]) / day_volume
            volume_score += day_ratio * weights[i] * 10
    volume_score = clamp(volume_score, -30, 30)

    price_momentum = 0.0
    for i in range(min(series.size - 1, len(weights) - 1)):
        previous = series.closes[i + 1]
        if previous > Decimal('0'):
            day_change = float(percent_change(series.closes[i], previous))
            price_momentum += day_change * weights[i] * 0.5
    price_momentum = clamp(price_momentum, -30, 30)

    block_score = 0.0
    total_blocks = series.total_large_buys + series.total_large_sells
    if total_blocks > 0:
        block_score = (series.total_large_buys - series.total_large_sells) / total_blocks * 20

    score = clamp(volume_score + price_momentum + block_score, -100, 100)

    return _finish(name, score, config.momentum_ladder, {
        "strong_buy": lambda: (
            f"Strong volume-price momentum (score: {score:.1f}). "
            "Buy volume accumulation and positive price trend."
        ),
        "buy": lambda: (
            f"Positive volume-price momentum (score: {score:.1f}). "
            "Moderate buying pressure detected."
        ),
        "strong_sell": lambda: (
            f"Strong negative volume-price momentum (score: {score:.1f}). "
            "Sell volume accumulation and negative price trend."
        ),
        "sell": lambda: (
            f"Negative volume-price momentum (score: {score:.1f}). "
            "Moderate selling pressure detected."
        ),
        "neutral": lambda: f"Neutral volume-price momentum (score: {score:.1f}). No clear trend.",
    })


# -------------------------------------------------------------------
# FORMULA 2: MOVING AVERAGE CROSSOVER
# -------------------------------------------------------------------

def moving_average_crossover(
    series: DailySeries,
    config: FormulaConfig = DEFAULT_FORMULA_CONFIG,
) -> FormulaResult:
    """
    MA5 vs MA10 crossover with price and volume confirmation.

    All four conditions are checked independently and added up:
    crossover state (+-40 / +-20), price vs MA5 (+-20), volume trend (+-20).
    """
    name = FormulaName.MA_CROSSOVER
    if series.size < 5:
        return _neutral(name, "Insufficient data for MA calculation")

    window = min(series.size, 10)
    ma5 = decimal_mean(series.closes[:5])
    ma10 = decimal_mean(series.closes[:window])

    if ma5 == Decimal('0') or ma10 == Decimal('0'):
        return _neutral(name, "Unable to calculate moving averages")

    ma5_yesterday = decimal_mean(series.closes[1:6]) if series.size >= 6 else ma5
    current_price = series.closes[0]

    recent_volume = Decimal(sum(series.total_volumes[:3]))
    avg_volume_10d = Decimal(sum(series.total_volumes[:window]) // window)
    volume_trend = Decimal('0')
    if avg_volume_10d > 0:
        volume_trend = (recent_volume / Decimal('3') - avg_volume_10d) / avg_volume_10d

    score = 0.0

    if ma5 > ma10 and ma5_yesterday <= ma10:
        score += 40
    elif ma5 > ma10:
        score += 20

    if current_price > ma5:
        score += 20
    elif current_price < ma5:
        score -= 20

    if volume_trend > Decimal('0.2'):
        score += 20
    elif volume_trend < Decimal('-0.2'):
        score -= 20

    if ma5 < ma10 and ma5_yesterday >= ma10:
        score -= 40
    elif ma5 < ma10:
        score -= 20

    score = clamp(score, -100, 100)
    ma5_int, ma10_int = int(ma5), int(ma10)

    return _finish(name, score, config.ma_ladder, {
        "strong_buy": lambda: (
            f"Bullish MA crossover: MA5({ma5_int}) > MA10({ma10_int}). "
            "Price above MA5. Volume increasing."
        ),
        "buy": lambda: f"MA5({ma5_int}) above MA10({ma10_int}). Positive trend confirmed.",
        "strong_sell": lambda: (
            f"Bearish MA crossover: MA5({ma5_int}) < MA10({ma10_int}). "
            "Price below MA5. Volume decreasing."
        ),
        "sell": lambda: f"MA5({ma5_int}) below MA10({ma10_int}). Negative trend confirmed.",
        "neutral": lambda: f"Mixed MA signals. MA5({ma5_int}) vs MA10({ma10_int}).",
    })


# -------------------------------------------------------------------
# FORMULA 3: VOLUME-WEIGHTED RELATIVE STRENGTH
# -------------------------------------------------------------------

def volume_weighted_rsi(
    series: DailySeries,
    config: FormulaConfig = DEFAULT_FORMULA_CONFIG,
) -> FormulaResult:
    """
    RSI-style oscillator where each day's change is weighted by
    decay * (volume / 1,000,000), confirmed by the buy/sell volume ratio.
    """
    name = FormulaName.RSI
    if series.size < 2:
        return _neutral(name, "Insufficient data for RSI calculation")

    weights = config.day_weights
    avg_gain = 0.0
    avg_loss = 0.0
    total_weight = 0.0

    for i in range(min(series.size - 1, len(weights) - 1)):
        previous = series.closes[i + 1]
        if previous <= Decimal('0'):
            continue
        change = float(series.closes[i] - previous)
        weight = weights[i] * (series.total_volumes[i] / 1_000_000)
        if change > 0:
            avg_gain += change * weight
        else:
            avg_loss += abs(change) * weight
        total_weight += weight

    if total_weight == 0:
        return _neutral(name, "Unable to calculate RSI")

    avg_gain /= total_weight
    avg_loss /= total_weight

    rs = 100.0 if avg_loss == 0 else avg_gain / avg_loss
    rsi = 100 - (100 / (1 + rs))

    total_buy = series.total_buy_volume
    total_sell = series.total_sell_volume
    volume_ratio = Decimal(total_buy) / Decimal(total_sell) if total_sell > 0 else Decimal(total_buy)

    if rsi < 30 and volume_ratio > Decimal('1.5'):
        score = 80.0
    elif rsi < 40 and volume_ratio > Decimal('1.2'):
        score = 50.0
    elif rsi > 70 and volume_ratio < Decimal('0.67'):
        score = -80.0
    elif rsi > 60 and volume_ratio < Decimal('0.83'):
        score = -50.0
    elif 40 <= rsi <= 60:
        score = 0.0
    else:
        # Extreme zone without volume confirmation
        score = 20.0 if rsi < 40 else -20.0

    ratio = float(volume_ratio)

    return _finish(name, score, config.rsi_ladder, {
        "strong_buy": lambda: (
            f"RSI oversold ({rsi:.1f}) with strong buying pressure "
            f"(volume ratio: {ratio:.2f}). Potential reversal."
        ),
        "buy": lambda: f"RSI low ({rsi:.1f}) with buying pressure (volume ratio: {ratio:.2f}).",
        "strong_sell": lambda: (
            f"RSI overbought ({rsi:.1f}) with strong selling pressure "
            f"(volume ratio: {ratio:.2f}). Potential reversal."
        ),
        "sell": lambda: f"RSI high ({rsi:.1f}) with selling pressure (volume ratio: {ratio:.2f}).",
        "neutral": lambda: f"RSI neutral ({rsi:.1f}). No clear momentum.",
    })


# -------------------------------------------------------------------
# FORMULA 4: TREND STRENGTH (ACCUMULATION / DISTRIBUTION)
# -------------------------------------------------------------------

def trend_strength(
    series: DailySeries,
    config: FormulaConfig = DEFAULT_FORMULA_CONFIG,
) -> FormulaResult:
    """
    Decay-weighted A/D line, 10-day price change and a two-window VWAP trend.
    """
    name = FormulaName.TREND_STRENGTH
    if series.size < 2:
        return _neutral(name, "Insufficient data")

    weights = config.day_weights

    ad_line = 0.0
    for i in range(min(series.size, len(weights))):
        high, low, close = series.highs[i], series.lows[i], series.closes[i]
        if high > low:
            multiplier = ((close - low) - (high - close)) / (high - low)
            ad_line += float(multiplier) * series.total_volumes[i] * weights[i]

    oldest_close = series.closes[min(series.size - 1, 9)]
    change_10d = Decimal('0')
    if oldest_close > Decimal('0'):
        change_10d = percent_change(series.closes[0], oldest_close)

    vwap_trend = _vwap_trend(series)

    score = 0.0
    if ad_line > 0 and change_10d > Decimal('2'):
        score += 40
    elif ad_line > 0 and change_10d > Decimal('0'):
        score += 20
    elif ad_line < 0 and change_10d < Decimal('-2'):
        score -= 40
    elif ad_line < 0 and change_10d < Decimal('0'):
        score -= 20

    if vwap_trend > Decimal('1'):
        score += 20
    elif vwap_trend < Decimal('-1'):
        score -= 20

    score = clamp(score, -100, 100)
    change = float(change_10d)

    return _finish(name, score, config.trend_ladder, {
        "strong_buy": lambda: (
            f"Strong accumulation trend. A/D Line positive, price up {change:.2f}%, VWAP trending up."
        ),
        "buy": lambda: f"Accumulation trend. A/D Line positive, price up {change:.2f}%.",
        "strong_sell": lambda: (
            f"Strong distribution trend. A/D Line negative, price down {change:.2f}%, VWAP trending down."
        ),
        "sell": lambda: f"Distribution trend. A/D Line negative, price down {change:.2f}%.",
        "neutral": lambda: f"Mixed accumulation/distribution signals. Price change: {change:.2f}%.",
    })


def _vwap_trend(series: DailySeries) -> Decimal:
    """Percent difference between VWAP of days 0-4 and days 5-9 (0 if either has no volume)"""
    recent_value, recent_volume = _window_value(series, 0, min(series.size, 5))
    older_value, older_volume = _window_value(series, 5, min(series.size, 10))
    if recent_volume <= 0 or older_volume <= 0:
        return Decimal('0')
    recent_vwap = recent_value / Decimal(recent_volume)
    older_vwap = older_value / Decimal(older_volume)
    return percent_change(recent_vwap, older_vwap)


def _window_value(series: DailySeries, start: int, end: int) -> Tuple[Decimal, int]:
    value = Decimal('0')
    volume = 0
    for i in range(start, end):
        value += series.closes[i] * series.total_volumes[i]
        volume += series.total_volumes[i]
    return value, volume


FORMULAS: Tuple[Callable[[DailySeries, FormulaConfig], FormulaResult], ...] = (
    volume_price_momentum,
    moving_average_crossover,
    volume_weighted_rsi,
    trend_strength,
)


def evaluate_all(
    series: DailySeries,
    config: FormulaConfig = DEFAULT_FORMULA_CONFIG,
) -> Tuple[FormulaResult, ...]:
    """Run the four formulas in combiner order"""
    return tuple(formula(series, config) for formula in FORMULAS)
