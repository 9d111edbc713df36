"""
INTRADAY SIGNAL ENGINE (ENGINE-3)
Detect abrupt same-day buy / sell imbalance

RESPONSIBILITIES:
- Sum volume per side for the latest trading day
- Count large block trades per side
- Measure price move from first to last trade of the day
- Score both sides independently and emit the clear winner

RULES:
❌ No signal below the liquidity gate
❌ No signal on a tie
✅ Deterministic: timestamp is supplied by the caller
✅ "No signal" is None, never an exception
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal, ROUND_HALF_UP
from typing import List, Optional, Sequence

from app.domain.models import IntradaySignal, IntradayTrade, SignalType, TradeSide

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class IntradayConfig:
    """Point table for the intraday scorer"""
    min_total_volume: int = 50_000
    large_block_volume: int = 100_000

    imbalance_ratio: Decimal = Decimal('1.5')
    imbalance_min_volume: int = 50_000
    imbalance_points: int = 3

    strong_imbalance_ratio: Decimal = Decimal('3')
    strong_imbalance_min_volume: int = 100_000
    strong_imbalance_points: int = 2

    block_count: int = 2
    block_points: int = 2
    many_block_count: int = 5
    many_block_points: int = 1

    price_move_pct: Decimal = Decimal('0.5')
    price_move_points: int = 1
    strong_price_move_pct: Decimal = Decimal('2.0')
    strong_price_move_points: int = 1

    min_signal_score: int = 4


@dataclass(frozen=True)
class _SideActivity:
    volume: int
    opposite_volume: int
    large_blocks: int


class IntradaySignalEngine:
    """
    Intraday Signal Engine
    Scores one security's trades for the day, does NOT fetch them
    """

    def __init__(self, config: Optional[IntradayConfig] = None):
        self.config = config or IntradayConfig()

    def score_trades(
        self,
        code: str,
        trades: Sequence[IntradayTrade],
        now: datetime,
    ) -> Optional[IntradaySignal]:
        """
        Score trades of the most recent trading day in the set.

        Args:
            code: Security code
            trades: Trades, newest first (older days are ignored)
            now: Timestamp stamped on an emitted signal

        Returns:
            IntradaySignal, or None when no signal fires
        """
        if not trades:
            return None

        day_trades = self._latest_day(trades)
        cfg = self.config

        buy_volume = sum(t.volume for t in day_trades if t.side == TradeSide.BUY)
        sell_volume = sum(t.volume for t in day_trades if t.side == TradeSide.SELL)

        if buy_volume + sell_volume < cfg.min_total_volume:
            logger.debug("%s: below liquidity gate (%d)", code, buy_volume + sell_volume)
            return None

        large_buys = sum(
            1 for t in day_trades
            if t.side == TradeSide.BUY and t.volume >= cfg.large_block_volume
        )
        large_sells = sum(
            1 for t in day_trades
            if t.side == TradeSide.SELL and t.volume >= cfg.large_block_volume
        )

        first_price = day_trades[-1].price
        last_price = day_trades[0].price
        price_change = self.price_change_pct(first_price, last_price)

        buy_score = self._side_score(
            _SideActivity(buy_volume, sell_volume, large_buys), price_change
        )
        sell_score = self._side_score(
            _SideActivity(sell_volume, buy_volume, large_sells), -price_change
        )

        if buy_score >= cfg.min_signal_score and buy_score > sell_score:
            signal_type, score = SignalType.BUY, buy_score
            reason = self._reason(
                "buy", "Sell", buy_volume, sell_volume, large_buys, price_change, len(day_trades)
            )
        elif sell_score >= cfg.min_signal_score and sell_score > buy_score:
            signal_type, score = SignalType.SELL, sell_score
            reason = self._reason(
                "sell", "Buy", sell_volume, buy_volume, large_sells, price_change, len(day_trades)
            )
        else:
            logger.debug("%s: no signal (buy=%d sell=%d)", code, buy_score, sell_score)
            return None

        logger.info("%s: intraday %s signal, score %d", code, signal_type.value, score)

        return IntradaySignal(
            code=code,
            signal_type=signal_type,
            score=score,
            reason=reason,
            buy_volume=buy_volume,
            sell_volume=sell_volume,
            last_price=last_price,
            price_change=price_change,
            timestamp=now,
        )

    @staticmethod
    def price_change_pct(first_price: Decimal, last_price: Decimal) -> Decimal:
        """Percent move first -> last (ratio rounded HALF_UP to 4 dp); 0 if first <= 0"""
        if first_price <= Decimal('0'):
            return Decimal('0')
        ratio = ((last_price - first_price) / first_price).quantize(
            Decimal('0.0001'), rounding=ROUND_HALF_UP
        )
        return ratio * Decimal('100')

    def _side_score(self, side: _SideActivity, directional_change: Decimal) -> int:
        """Points for one side; directional_change is positive when price moved its way"""
        cfg = self.config
        score = 0

        if (
            side.volume > side.opposite_volume * cfg.imbalance_ratio
            and side.volume > cfg.imbalance_min_volume
        ):
            score += cfg.imbalance_points
        if (
            side.volume > side.opposite_volume * cfg.strong_imbalance_ratio
            and side.volume > cfg.strong_imbalance_min_volume
        ):
            score += cfg.strong_imbalance_points

        if side.large_blocks >= cfg.block_count:
            score += cfg.block_points
        if side.large_blocks >= cfg.many_block_count:
            score += cfg.many_block_points

        if directional_change > cfg.price_move_pct:
            score += cfg.price_move_points
        if directional_change > cfg.strong_price_move_pct:
            score += cfg.strong_price_move_points

        return score

    @staticmethod
    def _latest_day(trades: Sequence[IntradayTrade]) -> List[IntradayTrade]:
        ordered = sorted(trades, key=lambda t: (t.trade_date, t.trade_time), reverse=True)
        today = ordered[0].trade_date
        return [t for t in ordered if t.trade_date == today]

    @staticmethod
    def _reason(
        side: str,
        opposite_label: str,
        volume: int,
        opposite_volume: int,
        large_blocks: int,
        price_change: Decimal,
        trade_count: int,
    ) -> str:
        ratio = volume / opposite_volume if opposite_volume > 0 else float(volume)
        return (
            f"Strong {side} pressure detected! {side.capitalize()} volume: {volume:,} "
            f"vs {opposite_label}: {opposite_volume:,} (Ratio: {ratio:.2f}x). "
            f"Large {side} blocks: {large_blocks}. Price change: {float(price_change):+.2f}%. "
            f"Total trades: {trade_count}"
        )
