"""
Signal Service
Async orchestration of providers and signal engines across a universe.
"""

import asyncio
import logging
from typing import Awaitable, Callable, Iterable, List, Optional, TypeVar

from app.config import settings
from app.domain.models import IntradaySignal, RecommendationResult
from app.domain.services.ensemble_engine import EnsembleConfig, EnsembleRecommendationEngine
from app.domain.services.intraday_signal_engine import IntradaySignalEngine
from app.infrastructure.market_data.types import (
    DailyAggregateProvider,
    DataUnavailable,
    IntradayTradeProvider,
)
from app.utils.time import now_vn

logger = logging.getLogger(__name__)

T = TypeVar("T")


def default_ensemble_engine() -> EnsembleRecommendationEngine:
    return EnsembleRecommendationEngine(
        EnsembleConfig(
            min_days=settings.SIGNAL_MIN_DAYS,
            lookback_days=settings.SIGNAL_LOOKBACK_DAYS,
            price_unit=settings.PRICE_UNIT,
        )
    )


class SignalService:
    """
    Per-security recommendation and intraday signal evaluation.

    Provider calls are the only I/O: at most `max_workers` run at once and
    each one is bounded by `timeout_seconds`. A timeout or provider error
    surfaces as DataUnavailable; batch methods skip and log that security.
    """

    def __init__(
        self,
        aggregate_provider: DailyAggregateProvider,
        trade_provider: IntradayTradeProvider,
        ensemble_engine: Optional[EnsembleRecommendationEngine] = None,
        intraday_engine: Optional[IntradaySignalEngine] = None,
        max_workers: Optional[int] = None,
        timeout_seconds: Optional[float] = None,
        clock: Callable = now_vn,
    ):
        self.aggregate_provider = aggregate_provider
        self.trade_provider = trade_provider
        self.ensemble_engine = ensemble_engine or default_ensemble_engine()
        self.intraday_engine = intraday_engine or IntradaySignalEngine()
        self.max_workers = max_workers or settings.SIGNAL_MAX_WORKERS
        self.timeout_seconds = (
            timeout_seconds if timeout_seconds is not None
            else settings.SIGNAL_PROVIDER_TIMEOUT_SECONDS
        )
        self.clock = clock
        self._semaphore = asyncio.Semaphore(self.max_workers)

    # -----------------------------
    # Single security
    # -----------------------------

    async def evaluate_recommendation(self, code: str) -> RecommendationResult:
        """
        Ensemble recommendation for one security.

        Raises:
            DataUnavailable: provider failed or timed out
        """
        stats = await self._fetch(code, self.aggregate_provider.get_daily_aggregates, code)
        return self.ensemble_engine.evaluate(code, stats)

    async def evaluate_intraday_signal(self, code: str) -> Optional[IntradaySignal]:
        """
        Intraday signal for the latest trading day of one security.

        Raises:
            DataUnavailable: provider failed or timed out
        """
        latest = await self._fetch(code, self.trade_provider.get_latest_trade_date, code)
        if latest is None:
            logger.debug("No trades found for %s", code)
            return None

        trades = await self._fetch(code, self.trade_provider.get_intraday_trades, code, latest)
        return self.intraday_engine.score_trades(code, trades, now=self.clock())

    # -----------------------------
    # Batch over a universe
    # -----------------------------

    async def evaluate_recommendations(
        self,
        codes: Optional[Iterable[str]] = None,
        include_neutral: bool = False,
    ) -> List[RecommendationResult]:
        """All recommendations, highest score first (hold dropped unless include_neutral)"""
        universe = self._universe(codes)
        results = await asyncio.gather(
            *(self._skip_unavailable(code, self.evaluate_recommendation) for code in universe)
        )

        recommendations = [r for r in results if r is not None]
        if not include_neutral:
            recommendations = [r for r in recommendations if r.is_actionable]
        recommendations.sort(key=lambda r: r.score, reverse=True)

        logger.info(
            "Recommendations: %d of %d securities returned",
            len(recommendations),
            len(universe),
        )
        return recommendations

    async def top_recommendations(
        self,
        codes: Optional[Iterable[str]] = None,
        limit: int = 10,
    ) -> List[RecommendationResult]:
        """Actionable recommendations ranked by |score| x confidence"""
        if limit <= 0:
            return []
        actionable = await self.evaluate_recommendations(codes, include_neutral=False)
        actionable.sort(key=lambda r: abs(r.score) * r.confidence, reverse=True)
        return actionable[:limit]

    async def evaluate_intraday_signals(
        self,
        codes: Optional[Iterable[str]] = None,
    ) -> List[IntradaySignal]:
        """Emitted intraday signals only, in universe order"""
        universe = self._universe(codes)
        results = await asyncio.gather(
            *(self._skip_unavailable(code, self.evaluate_intraday_signal) for code in universe)
        )
        signals = [s for s in results if s is not None]
        logger.info("Intraday scan: %d signals from %d securities", len(signals), len(universe))
        return signals

    # -----------------------------
    # Internals
    # -----------------------------

    async def _fetch(self, code: str, call: Callable[..., Awaitable[T]], *args) -> T:
        async with self._semaphore:
            try:
                return await asyncio.wait_for(call(*args), timeout=self.timeout_seconds)
            except asyncio.TimeoutError as exc:
                raise DataUnavailable(
                    code, f"provider timed out after {self.timeout_seconds}s"
                ) from exc

    async def _skip_unavailable(
        self,
        code: str,
        evaluate: Callable[[str], Awaitable[T]],
    ) -> Optional[T]:
        try:
            return await evaluate(code)
        except DataUnavailable as exc:
            logger.warning("Skipping %s: %s", code, exc.message)
            return None

    @staticmethod
    def _universe(codes: Optional[Iterable[str]]) -> List[str]:
        if codes is None:
            return list(settings.SIGNAL_UNIVERSE)
        return list(dict.fromkeys(code.strip().upper() for code in codes if code.strip()))
