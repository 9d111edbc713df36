#!/usr/bin/env python3
"""
Evaluate recommendations and intraday signals from the trades database.

Examples:
    python scripts/evaluate_signals.py --mode top --limit 5
    python scripts/evaluate_signals.py --mode intraday --codes FPT,HPG,VNM
"""

import argparse
import asyncio
import json

from app.config import settings
from app.core.logging import setup_logging
from app.infrastructure.db.database import close_db, get_session_factory, init_db
from app.infrastructure.db.repositories.trade_repository import TradeRepository
from app.services.signal_service import SignalService


async def run(args: argparse.Namespace) -> dict:
    repository = TradeRepository(get_session_factory(), lookback_days=settings.SIGNAL_LOOKBACK_DAYS)
    service = SignalService(repository, repository)
    codes = [c.strip().upper() for c in args.codes.split(",") if c.strip()] if args.codes else None

    output = {}
    try:
        if args.create_tables:
            await init_db()
        if args.mode in ("recommendations", "all"):
            recommendations = await service.evaluate_recommendations(
                codes, include_neutral=args.include_neutral
            )
            output["recommendations"] = [r.to_dict() for r in recommendations]
        if args.mode in ("top", "all"):
            top = await service.top_recommendations(codes, limit=args.limit)
            output["top"] = [r.to_dict() for r in top]
        if args.mode in ("intraday", "all"):
            signals = await service.evaluate_intraday_signals(codes)
            output["intraday"] = [s.to_dict() for s in signals]
    finally:
        await close_db()

    return output


def main() -> None:
    parser = argparse.ArgumentParser(description="Evaluate trading signals")
    parser.add_argument(
        "--mode",
        choices=["recommendations", "top", "intraday", "all"],
        default="all",
        help="Which evaluation to run",
    )
    parser.add_argument("--codes", type=str, default=None, help="Comma-separated security codes (default: universe)")
    parser.add_argument("--limit", type=int, default=10, help="Number of top recommendations")
    parser.add_argument("--include-neutral", action="store_true", help="Keep hold recommendations")
    parser.add_argument("--create-tables", action="store_true", help="Create the trades table if missing")
    parser.add_argument("--log-level", type=str, default=settings.LOG_LEVEL, help="Root log level")

    args = parser.parse_args()
    setup_logging(args.log_level)

    output = asyncio.run(run(args))
    print(json.dumps(output, indent=2, ensure_ascii=False))


if __name__ == "__main__":
    main()
