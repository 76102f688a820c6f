#!/usr/bin/env python3
"""
Week Odds Sync

Syncs NFL betting odds for every tracked game of one week:
1. One bulk The Odds API call (game lines) or per-event calls (player props)
2. ESPN fallback for games The Odds API does not cover
3. Merge into stored records and print the sync tally as JSON

Ctrl+C stops games that have not started yet; in-flight merges finish.

Usage:
    python scripts/sync_week_odds.py --week 1 --season 2025
    python scripts/sync_week_odds.py --week 1 --season 2025 --props
    python scripts/sync_week_odds.py --game 401671789 --season 2025
"""
import argparse
import asyncio
import json
import signal
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from oddsync.core.config import load_settings
from oddsync.core.database import create_db_engine, create_session_factory, init_db
from oddsync.core.exceptions import ConfigurationError, OddsSyncError
from oddsync.core.logging import configure_logging, get_logger
from oddsync.services.betting_odds_service import create_betting_odds_service

logger = get_logger(__name__)


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Sync NFL betting odds from The Odds API and ESPN"
    )
    parser.add_argument(
        "--week",
        type=int,
        help="NFL week to sync"
    )
    parser.add_argument(
        "--season",
        type=int,
        required=True,
        help="Season year (e.g. 2025)"
    )
    parser.add_argument(
        "--game",
        help="Sync a single game by external ID instead of a week"
    )
    parser.add_argument(
        "--props",
        action="store_true",
        help="Sync player props instead of game lines"
    )
    parser.add_argument(
        "--markets",
        help="Comma-separated player prop markets (default from PLAYER_PROP_MARKETS)"
    )
    args = parser.parse_args(argv)
    if args.week is None and args.game is None:
        parser.error("one of --week or --game is required")
    return args


async def run(args: argparse.Namespace) -> int:
    try:
        settings = load_settings()
    except ConfigurationError as e:
        configure_logging(level="INFO", json_output=False)
        logger.error(str(e))
        return 2

    configure_logging(level=settings.LOG_LEVEL, json_output=settings.LOG_JSON)

    engine = create_db_engine(settings.DATABASE_URL)
    init_db(engine)
    db = create_session_factory(engine)()
    service = create_betting_odds_service(settings, db)

    cancel_event = asyncio.Event()
    try:
        asyncio.get_running_loop().add_signal_handler(signal.SIGINT, cancel_event.set)
    except (NotImplementedError, RuntimeError):
        logger.debug("Signal handlers not supported; Ctrl+C will abort immediately")

    try:
        if args.game:
            record = await service.sync_game_odds(args.game, args.season)
            result = {
                "external_id": args.game,
                "synced": record is not None,
                "sources": len(record.sources) if record else 0,
                "sync_count": record.sync_count if record else 0,
            }
        elif args.props:
            markets = [m.strip() for m in args.markets.split(",")] if args.markets else None
            result = await service.sync_week_player_props(args.week, args.season, markets=markets, cancel_event=cancel_event)
        else:
            result = await service.sync_week_odds(args.week, args.season, cancel_event=cancel_event)
    except OddsSyncError as e:
        logger.error(f"Sync failed: {e}")
        return 1
    finally:
        await service.close()
        db.close()

    print(json.dumps(result, indent=2, default=str))
    return 0


def main() -> int:
    """Main entry point."""
    return asyncio.run(run(parse_args()))


if __name__ == "__main__":
    sys.exit(main())
