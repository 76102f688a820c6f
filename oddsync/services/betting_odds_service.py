"""
Betting odds service - the persisted-odds surface used by routes, the live
poller and scripts.

Build one per process with create_betting_odds_service(settings, db); the
OddsApiService and its rate limiter inside are shared by every sync.
"""
import asyncio
from typing import Any, Dict, List, Optional, Sequence

from sqlalchemy.orm import Session

from oddsync.core.config import Settings
from oddsync.core.logging import get_logger
from oddsync.core.rate_limiter import RequestRateLimiter
from oddsync.models.models import BettingOdds
from oddsync.repositories.betting_odds_repository import BettingOddsRepository
from oddsync.repositories.game_repository import GameRepository
from oddsync.services.core.circuit_breaker import get_breaker_state
from oddsync.services.core.espn_service import ESPNOddsService
from oddsync.services.core.odds_api_service import OddsApiService
from oddsync.services.sync.orchestrator import SyncOrchestrator

logger = get_logger(__name__)


class BettingOddsService:
    """
    Read and sync reconciled betting odds.

    Usage:
        service = create_betting_odds_service(settings, db)
        results = await service.sync_week_odds(week=1, season=2025)
        odds = service.get_game_odds('401671789', 2025)
        await service.close()
    """

    def __init__(self, orchestrator: SyncOrchestrator, odds_repository: BettingOddsRepository):
        self.orchestrator = orchestrator
        self.odds_repository = odds_repository

    # Reads

    def get_game_odds(self, external_id: str, season: int) -> Optional[BettingOdds]:
        return self.odds_repository.find_by_key(external_id, season)

    def get_week_odds(self, week: int, season: int) -> List[BettingOdds]:
        return self.odds_repository.find_by_week(week, season)

    def get_upcoming_odds(self, limit: int = 20) -> List[BettingOdds]:
        return self.odds_repository.find_upcoming(limit=limit)

    def get_available_bookmakers(self) -> List[str]:
        return self.odds_repository.available_bookmakers()

    def get_credit_status(self) -> Dict[str, Any]:
        """Credit status of The Odds API plus the ESPN breaker state."""
        status = self.orchestrator.odds_client.get_credit_status()
        status["espn_breaker"] = get_breaker_state(self.orchestrator.espn_service.breaker)
        return status

    def get_stats(self) -> Dict[str, Any]:
        """
        Coverage statistics over active records.

        Returns:
            Dict with total_records, records_with_odds, coverage_pct, sources,
            source_count, last_synced and credits (None until the first
            The Odds API response)
        """
        counts = self.odds_repository.stats()
        total = counts["total_records"]
        with_odds = counts["records_with_odds"]
        sources = self.odds_repository.available_bookmakers()
        credit_status = self.orchestrator.odds_client.get_credit_status()

        credits = None
        if credit_status["credits_remaining"] is not None:
            credits = {
                "remaining": credit_status["credits_remaining"],
                "used": credit_status["credits_used"],
                "last_call_cost": credit_status["last_call_cost"],
            }

        return {
            "total_records": total,
            "records_with_odds": with_odds,
            "coverage_pct": round(with_odds / total * 100, 2) if total else 0.0,
            "sources": sources,
            "source_count": len(sources),
            "last_synced": counts["last_synced"],
            "credits": credits,
        }

    # Syncs

    async def sync_week_odds(self, week: int, season: int, cancel_event: Optional[asyncio.Event] = None) -> Dict[str, Any]:
        return await self.orchestrator.sync_week_odds(week, season, cancel_event=cancel_event)

    async def sync_week_player_props(
        self,
        week: int,
        season: int,
        markets: Optional[Sequence[str]] = None,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> Dict[str, Any]:
        return await self.orchestrator.sync_week_player_props(week, season, markets=markets, cancel_event=cancel_event)

    async def sync_game_odds(self, external_id: str, season: int) -> Optional[BettingOdds]:
        return await self.orchestrator.sync_game_odds(external_id, season)

    async def close(self):
        """Close provider HTTP clients."""
        await self.orchestrator.odds_client.close()
        self.orchestrator.espn_service.close()


def create_betting_odds_service(
    settings: Settings,
    db: Session,
    odds_client: Optional[OddsApiService] = None,
    espn_service: Optional[ESPNOddsService] = None,
) -> BettingOddsService:
    """
    Wire repositories, provider clients and the orchestrator from settings.

    Args:
        settings: Validated settings (see load_settings)
        db: Database session
        odds_client: Existing client to share (one per process)
        espn_service: Existing ESPN service to share

    Returns:
        BettingOddsService
    """
    if odds_client is None:
        rate_limiter = RequestRateLimiter(
            max_requests_per_window=settings.ODDS_API_MAX_REQUESTS_PER_MINUTE,
            min_interval=settings.ODDS_API_MIN_REQUEST_INTERVAL,
            window_seconds=settings.RATE_LIMIT_WINDOW_SECONDS,
            safety_buffer=settings.RATE_LIMIT_SAFETY_BUFFER,
        )
        odds_client = OddsApiService(
            api_key=settings.THE_ODDS_API_KEY,
            rate_limiter=rate_limiter,
            timeout=settings.ODDS_API_TIMEOUT,
            base_url=settings.ODDS_API_BASE_URL,
            sport=settings.ODDS_API_SPORT,
            regions=settings.odds_regions,
            max_attempts=settings.ODDS_API_MAX_RETRIES,
            retry_base_delay=settings.ODDS_API_RETRY_BASE_DELAY,
        )

    if espn_service is None:
        espn_service = ESPNOddsService(timeout=settings.ESPN_TIMEOUT, base_url=settings.ESPN_BASE_URL)

    odds_repository = BettingOddsRepository(db)
    orchestrator = SyncOrchestrator(
        odds_client=odds_client,
        espn_service=espn_service,
        game_repository=GameRepository(db),
        odds_repository=odds_repository,
        concurrency=settings.SYNC_CONCURRENCY,
        markets=settings.odds_markets,
        prop_markets=settings.player_prop_markets,
    )
    return BettingOddsService(orchestrator, odds_repository)
