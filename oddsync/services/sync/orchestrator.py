"""Sync orchestrator for reconciling NFL odds from The Odds API and ESPN.

This orchestrator coordinates:
- One bulk The Odds API call per week (credits are spent per call, not per game)
- Matching provider events to tracked games via GameMatcher
- Per-game reconciliation, with ESPN as a free fallback
- Player prop syncs (one per-event call per matched game)
- Sync tallies: success / failed / skipped / cancelled per game

Failure handling:
- A per-game error is recorded as failed; the batch always continues
- 401 / 429 from The Odds API stop further primary calls for this sync; week
  odds then fall back to ESPN for every game
- Merges are additive, so a partial sync never removes stored data
"""
import asyncio
import uuid
from typing import Any, Dict, List, Optional, Sequence

from oddsync.core.exceptions import (
    AuthenticationError,
    GameNotFoundError,
    MatchFailure,
    ProviderError,
    RateLimitError,
)
from oddsync.core.locks import GameLockRegistry
from oddsync.core.logging import clear_sync_id, get_logger, set_sync_id
from oddsync.models.models import BettingOdds, Game
from oddsync.models.provider import ProviderEvent
from oddsync.repositories.betting_odds_repository import BettingOddsRepository
from oddsync.repositories.game_repository import GameRepository
from oddsync.services.core.espn_service import ESPNOddsService
from oddsync.services.core.odds_api_service import DEFAULT_GAME_MARKETS, OddsApiService
from oddsync.services.sync.matchers.game_matcher import GameMatcher, MatchResult
from oddsync.services.sync.player_props_parser import PlayerPropsExtractor
from oddsync.services.sync.reconciler import OddsReconciler
from oddsync.services.sync.utils.name_normalizer import TeamNameResolver

logger = get_logger(__name__)

PRIMARY_SOURCE = "the_odds_api"
SECONDARY_SOURCE = "espn"

DEFAULT_PROP_MARKETS = (
    "player_pass_yds",
    "player_pass_tds",
    "player_rush_yds",
    "player_receptions",
    "player_reception_yds",
    "player_anytime_td",
)


def _primary_error_code(error: ProviderError) -> str:
    if isinstance(error, AuthenticationError):
        return "authentication"
    if isinstance(error, RateLimitError):
        return "rate_limited"
    return "provider_error"


class SyncOrchestrator:
    """
    Coordinates week and game odds syncs.

    All sync operations should go through this orchestrator. One instance
    (and one OddsApiService / rate limiter) is shared per process.

    Args:
        odds_client: The Odds API client
        espn_service: ESPN fallback service
        game_repository: Read access to tracked games
        odds_repository: Storage for BettingOdds records
        resolver: Team name resolver (default NFL table)
        concurrency: Games processed at the same time
        markets: Game-level markets requested on a week sync
        prop_markets: Default player prop markets
    """

    def __init__(
        self,
        odds_client: OddsApiService,
        espn_service: ESPNOddsService,
        game_repository: GameRepository,
        odds_repository: BettingOddsRepository,
        resolver: Optional[TeamNameResolver] = None,
        concurrency: int = 4,
        markets: Sequence[str] = DEFAULT_GAME_MARKETS,
        prop_markets: Sequence[str] = DEFAULT_PROP_MARKETS,
    ):
        self.odds_client = odds_client
        self.espn_service = espn_service
        self.game_repository = game_repository
        self.odds_repository = odds_repository
        self.resolver = resolver or TeamNameResolver()
        self.concurrency = max(1, concurrency)
        self.markets = list(markets)
        self.prop_markets = list(prop_markets)

        self.locks = GameLockRegistry()
        self.matcher = GameMatcher(self.resolver)
        self.reconciler = OddsReconciler(self.resolver, odds_repository, self.locks)
        self.props_extractor = PlayerPropsExtractor(odds_repository, self.locks)

    # ========================================================================
    # Helpers
    # ========================================================================

    @staticmethod
    def _new_results(week: int, season: int, total: int) -> Dict[str, Any]:
        return {
            'week': week,
            'season': season,
            'total': total,
            'success': 0,
            'failed': 0,
            'skipped': 0,
            'cancelled': 0,
            'credits_used': 0,
            'credits_remaining': None,
            'sources_used': [],
            'primary_error': None,
            'games': [],
        }

    @staticmethod
    def _outcome(game: Game, status: str, **details) -> Dict[str, Any]:
        return {
            'external_id': game.external_id,
            'matchup': f"{game.away_team_code} @ {game.home_team_code}",
            'status': status,
            **details,
        }

    @staticmethod
    def _tally(results: Dict[str, Any], outcomes: List[Dict[str, Any]]) -> None:
        sources_used = set(results['sources_used'])
        for outcome in outcomes:
            results[outcome['status']] += 1
            results['credits_used'] += outcome.pop('credits', 0)
            if outcome.get('source'):
                sources_used.add(outcome['source'])
            results['games'].append(outcome)
        results['sources_used'] = sorted(sources_used)

    def _warn_if_low_credits(self, markets: Sequence[str]) -> None:
        """Warn (never block) when remaining credits are below one call's cost."""
        estimated = self.odds_client.estimate_cost(markets)
        remaining = self.odds_client.credits_remaining
        if remaining is not None and remaining < estimated:
            logger.warning(
                f"Only {remaining} The Odds API credits remaining; "
                f"this sync is estimated to cost {estimated}"
            )

    @staticmethod
    def _is_cancelled(cancel_event: Optional[asyncio.Event]) -> bool:
        return cancel_event is not None and cancel_event.is_set()

    # ========================================================================
    # Week odds
    # ========================================================================

    async def _sync_game_task(
        self,
        game: Game,
        event: Optional[ProviderEvent],
        semaphore: asyncio.Semaphore,
        cancel_event: Optional[asyncio.Event],
    ) -> Dict[str, Any]:
        async with semaphore:
            if self._is_cancelled(cancel_event):
                return self._outcome(game, 'cancelled')

            try:
                sources = self.reconciler.build_sources(event, game) if event else []
                source_used = PRIMARY_SOURCE if sources else None

                if not sources:
                    espn_source = await self.espn_service.fetch_game_odds(game.external_id)
                    if espn_source is not None:
                        sources = [espn_source]
                        source_used = SECONDARY_SOURCE

                if not sources:
                    raise MatchFailure(f"No odds from any source for {game.away_team_code} @ {game.home_team_code}")

                record = await self.reconciler.apply(game, sources)
                return self._outcome(
                    game,
                    'success',
                    source=source_used,
                    bookmakers=len(sources),
                    sync_count=record.sync_count,
                )

            except MatchFailure as e:
                logger.info(f"Skipping {game.external_id}: {e}")
                return self._outcome(game, 'skipped', reason=str(e))
            except Exception as e:
                logger.error(f"Error syncing odds for {game.external_id}: {e}", exc_info=True)
                return self._outcome(game, 'failed', error=str(e))

    async def sync_week_odds(
        self,
        week: int,
        season: int,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> Dict[str, Any]:
        """
        Sync game odds for every tracked game of a week.

        Steps:
        1. One bulk The Odds API call for all markets
        2. Match events to games
        3. Per game: reconcile primary sources, else ESPN, else skip

        Args:
            week: NFL week number
            season: Season year
            cancel_event: When set, games not yet started are reported cancelled

        Returns:
            Sync results with counts and per-game outcomes
        """
        token = set_sync_id(uuid.uuid4().hex[:12])
        try:
            games = self.game_repository.find_by_week(week, season)
            results = self._new_results(week, season, len(games))
            logger.info(f"Starting odds sync for week {week} of {season}: {len(games)} games")

            if not games:
                logger.warning(f"No games found for week {week} of {season}")
                return results

            self._warn_if_low_credits(self.markets)

            match = MatchResult(unmatched_games=list(games))
            try:
                response = await self.odds_client.get_odds(self.markets)
                results['credits_used'] += response.last_call_cost
                match = self.matcher.match(games, response.events)
            except ProviderError as e:
                results['primary_error'] = _primary_error_code(e)
                logger.error(
                    f"The Odds API unavailable for week {week} ({results['primary_error']}): {e} - "
                    f"falling back to ESPN for all games"
                )

            semaphore = asyncio.Semaphore(self.concurrency)
            outcomes = await asyncio.gather(*(
                self._sync_game_task(game, match.event_for(game), semaphore, cancel_event)
                for game in games
            ))
            self._tally(results, list(outcomes))
            results['credits_remaining'] = self.odds_client.credits_remaining

            logger.info(
                f"Odds sync complete for week {week}: {results['success']} success, "
                f"{results['failed']} failed, {results['skipped']} skipped, "
                f"{results['cancelled']} cancelled, {results['credits_used']} credits used"
            )
            return results
        finally:
            clear_sync_id(token)

    # ========================================================================
    # Week player props
    # ========================================================================

    async def _sync_props_task(
        self,
        game: Game,
        event: ProviderEvent,
        markets: Sequence[str],
        semaphore: asyncio.Semaphore,
        cancel_event: Optional[asyncio.Event],
        primary_aborted: asyncio.Event,
        results: Dict[str, Any],
    ) -> Dict[str, Any]:
        async with semaphore:
            if self._is_cancelled(cancel_event):
                return self._outcome(game, 'cancelled')
            if primary_aborted.is_set():
                return self._outcome(game, 'failed', error=f"The Odds API unavailable ({results['primary_error']})")

            try:
                response = await self.odds_client.get_event_odds(event.id, markets)
                credits = response.last_call_cost
                if not response.events:
                    return self._outcome(game, 'skipped', reason='no prop data', credits=credits)

                record, props_count = await self.props_extractor.apply(game, response.events[0])
                if not props_count:
                    return self._outcome(game, 'skipped', reason='no player props', credits=credits)

                return self._outcome(
                    game,
                    'success',
                    source=PRIMARY_SOURCE,
                    props=props_count,
                    sync_count=record.sync_count,
                    credits=credits,
                )

            except (AuthenticationError, RateLimitError) as e:
                primary_aborted.set()
                results['primary_error'] = _primary_error_code(e)
                logger.error(f"The Odds API stopped the props sync at {game.external_id}: {e}")
                return self._outcome(game, 'failed', error=str(e))
            except Exception as e:
                logger.error(f"Error syncing player props for {game.external_id}: {e}", exc_info=True)
                return self._outcome(game, 'failed', error=str(e))

    async def sync_week_player_props(
        self,
        week: int,
        season: int,
        markets: Optional[Sequence[str]] = None,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> Dict[str, Any]:
        """
        Sync player props for every tracked game of a week.

        A cheap bulk h2h call discovers event IDs; each matched game then
        costs one per-event call. Props are merged into existing records
        without touching game-level lines.

        Args:
            week: NFL week number
            season: Season year
            markets: Player prop markets (default set when omitted)
            cancel_event: When set, games not yet started are reported cancelled

        Returns:
            Sync results with counts, total_props and per-game outcomes

        Raises:
            AuthenticationError: If the API key is rejected on the discovery call
        """
        markets = list(markets or self.prop_markets)
        token = set_sync_id(uuid.uuid4().hex[:12])
        try:
            games = self.game_repository.find_by_week(week, season)
            results = self._new_results(week, season, len(games))
            results['total_props'] = 0
            logger.info(f"Starting player props sync for week {week} of {season}: {len(games)} games")

            if not games:
                logger.warning(f"No games found for week {week} of {season}")
                return results

            self._warn_if_low_credits(markets)

            try:
                response = await self.odds_client.get_odds(["h2h"])
            except AuthenticationError:
                logger.error("The Odds API rejected the API key - aborting player props sync")
                raise
            except ProviderError as e:
                results['primary_error'] = _primary_error_code(e)
                logger.error(f"Could not discover events for week {week}: {e}")
                self._tally(results, [self._outcome(game, 'failed', error=str(e)) for game in games])
                return results

            results['credits_used'] += response.last_call_cost
            match = self.matcher.match(games, response.events)

            outcomes = [
                self._outcome(game, 'skipped', reason='no matching event')
                for game in match.unmatched_games
            ]

            semaphore = asyncio.Semaphore(self.concurrency)
            primary_aborted = asyncio.Event()
            outcomes.extend(await asyncio.gather(*(
                self._sync_props_task(game, event, markets, semaphore, cancel_event, primary_aborted, results)
                for game, event in match.matches
            )))

            self._tally(results, outcomes)
            results['total_props'] = sum(outcome.get('props', 0) for outcome in results['games'])
            results['credits_remaining'] = self.odds_client.credits_remaining

            logger.info(
                f"Player props sync complete for week {week}: {results['success']} success, "
                f"{results['failed']} failed, {results['skipped']} skipped, "
                f"{results['total_props']} props, {results['credits_used']} credits used"
            )
            return results
        finally:
            clear_sync_id(token)

    # ========================================================================
    # Single game
    # ========================================================================

    async def sync_game_odds(self, external_id: str, season: int) -> Optional[BettingOdds]:
        """
        Fetch and merge odds for one scheduled game from ESPN and The Odds API.

        Args:
            external_id: The game's external ID
            season: Season year

        Returns:
            The updated record, or None when no source had odds

        Raises:
            GameNotFoundError: If the game is not tracked
        """
        game = self.game_repository.find_by_key(external_id, season)
        if game is None:
            raise GameNotFoundError(external_id, season)

        token = set_sync_id(uuid.uuid4().hex[:12])
        try:
            sources = []
            espn_source = await self.espn_service.fetch_game_odds(game.external_id)
            if espn_source is not None:
                sources.append(espn_source)

            self._warn_if_low_credits(self.markets)
            try:
                response = await self.odds_client.get_odds(self.markets)
                event = self.matcher.match([game], response.events).event_for(game)
                if event is not None:
                    sources.extend(self.reconciler.build_sources(event, game))
            except ProviderError as e:
                logger.warning(f"The Odds API unavailable for {external_id}: {e}")

            if not sources:
                logger.info(f"No odds available for {game.away_team_code} @ {game.home_team_code}")
                return None

            return await self.reconciler.apply(game, sources)
        finally:
            clear_sync_id(token)
