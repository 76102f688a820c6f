"""Odds reconciler: provider bookmakers -> BookmakerSource entries -> stored record.

Conversion rules:
- Moneyline and spread outcomes are assigned to home/away by resolving the
  outcome's team label, so provider ordering never matters
- A missing price is "no line", never a default juice
- Totals take the first non-null points; prices come from Over/Under outcomes
- A bookmaker with no usable line is dropped
- A malformed market is dropped alone; sibling markets still count

Merge rules against the stored record:
- A bookmaker in this sync replaces its stored entry, backfilling markets
  (and market sides) this sync did not report
- Bookmakers absent from this sync are carried forward unchanged
- One entry per bookmaker; the most recent last_updated wins
"""
import logging
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional

from pydantic import ValidationError

from oddsync.core.exceptions import MalformedMarketError
from oddsync.core.locks import GameLockRegistry
from oddsync.models.models import BettingOdds, Game
from oddsync.models.odds import (
    BestOdds,
    BestPrice,
    BestSpreadSide,
    BookmakerSource,
    MoneylineMarket,
    OddsPrice,
    SpreadMarket,
    SpreadSide,
    TotalMarket,
)
from oddsync.models.provider import ProviderBookmaker, ProviderEvent, ProviderMarket
from oddsync.repositories.betting_odds_repository import BettingOddsRepository
from oddsync.services.sync.utils.name_normalizer import TeamNameResolver

logger = logging.getLogger(__name__)

MONEYLINE_MARKET = "h2h"
SPREAD_MARKET = "spreads"
TOTAL_MARKET = "totals"


def load_sources(record: Optional[BettingOdds]) -> List[BookmakerSource]:
    """Stored JSON sources -> BookmakerSource list (unreadable entries logged and skipped)."""
    if record is None:
        return []
    sources = []
    for raw in record.sources or []:
        try:
            sources.append(BookmakerSource.model_validate(raw))
        except ValidationError as e:
            logger.warning(f"Skipping unreadable stored source on {record.external_id}: {e.error_count()} errors")
    return sources


def dump_sources(sources: Iterable[BookmakerSource]) -> List[Dict[str, Any]]:
    return [source.model_dump(mode="json") for source in sources]


def _as_utc(value: datetime) -> datetime:
    return value if value.tzinfo else value.replace(tzinfo=timezone.utc)


def dedupe_sources(sources: Iterable[BookmakerSource]) -> List[BookmakerSource]:
    """One entry per bookmaker name, keeping the most recent last_updated (first position kept)."""
    order: List[str] = []
    latest: Dict[str, BookmakerSource] = {}
    for source in sources:
        current = latest.get(source.source)
        if current is None:
            order.append(source.source)
            latest[source.source] = source
        elif _as_utc(source.last_updated) > _as_utc(current.last_updated):
            latest[source.source] = source
    return [latest[name] for name in order]


def _pick(new: Optional[Any], old: Optional[Any]) -> Optional[Any]:
    return new if new is not None else old


def _merge_moneyline(new: Optional[MoneylineMarket], old: Optional[MoneylineMarket]) -> Optional[MoneylineMarket]:
    if new is None or new.is_empty():
        return old
    if old is None:
        return new
    return MoneylineMarket(home=_pick(new.home, old.home), away=_pick(new.away, old.away))


def _merge_spread(new: Optional[SpreadMarket], old: Optional[SpreadMarket]) -> Optional[SpreadMarket]:
    if new is None or new.is_empty():
        return old
    if old is None:
        return new
    return SpreadMarket(home=_pick(new.home, old.home), away=_pick(new.away, old.away))


def _merge_total(new: Optional[TotalMarket], old: Optional[TotalMarket]) -> Optional[TotalMarket]:
    if new is None or new.is_empty():
        return old
    if old is None:
        return new
    return TotalMarket(
        points=_pick(new.points, old.points),
        over=_pick(new.over, old.over),
        under=_pick(new.under, old.under),
    )


def _better_price(current: Optional[BestPrice], candidate: Optional[OddsPrice], bookmaker: str) -> Optional[BestPrice]:
    """Numerically greatest American price wins; ties keep the first seen."""
    if candidate is None:
        return current
    if current is None or candidate.american > current.american:
        return BestPrice(**candidate.model_dump(), bookmaker=bookmaker)
    return current


class OddsReconciler:
    """
    Convert provider bookmakers and merge them into the stored record.

    Args:
        resolver: Team name resolver for outcome labels
        odds_repository: Storage for BettingOdds records
        locks: Per-game lock registry shared with the player props parser
    """

    def __init__(
        self,
        resolver: TeamNameResolver,
        odds_repository: BettingOddsRepository,
        locks: Optional[GameLockRegistry] = None,
    ):
        self.resolver = resolver
        self.odds_repository = odds_repository
        self.locks = locks or GameLockRegistry()

    # ========================================================================
    # Conversion
    # ========================================================================

    @staticmethod
    def parse_market(raw: Any) -> ProviderMarket:
        try:
            return ProviderMarket.model_validate(raw)
        except ValidationError as e:
            key = raw.get("key") if isinstance(raw, dict) else None
            raise MalformedMarketError(f"Malformed market '{key}': {e.error_count()} validation errors") from e

    def _side(self, label: str, home: str, away: str) -> Optional[str]:
        code = self.resolver.resolve(label)
        if code == home:
            return "home"
        if code == away:
            return "away"
        logger.debug(f"Outcome '{label}' matches neither {home} nor {away}")
        return None

    def _map_moneyline(self, market: ProviderMarket, home: str, away: str) -> Optional[MoneylineMarket]:
        moneyline = MoneylineMarket()
        for outcome in market.outcomes:
            side = self._side(outcome.name, home, away)
            if side is None or not outcome.price:
                continue
            setattr(moneyline, side, OddsPrice.from_american(outcome.price))
        return None if moneyline.is_empty() else moneyline

    def _map_spread(self, market: ProviderMarket, home: str, away: str) -> Optional[SpreadMarket]:
        spread = SpreadMarket()
        for outcome in market.outcomes:
            side = self._side(outcome.name, home, away)
            if side is None:
                continue
            odds = OddsPrice.from_american(outcome.price, with_probability=False) if outcome.price else None
            if outcome.point is None and odds is None:
                continue
            setattr(spread, side, SpreadSide(points=outcome.point, odds=odds))
        return None if spread.is_empty() else spread

    @staticmethod
    def _map_total(market: ProviderMarket) -> Optional[TotalMarket]:
        total = TotalMarket()
        for outcome in market.outcomes:
            label = outcome.name.strip().lower()
            if label not in ("over", "under"):
                continue
            if total.points is None and outcome.point is not None:
                total.points = outcome.point
            if outcome.price:
                setattr(total, label, OddsPrice.from_american(outcome.price, with_probability=False))
        return None if total.is_empty() else total

    def build_source(self, raw_bookmaker: Any, home: str, away: str, fetched_at: datetime) -> Optional[BookmakerSource]:
        """
        Convert one provider bookmaker entry.

        Returns:
            BookmakerSource, or None when the bookmaker has no usable line
        """
        try:
            bookmaker = ProviderBookmaker.model_validate(raw_bookmaker)
        except ValidationError as e:
            logger.warning(f"Dropping malformed bookmaker entry: {e.error_count()} errors")
            return None

        source = BookmakerSource(
            source=bookmaker.display_name,
            bookmaker_key=bookmaker.key,
            last_updated=bookmaker.last_update or fetched_at,
            raw_data=raw_bookmaker if isinstance(raw_bookmaker, dict) else None,
        )

        for raw_market in bookmaker.markets:
            try:
                market = self.parse_market(raw_market)
            except MalformedMarketError as e:
                logger.warning(f"{bookmaker.display_name}: {e}")
                continue

            if market.key == MONEYLINE_MARKET:
                source.moneyline = self._map_moneyline(market, home, away)
            elif market.key == SPREAD_MARKET:
                source.spread = self._map_spread(market, home, away)
            elif market.key == TOTAL_MARKET:
                source.total = self._map_total(market)

        if not source.has_game_lines():
            logger.debug(f"Dropping {bookmaker.display_name}: no usable lines")
            return None
        return source

    def build_sources(self, event: ProviderEvent, game: Game) -> List[BookmakerSource]:
        """
        Convert every bookmaker of a matched event into BookmakerSource entries.

        Args:
            event: Provider event matched to the game
            game: The tracked game (home/away are taken from it)

        Returns:
            Sources with at least one line, in provider order
        """
        home = self.resolver.resolve(game.home_team_code) or game.home_team_code
        away = self.resolver.resolve(game.away_team_code) or game.away_team_code
        fetched_at = datetime.now(timezone.utc)

        sources = []
        for raw_bookmaker in event.bookmakers:
            source = self.build_source(raw_bookmaker, home, away, fetched_at)
            if source is not None:
                sources.append(source)
        return sources

    # ========================================================================
    # Best odds and merge
    # ========================================================================

    @staticmethod
    def calculate_best_odds(sources: Iterable[BookmakerSource]) -> BestOdds:
        """
        Best price per market side across bookmakers; total points are the first non-null seen.

        apply() passes the merged list, so a bookmaker carried forward from an
        earlier sync keeps competing with its last stored price until it is
        quoted again.
        """
        best = BestOdds()
        for source in sources:
            name = source.source
            if source.moneyline:
                best.moneyline.home = _better_price(best.moneyline.home, source.moneyline.home, name)
                best.moneyline.away = _better_price(best.moneyline.away, source.moneyline.away, name)

            if source.spread:
                for side in ("home", "away"):
                    candidate: Optional[SpreadSide] = getattr(source.spread, side)
                    if candidate is None or candidate.odds is None:
                        continue
                    current: Optional[BestSpreadSide] = getattr(best.spread, side)
                    winner = _better_price(current.odds if current else None, candidate.odds, name)
                    if current is None or winner is not current.odds:
                        setattr(best.spread, side, BestSpreadSide(points=candidate.points, odds=winner))

            if source.total:
                if best.total.points is None and source.total.points is not None:
                    best.total.points = source.total.points
                best.total.over = _better_price(best.total.over, source.total.over, name)
                best.total.under = _better_price(best.total.under, source.total.under, name)
        return best

    @staticmethod
    def merge_sources(
        existing: List[BookmakerSource],
        incoming: List[BookmakerSource],
        now: Optional[datetime] = None,
    ) -> List[BookmakerSource]:
        """
        Merge this sync's sources into the stored ones.

        Args:
            existing: Sources currently stored on the record
            incoming: Sources produced by this sync
            now: Timestamp stamped on replaced entries

        Returns:
            Merged, de-duplicated source list (never smaller than existing)
        """
        now = now or datetime.now(timezone.utc)
        stored = {source.source: source for source in existing}

        merged = []
        for new in incoming:
            old = stored.get(new.source)
            if old is None:
                merged.append(new)
                continue
            merged.append(new.model_copy(update={
                "last_updated": now,
                "moneyline": _merge_moneyline(new.moneyline, old.moneyline),
                "spread": _merge_spread(new.spread, old.spread),
                "total": _merge_total(new.total, old.total),
                "player_props": new.player_props or old.player_props,
                "bookmaker_key": new.bookmaker_key or old.bookmaker_key,
            }))

        incoming_names = {source.source for source in incoming}
        merged.extend(source for source in existing if source.source not in incoming_names)
        return dedupe_sources(merged)

    # ========================================================================
    # Persistence
    # ========================================================================

    async def apply(self, game: Game, sources: List[BookmakerSource]) -> BettingOdds:
        """
        Merge sources into the game's stored record and persist it.

        Load, merge and upsert run under the game's lock.

        Returns:
            The persisted BettingOdds record
        """
        async with self.locks.hold(game.external_id, game.season):
            record = self.odds_repository.find_by_key(game.external_id, game.season)
            merged = self.merge_sources(load_sources(record), sources)
            best = self.calculate_best_odds(merged)
            record = self.odds_repository.upsert(
                game,
                sources=dump_sources(merged),
                best_odds=best.model_dump(mode="json"),
            )

        logger.info(
            f"Saved odds for {game.away_team_code} @ {game.home_team_code} "
            f"({len(sources)} new sources, {len(merged)} total, sync #{record.sync_count})"
        )
        return record
