"""
Player props extraction from The Odds API per-event responses.

Prop markets are keyed "player_*". Each outcome names the side in `name`
("Over", "Under", "Yes") and the player in `description`:
{
    "key": "player_pass_yds",
    "outcomes": [
        {"name": "Over", "description": "Patrick Mahomes", "price": -115, "point": 274.5},
        {"name": "Under", "description": "Patrick Mahomes", "price": -105, "point": 274.5}
    ]
}

Props are merged into the game's record by (market, player_name): a key in
this sync replaces the stored prop, a new key is added, and stored props absent
from this sync are kept. Game-level lines and best odds are never touched.
"""
from datetime import datetime, timezone
from typing import Dict, List, Optional, Tuple

from pydantic import ValidationError

from oddsync.core.exceptions import MalformedMarketError
from oddsync.core.locks import GameLockRegistry
from oddsync.core.logging import get_logger
from oddsync.models.models import BettingOdds, Game
from oddsync.models.odds import BookmakerSource, PlayerProp, PropOutcome
from oddsync.models.provider import ProviderBookmaker, ProviderEvent
from oddsync.repositories.betting_odds_repository import BettingOddsRepository
from oddsync.services.sync.reconciler import OddsReconciler, dump_sources, load_sources

logger = get_logger(__name__)

PLAYER_PROP_PREFIX = "player_"


def merge_props(existing: List[PlayerProp], incoming: List[PlayerProp]) -> List[PlayerProp]:
    """Replace same (market, player) keys, add new ones, keep the rest."""
    merged: Dict[Tuple[str, str], PlayerProp] = {prop.key: prop for prop in existing}
    for prop in incoming:
        merged[prop.key] = prop
    return list(merged.values())


class PlayerPropsExtractor:
    """
    Extract player props per bookmaker and fold them into stored records.

    Args:
        odds_repository: Storage for BettingOdds records
        locks: Per-game lock registry shared with the odds reconciler
    """

    def __init__(self, odds_repository: BettingOddsRepository, locks: Optional[GameLockRegistry] = None):
        self.odds_repository = odds_repository
        self.locks = locks or GameLockRegistry()

    def extract(self, event: ProviderEvent) -> Dict[str, Tuple[Optional[str], List[PlayerProp]]]:
        """
        Group prop outcomes by bookmaker, then by (market, player).

        Args:
            event: Per-event provider response

        Returns:
            {bookmaker name: (bookmaker key, [PlayerProp, ...])}; bookmakers
            without prop markets are omitted
        """
        props_by_bookmaker: Dict[str, Tuple[Optional[str], List[PlayerProp]]] = {}

        for raw_bookmaker in event.bookmakers:
            try:
                bookmaker = ProviderBookmaker.model_validate(raw_bookmaker)
            except ValidationError:
                logger.warning(f"Dropping malformed bookmaker on event {event.id}")
                continue

            grouped: Dict[Tuple[str, str], PlayerProp] = {}
            for raw_market in bookmaker.markets:
                if not str(raw_market.get("key", "")).startswith(PLAYER_PROP_PREFIX):
                    continue
                try:
                    market = OddsReconciler.parse_market(raw_market)
                except MalformedMarketError as e:
                    logger.warning(f"{bookmaker.display_name}: {e}")
                    continue

                for outcome in market.outcomes:
                    if outcome.price is None:
                        continue
                    player_name = (outcome.description or outcome.name).strip()
                    key = (market.key, player_name)
                    prop = grouped.get(key)
                    if prop is None:
                        prop = PlayerProp(
                            market=market.key,
                            player_name=player_name,
                            last_update=market.last_update or bookmaker.last_update,
                        )
                        grouped[key] = prop
                    prop.outcomes.append(PropOutcome(name=outcome.name, price=outcome.price, point=outcome.point))

            if grouped:
                props_by_bookmaker[bookmaker.display_name] = (bookmaker.key, list(grouped.values()))

        return props_by_bookmaker

    @staticmethod
    def merge_into_sources(
        existing: List[BookmakerSource],
        props_by_bookmaker: Dict[str, Tuple[Optional[str], List[PlayerProp]]],
        now: Optional[datetime] = None,
    ) -> List[BookmakerSource]:
        """
        Fold extracted props into stored sources.

        Moneyline, spread and total of every source are preserved; bookmakers
        without new props are left as they are.
        """
        now = now or datetime.now(timezone.utc)
        merged = []
        seen = set()

        for source in existing:
            seen.add(source.source)
            if source.source not in props_by_bookmaker:
                merged.append(source)
                continue
            _, props = props_by_bookmaker[source.source]
            merged.append(source.model_copy(update={
                "player_props": merge_props(source.player_props, props),
                "last_updated": now,
            }))

        for name, (key, props) in props_by_bookmaker.items():
            if name in seen:
                continue
            merged.append(BookmakerSource(
                source=name,
                bookmaker_key=key,
                last_updated=now,
                player_props=merge_props([], props),
            ))
        return merged

    async def apply(self, game: Game, event: ProviderEvent) -> Tuple[Optional[BettingOdds], int]:
        """
        Extract props from an event and persist them on the game's record.

        Returns:
            (record, number of props in this sync); record is None when the
            event carried no props
        """
        props_by_bookmaker = self.extract(event)
        props_count = sum(len(props) for _, props in props_by_bookmaker.values())
        if not props_count:
            logger.info(f"No player props for {game.away_team_code} @ {game.home_team_code}")
            return None, 0

        async with self.locks.hold(game.external_id, game.season):
            record = self.odds_repository.find_by_key(game.external_id, game.season)
            merged = self.merge_into_sources(load_sources(record), props_by_bookmaker)
            # best_odds=None keeps the stored game-level rollup
            record = self.odds_repository.upsert(game, sources=dump_sources(merged), best_odds=None)

        logger.info(
            f"Saved {props_count} player props for {game.away_team_code} @ {game.home_team_code} "
            f"from {len(props_by_bookmaker)} bookmakers"
        )
        return record, props_count
