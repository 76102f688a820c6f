"""Game matcher for correlating tracked games with The Odds API events.

Providers may list the two teams in either order, so each game is looked up
by its unordered team pair. An event is attributed to at most one game.
Failing to match is reported, never raised.
"""
import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Tuple

from oddsync.models.models import Game
from oddsync.models.provider import ProviderEvent
from oddsync.services.sync.utils.name_normalizer import TeamNameResolver

logger = logging.getLogger(__name__)


@dataclass
class MatchResult:
    """Outcome of matching one batch of games against provider events."""
    matches: List[Tuple[Game, ProviderEvent]] = field(default_factory=list)
    unmatched_games: List[Game] = field(default_factory=list)
    unmatched_events: List[ProviderEvent] = field(default_factory=list)

    def event_for(self, game: Game) -> Optional[ProviderEvent]:
        for matched_game, event in self.matches:
            if matched_game is game:
                return event
        return None


class GameMatcher:
    """
    Match tracked games to provider events by canonical team pair.

    Both orderings of an event's (home, away) codes are indexed, so a
    provider that swaps home and away still matches.
    """

    def __init__(self, resolver: TeamNameResolver):
        self.resolver = resolver

    def _index_events(self, events: Sequence[ProviderEvent]) -> Dict[Tuple[str, str], List[ProviderEvent]]:
        index: Dict[Tuple[str, str], List[ProviderEvent]] = {}
        for event in events:
            home, away = self.resolver.resolve_pair(event.home_team, event.away_team)
            if not home or not away:
                logger.warning(
                    f"Could not resolve teams for event {event.id}: "
                    f"'{event.home_team}' vs '{event.away_team}'"
                )
                continue
            index.setdefault((home, away), []).append(event)
            if home != away:
                index.setdefault((away, home), []).append(event)
        return index

    def match(self, games: Sequence[Game], events: Sequence[ProviderEvent]) -> MatchResult:
        """
        Match games to events.

        Args:
            games: Tracked games (typically one week)
            events: Provider events from one bulk call

        Returns:
            MatchResult with matched pairs and unmatched games/events
        """
        index = self._index_events(events)
        consumed = set()
        result = MatchResult()

        for game in games:
            home = self.resolver.resolve(game.home_team_code) or game.home_team_code
            away = self.resolver.resolve(game.away_team_code) or game.away_team_code

            event = None
            for candidate in index.get((home, away), []):
                if candidate.id not in consumed:
                    event = candidate
                    break

            if event is None:
                logger.debug(f"No provider event for {away} @ {home} ({game.external_id})")
                result.unmatched_games.append(game)
                continue

            consumed.add(event.id)
            result.matches.append((game, event))

        seen = set()
        for event in events:
            if event.id not in consumed and event.id not in seen:
                seen.add(event.id)
                result.unmatched_events.append(event)

        logger.info(
            f"Matched {len(result.matches)}/{len(games)} games "
            f"({len(result.unmatched_events)} provider events unmatched)"
        )
        return result
