"""
ESPN odds service - free secondary odds source.

Used only when The Odds API has no usable quote for a game. ESPN calls cost no
credits, so they bypass the credit rate limiter, but they go through a circuit
breaker.

ESPN API Endpoints:
- Base URL: https://site.api.espn.com/apis/site/v2/sports/
- Summary: football/nfl/summary?event={event_id} (pickcenter / odds entries)
- Scoreboard: football/nfl/scoreboard/{event_id} (competitions[0].odds), fallback
- Documentation: Unofficial, community-maintained

Rate Limits: No official limits, but be respectful
"""
import asyncio
from datetime import datetime, timezone
from typing import Any, Dict, Optional

import httpx
from pybreaker import CircuitBreaker, CircuitBreakerError

from oddsync.core.logging import get_logger
from oddsync.models.odds import BookmakerSource, MoneylineMarket, OddsPrice, SpreadMarket, SpreadSide, TotalMarket
from oddsync.services.core.circuit_breaker import espn_api_breaker

logger = get_logger(__name__)

# ESPN API base URL
ESPN_BASE_URL = "https://site.api.espn.com/apis/site/v2/sports"
ESPN_NFL_PATH = "football/nfl"
ESPN_SOURCE_NAME = "ESPN"

USER_AGENT = "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36"


def _to_number(value: Any) -> Optional[float]:
    """Parse ESPN numeric fields ('+150', '-3.5', 'EVEN', 47.5)."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    text = str(value).strip().upper()
    if not text:
        return None
    if text == "EVEN":
        return 100.0
    try:
        return float(text.replace("+", ""))
    except ValueError:
        return None


def _first_number(*values: Any) -> Optional[float]:
    for value in values:
        number = _to_number(value)
        if number is not None:
            return number
    return None


def _price(value: Any) -> Optional[OddsPrice]:
    american = _to_number(value)
    if not american:
        return None
    return OddsPrice.from_american(american)


class ESPNOddsService:
    """
    ESPN odds fetcher.

    Requests are synchronous httpx calls wrapped by the circuit breaker and run
    in a worker thread, so the event loop is never blocked.

    Usage:
        service = ESPNOddsService(timeout=10.0)
        source = await service.fetch_game_odds('401671789')
    """

    def __init__(
        self,
        timeout: float = 10.0,
        base_url: str = ESPN_BASE_URL,
        breaker: Optional[CircuitBreaker] = None,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        """
        Initialize ESPN odds service.

        Args:
            timeout: Request timeout in seconds
            base_url: ESPN site API base URL
            breaker: Circuit breaker (defaults to the shared espn_api breaker)
            transport: Optional httpx transport (tests use httpx.MockTransport)
        """
        self.base_url = base_url.rstrip("/")
        self.breaker = breaker or espn_api_breaker
        self._client = httpx.Client(
            timeout=httpx.Timeout(timeout),
            headers={"User-Agent": USER_AGENT},
            transport=transport,
        )

    def close(self):
        self._client.close()

    def _get_json(self, url: str, params: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        response = self._client.get(url, params=params)
        response.raise_for_status()
        return response.json()

    def _fetch_payload(self, event_id: str) -> Optional[Dict[str, Any]]:
        """Summary endpoint first, scoreboard as fallback."""
        attempts = [
            (f"{self.base_url}/{ESPN_NFL_PATH}/summary", {"event": event_id}),
            (f"{self.base_url}/{ESPN_NFL_PATH}/scoreboard/{event_id}", None),
        ]
        for url, params in attempts:
            try:
                payload = self.breaker.call(self._get_json, url, params)
            except CircuitBreakerError:
                logger.warning(f"Circuit breaker '{self.breaker.name}' is OPEN - skipping ESPN odds for {event_id}")
                return None
            except (httpx.HTTPError, ValueError) as e:
                logger.debug(f"ESPN request failed for {event_id} ({url}): {e}")
                continue

            odds = self._find_odds_entry(payload)
            if odds is not None:
                return odds
        return None

    @staticmethod
    def _find_odds_entry(payload: Any) -> Optional[Dict[str, Any]]:
        if not isinstance(payload, dict):
            return None

        candidates = [
            payload.get("pickcenter"),
            payload.get("odds"),
            (payload.get("gamepackageJSON") or {}).get("odds"),
        ]

        # Scoreboard shapes: a list of events, or the event itself
        event = payload
        if isinstance(payload.get("events"), list) and payload["events"]:
            event = payload["events"][0]
        competitions = event.get("competitions") if isinstance(event, dict) else None
        if isinstance(competitions, list) and competitions:
            candidates.append(competitions[0].get("odds"))

        for entries in candidates:
            if isinstance(entries, list) and entries and isinstance(entries[0], dict):
                return entries[0]
        return None

    @staticmethod
    def _nested_side(market: Dict[str, Any], side: str) -> Dict[str, Any]:
        value = market.get(side)
        return value if isinstance(value, dict) else {}

    def _map_spread(self, odds: Dict[str, Any], home_odds: Dict[str, Any], away_odds: Dict[str, Any]) -> Optional[SpreadMarket]:
        raw = odds.get("spread")

        # Scoreboard shape: {"home": {"point", "odds"}, "away": {...}}
        if isinstance(raw, dict):
            sides = {}
            for side in ("home", "away"):
                entry = self._nested_side(raw, side)
                points = _to_number(entry.get("point"))
                price = _price(entry.get("odds"))
                if points is not None or price is not None:
                    sides[side] = SpreadSide(points=points, odds=price)
            return SpreadMarket(**sides) if sides else None

        spread_points = _to_number(raw)
        if spread_points is None:
            return None
        return SpreadMarket(
            home=SpreadSide(points=spread_points, odds=_price(home_odds.get("spreadOdds"))),
            away=SpreadSide(points=-spread_points, odds=_price(away_odds.get("spreadOdds"))),
        )

    def _map_total(self, odds: Dict[str, Any]) -> Optional[TotalMarket]:
        raw = odds.get("total")

        # Scoreboard shape: {"over": {"point", "odds"}, "under": {...}}
        if isinstance(raw, dict):
            over = self._nested_side(raw, "over")
            under = self._nested_side(raw, "under")
            total = TotalMarket(
                points=_first_number(over.get("point"), under.get("point")),
                over=_price(over.get("odds")),
                under=_price(under.get("odds")),
            )
            return None if total.is_empty() else total

        total_points = _to_number(odds.get("overUnder"))
        if total_points is None:
            return None
        return TotalMarket(
            points=total_points,
            over=_price(odds.get("overOdds")),
            under=_price(odds.get("underOdds")),
        )

    def map_odds(self, odds: Dict[str, Any]) -> Optional[BookmakerSource]:
        """
        Map one ESPN odds entry to a BookmakerSource.

        Summary entries carry a flat `spread` quoted from the home team's
        perspective: home gets `spread`, away gets `-spread`. Scoreboard
        entries nest per-side points and prices under `spread` and `total`.
        Missing prices stay None.

        Returns:
            BookmakerSource, or None when ESPN has no moneyline
        """
        home_odds = odds.get("homeTeamOdds") or {}
        away_odds = odds.get("awayTeamOdds") or {}
        nested_ml = self._nested_side(odds, "moneyline")

        moneyline = MoneylineMarket(
            home=_price(home_odds.get("moneyLine")) or _price(self._nested_side(nested_ml, "home").get("odds")),
            away=_price(away_odds.get("moneyLine")) or _price(self._nested_side(nested_ml, "away").get("odds")),
        )
        if moneyline.is_empty():
            return None

        return BookmakerSource(
            source=ESPN_SOURCE_NAME,
            bookmaker_key="espn",
            last_updated=datetime.now(timezone.utc),
            moneyline=moneyline,
            spread=self._map_spread(odds, home_odds, away_odds),
            total=self._map_total(odds),
            raw_data=odds,
        )

    def fetch_game_odds_sync(self, event_id: str) -> Optional[BookmakerSource]:
        odds = self._fetch_payload(event_id)
        if odds is None:
            logger.info(f"No ESPN odds available for event {event_id}")
            return None
        return self.map_odds(odds)

    async def fetch_game_odds(self, event_id: str) -> Optional[BookmakerSource]:
        """
        Fetch odds for one game from ESPN.

        Args:
            event_id: ESPN event ID (the game's external_id)

        Returns:
            BookmakerSource or None when ESPN has nothing usable
        """
        return await asyncio.to_thread(self.fetch_game_odds_sync, event_id)
