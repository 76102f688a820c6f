"""
The Odds API client with credit tracking, rate limiting and retries.

Every call costs credits (markets x regions). The provider reports the running
balance in response headers, on success and error responses alike:
- x-requests-remaining: credits left in the billing period
- x-requests-used: credits used in the billing period
- x-requests-last: cost of the last call

This client only executes calls; deciding whether a call is worth its credits
is left to the caller.
"""
import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence

import httpx
from pydantic import ValidationError
from tenacity import (
    AsyncRetrying,
    before_sleep_log,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from oddsync.core.exceptions import (
    AuthenticationError,
    ProviderResponseError,
    RateLimitError,
    TransientNetworkError,
)
from oddsync.core.logging import get_logger
from oddsync.core.rate_limiter import RequestRateLimiter
from oddsync.models.provider import ProviderEvent

logger = get_logger(__name__)

# The Odds API base URL
THE_ODDS_API_BASE = "https://api.the-odds-api.com/v4"
DEFAULT_SPORT = "americanfootball_nfl"
DEFAULT_GAME_MARKETS = ("h2h", "spreads", "totals")


def _call_cost(response: httpx.Response) -> int:
    """Credits charged for this response (0 when the header is absent)."""
    try:
        return int(float(response.headers.get("x-requests-last", 0)))
    except (ValueError, TypeError):
        return 0


@dataclass
class OddsApiResponse:
    """Parsed provider response plus the credit state after the call."""
    events: List[ProviderEvent] = field(default_factory=list)
    credits_remaining: Optional[int] = None
    credits_used: Optional[int] = None
    last_call_cost: int = 0


class OddsApiService:
    """
    The Odds API client.

    Args:
        api_key: The Odds API key
        rate_limiter: Shared limiter; every attempt (retries included) acquires it
        timeout: Per-request timeout in seconds
        base_url: API base URL
        sport: Sport key (default: NFL)
        regions: Bookmaker regions requested
        max_attempts: Attempts per call for transient failures
        retry_base_delay: First backoff delay; doubles per attempt
        transport: Optional httpx transport (tests use httpx.MockTransport)
        sleep: Async sleep used between retries (injectable for tests)
    """

    def __init__(
        self,
        api_key: str,
        rate_limiter: RequestRateLimiter,
        timeout: float = 30.0,
        base_url: str = THE_ODDS_API_BASE,
        sport: str = DEFAULT_SPORT,
        regions: Sequence[str] = ("us",),
        max_attempts: int = 3,
        retry_base_delay: float = 1.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.api_key = api_key
        self.rate_limiter = rate_limiter
        self.timeout = timeout
        self.base_url = base_url.rstrip("/")
        self.sport = sport
        self.regions = list(regions)
        self.max_attempts = max(1, max_attempts)
        self.retry_base_delay = retry_base_delay
        self._transport = transport
        self._sleep = sleep
        self._client: Optional[httpx.AsyncClient] = None

        # Credit tracking (from response headers)
        self.credits_remaining: Optional[int] = None
        self.credits_used: Optional[int] = None
        self.last_call_cost: Optional[int] = None
        self._credits_last_updated: Optional[datetime] = None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=httpx.Timeout(self.timeout),
                limits=httpx.Limits(max_keepalive_connections=5, max_connections=10),
                headers={"Accept": "application/json", "X-Application": "oddsync"},
                transport=self._transport,
            )
        return self._client

    async def close(self):
        """Close the HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None

    def estimate_cost(self, markets: Sequence[str]) -> int:
        """Credits one call for these markets costs (markets x regions)."""
        return max(1, len(markets)) * max(1, len(self.regions))

    def _update_credits_from_headers(self, response: httpx.Response):
        """
        Update credit tracking from response headers.

        Args:
            response: HTTP response object (any status)
        """
        try:
            remaining = response.headers.get("x-requests-remaining")
            used = response.headers.get("x-requests-used")
            last = response.headers.get("x-requests-last")

            if remaining is not None:
                self.credits_remaining = int(float(remaining))
            if used is not None:
                self.credits_used = int(float(used))
            if last is not None:
                self.last_call_cost = int(float(last))

            self._credits_last_updated = datetime.now()
        except (ValueError, TypeError) as e:
            logger.warning(f"Failed to parse credit headers: {e}")
            return

        if self.credits_remaining is None:
            return

        logger.debug(
            f"The Odds API credits: {self.credits_remaining} remaining, "
            f"{self.credits_used} used, last call cost {self.last_call_cost}"
        )

        # Alert thresholds relative to the billing period's total
        # - WARNING when < 20% remaining
        # - ERROR when < 5% remaining
        if self.credits_used is not None:
            total = self.credits_remaining + self.credits_used
            if total > 0:
                ratio = self.credits_remaining / total
                if ratio < 0.05:
                    logger.error(
                        f"CRITICAL: Odds API credits critically low! "
                        f"Only {self.credits_remaining} remaining (< 5%)."
                    )
                elif ratio < 0.2:
                    logger.warning(
                        f"Odds API credits running low. {self.credits_remaining} remaining (< 20%)."
                    )

    def get_credit_status(self) -> Dict[str, Any]:
        """
        Get current credit status.

        Returns:
            Dict with remaining/used credits, last call cost and last update time
        """
        return {
            "credits_remaining": self.credits_remaining,
            "credits_used": self.credits_used,
            "last_call_cost": self.last_call_cost,
            "last_updated": self._credits_last_updated.isoformat() if self._credits_last_updated else None,
            "requests_in_window": self.rate_limiter.requests_in_window,
        }

    async def _send_once(self, path: str, params: Dict[str, Any]) -> httpx.Response:
        """Single attempt: acquire a rate-limit slot, send, classify the status."""
        await self.rate_limiter.acquire()
        # A response without x-requests-last must not report the previous call's cost
        self.last_call_cost = None
        client = await self._get_client()
        url = f"{self.base_url}{path}"

        try:
            response = await client.get(url, params={"apiKey": self.api_key, **params})
        except httpx.TimeoutException as e:
            raise TransientNetworkError(f"Timeout calling {path}: {e}") from e
        except httpx.TransportError as e:
            raise TransientNetworkError(f"Network error calling {path}: {e}") from e

        self._update_credits_from_headers(response)

        status = response.status_code
        if status == 401:
            raise AuthenticationError("The Odds API rejected the API key", status_code=status)
        if status == 429:
            raise RateLimitError("The Odds API rate limit or credit quota exhausted", status_code=status)
        if status >= 500:
            raise TransientNetworkError(f"The Odds API server error {status} on {path}", status_code=status)
        if status >= 400:
            raise ProviderResponseError(
                f"The Odds API returned {status} on {path}: {response.text[:200]}",
                status_code=status,
            )
        return response

    async def _request(self, path: str, params: Dict[str, Any]) -> httpx.Response:
        """Send with exponential backoff on transient failures only."""
        retrying = AsyncRetrying(
            stop=stop_after_attempt(self.max_attempts),
            wait=wait_exponential(multiplier=self.retry_base_delay, exp_base=2),
            retry=retry_if_exception_type(TransientNetworkError),
            before_sleep=before_sleep_log(logger, logging.WARNING),
            sleep=self._sleep,
            reraise=True,
        )
        async for attempt in retrying:
            with attempt:
                return await self._send_once(path, params)

    def _parse_events(self, payload: Any) -> List[ProviderEvent]:
        """Validate events one by one; malformed events are dropped."""
        if isinstance(payload, dict):
            payload = [payload]
        if not isinstance(payload, list):
            logger.warning(f"Unexpected The Odds API payload type: {type(payload).__name__}")
            return []

        events = []
        for item in payload:
            try:
                events.append(ProviderEvent.model_validate(item))
            except ValidationError as e:
                logger.warning(f"Dropping malformed event {item.get('id') if isinstance(item, dict) else item!r}: {e.error_count()} errors")
        return events

    def _build_response(self, response: httpx.Response) -> OddsApiResponse:
        try:
            payload = response.json()
        except ValueError as e:
            raise ProviderResponseError(f"Invalid JSON from The Odds API: {e}", status_code=response.status_code) from e

        return OddsApiResponse(
            events=self._parse_events(payload),
            credits_remaining=self.credits_remaining,
            credits_used=self.credits_used,
            last_call_cost=_call_cost(response),
        )

    async def get_odds(self, markets: Sequence[str] = DEFAULT_GAME_MARKETS) -> OddsApiResponse:
        """
        Fetch all upcoming events with odds in one bulk call.

        Args:
            markets: Market keys (h2h, spreads, totals)

        Returns:
            OddsApiResponse with validated events

        Raises:
            AuthenticationError, RateLimitError, TransientNetworkError, ProviderResponseError
        """
        params = {
            "regions": ",".join(self.regions),
            "markets": ",".join(markets),
            "oddsFormat": "american",
        }
        response = await self._request(f"/sports/{self.sport}/odds", params)
        result = self._build_response(response)
        logger.info(
            f"Fetched {len(result.events)} events from The Odds API "
            f"(cost {result.last_call_cost}, {self.credits_remaining} credits remaining)"
        )
        return result

    async def get_event_odds(self, event_id: str, markets: Sequence[str]) -> OddsApiResponse:
        """
        Fetch odds for one event (used for player prop markets).

        Args:
            event_id: The Odds API event ID
            markets: Market keys (e.g. player_pass_yds)

        Returns:
            OddsApiResponse with at most one event
        """
        params = {
            "regions": ",".join(self.regions),
            "markets": ",".join(markets),
            "oddsFormat": "american",
        }
        response = await self._request(f"/sports/{self.sport}/events/{event_id}/odds", params)
        return self._build_response(response)
