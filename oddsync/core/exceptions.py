"""
Exception taxonomy for odds synchronization.

Provider-level failures (authentication, rate limiting) abort the remaining
primary-provider work for a sync; per-game failures are recorded in the sync
tally and never abort the batch.
"""
from typing import Optional


class OddsSyncError(Exception):
    """Base class for all oddsync errors."""


class ConfigurationError(OddsSyncError):
    """Required configuration is missing or invalid."""


class ProviderError(OddsSyncError):
    """An odds provider request failed."""

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        provider: str = "the_odds_api",
    ):
        super().__init__(message)
        self.status_code = status_code
        self.provider = provider


class AuthenticationError(ProviderError):
    """Provider rejected the API key (HTTP 401). Never retried."""


class RateLimitError(ProviderError):
    """Provider quota or rate limit exhausted (HTTP 429). Never retried."""


class TransientNetworkError(ProviderError):
    """Timeout, transport failure or 5xx response. Retried with backoff."""


class ProviderResponseError(ProviderError):
    """Non-retryable client error from the provider (other 4xx)."""


class MatchFailure(OddsSyncError):
    """No odds could be attributed to a game from any source."""


class MalformedMarketError(OddsSyncError):
    """A provider market could not be interpreted and was dropped."""


class GameNotFoundError(OddsSyncError):
    """The requested game is not tracked."""

    def __init__(self, external_id: str, season: int):
        super().__init__(f"Game not found: {external_id} (season {season})")
        self.external_id = external_id
        self.season = season
