"""
Process configuration with environment-specific .env files.

Supported environment files (loaded in order of precedence):
1. .env.{ENVIRONMENT} (e.g., .env.production, .env.development)
2. .env (fallback)

Required settings (startup fails fast without them):
- THE_ODDS_API_KEY
- ODDS_API_TIMEOUT
- ODDS_API_MIN_REQUEST_INTERVAL
- ODDS_API_MAX_REQUESTS_PER_MINUTE
"""
import os
import logging
from pathlib import Path
from typing import Any, Literal

from pydantic import Field, ValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict

from oddsync.core.exceptions import ConfigurationError

# Project root (2 levels up from this file)
PROJECT_ROOT = Path(__file__).parent.parent.parent

logger = logging.getLogger(__name__)

DEFAULT_PLAYER_PROP_MARKETS = (
    "player_pass_yds,player_pass_tds,player_rush_yds,"
    "player_receptions,player_reception_yds,player_anytime_td"
)


class Settings(BaseSettings):
    """Odds sync settings."""

    model_config = SettingsConfigDict(
        env_file=str(PROJECT_ROOT / ".env"),
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",  # Allow extra fields from .env
    )

    # Environment
    ENVIRONMENT: Literal["development", "production", "test"] = "development"

    # Database
    DATABASE_URL: str = "sqlite:///./oddsync.db"

    # The Odds API (credit-metered primary provider)
    THE_ODDS_API_KEY: str = Field(..., min_length=1)
    ODDS_API_TIMEOUT: float = Field(..., gt=0)
    ODDS_API_MIN_REQUEST_INTERVAL: float = Field(..., ge=0)
    ODDS_API_MAX_REQUESTS_PER_MINUTE: int = Field(..., gt=0)
    ODDS_API_BASE_URL: str = "https://api.the-odds-api.com/v4"
    ODDS_API_SPORT: str = "americanfootball_nfl"
    ODDS_API_REGIONS: str = "us"  # us, uk, eu, au
    ODDS_API_MARKETS: str = "h2h,spreads,totals"
    ODDS_API_MAX_RETRIES: int = Field(3, ge=1)
    ODDS_API_RETRY_BASE_DELAY: float = Field(1.0, ge=0)

    # Sliding-window rate limiter
    RATE_LIMIT_WINDOW_SECONDS: float = Field(60.0, gt=0)
    RATE_LIMIT_SAFETY_BUFFER: float = Field(0.1, ge=0)

    # ESPN (free secondary provider)
    ESPN_BASE_URL: str = "https://site.api.espn.com/apis/site/v2/sports"
    ESPN_TIMEOUT: float = Field(10.0, gt=0)

    # Sync
    SYNC_CONCURRENCY: int = Field(4, ge=1)
    PLAYER_PROP_MARKETS: str = DEFAULT_PLAYER_PROP_MARKETS

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_JSON: bool = True

    @property
    def odds_markets(self) -> list[str]:
        """Game-level markets requested on a week sync."""
        return _split_csv(self.ODDS_API_MARKETS)

    @property
    def odds_regions(self) -> list[str]:
        return _split_csv(self.ODDS_API_REGIONS)

    @property
    def player_prop_markets(self) -> list[str]:
        return _split_csv(self.PLAYER_PROP_MARKETS)


def _split_csv(value: str) -> list[str]:
    return [item.strip() for item in value.split(",") if item.strip()]


def _load_env_file() -> Path:
    """
    Pick the environment file based on the ENVIRONMENT variable.

    Loads in order of precedence:
    1. .env.{ENVIRONMENT} (e.g., .env.production, .env.development)
    2. .env (fallback)
    """
    environment = os.getenv("ENVIRONMENT", "development")

    env_file = PROJECT_ROOT / f".env.{environment}"
    if env_file.exists():
        logger.info(f"Loading environment from {env_file.name}")
        return env_file

    default_env = PROJECT_ROOT / ".env"
    if default_env.exists():
        logger.info(f"Loading environment from .env (environment: {environment})")
    else:
        logger.warning(f"No environment file found for '{environment}' (checked .env.{environment}, .env)")
    return default_env


def load_settings(env_file: Path | str | None = None, **overrides: Any) -> Settings:
    """
    Build and validate settings once at process start.

    Args:
        env_file: Explicit env file; auto-detected when omitted
        **overrides: Field values taking precedence over the environment

    Returns:
        Validated Settings

    Raises:
        ConfigurationError: If a required setting is missing or non-numeric
    """
    if env_file is None:
        env_file = _load_env_file()

    try:
        return Settings(_env_file=str(env_file), **overrides)
    except ValidationError as e:
        problems = []
        for error in e.errors():
            field = ".".join(str(part) for part in error["loc"])
            problems.append(f"{field}: {error['msg']}")
        raise ConfigurationError(
            "Invalid configuration - " + "; ".join(problems)
        ) from e
