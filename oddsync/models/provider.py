"""
Payload shapes returned by The Odds API.

Events are validated loosely: bookmakers and markets stay raw dicts and are
validated one at a time during reconciliation, so a single malformed market
never invalidates its siblings.
"""
from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class ProviderOutcome(BaseModel):
    model_config = ConfigDict(extra="ignore")

    name: str
    price: Optional[float] = None
    point: Optional[float] = None
    description: Optional[str] = None  # player name on prop markets


class ProviderMarket(BaseModel):
    model_config = ConfigDict(extra="ignore")

    key: str
    last_update: Optional[datetime] = None
    outcomes: List[ProviderOutcome]


class ProviderBookmaker(BaseModel):
    model_config = ConfigDict(extra="ignore")

    key: Optional[str] = None
    title: Optional[str] = None
    last_update: Optional[datetime] = None
    markets: List[Dict[str, Any]] = Field(default_factory=list)

    @property
    def display_name(self) -> str:
        return self.title or self.key or "Unknown"


class ProviderEvent(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: str
    sport_key: Optional[str] = None
    commence_time: Optional[datetime] = None
    home_team: str
    away_team: str
    bookmakers: List[Dict[str, Any]] = Field(default_factory=list)
