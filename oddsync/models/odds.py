"""
Reconciled odds shapes stored inside BettingOdds.sources / best_odds.

Prices are American odds; decimal and implied probability are derived at
ingestion. A side with no price is None, never a default juice.
"""
from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from oddsync.services.core.odds_math import american_to_decimal, american_to_probability


class OddsPrice(BaseModel):
    american: float
    decimal: Optional[float] = None
    implied_probability: Optional[float] = None

    @classmethod
    def from_american(cls, american: float, with_probability: bool = True) -> "OddsPrice":
        return cls(
            american=american,
            decimal=american_to_decimal(american),
            implied_probability=american_to_probability(american) if with_probability else None,
        )


class MoneylineMarket(BaseModel):
    home: Optional[OddsPrice] = None
    away: Optional[OddsPrice] = None

    def is_empty(self) -> bool:
        return self.home is None and self.away is None


class SpreadSide(BaseModel):
    points: Optional[float] = None
    odds: Optional[OddsPrice] = None


class SpreadMarket(BaseModel):
    home: Optional[SpreadSide] = None
    away: Optional[SpreadSide] = None

    def is_empty(self) -> bool:
        return self.home is None and self.away is None


class TotalMarket(BaseModel):
    points: Optional[float] = None
    over: Optional[OddsPrice] = None
    under: Optional[OddsPrice] = None

    def is_empty(self) -> bool:
        return self.points is None and self.over is None and self.under is None


class PropOutcome(BaseModel):
    name: str
    price: float
    point: Optional[float] = None


class PlayerProp(BaseModel):
    market: str
    player_name: str
    player_id: Optional[str] = None  # reserved for roster linking
    outcomes: List[PropOutcome] = Field(default_factory=list)
    last_update: Optional[datetime] = None

    @property
    def key(self) -> tuple:
        return (self.market, self.player_name)


class BookmakerSource(BaseModel):
    """One bookmaker's quotes for a game."""
    model_config = ConfigDict(extra="ignore")

    source: str
    bookmaker_key: Optional[str] = None
    last_updated: datetime
    moneyline: Optional[MoneylineMarket] = None
    spread: Optional[SpreadMarket] = None
    total: Optional[TotalMarket] = None
    player_props: List[PlayerProp] = Field(default_factory=list)
    raw_data: Optional[Dict[str, Any]] = None

    def has_game_lines(self) -> bool:
        return any(
            market is not None and not market.is_empty()
            for market in (self.moneyline, self.spread, self.total)
        )


class BestPrice(OddsPrice):
    bookmaker: str


class BestSpreadSide(BaseModel):
    points: Optional[float] = None
    odds: BestPrice


class BestMoneyline(BaseModel):
    home: Optional[BestPrice] = None
    away: Optional[BestPrice] = None


class BestSpread(BaseModel):
    home: Optional[BestSpreadSide] = None
    away: Optional[BestSpreadSide] = None


class BestTotal(BaseModel):
    points: Optional[float] = None
    over: Optional[BestPrice] = None
    under: Optional[BestPrice] = None


class BestOdds(BaseModel):
    """Per-market winners across bookmakers, derived from sources."""
    moneyline: BestMoneyline = Field(default_factory=BestMoneyline)
    spread: BestSpread = Field(default_factory=BestSpread)
    total: BestTotal = Field(default_factory=BestTotal)
