from oddsync.models.models import Base, Game, BettingOdds, utcnow
from oddsync.models.odds import (
    OddsPrice,
    MoneylineMarket,
    SpreadSide,
    SpreadMarket,
    TotalMarket,
    PropOutcome,
    PlayerProp,
    BookmakerSource,
    BestPrice,
    BestSpreadSide,
    BestMoneyline,
    BestSpread,
    BestTotal,
    BestOdds,
)
from oddsync.models.provider import ProviderOutcome, ProviderMarket, ProviderBookmaker, ProviderEvent

__all__ = [
    "Base",
    "Game",
    "BettingOdds",
    "utcnow",
    "OddsPrice",
    "MoneylineMarket",
    "SpreadSide",
    "SpreadMarket",
    "TotalMarket",
    "PropOutcome",
    "PlayerProp",
    "BookmakerSource",
    "BestPrice",
    "BestSpreadSide",
    "BestMoneyline",
    "BestSpread",
    "BestTotal",
    "BestOdds",
    "ProviderOutcome",
    "ProviderMarket",
    "ProviderBookmaker",
    "ProviderEvent",
]
