"""
Repository layer for data access.

Usage:
    from oddsync.repositories import GameRepository, BettingOddsRepository

    db = session_factory()
    games = GameRepository(db).find_by_week(week=1, season=2025)
    db.close()
"""

from oddsync.repositories.base import BaseRepository
from oddsync.repositories.game_repository import GameRepository
from oddsync.repositories.betting_odds_repository import BettingOddsRepository

__all__ = [
    "BaseRepository",
    "GameRepository",
    "BettingOddsRepository",
]
