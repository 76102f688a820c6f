"""Read access to scheduled games."""
from typing import List, Optional

from sqlalchemy.orm import Session

from oddsync.models.models import Game
from oddsync.repositories.base import BaseRepository


class GameRepository(BaseRepository[Game]):
    """Games are owned by the schedule importer; odds sync only reads them."""

    def __init__(self, db: Session):
        super().__init__(Game, db)

    def find_by_key(self, external_id: str, season: int) -> Optional[Game]:
        return self.filter_by_first(external_id=str(external_id), season=season)

    def find_by_week(self, week: int, season: int) -> List[Game]:
        """Games of one week, in kickoff order."""
        return (
            self.query()
            .filter(Game.week == week, Game.season == season)
            .order_by(Game.game_date, Game.external_id)
            .all()
        )
