"""Persistence for reconciled betting odds records."""
from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from oddsync.core.logging import get_logger
from oddsync.models.models import BettingOdds, Game, utcnow
from oddsync.repositories.base import BaseRepository

logger = get_logger(__name__)


class BettingOddsRepository(BaseRepository[BettingOdds]):
    """
    One BettingOdds record per (external_id, season).

    Callers hold the per-game lock from GameLockRegistry around a
    load-merge-upsert sequence.
    """

    def __init__(self, db: Session):
        super().__init__(BettingOdds, db)

    def find_by_key(self, external_id: str, season: int) -> Optional[BettingOdds]:
        return self.filter_by_first(external_id=str(external_id), season=season)

    def find_by_week(self, week: int, season: int) -> List[BettingOdds]:
        return (
            self.query()
            .filter(BettingOdds.week == week, BettingOdds.season == season, BettingOdds.is_active.is_(True))
            .order_by(BettingOdds.game_date, BettingOdds.external_id)
            .all()
        )

    def find_upcoming(self, limit: int = 20, now: Optional[datetime] = None) -> List[BettingOdds]:
        """Active records for games that have not kicked off yet, soonest first."""
        now = now or utcnow()
        return (
            self.query()
            .filter(BettingOdds.game_date >= now, BettingOdds.is_active.is_(True))
            .order_by(BettingOdds.game_date)
            .limit(limit)
            .all()
        )

    def available_bookmakers(self) -> List[str]:
        """Distinct bookmaker names across active records, sorted."""
        names = set()
        for record in self.query().filter(BettingOdds.is_active.is_(True)).all():
            for source in record.sources or []:
                if source.get("source"):
                    names.add(source["source"])
        return sorted(names)

    def stats(self) -> Dict[str, Any]:
        """Counts over active records: total, with at least one source, latest sync."""
        active = BettingOdds.is_active.is_(True)
        with_sources = sum(
            1 for (sources,) in self.db.query(BettingOdds.sources).filter(active).all() if sources
        )
        return {
            "total_records": self.count(active),
            "records_with_odds": with_sources,
            "last_synced": self.db.query(func.max(BettingOdds.last_synced)).filter(active).scalar(),
        }

    def _apply(self, record: BettingOdds, game: Game, sources: List[Dict[str, Any]], best_odds: Optional[Dict[str, Any]]) -> None:
        now = utcnow()
        record.week = game.week
        record.game_date = game.game_date
        record.home_team_code = game.home_team_code
        record.home_team_name = game.home_team_name
        record.away_team_code = game.away_team_code
        record.away_team_name = game.away_team_name
        record.sources = sources
        if best_odds is not None:
            record.best_odds = best_odds
        elif record.best_odds is None:
            record.best_odds = {}
        record.sync_count = (record.sync_count or 0) + 1
        record.last_synced = now
        record.is_active = True
        record.updated_at = now

    def upsert(
        self,
        game: Game,
        sources: List[Dict[str, Any]],
        best_odds: Optional[Dict[str, Any]] = None,
    ) -> BettingOdds:
        """
        Insert or update the record for a game and commit.

        Args:
            game: The game the odds belong to
            sources: Full (already merged) bookmaker source list
            best_odds: New best-odds rollup; None keeps the stored one

        Returns:
            The persisted record with sync_count incremented
        """
        record = self.find_by_key(game.external_id, game.season)
        if record is None:
            record = self.create(
                external_id=str(game.external_id),
                season=game.season,
                home_team_code=game.home_team_code,
                away_team_code=game.away_team_code,
                sync_count=0,
                best_odds={},
            )

        self._apply(record, game, sources, best_odds)
        try:
            self.save()
        except IntegrityError:
            # Another writer inserted the same key first; update theirs instead
            self.rollback()
            logger.warning(f"Concurrent insert for {game.external_id}/{game.season}, retrying as update")
            record = self.find_by_key(game.external_id, game.season)
            if record is None:
                raise
            self._apply(record, game, sources, best_odds)
            self.save()

        return self.refresh(record)
