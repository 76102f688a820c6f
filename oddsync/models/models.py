"""
Database models for odds synchronization.
"""
import uuid
from datetime import datetime, timezone

from sqlalchemy import Column, String, Integer, DateTime, Boolean, JSON, Index, UniqueConstraint
from sqlalchemy.orm import declarative_base

Base = declarative_base()


def utcnow() -> datetime:
    """Naive UTC timestamp, as stored in DateTime columns."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def new_id() -> str:
    return str(uuid.uuid4())


class Game(Base):
    """Scheduled NFL game. Owned by the schedule importer; read-only for odds sync."""
    __tablename__ = "games"

    id = Column(String(36), primary_key=True, default=new_id)
    external_id = Column(String(100), nullable=False, index=True)  # ESPN event ID
    season = Column(Integer, nullable=False, index=True)
    week = Column(Integer, nullable=False, index=True)
    game_date = Column(DateTime, nullable=False, index=True)
    home_team_code = Column(String(5), nullable=False)
    home_team_name = Column(String(100), nullable=True)
    away_team_code = Column(String(5), nullable=False)
    away_team_name = Column(String(100), nullable=True)
    status = Column(String(50), nullable=False, default="scheduled")  # scheduled, in_progress, final
    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    __table_args__ = (
        UniqueConstraint("external_id", "season", name="uq_games_external_id_season"),
        Index("ix_games_season_week", "season", "week"),
    )

    def __repr__(self) -> str:
        return f"<Game {self.away_team_code}@{self.home_team_code} {self.external_id}/{self.season}>"


class BettingOdds(Base):
    """
    Reconciled odds for one game.

    sources holds one entry per bookmaker (see oddsync.models.odds.BookmakerSource)
    and only grows across syncs; best_odds is derived from sources.
    """
    __tablename__ = "betting_odds"

    id = Column(String(36), primary_key=True, default=new_id)
    external_id = Column(String(100), nullable=False, index=True)
    season = Column(Integer, nullable=False, index=True)
    week = Column(Integer, nullable=True, index=True)
    game_date = Column(DateTime, nullable=True, index=True)
    home_team_code = Column(String(5), nullable=False)
    home_team_name = Column(String(100), nullable=True)
    away_team_code = Column(String(5), nullable=False)
    away_team_name = Column(String(100), nullable=True)
    sources = Column(JSON, nullable=False, default=list)
    best_odds = Column(JSON, nullable=False, default=dict)
    sync_count = Column(Integer, nullable=False, default=0)
    last_synced = Column(DateTime, nullable=True)
    is_active = Column(Boolean, nullable=False, default=True, index=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    __table_args__ = (
        UniqueConstraint("external_id", "season", name="uq_betting_odds_external_id_season"),
        Index("ix_betting_odds_season_week", "season", "week"),
    )

    def __repr__(self) -> str:
        return f"<BettingOdds {self.external_id}/{self.season} sources={len(self.sources or [])}>"
