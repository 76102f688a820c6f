"""Shared pytest fixtures for oddsync tests."""
import sys
from datetime import datetime, timedelta
from pathlib import Path
from typing import Generator

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, Session

# Add project root to Python path
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from oddsync.models.models import Base, Game  # noqa: E402
from oddsync.models.provider import ProviderEvent  # noqa: E402

KICKOFF = datetime(2025, 9, 7, 17, 0)

# (home code, home name, away code, away name) for a 16-game week
WEEK_ONE_MATCHUPS = [
    ("KC", "Kansas City Chiefs", "BAL", "Baltimore Ravens"),
    ("ATL", "Atlanta Falcons", "PIT", "Pittsburgh Steelers"),
    ("BUF", "Buffalo Bills", "ARI", "Arizona Cardinals"),
    ("CHI", "Chicago Bears", "TEN", "Tennessee Titans"),
    ("CIN", "Cincinnati Bengals", "NE", "New England Patriots"),
    ("IND", "Indianapolis Colts", "HOU", "Houston Texans"),
    ("MIA", "Miami Dolphins", "JAX", "Jacksonville Jaguars"),
    ("NO", "New Orleans Saints", "CAR", "Carolina Panthers"),
    ("NYG", "New York Giants", "MIN", "Minnesota Vikings"),
    ("LAC", "Los Angeles Chargers", "LV", "Las Vegas Raiders"),
    ("SEA", "Seattle Seahawks", "DEN", "Denver Broncos"),
    ("CLE", "Cleveland Browns", "DAL", "Dallas Cowboys"),
    ("TB", "Tampa Bay Buccaneers", "WAS", "Washington Commanders"),
    ("GB", "Green Bay Packers", "PHI", "Philadelphia Eagles"),
    ("SF", "San Francisco 49ers", "NYJ", "New York Jets"),
    ("DET", "Detroit Lions", "LAR", "Los Angeles Rams"),
]


@pytest.fixture(scope="function")
def db_session() -> Generator[Session, None, None]:
    """Create fresh test database session with isolated in-memory database."""
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False}
    )
    Base.metadata.create_all(bind=engine)

    TestSessionLocal = sessionmaker(bind=engine)
    session = TestSessionLocal()

    yield session

    session.close()
    engine.dispose()


@pytest.fixture
def make_game():
    """Build a transient Game (add it to a session to persist it)."""
    def _make_game(
        home_code: str = "KC",
        away_code: str = "BAL",
        external_id: str = "401671789",
        season: int = 2025,
        week: int = 1,
        game_date: datetime = KICKOFF,
        home_name: str = None,
        away_name: str = None,
    ) -> Game:
        return Game(
            external_id=external_id,
            season=season,
            week=week,
            game_date=game_date,
            home_team_code=home_code,
            home_team_name=home_name,
            away_team_code=away_code,
            away_team_name=away_name,
            status="scheduled",
        )
    return _make_game


@pytest.fixture
def week_games(db_session: Session, make_game):
    """Sixteen week-1 games persisted in the test database."""
    games = []
    for index, (home, home_name, away, away_name) in enumerate(WEEK_ONE_MATCHUPS):
        game = make_game(
            home_code=home,
            away_code=away,
            home_name=home_name,
            away_name=away_name,
            external_id=f"40167{index:04d}",
            game_date=KICKOFF + timedelta(minutes=index),
        )
        db_session.add(game)
        games.append(game)
    db_session.commit()
    return games


@pytest.fixture
def make_bookmaker():
    """Build a raw The Odds API bookmaker entry with h2h/spreads/totals markets."""
    def _make_bookmaker(
        home: str,
        away: str,
        title: str = "DraftKings",
        key: str = None,
        home_ml: float = -150,
        away_ml: float = 130,
        spread: float = -3.5,
        spread_price: float = -110,
        total: float = 47.5,
        total_price: float = -110,
        last_update: str = "2025-09-05T12:00:00Z",
        markets=("h2h", "spreads", "totals"),
    ) -> dict:
        built = []
        if "h2h" in markets:
            built.append({
                "key": "h2h",
                "outcomes": [
                    {"name": home, "price": home_ml},
                    {"name": away, "price": away_ml},
                ],
            })
        if "spreads" in markets:
            built.append({
                "key": "spreads",
                "outcomes": [
                    {"name": home, "price": spread_price, "point": spread},
                    {"name": away, "price": spread_price, "point": -spread},
                ],
            })
        if "totals" in markets:
            built.append({
                "key": "totals",
                "outcomes": [
                    {"name": "Over", "price": total_price, "point": total},
                    {"name": "Under", "price": total_price, "point": total},
                ],
            })
        return {
            "key": key or title.lower().replace(" ", ""),
            "title": title,
            "last_update": last_update,
            "markets": built,
        }
    return _make_bookmaker


@pytest.fixture
def make_event(make_bookmaker):
    """Build a ProviderEvent; bookmakers default to one DraftKings entry."""
    def _make_event(
        home: str = "Kansas City Chiefs",
        away: str = "Baltimore Ravens",
        event_id: str = "evt-kc-bal",
        bookmakers=None,
    ) -> ProviderEvent:
        if bookmakers is None:
            bookmakers = [make_bookmaker(home, away)]
        return ProviderEvent.model_validate({
            "id": event_id,
            "sport_key": "americanfootball_nfl",
            "commence_time": "2025-09-07T17:00:00Z",
            "home_team": home,
            "away_team": away,
            "bookmakers": bookmakers,
        })
    return _make_event
