"""Unit tests for OddsReconciler.

Test Strategy:
1. Conversion: outcomes assigned to home/away by team label, never by order
2. Missing prices stay missing (no default juice)
3. Malformed markets are dropped without losing sibling markets
4. Best odds: greatest American price, first seen wins ties
5. Merge: replace + backfill, carry forward absent bookmakers, dedupe
6. Persistence: sync_count increments, sources never shrink
"""
from datetime import datetime, timezone

import pytest
from sqlalchemy.orm import Session

from oddsync.models.odds import BookmakerSource, MoneylineMarket, OddsPrice, SpreadMarket, SpreadSide, TotalMarket
from oddsync.repositories.betting_odds_repository import BettingOddsRepository
from oddsync.services.sync.reconciler import OddsReconciler, dedupe_sources, load_sources
from oddsync.services.sync.utils.name_normalizer import TeamNameResolver

EARLIER = datetime(2025, 9, 1, 12, 0, tzinfo=timezone.utc)
LATER = datetime(2025, 9, 2, 12, 0, tzinfo=timezone.utc)


def price(american):
    return OddsPrice.from_american(american)


def source(name, moneyline=None, spread=None, total=None, updated=EARLIER):
    return BookmakerSource(source=name, last_updated=updated, moneyline=moneyline, spread=spread, total=total)


@pytest.fixture
def reconciler(db_session: Session):
    return OddsReconciler(TeamNameResolver(), BettingOddsRepository(db_session))


class TestBuildSources:
    """Provider bookmaker -> BookmakerSource conversion."""

    # Assignment Tests
    # ─────────────────────────────────────────────────────────────

    def test_moneyline_assigned_by_label(self, reconciler, make_game, make_event):
        """Should assign prices by team label even if outcomes are listed away-first."""
        game = make_game("KC", "BAL")
        bookmaker = {
            "key": "fanduel",
            "title": "FanDuel",
            "markets": [{
                "key": "h2h",
                "outcomes": [
                    {"name": "Baltimore Ravens", "price": 130},
                    {"name": "Kansas City Chiefs", "price": -150},
                ],
            }],
        }
        event = make_event(bookmakers=[bookmaker])

        [built] = reconciler.build_sources(event, game)

        assert built.source == "FanDuel"
        assert built.bookmaker_key == "fanduel"
        assert built.moneyline.home.american == -150
        assert built.moneyline.away.american == 130
        assert built.moneyline.home.implied_probability == pytest.approx(0.6)

    def test_provider_home_away_swapped(self, reconciler, make_game, make_event, make_bookmaker):
        """Should follow the tracked game's home team, not the provider's."""
        game = make_game("KC", "BAL")
        event = make_event(
            home="Baltimore Ravens",
            away="Kansas City Chiefs",
            bookmakers=[make_bookmaker("Kansas City Chiefs", "Baltimore Ravens", home_ml=-150, away_ml=130)],
        )

        [built] = reconciler.build_sources(event, game)

        assert built.moneyline.home.american == -150

    def test_spread_and_total(self, reconciler, make_game, make_event):
        """Should map spread points/prices per side and the total line."""
        game = make_game("KC", "BAL")
        event = make_event()

        [built] = reconciler.build_sources(event, game)

        assert built.spread.home.points == -3.5
        assert built.spread.away.points == 3.5
        assert built.spread.home.odds.american == -110
        assert built.total.points == 47.5
        assert built.total.over.american == -110
        assert built.total.under.american == -110

    # Missing Data Tests
    # ─────────────────────────────────────────────────────────────

    def test_missing_spread_price_is_not_fabricated(self, reconciler, make_game, make_event):
        """Should keep the points but leave odds empty when the price is absent."""
        game = make_game("KC", "BAL")
        bookmaker = {
            "title": "BetMGM",
            "markets": [{
                "key": "spreads",
                "outcomes": [
                    {"name": "Kansas City Chiefs", "point": -3.5},
                    {"name": "Baltimore Ravens", "price": -105, "point": 3.5},
                ],
            }],
        }
        event = make_event(bookmakers=[bookmaker])

        [built] = reconciler.build_sources(event, game)

        assert built.spread.home.points == -3.5
        assert built.spread.home.odds is None
        assert built.spread.away.odds.american == -105
        assert built.moneyline is None

    def test_total_takes_first_non_null_points(self, reconciler, make_game, make_event):
        """Should take the first outcome that carries points."""
        game = make_game("KC", "BAL")
        bookmaker = {
            "title": "Caesars",
            "markets": [{
                "key": "totals",
                "outcomes": [
                    {"name": "Over", "price": -108},
                    {"name": "Under", "price": -112, "point": 46.5},
                ],
            }],
        }
        event = make_event(bookmakers=[bookmaker])

        [built] = reconciler.build_sources(event, game)

        assert built.total.points == 46.5
        assert built.total.over.american == -108

    def test_bookmaker_without_lines_dropped(self, reconciler, make_game, make_event):
        """Should drop bookmakers with no usable market."""
        game = make_game("KC", "BAL")
        bookmaker = {"title": "Empty", "markets": [{"key": "outrights", "outcomes": []}]}
        event = make_event(bookmakers=[bookmaker])

        assert reconciler.build_sources(event, game) == []

    def test_malformed_market_dropped_siblings_kept(self, reconciler, make_game, make_event, make_bookmaker):
        """Should drop only the malformed market."""
        game = make_game("KC", "BAL")
        bookmaker = make_bookmaker("Kansas City Chiefs", "Baltimore Ravens", markets=("totals",))
        bookmaker["markets"].append({"key": "h2h", "outcomes": "not-a-list"})
        event = make_event(bookmakers=[bookmaker])

        [built] = reconciler.build_sources(event, game)

        assert built.moneyline is None
        assert built.total.points == 47.5

    def test_unknown_outcome_label_ignored(self, reconciler, make_game, make_event):
        """Should ignore outcomes for teams not in the game."""
        game = make_game("KC", "BAL")
        bookmaker = {
            "title": "PointsBet",
            "markets": [{
                "key": "h2h",
                "outcomes": [
                    {"name": "Kansas City Chiefs", "price": -150},
                    {"name": "Denver Broncos", "price": 200},
                ],
            }],
        }
        event = make_event(bookmakers=[bookmaker])

        [built] = reconciler.build_sources(event, game)

        assert built.moneyline.home.american == -150
        assert built.moneyline.away is None


class TestBestOdds:
    """Best-odds rollup."""

    def test_greatest_american_price_wins(self):
        """Should pick -120 over -150."""
        best = OddsReconciler.calculate_best_odds([
            source("X", MoneylineMarket(home=price(-150))),
            source("Y", MoneylineMarket(home=price(-120))),
        ])

        assert best.moneyline.home.american == -120
        assert best.moneyline.home.bookmaker == "Y"

    def test_underdog_price(self):
        """Should pick +140 over +130."""
        best = OddsReconciler.calculate_best_odds([
            source("X", MoneylineMarket(away=price(140))),
            source("Y", MoneylineMarket(away=price(130))),
        ])

        assert best.moneyline.away.bookmaker == "X"

    def test_tie_keeps_first_seen(self):
        """Should keep the first bookmaker on equal prices."""
        best = OddsReconciler.calculate_best_odds([
            source("First", MoneylineMarket(home=price(-110))),
            source("Second", MoneylineMarket(home=price(-110))),
        ])

        assert best.moneyline.home.bookmaker == "First"

    def test_spread_best_carries_points(self):
        """Should carry the winning bookmaker's points with its price."""
        best = OddsReconciler.calculate_best_odds([
            source("X", spread=SpreadMarket(home=SpreadSide(points=-3.5, odds=price(-110)))),
            source("Y", spread=SpreadMarket(home=SpreadSide(points=-3.0, odds=price(-105)))),
            source("Z", spread=SpreadMarket(home=SpreadSide(points=-2.5, odds=None))),
        ])

        assert best.spread.home.points == -3.0
        assert best.spread.home.odds.bookmaker == "Y"

    def test_total_points_first_non_null(self):
        """Should take total points from the first source that has them."""
        best = OddsReconciler.calculate_best_odds([
            source("X", total=TotalMarket(over=price(-105))),
            source("Y", total=TotalMarket(points=44.5, over=price(-110), under=price(-110))),
        ])

        assert best.total.points == 44.5
        assert best.total.over.bookmaker == "X"
        assert best.total.under.bookmaker == "Y"

    def test_empty(self):
        """Should return an empty rollup without sources."""
        best = OddsReconciler.calculate_best_odds([])
        assert best.moneyline.home is None
        assert best.total.points is None


class TestMergeSources:
    """Merge-with-storage rules."""

    def test_absent_bookmakers_carried_forward(self):
        """Should keep stored bookmakers this sync did not report."""
        existing = [source("A", MoneylineMarket(home=price(-110))), source("B"), source("C")]
        incoming = [source("A", MoneylineMarket(home=price(-120))), source("B")]

        merged = OddsReconciler.merge_sources(existing, incoming, now=LATER)

        assert [s.source for s in merged] == ["A", "B", "C"]
        assert merged[0].moneyline.home.american == -120

    def test_missing_market_backfilled(self):
        """Should keep stored moneyline/spread when this sync reports only a total."""
        existing = [source(
            "A",
            moneyline=MoneylineMarket(home=price(-150), away=price(130)),
            spread=SpreadMarket(home=SpreadSide(points=-3.5, odds=price(-110))),
        )]
        incoming = [source("A", total=TotalMarket(points=47.5, over=price(-110)))]

        [merged] = OddsReconciler.merge_sources(existing, incoming, now=LATER)

        assert merged.moneyline.home.american == -150
        assert merged.spread.home.points == -3.5
        assert merged.total.points == 47.5
        assert merged.last_updated == LATER

    def test_missing_side_backfilled(self):
        """Should keep a stored side the new quote omits."""
        existing = [source("A", MoneylineMarket(home=price(-150), away=price(130)))]
        incoming = [source("A", MoneylineMarket(home=price(-140)))]

        [merged] = OddsReconciler.merge_sources(existing, incoming, now=LATER)

        assert merged.moneyline.home.american == -140
        assert merged.moneyline.away.american == 130

    def test_dedupe_keeps_latest(self):
        """Should keep one entry per bookmaker, the most recently updated."""
        deduped = dedupe_sources([
            source("A", MoneylineMarket(home=price(-110)), updated=EARLIER),
            source("A", MoneylineMarket(home=price(-115)), updated=LATER),
            source("B"),
        ])

        assert [s.source for s in deduped] == ["A", "B"]
        assert deduped[0].moneyline.home.american == -115

    def test_dedupe_mixed_naive_and_aware(self):
        """Should compare naive timestamps as UTC."""
        deduped = dedupe_sources([
            source("A", updated=datetime(2025, 9, 3)),
            source("A", updated=LATER),
        ])
        assert deduped[0].last_updated == datetime(2025, 9, 3)


class TestApply:
    """Load-merge-upsert against the database."""

    @pytest.mark.asyncio
    async def test_creates_then_updates(self, reconciler, make_game, make_event, make_bookmaker):
        """Should create the record and increment sync_count on each sync."""
        game = make_game("KC", "BAL")
        home, away = "Kansas City Chiefs", "Baltimore Ravens"
        first = reconciler.build_sources(make_event(bookmakers=[
            make_bookmaker(home, away, title="DraftKings"),
            make_bookmaker(home, away, title="FanDuel", home_ml=-140),
            make_bookmaker(home, away, title="BetMGM", home_ml=-160),
        ]), game)

        record = await reconciler.apply(game, first)

        assert record.sync_count == 1
        assert record.last_synced is not None
        assert len(record.sources) == 3
        assert record.best_odds["moneyline"]["home"]["bookmaker"] == "FanDuel"

        second = reconciler.build_sources(make_event(bookmakers=[
            make_bookmaker(home, away, title="DraftKings", home_ml=-130),
            make_bookmaker(home, away, title="FanDuel"),
        ]), game)

        record = await reconciler.apply(game, second)

        assert record.sync_count == 2
        assert sorted(s["source"] for s in record.sources) == ["BetMGM", "DraftKings", "FanDuel"]
        assert record.best_odds["moneyline"]["home"]["bookmaker"] == "DraftKings"
        assert len(load_sources(record)) == 3

    @pytest.mark.asyncio
    async def test_carried_forward_price_stays_best(self, reconciler, make_game, make_event, make_bookmaker):
        """Should keep a bookmaker absent from this sync competing with its stored price."""
        game = make_game("KC", "BAL")
        home, away = "Kansas City Chiefs", "Baltimore Ravens"
        await reconciler.apply(game, reconciler.build_sources(make_event(bookmakers=[
            make_bookmaker(home, away, title="DraftKings"),
            make_bookmaker(home, away, title="Caesars", home_ml=-120),
        ]), game))

        record = await reconciler.apply(game, reconciler.build_sources(make_event(bookmakers=[
            make_bookmaker(home, away, title="DraftKings", home_ml=-140),
        ]), game))

        assert record.best_odds["moneyline"]["home"]["bookmaker"] == "Caesars"
        assert record.best_odds["moneyline"]["home"]["american"] == -120

    @pytest.mark.asyncio
    async def test_one_record_per_game(self, reconciler, db_session, make_game, make_event):
        """Should upsert by (external_id, season) rather than insert twice."""
        game = make_game("KC", "BAL")
        sources = reconciler.build_sources(make_event(), game)

        await reconciler.apply(game, sources)
        await reconciler.apply(game, sources)

        assert BettingOddsRepository(db_session).count() == 1
