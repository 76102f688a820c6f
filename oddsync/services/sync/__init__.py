"""
NFL Odds Sync

Reconciles The Odds API (primary, credit-metered) and ESPN (secondary, free)
into one record per game.

Key components:
- Utils: Team name resolution to canonical codes
- Matchers: Correlate provider events with tracked games
- Reconciler / player props parser: Convert and merge bookmaker quotes
- Orchestrator: Coordinate week syncs and report tallies
"""
