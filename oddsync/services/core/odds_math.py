"""
Conversions between American odds, decimal odds and implied probability.

All functions return None for a missing (None or zero) input.
"""
from typing import Optional


def american_to_decimal(american: Optional[float]) -> Optional[float]:
    """
    Convert American odds to decimal odds.

    +150 -> 2.5, -200 -> 1.5
    """
    if not american:
        return None
    if american > 0:
        return american / 100 + 1
    return 100 / abs(american) + 1


def american_to_probability(american: Optional[float]) -> Optional[float]:
    """
    Convert American odds to implied win probability (0-1).

    +150 -> 0.4, -200 -> 0.6667
    """
    if not american:
        return None
    if american > 0:
        return 100 / (american + 100)
    return abs(american) / (abs(american) + 100)


def decimal_to_american(decimal: Optional[float]) -> Optional[float]:
    """
    Convert decimal odds to American odds.

    2.5 -> +150, 1.5 -> -200
    """
    if not decimal or decimal <= 1:
        return None
    if decimal >= 2:
        return (decimal - 1) * 100
    return -100 / (decimal - 1)
