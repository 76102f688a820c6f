"""oddsync - multi-source NFL betting odds reconciliation."""

__version__ = "1.0.0"
