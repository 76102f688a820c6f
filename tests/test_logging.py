"""Unit tests for structured logging.

Test Strategy:
1. JSON lines carry the active sync ID
2. Extra fields land under "extra"
3. Sync ID is cleared after the run
"""
import json
import logging

from oddsync.core.logging import (
    ColoredFormatter,
    JSONFormatter,
    clear_sync_id,
    get_sync_id,
    set_sync_id,
)


def make_record(message="synced", **extra):
    record = logging.LogRecord(
        name="oddsync.test",
        level=logging.INFO,
        pathname=__file__,
        lineno=1,
        msg=message,
        args=(),
        exc_info=None,
    )
    for key, value in extra.items():
        setattr(record, key, value)
    return record


class TestJSONFormatter:
    """JSON output."""

    def test_includes_sync_id(self):
        """Should tag each line with the current sync ID."""
        token = set_sync_id("week-1-2025")
        try:
            payload = json.loads(JSONFormatter().format(make_record()))
        finally:
            clear_sync_id(token)

        assert payload["sync_id"] == "week-1-2025"
        assert payload["level"] == "INFO"
        assert payload["message"] == "synced"
        assert get_sync_id() == ""

    def test_extra_fields(self):
        """Should collect non-standard record attributes under extra."""
        payload = json.loads(JSONFormatter().format(make_record(game="401671789")))

        assert payload["extra"] == {"game": "401671789"}


class TestColoredFormatter:
    def test_appends_sync_id(self):
        token = set_sync_id("abc")
        try:
            line = ColoredFormatter().format(make_record())
        finally:
            clear_sync_id(token)

        assert line.endswith("sync_id=abc")
