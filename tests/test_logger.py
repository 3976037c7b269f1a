"""
Logging Test Suite

Coverage:
  - Log line sanitizing (escape sequences, control characters)
  - LOG_FORMAT / LOG_DATE_FORMAT fallback
  - Shared manager and logger lookup
"""

import logging

from quantapool.constants import LOG_DATE_FORMAT, LOG_FORMAT
from quantapool.logger import LogManager, TerminalSafeFormatter, get_logger


class TestTerminalSafeFormatter:

    def test_strips_escapes(self):
        text = "token \x1b[31mRED\x1b[0m name\x07"
        assert TerminalSafeFormatter.sanitize(text) == "token RED name"

    def test_keeps_tabs_and_newlines(self):
        assert TerminalSafeFormatter.sanitize("a\tb\nc") == "a\tb\nc"

    def test_empty(self):
        assert TerminalSafeFormatter.sanitize("") == ""

    def test_format_sanitizes_message(self):
        formatter = TerminalSafeFormatter(fmt="%(message)s")
        record = logging.makeLogRecord({"msg": "symbol \x1b]0;title\x07stQRL"})
        assert "\x1b" not in formatter.format(record)


class TestResolveFormats:

    def test_valid_pair_kept(self):
        assert LogManager.resolve_formats("%(levelname)s %(message)s", "%H:%M") == (
            "%(levelname)s %(message)s",
            "%H:%M",
        )

    def test_broken_format_falls_back(self):
        log_format, date_format = LogManager.resolve_formats("%(nope", "%H:%M")
        assert log_format == LOG_FORMAT.default()
        assert date_format == LOG_DATE_FORMAT.default()

    def test_empty_uses_defaults(self):
        assert LogManager.resolve_formats("", "") == (
            LOG_FORMAT.default(),
            LOG_DATE_FORMAT.default(),
        )


class TestLogManager:

    def test_singleton(self):
        assert LogManager() is LogManager()

    def test_get_logger_configures(self):
        logger = get_logger("quantapool.tests")
        assert logger.name == "quantapool.tests"
        assert LogManager().is_configured
