"""
QuantaPool Logging
==================

Every module logs through ``get_logger(__name__)``. The first call configures
the root logger once: a themed ``rich`` console handler on stderr (or a plain
stream handler when highlighting is off) and, when ``LOG_FILE_OUTPUT`` is set,
a size-rotated file under ``logs/``.

Settings come from ``quantapool.constants`` (environment or ``.env``):
``LOG_LEVEL``, ``LOG_FORMAT``, ``LOG_DATE_FORMAT``,
``LOG_CONSOLE_HIGHLIGHTING`` and ``LOG_FILE_OUTPUT``.
"""

import logging
import logging.handlers
import re
import sys
import threading
import time
from pathlib import Path
from typing import Optional, Tuple

from rich.console import Console
from rich.highlighter import RegexHighlighter
from rich.logging import RichHandler
from rich.theme import Theme

from .constants import (
    LOG_BACKUP_COUNT,
    LOG_CONSOLE_HIGHLIGHTING,
    LOG_DATE_FORMAT,
    LOG_FILE_OUTPUT,
    LOG_FORMAT,
    LOG_LEVEL,
    LOG_MAX_FILE_SIZE,
)

LOG_FILE_PATH = Path(__file__).resolve().parent.parent / "logs" / "quantapool.log"

POOL_THEME = Theme({
    "quantapool.address": "cyan",
    "quantapool.amount": "bold white",
    "quantapool.block": "bold blue",
    "quantapool.validator": "bold yellow",
    "quantapool.reward": "bold green",
    "quantapool.loss": "bold red",
    "quantapool.tag": "bold magenta",
    "quantapool.logger_name": "magenta",
    "quantapool.timestamp": "bold cyan",
    "quantapool.level_debug": "bold dim",
    "quantapool.level_info": "bold green",
    "quantapool.level_warning": "bold yellow",
    "quantapool.level_error": "bold red",
    "quantapool.level_critical": "bold red reverse",
})


class TerminalSafeFormatter(logging.Formatter):
    """
    Formatter that drops ANSI escapes and control characters (CWE-117).

    Token names, symbols and scenario labels are caller-supplied and end up in
    log lines.
    """

    _unsafe = re.compile(
        r"\x1b\[[0-?]*[ -/]*[@-~]"      # CSI sequences
        r"|\x1b[@-Z\\-_]"               # two-byte escapes
        r"|[\x00-\x08\x0B-\x1F\x7F]"    # control chars except tab and newline
    )

    @classmethod
    def sanitize(cls, text: str) -> str:
        return cls._unsafe.sub("", text) if text else text

    def format(self, record: logging.LogRecord) -> str:
        return self.sanitize(super().format(record))


class PoolLogHighlighter(RegexHighlighter):
    """Highlights addresses, blocks, validator ids, rewards, losses and [TAGS]."""

    base_style = "quantapool."
    highlights = [
        r"(?P<address>\b0x[0-9a-fA-F]{40}\b)",
        r"(?P<block>\bblock \d+\b)",
        r"(?P<validator>\bvalidator #?\d+\b)",
        r"(?P<reward>\breward(?:s)? \+\d+\b)",
        r"(?P<loss>\bloss -\d+\b)",
        r"(?P<tag>\[[A-Z_]+\])",
        r"(?P<level_debug>\bDEBUG\b)",
        r"(?P<level_info>\bINFO\b)",
        r"(?P<level_warning>\bWARNING\b)",
        r"(?P<level_error>\bERROR\b)",
        r"(?P<level_critical>\bCRITICAL\b)",
        r"- (?P<logger_name>quantapool[\w.]*) -",
        r"(?P<timestamp>^\S+ UTC)",
    ]


class LogManager:
    """Process-wide logging setup, applied once (singleton)."""

    _instance: Optional["LogManager"] = None
    _lock = threading.Lock()

    def __new__(cls) -> "LogManager":
        with cls._lock:
            if cls._instance is None:
                instance = super().__new__(cls)
                instance._configured = False
                cls._instance = instance
        return cls._instance

    @property
    def is_configured(self) -> bool:
        return self._configured

    @staticmethod
    def resolve_formats(log_format: str, date_format: str) -> Tuple[str, str]:
        """
        Check LOG_FORMAT and LOG_DATE_FORMAT by rendering a dummy record.

        Returns:
            (format, date format), both replaced by their defaults when the
            pair cannot render a record.
        """
        log_format = str(log_format or LOG_FORMAT.default())
        date_format = str(date_format or LOG_DATE_FORMAT.default())
        record = logging.makeLogRecord({"name": "quantapool.logger", "msg": "format check"})
        try:
            logging.Formatter(fmt=log_format, datefmt=date_format, validate=True).format(record)
        except (ValueError, KeyError, TypeError) as e:
            sys.stderr.write(f"quantapool.logger - invalid log format ({e}), using defaults\n")
            return str(LOG_FORMAT.default()), str(LOG_DATE_FORMAT.default())
        return log_format, date_format

    def _console_handler(self) -> logging.Handler:
        if not LOG_CONSOLE_HIGHLIGHTING:
            return logging.StreamHandler(sys.stderr)
        return RichHandler(
            console=Console(theme=POOL_THEME, highlight=False, stderr=True),
            highlighter=PoolLogHighlighter(),
            keywords=[],
            markup=False,
            rich_tracebacks=True,
            show_time=False,
            show_level=False,
            show_path=False,
        )

    def configure(
        self,
        log_level: Optional[str] = None,
        log_file: Optional[Path] = None,
        console_output: bool = True,
        file_output: Optional[bool] = None,
    ) -> None:
        """
        Install handlers on the root logger. Later calls are no-ops.

        Args:
            log_level: Level name, LOG_LEVEL when omitted
            log_file: Rotating log file, ``logs/quantapool.log`` when omitted
            console_output: Attach the stderr handler
            file_output: Attach the file handler, LOG_FILE_OUTPUT when omitted
        """
        with self._lock:
            if self._configured:
                return

            level = getattr(logging, str(log_level or LOG_LEVEL).upper(), logging.INFO)
            log_format, date_format = self.resolve_formats(LOG_FORMAT, LOG_DATE_FORMAT)

            # Timestamps in UTC so runs on different hosts line up
            formatter = TerminalSafeFormatter(fmt=log_format, datefmt=date_format + " UTC")
            formatter.converter = time.gmtime

            handlers = []
            if console_output:
                handlers.append(self._console_handler())
            if bool(LOG_FILE_OUTPUT) if file_output is None else file_output:
                path = log_file or LOG_FILE_PATH
                path.parent.mkdir(parents=True, exist_ok=True)
                handlers.append(logging.handlers.RotatingFileHandler(
                    str(path),
                    maxBytes=LOG_MAX_FILE_SIZE,
                    backupCount=LOG_BACKUP_COUNT,
                    encoding="utf-8",
                ))

            root = logging.getLogger()
            root.handlers.clear()
            root.setLevel(level)
            for handler in handlers:
                handler.setLevel(level)
                handler.setFormatter(formatter)
                root.addHandler(handler)

            self._configured = True

    def get_logger(self, name: str) -> logging.Logger:
        if not self._configured:
            self.configure()
        return logging.getLogger(name)


_manager = LogManager()


def get_logger(name: str) -> logging.Logger:
    """Logger for *name*, configuring the logging system on first use."""
    return _manager.get_logger(name)
