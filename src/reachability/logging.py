"""Logging setup shared by every reachability module.

Modules obtain their logger with ``get_logger(__name__)``. Peer-scoped log
lines go through ``logger.with_context(peer=..., channel=...)`` so the peer,
channel and report kind land in dedicated fields of the formatted output
instead of being spliced into the message only.

Per-observation debug lines of the ledger carry
``extra={"diagnostic_tag": "reach"}``. On a busy node there is one such line
per probe, so ``DiagnosticFilter`` drops them unless the tag is enabled via
``REACHABILITY_DIAGNOSTIC_TAGS``.
"""

from __future__ import annotations

import json
import logging
import sys
from collections.abc import MutableMapping
from datetime import UTC, datetime
from typing import Any

# Record attributes rendered as context by both formatters
CONTEXT_FIELDS = ("peer", "channel", "report")

REACH_DIAGNOSTIC_TAG = "reach"


def _component(logger_name: str) -> str:
    # "reachability.ledger" -> "ledger"
    return logger_name.rpartition(".")[2]


def _context(record: logging.LogRecord) -> dict[str, str]:
    return {key: str(getattr(record, key)) for key in CONTEXT_FIELDS if hasattr(record, key)}


class DiagnosticFilter(logging.Filter):
    """Drops tagged DEBUG records whose ``diagnostic_tag`` is not enabled.

    Untagged records and anything above DEBUG are never filtered. ``"*"``
    enables every tag.

    Attributes:
        enabled_tags: Tags whose debug lines are emitted.
        allow_all: Whether ``"*"`` was among the enabled tags.
    """

    def __init__(self, enabled_tags: frozenset[str] | None = None) -> None:
        super().__init__()
        self.enabled_tags: frozenset[str] = enabled_tags or frozenset()
        self.allow_all: bool = "*" in self.enabled_tags

    def filter(self, record: logging.LogRecord) -> bool:
        tag: str | None = getattr(record, "diagnostic_tag", None)
        if record.levelno != logging.DEBUG or tag is None or self.allow_all:
            return True
        return tag in self.enabled_tags

    @classmethod
    def from_config_string(cls, tags_csv: str) -> DiagnosticFilter:
        """Build a filter from a value such as ``"reach, other"`` or ``"*"``."""
        return cls(frozenset(tag.strip() for tag in tags_csv.split(",") if tag.strip()))


class StructuredFormatter(logging.Formatter):
    """Single-line human readable output.

    Example::

        2024-01-01 12:00:00.000 [WARNING ] [reporter    ] [peer=ab.. report=bad] ...
    """

    def format(self, record: logging.LogRecord) -> str:
        created = datetime.fromtimestamp(record.created, tz=UTC)
        line = (
            f"{created:%Y-%m-%d %H:%M:%S}.{created.microsecond // 1000:03d} "
            f"[{record.levelname:8}] [{_component(record.name):12}]"
        )

        context = _context(record)
        if context:
            line += " [" + " ".join(f"{key}={value}" for key, value in context.items()) + "]"

        line += " " + record.getMessage()
        if record.exc_info:
            line += " " + self.formatException(record.exc_info)
        return line


class JSONFormatter(logging.Formatter):
    """One JSON object per line, for log shippers."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": record.levelname,
            "component": _component(record.name),
            "message": record.getMessage(),
            **_context(record),
        }
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        return json.dumps(payload)


class ContextAdapter(logging.LoggerAdapter[logging.Logger]):
    """Adds a fixed set of context fields to every record it emits.

    Fields passed through ``extra=`` at the call site take precedence.

    Usage:
        peer_logger = logger.with_context(peer=peer, channel=Channel.HTTP)
        peer_logger.warning("Probe failed")
    """

    def process(
        self, msg: str, kwargs: MutableMapping[str, Any]
    ) -> tuple[str, MutableMapping[str, Any]]:
        kwargs["extra"] = {**(self.extra or {}), **kwargs.get("extra", {})}
        return msg, kwargs


class ReachabilityLogger(logging.Logger):
    """Logger class installed for the whole process by this module."""

    def with_context(self, **context: Any) -> ContextAdapter:
        return ContextAdapter(self, context)


logging.setLoggerClass(ReachabilityLogger)


def get_logger(name: str) -> ReachabilityLogger:
    return logging.getLogger(name)  # type: ignore[return-value]


def _build_handler(level: int, json_format: bool, diagnostic_tags: str) -> logging.Handler:
    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(level)
    handler.setFormatter(JSONFormatter() if json_format else StructuredFormatter())
    handler.addFilter(DiagnosticFilter.from_config_string(diagnostic_tags))
    return handler


def setup_logging(
    level: str = "INFO",
    json_format: bool = False,
    replace_handlers: bool = True,
    diagnostic_tags: str = "",
) -> None:
    """Install a stderr handler on the root logger.

    Args:
        level: Level name; unknown names fall back to INFO.
        json_format: Emit JSON lines instead of the structured text format.
        replace_handlers: Drop handlers already attached to the root logger.
        diagnostic_tags: Comma-separated diagnostic tags to let through,
            e.g. ``"reach"``.
    """
    numeric_level = getattr(logging, level.upper(), logging.INFO)

    root = logging.getLogger()
    if replace_handlers:
        for existing in list(root.handlers):
            root.removeHandler(existing)

    root.setLevel(numeric_level)
    root.addHandler(_build_handler(numeric_level, json_format, diagnostic_tags))
    logging.getLogger("reachability").setLevel(numeric_level)
