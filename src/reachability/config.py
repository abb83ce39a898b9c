"""Reachability settings read from `REACHABILITY_*` environment variables.

The timing constants below are part of the network contract: every node
should use the same grace period and ping cadence.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

# How long a peer must stay unreachable before it is reported to the registry
GRACE_PERIOD = 120 * 60.0  # seconds

# Expected cadence at which peers ping each other
DEFAULT_PING_PEERS_INTERVAL = 10.0  # seconds

# Number of missed ping intervals before the local node considers a channel unhealthy
MISSED_PING_LIMIT = 18

DEFAULT_REGISTRY_TIMEOUT = 10.0  # seconds

VALID_LOG_LEVELS = frozenset({"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"})


def ping_staleness_threshold(ping_peers_interval: float) -> float:
    """Return the inbound-ping staleness threshold for a ping cadence."""
    return MISSED_PING_LIMIT * ping_peers_interval


@dataclass(frozen=True)
class Config:
    """Settings for one reachability tracker. Immutable once loaded."""

    # Reachability timing
    ping_peers_interval: float = DEFAULT_PING_PEERS_INTERVAL
    grace_period: float = GRACE_PERIOD

    # Logging
    log_level: str = "INFO"
    log_json: bool = False
    diagnostic_tags: str = ""

    # Registry daemon RPC endpoint
    registry_url: str = ""  # e.g., "http://127.0.0.1:22023"
    registry_timeout: float = DEFAULT_REGISTRY_TIMEOUT

    @property
    def max_time_without_ping(self) -> float:
        """Seconds without an inbound ping before a local channel is flagged."""
        return ping_staleness_threshold(self.ping_peers_interval)

    @property
    def registry_configured(self) -> bool:
        """Check if the registry RPC endpoint is configured."""
        return bool(self.registry_url)


def _parse_positive_float(value: str, name: str, default: float) -> float:
    """Parse ``value`` as a float greater than zero.

    Args:
        value: Raw environment value.
        name: Variable name, used in the warning.
        default: Returned (with a warning) when ``value`` is unusable.
    """
    try:
        parsed = float(value)
        if parsed <= 0:
            logging.warning(
                "Invalid %s: %f is not positive, using default %f",
                name,
                parsed,
                default,
            )
            return default
        return parsed
    except ValueError:
        logging.warning(
            "Invalid %s: '%s' is not a valid number, using default %f",
            name,
            value,
            default,
        )
        return default


def _parse_positive_int(value: str, name: str, default: int) -> int:
    """Parse a string as a positive integer, falling back to ``default``.

    Logs a warning if the value is invalid.
    """
    try:
        parsed = int(value)
    except ValueError:
        logging.warning(
            "Invalid %s: '%s' is not a valid integer, using default %d", name, value, default
        )
        return default
    if parsed <= 0:
        logging.warning("Invalid %s: %d is not positive, using default %d", name, parsed, default)
        return default
    return parsed


def _validate_log_level(value: str, default: str = "INFO") -> str:
    """Return ``value`` upper-cased if it names a log level, else ``default``."""
    normalized = value.upper()
    if normalized not in VALID_LOG_LEVELS:
        logging.warning(
            "Invalid REACHABILITY_LOG_LEVEL: '%s' is not valid, using default '%s'. "
            "Valid values: %s",
            value,
            default,
            ", ".join(sorted(VALID_LOG_LEVELS)),
        )
        return default
    return normalized


def _parse_bool(value: str) -> bool:
    # "true", "1" and "yes" in any case; anything else is False
    return value.lower() in ("true", "1", "yes")


def load_config(env_file: Path | None = None) -> Config:
    """Build a ``Config`` from the process environment.

    Variables from ``env_file`` (or a `.env` found by python-dotenv) are loaded
    first without overriding variables that are already set. Non-positive or
    unparsable numbers and unknown log levels are replaced by their defaults
    after logging a warning. A trailing slash on the registry URL is dropped.

    Args:
        env_file: Optional path to a .env file.
    """
    if env_file:
        load_dotenv(env_file)
    else:
        load_dotenv()

    ping_peers_interval = _parse_positive_float(
        os.getenv("REACHABILITY_PING_PEERS_INTERVAL", str(DEFAULT_PING_PEERS_INTERVAL)),
        "REACHABILITY_PING_PEERS_INTERVAL",
        DEFAULT_PING_PEERS_INTERVAL,
    )
    grace_period = _parse_positive_float(
        os.getenv("REACHABILITY_GRACE_PERIOD", str(GRACE_PERIOD)),
        "REACHABILITY_GRACE_PERIOD",
        GRACE_PERIOD,
    )

    log_level = _validate_log_level(os.getenv("REACHABILITY_LOG_LEVEL", "INFO"))
    log_json = _parse_bool(os.getenv("REACHABILITY_LOG_JSON", ""))
    diagnostic_tags = os.getenv("REACHABILITY_DIAGNOSTIC_TAGS", "")

    registry_timeout = _parse_positive_float(
        os.getenv("REACHABILITY_REGISTRY_TIMEOUT", str(DEFAULT_REGISTRY_TIMEOUT)),
        "REACHABILITY_REGISTRY_TIMEOUT",
        DEFAULT_REGISTRY_TIMEOUT,
    )

    return Config(
        ping_peers_interval=ping_peers_interval,
        grace_period=grace_period,
        log_level=log_level,
        log_json=log_json,
        diagnostic_tags=diagnostic_tags,
        registry_url=os.getenv("REACHABILITY_REGISTRY_URL", "").rstrip("/"),
        registry_timeout=registry_timeout,
    )
