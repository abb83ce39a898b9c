"""Circuit breaker for the registry RPC.

Reports run on the probing path. If the registry daemon hangs or refuses
connections, every report would otherwise wait for the full HTTP timeout.
After ``failure_threshold`` consecutive failures the breaker opens and
``allow_request()`` answers False until ``recovery_timeout`` seconds have
passed. It then lets ``half_open_max_calls`` trial requests through; that many
successes close it again, and any failure reopens it.

A rejected report never touches the ledger, so it is simply retried with a
later probe result.

Environment variables (see ``CircuitBreakerConfig.from_env``):
- REACHABILITY_CIRCUIT_BREAKER_ENABLED (default: true)
- REACHABILITY_CIRCUIT_BREAKER_FAILURE_THRESHOLD (default: 5)
- REACHABILITY_CIRCUIT_BREAKER_RECOVERY_TIMEOUT in seconds (default: 30)
- REACHABILITY_CIRCUIT_BREAKER_HALF_OPEN_MAX_CALLS (default: 3)
"""

from __future__ import annotations

import os
import threading
import time
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from typing import Any

from reachability.config import _parse_bool, _parse_positive_float, _parse_positive_int
from reachability.logging import get_logger

logger = get_logger(__name__)

_ENV_PREFIX = "REACHABILITY_CIRCUIT_BREAKER_"


class CircuitState(Enum):
    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


class CircuitBreakerConfigError(ValueError):
    """Invalid circuit breaker settings."""


@dataclass(frozen=True)
class CircuitBreakerConfig:
    """Thresholds of a ``CircuitBreaker``.

    Attributes:
        failure_threshold: Consecutive failures that open the circuit.
        recovery_timeout: Seconds spent OPEN before trial requests are allowed.
        half_open_max_calls: Trial requests allowed while HALF_OPEN, and the
            number of successes needed to close the circuit.
        enabled: When False the breaker allows everything and records nothing.
    """

    failure_threshold: int = 5
    recovery_timeout: float = 30.0
    half_open_max_calls: int = 3
    enabled: bool = True

    def __post_init__(self) -> None:
        for name in ("failure_threshold", "half_open_max_calls"):
            value = getattr(self, name)
            # bool is an int subclass
            if isinstance(value, bool) or not isinstance(value, int):
                raise CircuitBreakerConfigError(
                    f"{name} must be an integer, got {type(value).__name__}"
                )
            if value < 1:
                raise CircuitBreakerConfigError(f"{name} must be at least 1, got {value}")
        if not self.recovery_timeout > 0:
            raise CircuitBreakerConfigError(
                f"recovery_timeout must be positive, got {self.recovery_timeout}"
            )

    @classmethod
    def from_env(cls) -> CircuitBreakerConfig:
        """Read ``REACHABILITY_CIRCUIT_BREAKER_*``; invalid values fall back to defaults."""
        defaults = cls()
        return cls(
            failure_threshold=_parse_positive_int(
                os.getenv(f"{_ENV_PREFIX}FAILURE_THRESHOLD", str(defaults.failure_threshold)),
                f"{_ENV_PREFIX}FAILURE_THRESHOLD",
                defaults.failure_threshold,
            ),
            recovery_timeout=_parse_positive_float(
                os.getenv(f"{_ENV_PREFIX}RECOVERY_TIMEOUT", str(defaults.recovery_timeout)),
                f"{_ENV_PREFIX}RECOVERY_TIMEOUT",
                defaults.recovery_timeout,
            ),
            half_open_max_calls=_parse_positive_int(
                os.getenv(f"{_ENV_PREFIX}HALF_OPEN_MAX_CALLS", str(defaults.half_open_max_calls)),
                f"{_ENV_PREFIX}HALF_OPEN_MAX_CALLS",
                defaults.half_open_max_calls,
            ),
            enabled=_parse_bool(os.getenv(f"{_ENV_PREFIX}ENABLED", "true")),
        )


class CircuitBreaker:
    """Thread-safe breaker guarding one remote service.

    Usage:
        breaker = CircuitBreaker("registry")
        if not breaker.allow_request():
            raise RegistryClientError("registry unavailable")
        try:
            response = client.post(...)
        except httpx.HTTPError as e:
            breaker.record_failure(e)
            raise
        breaker.record_success()
    """

    def __init__(
        self,
        service_name: str,
        config: CircuitBreakerConfig | None = None,
        time_func: Callable[[], float] | None = None,
    ) -> None:
        """Initialize the breaker.

        Args:
            service_name: Label used in log lines and ``get_status()``.
            config: Thresholds. Read from the environment when omitted.
            time_func: Clock, ``time.monotonic`` by default.
        """
        self.service_name = service_name
        self.config = config or CircuitBreakerConfig.from_env()
        self._time_func: Callable[[], float] = time_func or time.monotonic
        self._lock = threading.RLock()
        self._state = CircuitState.CLOSED
        self._consecutive_failures = 0
        self._trial_calls = 0
        self._trial_successes = 0
        self._opened_at = 0.0

    @property
    def state(self) -> CircuitState:
        with self._lock:
            self._maybe_half_open()
            return self._state

    @property
    def is_open(self) -> bool:
        return self.state is CircuitState.OPEN

    def _maybe_half_open(self) -> None:
        if self._state is not CircuitState.OPEN:
            return
        if self._time_func() - self._opened_at >= self.config.recovery_timeout:
            self._trial_calls = 0
            self._trial_successes = 0
            self._move_to(CircuitState.HALF_OPEN)

    def _move_to(self, state: CircuitState) -> None:
        previous, self._state = self._state, state
        if state is CircuitState.OPEN:
            self._opened_at = self._time_func()
        elif state is CircuitState.CLOSED:
            self._consecutive_failures = 0
        logger.info(
            "[CIRCUIT_BREAKER] %s: %s -> %s", self.service_name, previous.value, state.value
        )

    def allow_request(self) -> bool:
        """Whether the next call may go out. Counts HALF_OPEN trial calls."""
        if not self.config.enabled:
            return True

        with self._lock:
            self._maybe_half_open()
            if self._state is CircuitState.CLOSED:
                return True
            if (
                self._state is CircuitState.HALF_OPEN
                and self._trial_calls < self.config.half_open_max_calls
            ):
                self._trial_calls += 1
                return True

        logger.warning(
            "[CIRCUIT_BREAKER] %s: Rejecting request, circuit is %s",
            self.service_name,
            self._state.value,
        )
        return False

    def record_success(self) -> None:
        if not self.config.enabled:
            return

        with self._lock:
            if self._state is CircuitState.CLOSED:
                self._consecutive_failures = 0
            elif self._state is CircuitState.HALF_OPEN:
                self._trial_successes += 1
                if self._trial_successes >= self.config.half_open_max_calls:
                    self._move_to(CircuitState.CLOSED)

    def record_failure(self, exception: BaseException | None = None) -> None:
        if not self.config.enabled:
            return

        with self._lock:
            if exception is None:
                logger.warning("[CIRCUIT_BREAKER] %s: Call failed", self.service_name)
            else:
                logger.warning(
                    "[CIRCUIT_BREAKER] %s: Call failed: %s: %s",
                    self.service_name,
                    type(exception).__name__,
                    exception,
                )

            if self._state is CircuitState.HALF_OPEN:
                self._move_to(CircuitState.OPEN)
                return

            if self._state is CircuitState.CLOSED:
                self._consecutive_failures += 1
                if self._consecutive_failures >= self.config.failure_threshold:
                    self._move_to(CircuitState.OPEN)

    def reset(self) -> None:
        """Force the circuit back to CLOSED."""
        with self._lock:
            self._state = CircuitState.CLOSED
            self._consecutive_failures = 0
            self._trial_calls = 0
            self._trial_successes = 0
        logger.info("[CIRCUIT_BREAKER] %s: Reset to closed", self.service_name)

    def get_status(self) -> dict[str, Any]:
        with self._lock:
            self._maybe_half_open()
            return {
                "service_name": self.service_name,
                "state": self._state.value,
                "enabled": self.config.enabled,
                "failure_count": self._consecutive_failures,
            }
