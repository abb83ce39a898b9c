"""Periodic self-health check and retest loop.

Every tick the scheduler re-evaluates local self-health, asks the ledger for
the unreachable peer that has gone longest without fresh evidence, probes it
on every channel and feeds the results through the reporter.

Usage:
    scheduler = RetestScheduler(ledger, reporter, prober)
    scheduler.start()
    ...
    scheduler.stop()
"""

from __future__ import annotations

import threading
from typing import Protocol, runtime_checkable

from reachability.ledger import ReachabilityLedger
from reachability.logging import get_logger
from reachability.reporter import ReachabilityReporter
from reachability.types import Channel, PeerKey

logger = get_logger(__name__)


@runtime_checkable
class PeerProber(Protocol):
    """Performs a single reachability probe against a peer."""

    def test_reachability(self, peer: PeerKey, channel: Channel) -> bool:
        """Return True if ``peer`` answered on ``channel``."""
        ...  # pragma: no cover


class RetestScheduler:
    """Drives self-health checks and retests of unreachable peers.

    Attributes:
        interval: Seconds between ticks of the background loop.
        reset_time: Baseline passed to ``check_incoming_tests``.
    """

    def __init__(
        self,
        ledger: ReachabilityLedger,
        reporter: ReachabilityReporter,
        prober: PeerProber,
        interval: float | None = None,
    ) -> None:
        """Initialize the scheduler.

        Args:
            ledger: Ledger to drive.
            reporter: Reporter receiving retest results.
            prober: Probe implementation.
            interval: Seconds between ticks. Defaults to the ledger's
                configured ping cadence.
        """
        self.ledger = ledger
        self.reporter = reporter
        self.prober = prober
        self.interval = interval if interval is not None else ledger.config.ping_peers_interval
        self.reset_time = ledger.now()
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None

    def reset_baseline(self) -> None:
        """Measure self-health staleness from now on, e.g. after a config change."""
        self.reset_time = self.ledger.now()

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def run_once(self) -> PeerKey | None:
        """Run a single tick.

        Returns:
            The peer that was retested, or None if no peer is tracked.
        """
        self.ledger.check_incoming_tests(self.reset_time)

        peer = self.ledger.next_to_test()
        if peer is None:
            return None

        for channel in Channel:
            ok = self._probe(peer, channel)
            self.reporter.process_test_result(peer, channel, ok)
        return peer

    def _probe(self, peer: PeerKey, channel: Channel) -> bool:
        try:
            return self.prober.test_reachability(peer, channel)
        except Exception as e:
            # A probe that blows up is indistinguishable from an unreachable peer.
            logger.warning(
                "[SCHEDULER] Probe of %s via %s failed with unexpected error: %s: %s",
                peer,
                channel,
                type(e).__name__,
                e,
            )
            return False

    def _run(self, stop_event: threading.Event) -> None:
        logger.info("[SCHEDULER] Retest loop started (interval: %.1fs)", self.interval)
        while not stop_event.wait(self.interval):
            try:
                self.run_once()
            except Exception as e:
                logger.exception(
                    "[SCHEDULER] Unexpected error in retest tick: %s",
                    e,
                    extra={"error_type": type(e).__name__},
                )
        logger.info("[SCHEDULER] Retest loop stopped")

    def start(self) -> None:
        """Start the retest loop in a background thread.

        Does nothing while a previous loop thread is still alive, including one
        that did not finish within the ``stop()`` timeout.
        """
        if self.is_running:
            if self._stop_event.is_set():
                logger.warning("[SCHEDULER] Previous retest thread is still stopping")
            return
        # Each loop gets its own event so a lingering thread never sees it cleared.
        self._stop_event = threading.Event()
        self._thread = threading.Thread(
            target=self._run,
            args=(self._stop_event,),
            name="reachability-retest",
            daemon=True,
        )
        self._thread.start()

    def stop(self, timeout: float = 5.0) -> None:
        """Signal the loop to stop and wait for the thread to finish."""
        self._stop_event.set()
        if self._thread is not None:
            self._thread.join(timeout=timeout)
            if self._thread.is_alive():
                logger.warning("[SCHEDULER] Retest thread did not terminate gracefully")
                return
            self._thread = None
