"""Thread-safe reachability ledger for remote service nodes.

The ledger is the decision engine behind peer reachability reporting. The
probing loop feeds it per-channel probe outcomes; the ledger keeps one record
per peer that has been seen failing and answers whether a peer should be
reported to the registry as bad (unreachable for longer than the grace
period) or good (reachable again on every channel). It also owns the local
self-health state and the retest selection policy.

The ledger performs no I/O and never raises for unknown peers: lookups of
untracked peers are no-ops, ``False`` or ``None``.

Usage:
    from reachability.ledger import ReachabilityLedger
    from reachability.types import Channel, ReportType

    ledger = ReachabilityLedger()

    # After each probe
    ledger.record_reachable(peer, Channel.HTTP, ok)
    if ledger.should_report_as(peer, ReportType.BAD):
        if registry.report_peer_reachability(peer, False):
            ledger.set_reported(peer)

    # When the registry confirms the peer was deregistered
    ledger.expire(peer)

    # From the scheduler
    ledger.check_incoming_tests(started_at)
    peer = ledger.next_to_test()
"""

from __future__ import annotations

import threading
import time
from collections.abc import Callable
from typing import Any

from reachability.config import Config
from reachability.logging import REACH_DIAGNOSTIC_TAG, get_logger
from reachability.records import ReachabilityRecord
from reachability.retest import select_next_to_test
from reachability.self_health import SelfHealthMonitor
from reachability.types import Channel, PeerKey, ReportType

logger = get_logger(__name__)

_REACH_EXTRA = {"diagnostic_tag": REACH_DIAGNOSTIC_TAG}


class ReachabilityLedger:
    """Reachability records, self-health state and retest selection.

    Thread-safety contract:
        Every public method runs as a single critical section under ``_lock``
        and samples the clock at most once, so each call appears atomic to
        concurrent probe, report and scheduler threads. No atomicity is
        provided across calls.

    Records are kept after a peer recovers on every channel; only
    ``expire()`` removes them.

    Attributes:
        config: Configuration supplying the grace period and ping cadence.
        grace_period: Seconds a streak must last before a BAD report is allowed.
    """

    def __init__(
        self,
        config: Config | None = None,
        time_func: Callable[[], float] | None = None,
    ) -> None:
        """Initialize the ledger.

        Args:
            config: Configuration. Defaults to ``Config()``.
            time_func: Optional callable returning the current time in seconds.
                Defaults to ``time.monotonic``. Timestamps passed to
                ``check_incoming_tests`` must come from the same clock.
        """
        self.config = config or Config()
        self.grace_period = self.config.grace_period
        self._time_func: Callable[[], float] = time_func or time.monotonic
        self._records: dict[PeerKey, ReachabilityRecord] = {}
        self._self_health = SelfHealthMonitor(self.config.ping_peers_interval)
        self._lock = threading.RLock()

    def now(self) -> float:
        """Current time on the ledger's clock."""
        return self._time_func()

    def record_reachable(self, peer: PeerKey, channel: Channel, ok: bool) -> None:
        """Record a probe outcome for ``peer`` on ``channel``.

        Healthy peers without a record stay untracked. The first failure
        creates a record; later failures advance ``last_failure`` and restart
        the streak only if the peer was fully reachable before this failure.

        Args:
            peer: Probed peer.
            channel: Channel the probe ran on.
            ok: Whether the peer answered.
        """
        with self._lock:
            record = self._records.get(peer)

            if record is None:
                if ok:
                    logger.debug(
                        "[REACH] Node is reachable via %s (no record) %s",
                        channel,
                        peer,
                        extra=_REACH_EXTRA,
                    )
                    return

                logger.debug(
                    "[REACH] Adding a new node to UNREACHABLE via %s: %s",
                    channel,
                    peer,
                    extra=_REACH_EXTRA,
                )
                self._records[peer] = ReachabilityRecord.open_streak(self._time_func(), channel)
                return

            logger.debug(
                "[REACH] node %s is %s via %s",
                peer,
                "OK" if ok else "UNREACHABLE",
                channel,
                extra=_REACH_EXTRA,
            )

            new_streak = record.observe(channel, ok, self._time_func())
            if ok:
                return

            logger.debug(
                "[REACH] Node is ALREADY known to be UNREACHABLE: %s, %s, new streak: %s",
                peer,
                ", ".join(f"{c}_ok: {record.channel_ok(c)}" for c in Channel),
                new_streak,
                extra=_REACH_EXTRA,
            )

    def should_report_as(self, peer: PeerKey, kind: ReportType) -> bool:
        """Decide whether ``peer`` should be reported to the registry as ``kind``.

        Read-only. After a successful BAD report the caller must call
        ``set_reported()`` so the streak is reported at most once.

        Args:
            peer: Peer to evaluate.
            kind: ``ReportType.GOOD`` or ``ReportType.BAD``.

        Returns:
            GOOD: True iff the peer is tracked and reachable on every channel.
            BAD: True iff the peer is tracked, currently unreachable, not yet
            reported, and its streak is older than the grace period.
        """
        with self._lock:
            record = self._records.get(peer)
            if record is None:
                return False

            reachable = record.fully_reachable

            if kind == ReportType.GOOD:
                return reachable

            if reachable:
                return False

            elapsed = self._time_func() - record.first_failure
            logger.debug(
                "[REACH] %s first failed %d minutes ago",
                peer,
                int(elapsed // 60),
                extra=_REACH_EXTRA,
            )

            if record.reported:
                logger.debug("[REACH] Already reported node: %s", peer, extra=_REACH_EXTRA)
                return False

            if elapsed > self.grace_period:
                logger.debug("[REACH] Will REPORT %s to the registry!", peer, extra=_REACH_EXTRA)
                return True

            return False

    def set_reported(self, peer: PeerKey) -> None:
        """Mark the current streak of ``peer`` as reported. No-op if untracked."""
        with self._lock:
            record = self._records.get(peer)
            if record is not None:
                record.reported = True

    def expire(self, peer: PeerKey) -> bool:
        """Drop the record for ``peer``.

        Returns:
            True if a record was removed.
        """
        with self._lock:
            removed = self._records.pop(peer, None) is not None
            if removed:
                logger.debug("[REACH] Removed entry for %s", peer, extra=_REACH_EXTRA)
            return removed

    def next_to_test(self) -> PeerKey | None:
        """Return the tracked peer with the oldest ``last_failure``, or None."""
        with self._lock:
            peer = select_next_to_test(self._records)
            if peer is not None:
                logger.debug("[REACH] Selecting to be re-tested: %s", peer, extra=_REACH_EXTRA)
            return peer

    def check_incoming_tests(self, reset_time: float) -> None:
        """Re-evaluate local self-health on every channel.

        Args:
            reset_time: Baseline on the ledger's clock from which staleness is
                measured when no later inbound ping has arrived.
        """
        with self._lock:
            self._self_health.check(reset_time, self._time_func())

    def record_incoming_ping(self, channel: Channel) -> None:
        """Note that this node was just pinged on ``channel``."""
        with self._lock:
            self._self_health.record_incoming_ping(channel, self._time_func())

    def is_channel_ok(self, channel: Channel) -> bool:
        """Whether the local node is considered reachable on ``channel``."""
        with self._lock:
            return self._self_health.is_channel_ok(channel)

    @property
    def http_ok(self) -> bool:
        return self.is_channel_ok(Channel.HTTP)

    @property
    def messaging_ok(self) -> bool:
        return self.is_channel_ok(Channel.MESSAGING)

    def get_record(self, peer: PeerKey) -> ReachabilityRecord | None:
        """Return a detached copy of the record for ``peer``, or None."""
        with self._lock:
            record = self._records.get(peer)
            return record.copy() if record is not None else None

    def get_all_status(self) -> dict[str, Any]:
        """Get a snapshot of every record and the local self-health state.

        Returns:
            Dictionary with ``peers`` (hex key to record dict) and ``self``
            (channel to self-health dict).
        """
        with self._lock:
            return {
                "peers": {str(peer): record.to_dict() for peer, record in self._records.items()},
                "self": self._self_health.to_dict(),
            }

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)

    def __contains__(self, peer: object) -> bool:
        with self._lock:
            return peer in self._records
