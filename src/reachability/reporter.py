"""Prober-side reporting flow.

Turns probe outcomes into registry reports: record the outcome in the ledger,
ask the ledger whether a report is due, submit it, and on acceptance update
the ledger so the same streak is never reported twice.
"""

from __future__ import annotations

from reachability.ledger import ReachabilityLedger
from reachability.logging import get_logger
from reachability.registry_client import RegistryClient, RegistryClientError
from reachability.types import Channel, PeerKey, ReportType

logger = get_logger(__name__)


class ReachabilityReporter:
    """Feeds probe results into the ledger and reports peers to the registry.

    A BAD report that the registry accepts marks the streak as reported. A
    GOOD report that the registry accepts expires the record, since the
    registry now knows the peer is healthy again. Delivery failures are
    logged and leave the ledger unchanged, so the next probe result for the
    same peer retries the report.
    """

    def __init__(self, ledger: ReachabilityLedger, registry: RegistryClient) -> None:
        self.ledger = ledger
        self.registry = registry

    def process_test_result(self, peer: PeerKey, channel: Channel, ok: bool) -> ReportType | None:
        """Record a probe outcome and report the peer if a report is due.

        Args:
            peer: Probed peer.
            channel: Channel the probe ran on.
            ok: Whether the peer answered.

        Returns:
            The kind of report the registry accepted, or None.
        """
        self.ledger.record_reachable(peer, channel, ok)

        kind = ReportType.GOOD if ok else ReportType.BAD
        if not self.ledger.should_report_as(peer, kind):
            return None

        if not self._report(peer, kind):
            return None

        if kind == ReportType.GOOD:
            self.ledger.expire(peer)
        else:
            self.ledger.set_reported(peer)
        return kind

    def peer_removed(self, peer: PeerKey) -> bool:
        """Forget ``peer`` once the registry confirms it left the network."""
        return self.ledger.expire(peer)

    def _report(self, peer: PeerKey, kind: ReportType) -> bool:
        peer_logger = logger.with_context(peer=peer, report=kind)
        try:
            accepted = self.registry.report_peer_reachability(peer, kind == ReportType.GOOD)
        except RegistryClientError as e:
            peer_logger.warning("[REPORTER] Failed to report %s as %s: %s", peer, kind, e)
            return False

        if accepted:
            peer_logger.info("[REPORTER] Reported %s as %s", peer, kind)
        else:
            peer_logger.warning("[REPORTER] Registry declined %s report for %s", kind, peer)
        return accepted
