"""Local self-health tracking from inbound pings.

Peers ping each other every ``ping_peers_interval`` seconds. If this node has
not been pinged on a channel for ``MISSED_PING_LIMIT`` intervals, the problem
is most likely local (firewall, port forwarding, a crashed listener), so the
channel is flagged and the operator is warned before the node starts blaming
its peers.

The monitor holds no lock of its own; ``ReachabilityLedger`` serializes every
call under its ledger lock.
"""

from __future__ import annotations

from typing import Any

from reachability.config import DEFAULT_PING_PEERS_INTERVAL, ping_staleness_threshold
from reachability.logging import get_logger
from reachability.types import Channel

logger = get_logger(__name__)


class SelfHealthMonitor:
    """Per-channel inbound-ping staleness tracker for the local node.

    Attributes:
        max_time_without_ping: Seconds without an inbound ping after which a
            channel is considered unhealthy.
    """

    def __init__(self, ping_peers_interval: float = DEFAULT_PING_PEERS_INTERVAL) -> None:
        self.max_time_without_ping = ping_staleness_threshold(ping_peers_interval)
        self._ok: dict[Channel, bool] = {channel: True for channel in Channel}
        self._latest_incoming: dict[Channel, float | None] = {
            channel: None for channel in Channel
        }

    def is_channel_ok(self, channel: Channel) -> bool:
        return self._ok[channel]

    def latest_incoming(self, channel: Channel) -> float | None:
        """Time of the latest inbound ping on ``channel``, or None if never pinged."""
        return self._latest_incoming[channel]

    def record_incoming_ping(self, channel: Channel, now: float) -> None:
        self._latest_incoming[channel] = now

    def check(self, reset_time: float, now: float) -> None:
        """Re-evaluate every channel against the staleness threshold.

        Args:
            reset_time: Baseline from which staleness is measured when no
                later inbound ping exists (process start, config change).
            now: Current time.
        """
        for channel in Channel:
            self._check_channel(channel, reset_time, now)

    def _check_channel(self, channel: Channel, reset_time: float, now: float) -> None:
        latest = self._latest_incoming[channel]
        last_seen = reset_time if latest is None else max(reset_time, latest)
        elapsed = now - last_seen

        logger.debug(
            "[SELF_HEALTH] Last reset or pinged via %s: %ds ago",
            channel,
            int(elapsed),
        )

        if elapsed > self.max_time_without_ping:
            if latest is None:
                logger.warning("[SELF_HEALTH] Have NEVER received %s pings!", channel)
            else:
                logger.warning(
                    "[SELF_HEALTH] Have not received %s pings for a long time! "
                    "Last time was: %d mins ago.",
                    channel,
                    int(elapsed // 60),
                )
            self._ok[channel] = False
            logger.warning(
                "[SELF_HEALTH] Please check your %s port. Not being reachable over %s "
                "may result in a deregistration!",
                channel,
                channel,
            )
        elif not self._ok[channel]:
            self._ok[channel] = True
            logger.info("[SELF_HEALTH] %s port is back to OK", channel)

    def to_dict(self) -> dict[str, Any]:
        return {
            channel.value: {
                "ok": self._ok[channel],
                "latest_incoming": self._latest_incoming[channel],
            }
            for channel in Channel
        }
