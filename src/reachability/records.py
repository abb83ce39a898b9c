"""Per-peer reachability bookkeeping.

A ``ReachabilityRecord`` exists for every peer that has been seen failing on
at least one channel since it was last known to be fully healthy. Each channel
is a two-state machine (``HEALTHY`` / ``FAILING``); the streak start
(``first_failure``) only moves when the peer as a whole goes from fully
healthy to failing.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from reachability.types import Channel, ChannelState


def _all_healthy() -> dict[Channel, ChannelState]:
    return {channel: ChannelState.HEALTHY for channel in Channel}


@dataclass
class ReachabilityRecord:
    """Mutable reachability state for a single peer.

    Attributes:
        first_failure: Start of the current unbroken unreachable streak.
        last_failure: Time of the most recent observed failure on any channel.
        channels: Current state of each channel.
        reported: Whether this streak has already been reported to the registry.
    """

    first_failure: float
    last_failure: float
    channels: dict[Channel, ChannelState] = field(default_factory=_all_healthy)
    reported: bool = False

    @classmethod
    def open_streak(cls, now: float, channel: Channel) -> ReachabilityRecord:
        """Create a record for a peer that just failed on ``channel``."""
        record = cls(first_failure=now, last_failure=now)
        record.channels[channel] = ChannelState.FAILING
        return record

    def channel_ok(self, channel: Channel) -> bool:
        return self.channels[channel] is ChannelState.HEALTHY

    @property
    def fully_reachable(self) -> bool:
        """True when every channel is healthy."""
        return all(state is ChannelState.HEALTHY for state in self.channels.values())

    def observe(self, channel: Channel, ok: bool, now: float) -> bool:
        """Apply a probe outcome to this record.

        Only failures touch the streak timestamps. The streak restarts when
        the peer was fully reachable immediately before this failure.

        Args:
            channel: Channel the probe ran on.
            ok: Probe outcome.
            now: Current time.

        Returns:
            True if this observation started a new streak.
        """
        reachable_before = self.fully_reachable
        self.channels[channel] = ChannelState.from_ok(ok)

        if ok:
            return False

        new_streak = reachable_before
        if new_streak:
            self.first_failure = now
        self.last_failure = now
        return new_streak

    def copy(self) -> ReachabilityRecord:
        return ReachabilityRecord(
            first_failure=self.first_failure,
            last_failure=self.last_failure,
            channels=dict(self.channels),
            reported=self.reported,
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary representation for status output/logging."""
        return {
            "first_failure": self.first_failure,
            "last_failure": self.last_failure,
            "channels": {channel.value: state.value for channel, state in self.channels.items()},
            "fully_reachable": self.fully_reachable,
            "reported": self.reported,
        }
