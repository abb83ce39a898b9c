"""Type definitions and enums for the reachability package.

Channels, report kinds and per-channel health states are ``StrEnum`` members so
they compare equal to their string values and render cleanly in log lines and
status snapshots.

Usage:
    from reachability.types import Channel, PeerKey, ReportType

    peer = PeerKey.from_hex("ab" * 32)
    ledger.record_reachable(peer, Channel.HTTP, False)
    ledger.should_report_as(peer, ReportType.BAD)
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum
from typing import Self

PEER_KEY_SIZE = 32
"""Length in bytes of a service node public key."""


class Channel(StrEnum):
    """Transport paths over which a peer is probed independently.

    Values:
        HTTP: HTTP-style request channel ("http")
        MESSAGING: Messaging/queue channel ("messaging")
    """

    HTTP = "http"
    MESSAGING = "messaging"

    @classmethod
    def is_valid(cls, value: str) -> bool:
        """Check if a string value is a valid channel.

        Args:
            value: The string value to validate.

        Returns:
            True if the value matches a valid channel.
        """
        return value in cls._value2member_map_

    @classmethod
    def values(cls) -> frozenset[str]:
        """Return all valid channel values as a frozenset."""
        return frozenset(member.value for member in cls)


class ReportType(StrEnum):
    """Kinds of reachability report submitted to the registry.

    Values:
        GOOD: The peer is reachable again ("good")
        BAD: The peer has been unreachable for longer than the grace period ("bad")
    """

    GOOD = "good"
    BAD = "bad"


class ChannelState(StrEnum):
    """Per-channel health state of a tracked peer."""

    HEALTHY = "healthy"
    FAILING = "failing"

    @classmethod
    def from_ok(cls, ok: bool) -> ChannelState:
        """Map a probe outcome to a channel state."""
        return cls.HEALTHY if ok else cls.FAILING


@dataclass(frozen=True, slots=True)
class PeerKey:
    """Opaque public key identifying a service node.

    Only used as a mapping key and a log label; the bytes are never
    interpreted. ``str()`` renders the key as lowercase hex.

    Raises:
        ValueError: If the key is not exactly ``PEER_KEY_SIZE`` bytes.
    """

    raw: bytes

    def __post_init__(self) -> None:
        if not isinstance(self.raw, bytes):
            raise ValueError(f"peer key must be bytes, got {type(self.raw).__name__}")
        if len(self.raw) != PEER_KEY_SIZE:
            raise ValueError(
                f"peer key must be {PEER_KEY_SIZE} bytes, got {len(self.raw)}"
            )

    @classmethod
    def from_hex(cls, value: str) -> Self:
        """Parse a hex-encoded public key.

        Args:
            value: 64 hex characters.

        Returns:
            The parsed key.

        Raises:
            ValueError: If the value is not valid hex or has the wrong length.
        """
        try:
            raw = bytes.fromhex(value)
        except ValueError as e:
            raise ValueError(f"invalid peer key hex: {value!r}") from e
        return cls(raw)

    def hex(self) -> str:
        return self.raw.hex()

    def __str__(self) -> str:
        return self.raw.hex()


__all__ = [
    "PEER_KEY_SIZE",
    "Channel",
    "ChannelState",
    "PeerKey",
    "ReportType",
]
