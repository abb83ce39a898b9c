"""Shared test helpers for reachability tests."""

from __future__ import annotations

from reachability.types import Channel, PeerKey


class FakeClock:
    """Manually advanced clock for deterministic timing tests."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds

    def advance_minutes(self, minutes: float) -> None:
        self.now += minutes * 60


def make_peer(index: int) -> PeerKey:
    """Build a distinct, deterministic peer key."""
    return PeerKey(index.to_bytes(32, "big"))


class MockRegistryClient:
    """Registry client that records reports instead of sending them."""

    def __init__(self, accept: bool = True, error: Exception | None = None) -> None:
        self.accept = accept
        self.error = error
        self.reports: list[tuple[PeerKey, bool]] = []

    def report_peer_reachability(self, peer: PeerKey, reachable: bool) -> bool:
        self.reports.append((peer, reachable))
        if self.error is not None:
            raise self.error
        return self.accept


class MockProber:
    """Prober returning scripted results per channel."""

    def __init__(
        self,
        results: dict[Channel, bool] | None = None,
        error: Exception | None = None,
    ) -> None:
        self.results = results or {}
        self.error = error
        self.calls: list[tuple[PeerKey, Channel]] = []

    def test_reachability(self, peer: PeerKey, channel: Channel) -> bool:
        self.calls.append((peer, channel))
        if self.error is not None:
            raise self.error
        return self.results.get(channel, False)


__all__ = [
    "FakeClock",
    "MockProber",
    "MockRegistryClient",
    "make_peer",
]
