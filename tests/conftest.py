"""Shared pytest fixtures for reachability tests."""

from __future__ import annotations

import pytest

from reachability.config import Config
from reachability.ledger import ReachabilityLedger
from reachability.types import PeerKey
from tests.helpers import FakeClock, make_peer


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def ledger(clock: FakeClock) -> ReachabilityLedger:
    return ReachabilityLedger(config=Config(), time_func=clock)


@pytest.fixture
def peer() -> PeerKey:
    return make_peer(1)
