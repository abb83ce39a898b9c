"""Retest selection policy.

Among all peers currently tracked as unreachable, the one whose latest
failure is oldest has gone longest without fresh evidence, so it is the next
one to re-probe. This bounds how stale any single record can get.
"""

from __future__ import annotations

from collections.abc import Hashable, Mapping
from typing import TypeVar

from reachability.records import ReachabilityRecord

K = TypeVar("K", bound=Hashable)


def select_next_to_test(records: Mapping[K, ReachabilityRecord]) -> K | None:
    """Pick the peer with the oldest ``last_failure``.

    Ties go to the first peer in iteration order.

    Args:
        records: Tracked peers and their records.

    Returns:
        The selected peer, or None if nothing is tracked.
    """
    if not records:
        return None
    return min(records, key=lambda peer: records[peer].last_failure)
