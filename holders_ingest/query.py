"""
Query layer: read-only views of the current snapshot.

Every function reads the store once and answers from that one snapshot,
so a response is never assembled from two different publishes. Nothing
here fetches; the only write path is request_refresh(), which asks the
scheduler for an on-demand run and returns at once.
"""
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from holders_ingest.models import FetchState, Snapshot
from holders_ingest.scheduler import HolderRefreshScheduler
from holders_ingest.store import SnapshotStore


@dataclass(frozen=True)
class HolderListing:
    snapshot: Snapshot
    fetch_state: FetchState

    @property
    def total_holders(self) -> int:
        return self.snapshot.total


@dataclass(frozen=True)
class RankResult:
    rank: int
    address: str
    balance: str
    total_holders: int
    last_update: Optional[datetime]


@dataclass(frozen=True)
class HealthStatus:
    ready: bool
    last_update: Optional[datetime]
    total_holders: int
    fetch_state: FetchState
    next_update: Optional[datetime] = None


@dataclass(frozen=True)
class RefreshOutcome:
    started: bool

    @property
    def message(self) -> str:
        return "Data refresh started" if self.started else "Already fetching data"


def list_holders(store: SnapshotStore) -> HolderListing:
    return HolderListing(snapshot=store.read(), fetch_state=store.fetch_state)


def rank_of(store: SnapshotStore, address: str) -> Optional[RankResult]:
    """
    1-based rank of the first record matching address (case-insensitive).
    None when the address is not in the snapshot.
    """
    snapshot = store.read()
    position = snapshot.position_of(address)
    if position is None:
        return None

    holder = snapshot.records[position]
    return RankResult(
        rank=position + 1,
        address=holder.address,
        balance=holder.quantity,
        total_holders=snapshot.total,
        last_update=snapshot.taken_at,
    )


def health(store: SnapshotStore, next_update: Optional[datetime] = None) -> HealthStatus:
    snapshot = store.read()
    return HealthStatus(
        ready=snapshot.total > 0,
        last_update=snapshot.taken_at,
        total_holders=snapshot.total,
        fetch_state=store.fetch_state,
        next_update=next_update,
    )


def request_refresh(scheduler: HolderRefreshScheduler) -> RefreshOutcome:
    """Start a background refresh unless one is running. Never waits for it."""
    return RefreshOutcome(started=scheduler.trigger_now())
