"""
Snapshot Store
==============

Holds exactly one current Snapshot and the process-wide FetchState.

Both are immutable values; every update swaps the whole reference, so a
reader holding the result of read() keeps a consistent view even while a
new snapshot is published. Reads take no lock. State transitions take a
threading.Lock because sync route handlers run in the threadpool and the
single-flight test-and-set must not interleave with them.
"""
import threading
from typing import Optional

import structlog

from holders_ingest.models import FetchState, Snapshot

logger = structlog.get_logger()


class SnapshotStore:
    """Atomic read / atomic replace holder of the ranked snapshot."""

    def __init__(self, snapshot: Optional[Snapshot] = None):
        self._snapshot: Snapshot = snapshot or Snapshot.empty()
        self._fetch_state: FetchState = FetchState.idle()
        self._lock = threading.Lock()

    # =========================================================================
    # SNAPSHOT
    # =========================================================================

    def read(self) -> Snapshot:
        return self._snapshot

    def replace(self, snapshot: Snapshot) -> None:
        self._snapshot = snapshot
        logger.debug(
            "Snapshot published",
            records=snapshot.total,
            complete=snapshot.complete,
        )

    # =========================================================================
    # FETCH STATE
    # =========================================================================

    @property
    def fetch_state(self) -> FetchState:
        return self._fetch_state

    def begin_fetch(self) -> bool:
        """Idle -> Fetching(0). False if a run is already active."""
        with self._lock:
            if self._fetch_state.is_fetching:
                return False
            self._fetch_state = FetchState.fetching(0)
            return True

    def set_progress(self, progress: int) -> None:
        with self._lock:
            if not self._fetch_state.is_fetching:
                return
            self._fetch_state = FetchState.fetching(progress)

    def finish_fetch(self, progress: int = 0) -> None:
        """Fetching -> Idle, keeping the final progress value (100 or 0)."""
        with self._lock:
            self._fetch_state = FetchState.idle(progress)
