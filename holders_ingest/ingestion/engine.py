"""
Ingestion engine: builds one complete, ranked snapshot from the paged source.

Run protocol:
=============
1. Claim the store's fetch state (Idle -> Fetching). A second caller is
   rejected immediately; nothing is queued.
2. Pull pages into a working buffer. Every `publish_every_pages` pages a
   ranked copy of the buffer is published as an incomplete snapshot and
   the progress estimate is bumped (capped at 95% until the end).
3. An empty page ends the loop.
4. The final buffer is ranked and published as complete, the fetch state
   returns to Idle at 100%, and the records are written to the backup.
5. A source failure ends the run: the fetch state returns to Idle at 0%
   and the last known good data is put back in front of readers.

There is no retry loop here; the scheduler's next tick is the retry.
"""
import asyncio
import time
import uuid
from typing import Callable, Optional

import structlog

from holders_ingest.backup import DurableBackup
from holders_ingest.config import Settings, get_settings
from holders_ingest.errors import ConcurrentRunRejected, SourceError
from holders_ingest.ingestion.ranking import dedupe_records, rank_records
from holders_ingest.ingestion.source import Exhausted, Failure, PagedHolderSource, PagedSource
from holders_ingest.models import HolderRecord, IngestionResult, Snapshot, utc_now
from holders_ingest.store import SnapshotStore
from holders_ingest.utils.logging import LogContext

logger = structlog.get_logger()

MAX_PARTIAL_PROGRESS = 95

ProgressListener = Callable[[int], None]
SourceFactory = Callable[[], PagedSource]


class IngestionEngine:
    """Single-flight, incrementally publishing holder ingestion."""

    def __init__(
        self,
        store: SnapshotStore,
        backup: DurableBackup,
        source_factory: Optional[SourceFactory] = None,
        settings: Optional[Settings] = None,
    ):
        self.settings = settings or get_settings()
        self._store = store
        self._backup = backup
        self._source_factory = source_factory or (lambda: PagedHolderSource(settings=self.settings))
        self._listeners: list[ProgressListener] = []
        self._tasks: set[asyncio.Task] = set()
        self.last_result: Optional[IngestionResult] = None

    # =========================================================================
    # PUBLIC API
    # =========================================================================

    @property
    def is_running(self) -> bool:
        return self._store.fetch_state.is_fetching

    def add_progress_listener(self, listener: ProgressListener) -> None:
        self._listeners.append(listener)

    async def run(self) -> IngestionResult:
        """
        Run one ingestion to completion (or failure) and return its result.

        Raises:
            ConcurrentRunRejected: another run is active
        """
        if not self._store.begin_fetch():
            logger.info("Already fetching, skipping")
            raise ConcurrentRunRejected()
        return await self._run_claimed()

    def trigger(self) -> bool:
        """
        Start a run in the background and return immediately.

        Returns True if a run was started, False if one is already active.
        Must be called from inside the running event loop.
        """
        if not self._store.begin_fetch():
            logger.info("Refresh requested while fetching, skipping")
            return False

        task = asyncio.get_running_loop().create_task(self._run_claimed())
        self._tasks.add(task)
        task.add_done_callback(self._on_task_done)
        return True

    async def wait_idle(self) -> None:
        """Wait for background runs started by trigger() to finish."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    # =========================================================================
    # RUN
    # =========================================================================

    async def _run_claimed(self) -> IngestionResult:
        result = IngestionResult(run_id=uuid.uuid4().hex[:12], started_at=utc_now())
        fallback = self._store.read()
        buffer: list[HolderRecord] = []
        progress = 0
        start = time.monotonic()

        with LogContext(run_id=result.run_id):
            logger.info("Starting to fetch token holders")
            self._notify(progress)
            try:
                async with self._source_factory() as source:
                    try:
                        progress = await self._drain(source, buffer, result, progress)
                    finally:
                        result.source_metrics = source.get_metrics()

                snapshot = self._publish(buffer, complete=True)
                result.records_published = snapshot.total
                self._store.finish_fetch(100)
                self._notify(100)
                self._save_backup(snapshot)

                result.success = True
                result.finished_at = utc_now()
                result.duration_seconds = round(time.monotonic() - start, 3)
                logger.info(
                    "Successfully fetched holders",
                    holders=snapshot.total,
                    pages=result.pages_fetched,
                    duration=result.duration_seconds,
                    source=result.source_metrics,
                )
                return self._finish(result)

            except SourceError as e:
                self._recover(result, e, fallback, start)
                return self._finish(result)
            except Exception as e:
                self._recover(result, e, fallback, start)
                self._finish(result)
                raise
            finally:
                if self._store.fetch_state.is_fetching:
                    self._store.finish_fetch(0)

    async def _drain(
        self,
        source: PagedSource,
        buffer: list[HolderRecord],
        result: IngestionResult,
        progress: int,
    ) -> int:
        """Pull pages into buffer until Exhausted; a Failure is raised as its error."""
        while True:
            outcome = await source.next_page()
            if isinstance(outcome, Exhausted):
                return progress
            if isinstance(outcome, Failure):
                raise outcome.error

            buffer.extend(outcome.records)
            result.pages_fetched += 1
            result.records_fetched = len(buffer)
            logger.debug(
                "Fetched page",
                page=outcome.page,
                records=len(outcome.records),
                total_so_far=len(buffer),
            )

            if result.pages_fetched % self.settings.publish_every_pages == 0:
                self._publish(buffer, complete=False)
                result.partial_publishes += 1
                progress = max(progress, self._estimate_progress(result.pages_fetched))
                self._store.set_progress(progress)
                self._notify(progress)

    def _publish(self, buffer: list[HolderRecord], complete: bool) -> Snapshot:
        """Rank a copy of the buffer and make it the visible snapshot."""
        records = rank_records(dedupe_records(buffer, self.settings.dedupe_strategy))
        snapshot = Snapshot(records=tuple(records), taken_at=utc_now(), complete=complete)
        self._store.replace(snapshot)
        return snapshot

    def _estimate_progress(self, pages: int) -> int:
        estimate = pages * 100 // self.settings.expected_pages
        return min(MAX_PARTIAL_PROGRESS, estimate)

    def _save_backup(self, snapshot: Snapshot) -> None:
        try:
            self._backup.save(snapshot.records)
        except OSError as e:
            logger.error("Failed to write backup", path=str(self._backup.path), error=str(e))

    def _recover(
        self,
        result: IngestionResult,
        error: Exception,
        fallback: Snapshot,
        start: float,
    ) -> None:
        """Reset to Idle and put the last known good data back in front of readers."""
        self._store.finish_fetch(0)
        result.success = False
        result.error = f"{type(error).__name__}: {error}"
        result.finished_at = utc_now()
        result.duration_seconds = round(time.monotonic() - start, 3)
        logger.error(
            "Error fetching holders",
            error=str(error),
            error_type=type(error).__name__,
            pages=result.pages_fetched,
            source=result.source_metrics,
        )

        contents = self._backup.load()
        if contents is not None:
            logger.info("Loading from backup file", records=len(contents.records))
            self._store.replace(
                Snapshot(
                    records=tuple(rank_records(contents.records)),
                    taken_at=contents.modified_at,
                    complete=True,
                )
            )
            result.restored_from_backup = True
        elif not fallback.is_empty:
            logger.info("No backup, keeping snapshot from before the run", records=fallback.total)
            self._store.replace(fallback)

    def _finish(self, result: IngestionResult) -> IngestionResult:
        self.last_result = result
        return result

    def _notify(self, progress: int) -> None:
        for listener in self._listeners:
            listener(progress)

    def _on_task_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            logger.warning("Refresh task cancelled")
            return
        error = task.exception()
        if error is not None:
            logger.error("Refresh task crashed", error=str(error), exc_info=error)
