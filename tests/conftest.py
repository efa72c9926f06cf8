"""
Shared fixtures: isolated settings and a scripted in-memory paged source.
"""
import asyncio
from typing import Optional, Sequence

import pytest

from holders_ingest.backup import DurableBackup
from holders_ingest.config import Settings
from holders_ingest.errors import SourceError, SourceUnavailable
from holders_ingest.ingestion.engine import IngestionEngine
from holders_ingest.ingestion.source import Exhausted, Failure, Page, PagedSource, PageResult
from holders_ingest.models import HolderRecord
from holders_ingest.store import SnapshotStore


def holder(address: str, quantity) -> HolderRecord:
    return HolderRecord(address=address, quantity=str(quantity))


def holders(*pairs) -> list[HolderRecord]:
    return [holder(address, quantity) for address, quantity in pairs]


class ScriptedSource(PagedSource):
    """
    Serves pre-defined pages, then an empty page.

    fail_at: 1-based page number that returns a Failure instead.
    gate: if set, every next_page() call waits on it first, so a test
          can hold the run mid-flight.
    """

    def __init__(
        self,
        pages: Sequence[Sequence[HolderRecord]] = (),
        fail_at: Optional[int] = None,
        error: Optional[SourceError] = None,
        gate: Optional[asyncio.Event] = None,
    ):
        self.pages = [tuple(page) for page in pages]
        self.fail_at = fail_at
        self.error = error or SourceUnavailable("connection refused")
        self.gate = gate
        self.cursor = 1
        self.calls = 0
        self.opened = False
        self.closed = False

    async def open(self) -> None:
        self.opened = True

    async def close(self) -> None:
        self.closed = True

    async def next_page(self) -> PageResult:
        self.calls += 1
        if self.gate is not None:
            await self.gate.wait()
        else:
            await asyncio.sleep(0)

        page = self.cursor
        if self.fail_at is not None and page == self.fail_at:
            return Failure(page=page, error=self.error)
        if page > len(self.pages) or not self.pages[page - 1]:
            return Exhausted(page=page)
        self.cursor += 1
        return Page(page=page, records=self.pages[page - 1])


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(
        backup_path=str(tmp_path / "all_tokenholders.json"),
        page_delay_seconds=0,
        publish_every_pages=2,
        expected_pages=10,
        refresh_interval_hours=6,
        holders_api_key="test-key",
    )


@pytest.fixture
def store() -> SnapshotStore:
    return SnapshotStore()


@pytest.fixture
def backup(settings) -> DurableBackup:
    return DurableBackup(settings.backup_path)


@pytest.fixture
def make_engine(store, backup, settings):
    """Build an engine around a given ScriptedSource."""
    def _make(source: PagedSource) -> IngestionEngine:
        return IngestionEngine(store, backup, source_factory=lambda: source, settings=settings)
    return _make
