"""
Paged source adapter: one page of holders per call.

The adapter owns the page cursor (starting at 1) and the inter-page delay.
It signals the end of data with Exhausted (an empty page) and upstream
problems with Failure; it never retries.
"""
import asyncio
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional, Union

import structlog

from holders_ingest.clients.socialscan import SocialScanClient
from holders_ingest.config import Settings, get_settings
from holders_ingest.errors import SourceError
from holders_ingest.models import HolderRecord

logger = structlog.get_logger()


@dataclass(frozen=True)
class Page:
    page: int
    records: tuple[HolderRecord, ...]


@dataclass(frozen=True)
class Exhausted:
    page: int


@dataclass(frozen=True)
class Failure:
    page: int
    error: SourceError

    @property
    def reason(self) -> str:
        return str(self.error)


PageResult = Union[Page, Exhausted, Failure]


class PagedSource(ABC):
    """A paginated holder source consumed one page at a time."""

    async def __aenter__(self) -> "PagedSource":
        await self.open()
        return self

    async def __aexit__(self, *args) -> None:
        await self.close()

    async def open(self) -> None:
        pass

    async def close(self) -> None:
        pass

    @abstractmethod
    async def next_page(self) -> PageResult:
        """Fetch the page at the cursor and advance it."""
        pass

    def get_metrics(self) -> dict:
        """Request metrics for the run summary; empty when the source keeps none."""
        return {}


class PagedHolderSource(PagedSource):
    """Paged adapter over the holder list API."""

    def __init__(
        self,
        client: Optional[SocialScanClient] = None,
        settings: Optional[Settings] = None,
    ):
        self._settings = settings or get_settings()
        self._client = client or SocialScanClient(settings=self._settings)
        self._page_size = self._settings.page_size
        self._delay = self._settings.page_delay_seconds
        self._cursor = 1

    @property
    def cursor(self) -> int:
        return self._cursor

    async def open(self) -> None:
        await self._client.connect()

    async def close(self) -> None:
        await self._client.close()

    async def next_page(self) -> PageResult:
        page = self._cursor
        try:
            records = await self._client.fetch_holders_page(page, self._page_size)
        except SourceError as e:
            if e.page is None:
                e.page = page
            return Failure(page=page, error=e)

        if not records:
            logger.info("No more results, stopping", page=page)
            return Exhausted(page=page)

        self._cursor += 1
        if self._delay > 0:
            await asyncio.sleep(self._delay)
        return Page(page=page, records=tuple(records))

    def get_metrics(self) -> dict:
        return self._client.get_metrics()
