"""
SocialScan developer API client (Etherscan-compatible token module).

API shape:
    GET {base}?module=token&action=tokenholderlist&contractaddress=..&page=..&offset=..&apikey=..
    -> {"status": "1", "message": "OK", "result": [{"TokenHolderAddress": .., "TokenHolderQuantity": ..}]}

An empty page comes back as "result": [] or "result": null. Errors
(bad key, bad contract) come back with a string "result".
"""
from typing import Any, Optional

import httpx
import structlog
from pydantic import ValidationError

from holders_ingest.clients.base import BaseAPIClient
from holders_ingest.config import Settings
from holders_ingest.errors import SourceMalformed
from holders_ingest.models import HolderRecord, records_from_wire

logger = structlog.get_logger()


class SocialScanClient(BaseAPIClient):
    """Client for the token holder list endpoint."""

    SOURCE = "socialscan"

    def __init__(
        self,
        settings: Optional[Settings] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        **kwargs,
    ):
        super().__init__(settings=settings, transport=transport, **kwargs)
        self._endpoint = self._settings.holders_api_base_url

    def _get_headers(self) -> dict[str, str]:
        return {
            "Accept": "application/json",
            "User-Agent": "HoldersIngest/1.0",
        }

    def _page_params(self, page: int, offset: int) -> dict[str, Any]:
        params: dict[str, Any] = {
            "module": "token",
            "action": "tokenholderlist",
            "contractaddress": self._settings.contract_address,
            "page": page,
            "offset": offset,
        }
        if self._settings.holders_api_key:
            params["apikey"] = self._settings.holders_api_key
        return params

    async def fetch_holders_page(self, page: int, offset: Optional[int] = None) -> list[HolderRecord]:
        """
        Fetch one page of holders (1-indexed).

        Returns an empty list when the source has no more holders.

        Raises:
            SourceUnavailable: transport failure or error status
            SourceMalformed: body is not the expected envelope or records are invalid
        """
        offset = offset or self._settings.page_size
        body = await self.get(self._endpoint, params=self._page_params(page, offset))

        if not isinstance(body, dict):
            raise SourceMalformed(f"Expected JSON object, got {type(body).__name__}", page=page)

        result = body.get("result")
        if result is None:
            return []
        if not isinstance(result, list):
            raise SourceMalformed(
                f"Unexpected result: {str(result)[:200]} ({body.get('message', '')})",
                page=page,
            )

        try:
            records = records_from_wire(result)
        except (ValidationError, TypeError) as e:
            raise SourceMalformed(f"Invalid holder record on page {page}: {e}", page=page) from e

        logger.debug("Fetched holders page", source=self.SOURCE, page=page, records=len(records))
        return records
