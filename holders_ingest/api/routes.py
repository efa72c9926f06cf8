"""
Holder API Endpoints

Thin JSON adapter over the query layer. Every endpoint answers from the
cached snapshot immediately; none of them waits on the upstream API.
"""
from datetime import datetime
from typing import Any, Optional

from fastapi import APIRouter, Request
from pydantic import BaseModel, Field

from holders_ingest import query
from holders_ingest.service import HoldersService

router = APIRouter()


class RankRequest(BaseModel):
    address: str = Field(..., min_length=1, description="Holder address (case-insensitive)")


def _service(request: Request) -> HoldersService:
    return request.app.state.service


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


def _rank_response(service: HoldersService, address: str) -> dict[str, Any]:
    result = query.rank_of(service.store, address)
    if result is None:
        return {
            "success": False,
            "message": "Address not found",
        }

    return {
        "success": True,
        "data": {
            "rank": result.rank,
            "address": result.address,
            "balance": result.balance,
            "totalHolders": result.total_holders,
        },
        "lastUpdate": _iso(result.last_update),
    }


@router.get("/holders")
async def get_holders(request: Request):
    """
    Get all holders ranked by balance (cached).

    Returns the current snapshot immediately, including partially
    fetched data while a refresh is in progress (isComplete=false).
    """
    listing = query.list_holders(_service(request).store)
    snapshot = listing.snapshot

    return {
        "success": True,
        "data": [record.to_wire() for record in snapshot.records],
        "lastUpdate": _iso(snapshot.taken_at),
        "totalHolders": listing.total_holders,
        "isComplete": snapshot.complete,
        "isFetching": listing.fetch_state.is_fetching,
        "fetchProgress": listing.fetch_state.progress,
    }


@router.get("/rank/{address}")
async def get_rank(address: str, request: Request):
    """Get the 1-based rank of an address."""
    return _rank_response(_service(request), address)


@router.post("/rank")
async def post_rank(body: RankRequest, request: Request):
    """Get the 1-based rank of an address given in the request body."""
    return _rank_response(_service(request), body.address)


@router.get("/health")
async def get_health(request: Request):
    """Health check with data readiness and refresh status."""
    service = _service(request)
    status = query.health(service.store, next_update=service.scheduler.next_run_time)

    return {
        "status": "ok",
        "lastUpdate": _iso(status.last_update),
        "totalHolders": status.total_holders,
        "nextUpdate": _iso(status.next_update),
        "isFetching": status.fetch_state.is_fetching,
        "fetchProgress": status.fetch_state.progress,
        "dataReady": status.ready,
    }


@router.api_route("/refresh", methods=["GET", "POST"])
async def refresh(request: Request):
    """
    Force a background refresh.

    Returns at once; the refresh runs in the background and its progress
    shows up on /health and /holders.
    """
    outcome = query.request_refresh(_service(request).scheduler)
    return {
        "success": outcome.started,
        "message": outcome.message,
    }
