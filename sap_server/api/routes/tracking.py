"""
SAP Server — Tracking Routes
Global impact ticker: record prompts and read the running totals.
"""
import logging

from fastapi import APIRouter, Depends, HTTPException, status

from sap_server.core.dependencies import get_aggregate_store
from sap_server.schemas.schemas import StatsResponse, TrackRequest, TrackResponse
from sap_server.services.aggregate import AggregateStore
from sap_server.services.tracking import track_prompt

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get(
    "/stats",
    response_model=StatsResponse,
    summary="Get global stats",
    description="Latest global totals. Falls back to in-memory totals when the database is unavailable.",
)
async def get_stats(store: AggregateStore = Depends(get_aggregate_store)):
    """Return the latest global snapshot. Never fails."""
    try:
        snapshot = await store.current_snapshot()
    except Exception as e:
        logger.error(f"Error fetching stats: {e}")
        snapshot = store.snapshot
    return StatsResponse.from_snapshot(snapshot)


@router.post(
    "/track",
    response_model=TrackResponse,
    summary="Track an AI prompt",
    description="Record one prompt's estimated energy and CO2 and return the updated totals.",
)
async def track(
    request: TrackRequest,
    store: AggregateStore = Depends(get_aggregate_store),
):
    """Apply one prompt to the global totals."""
    try:
        snapshot = await track_prompt(
            store,
            prompt=request.prompt,
            model=request.model,
            tokens=request.tokens,
            energy=request.energy,
            co2=request.co2,
            user_id=request.user_id,
            source=request.source,
        )
    except Exception as e:
        logger.error(f"Error tracking prompt: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to track prompt",
        )
    return TrackResponse(success=True, stats=StatsResponse.from_snapshot(snapshot))
