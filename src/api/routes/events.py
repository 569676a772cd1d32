"""
Event API routes.

Endpoints that accept pixel events and return persona/stage scoring.
"""

from typing import List

from fastapi import APIRouter, Body
import structlog

from src.api.dependencies import VisitorServiceDep
from src.api.schemas import BatchResponse, PixelEvent, ScoringResponse
from src.core.logging import bind_context

log = structlog.get_logger(__name__)

router = APIRouter(tags=["events"])


@router.post(
    "/event",
    response_model=ScoringResponse,
    response_model_exclude_none=True,
)
async def process_event(event: PixelEvent, service: VisitorServiceDep):
    """Score a single pixel event.

    Updates the visitor record and returns the effective persona, journey
    stage and their confidences. explicit_choice is included only when the
    visitor has made one.
    """
    bind_context(visitor_id=event.anonymous_id)
    return await service.process_event(event)


@router.post(
    "/batch",
    response_model=BatchResponse,
    response_model_exclude_none=True,
)
async def process_batch(service: VisitorServiceDep, events: List[PixelEvent] = Body(...)):
    """Score a list of pixel events; one result per event, in input order."""
    results = await service.process_batch(events)
    return BatchResponse(results=results)
