"""
API request/response schemas.

Pydantic models for API validation and serialization. Event and scoring
models live in the domain layer and are re-exported here for routes.
"""

from typing import List

from pydantic import BaseModel, Field

from src.domain.models.event import PixelEvent, ScoringResponse
from src.domain.models.visitor import JourneyStage, PersonaId
from src.services.stages.stage_content import StageCTA

__all__ = [
    "PixelEvent",
    "ScoringResponse",
    "BatchResponse",
    "PersonalizationResponse",
]


# ============ EVENT SCHEMAS ============


class BatchResponse(BaseModel):
    """One scoring result per input event, in input order."""

    results: List[ScoringResponse]


# ============ VISITOR SCHEMAS ============


class PersonalizationResponse(BaseModel):
    """What the storefront needs to personalize a page for a visitor."""

    visitor_id: str
    persona: PersonaId = Field(description="Effective persona (explicit choice wins)")
    persona_label: str
    persona_landing_page: str
    has_confident_persona: bool
    stage: JourneyStage
    stage_display_name: str
    cta: StageCTA
    content_focus: str
