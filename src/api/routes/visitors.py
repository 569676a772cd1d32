"""
Visitor API routes.

Read-only lookups of stored visitor records.
"""

from fastapi import APIRouter
import structlog

from src.api.dependencies import VisitorServiceDep
from src.api.schemas import PersonalizationResponse
from src.core.config import scoring_config
from src.domain.models.visitor import VisitorData
from src.services.scoring.persona_scorer import has_confident_persona
from src.services.stages.stage_content import (
    persona_presentation,
    stage_content_focus,
    stage_cta,
    stage_display_name,
)

log = structlog.get_logger(__name__)

router = APIRouter(prefix="/visitor", tags=["visitors"])


# Visitor IDs may contain "/", so the personalization route must be matched first
@router.get("/{visitor_id:path}/personalization", response_model=PersonalizationResponse)
async def get_personalization(visitor_id: str, service: VisitorServiceDep):
    """Labels, call to action and content focus for the visitor's persona and stage."""
    visitor = await service.get_visitor(visitor_id)
    persona = visitor.effective_persona
    presentation = persona_presentation(persona)

    return PersonalizationResponse(
        visitor_id=visitor.anonymous_id,
        persona=persona,
        persona_label=presentation.label,
        persona_landing_page=presentation.landing_page,
        has_confident_persona=has_confident_persona(
            visitor, scoring_config.confident_persona_threshold
        ),
        stage=visitor.current_stage,
        stage_display_name=stage_display_name(visitor.current_stage),
        cta=stage_cta(visitor.current_stage),
        content_focus=stage_content_focus(visitor.current_stage),
    )


@router.get("/{visitor_id:path}", response_model=VisitorData)
async def get_visitor(visitor_id: str, service: VisitorServiceDep):
    """Return the full stored visitor record, or 404 if unknown."""
    return await service.get_visitor(visitor_id)
