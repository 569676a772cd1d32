"""Journey stage detection and stage presentation data."""

from src.services.stages.stage_detector import (
    STAGE_RULES,
    StageDetector,
    StageRule,
    detect_stage,
    stage_confidence,
    update_stage_history,
)
from src.services.stages.stage_content import (
    persona_presentation,
    stage_content_focus,
    stage_cta,
    stage_display_name,
)

__all__ = [
    "STAGE_RULES",
    "StageDetector",
    "StageRule",
    "detect_stage",
    "stage_confidence",
    "update_stage_history",
    "persona_presentation",
    "stage_content_focus",
    "stage_cta",
    "stage_display_name",
]
