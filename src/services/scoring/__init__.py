"""Persona scoring package."""

from src.services.scoring.persona_scorer import (
    PersonaScorer,
    explicit_scores,
    get_effective_persona,
    has_confident_persona,
    normalize,
    recency_multiplier,
)

__all__ = [
    "PersonaScorer",
    "explicit_scores",
    "get_effective_persona",
    "has_confident_persona",
    "normalize",
    "recency_multiplier",
]
