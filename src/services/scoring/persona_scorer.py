"""Persona scorer - probability distribution over personas from signal history.

Weighted signal accumulation with step-function recency decay, plus a
structural boost for a visitor's explicit persona choice.
"""

from datetime import datetime, timezone
from typing import Dict, List, Optional

import structlog

from src.core.config import ScoringConfig, scoring_config
from src.domain.models.visitor import PersonaId, PersonaScores, VisitorData
from src.signals.persona_hints import signal_persona_hint, signal_weight


# Recency steps: (max age in hours, multiplier); anything older decays to the floor
RECENCY_STEPS = [
    (1.0, 1.5),  # very recent boost
    (24.0, 1.0),  # same day
    (72.0, 0.7),  # recent
]
RECENCY_FLOOR = 0.3

EXPLICIT_SHARE = 0.7
EXPLICIT_OTHER_SHARE = 0.1
EXPLICIT_BOOST = 2.0

CONFIDENCE_MARGIN_WEIGHT = 0.6
CONFIDENCE_PEAK_WEIGHT = 0.4


logger = structlog.get_logger(__name__)


def parse_timestamp(timestamp: str) -> Optional[datetime]:
    """Parse an ISO instant; naive values are taken as UTC."""
    try:
        parsed = datetime.fromisoformat(timestamp.replace("Z", "+00:00"))
    except (AttributeError, ValueError):
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def recency_multiplier(timestamp: str, now: datetime) -> float:
    """
    Step-function recency weight.

    <=1h: 1.5, <=24h: 1.0, <=72h: 0.7, older (or unparseable): 0.3.
    Timestamps in the future count as very recent.
    """
    signal_time = parse_timestamp(timestamp)
    if signal_time is None:
        return RECENCY_FLOOR

    hours_ago = (now - signal_time).total_seconds() / 3600
    for max_hours, multiplier in RECENCY_STEPS:
        if hours_ago <= max_hours:
            return multiplier
    return RECENCY_FLOOR


def normalize(raw: Dict[PersonaId, float]) -> PersonaScores:
    """Normalize raw buckets to probabilities; all-zero falls back to uniform."""
    total = sum(raw.values())
    if total <= 0:
        return PersonaScores.uniform()
    return PersonaScores.from_mapping({p: raw.get(p, 0.0) / total for p in PersonaId})


def explicit_scores(persona: PersonaId) -> PersonaScores:
    """Distribution skewed toward an explicit choice (0.7 vs 0.1 each).

    An explicit 'general' choice carries no segment preference and yields the
    uniform distribution.
    """
    raw = {p: EXPLICIT_OTHER_SHARE for p in PersonaId}
    if persona is not PersonaId.GENERAL:
        raw[persona] = EXPLICIT_SHARE
    return normalize(raw)


class PersonaScorer:
    """
    Compute persona probabilities from a visitor's signal window.

    Algorithm:
    1. Fewer than min_signals_for_scoring signals: explicit-choice skew if the
       visitor made one, otherwise uniform
    2. For each signal with a resolvable persona hint, add
       weight(type) x recency(timestamp) to that persona's bucket
    3. Double the explicit persona's bucket (unless it is 'general')
    4. Normalize; all-zero buckets fall back to uniform
    """

    def __init__(self, config: Optional[ScoringConfig] = None):
        self.config = config or scoring_config

    def score(self, visitor: VisitorData, now: Optional[datetime] = None) -> PersonaScores:
        """
        Score a visitor.

        Args:
            visitor: Visitor with an up-to-date signal window
            now: Reference instant for recency (defaults to current UTC time)

        Returns:
            PersonaScores summing to 1.0
        """
        signals = visitor.signals

        if len(signals) < self.config.min_signals_for_scoring:
            if visitor.explicit_persona is not None:
                return explicit_scores(visitor.explicit_persona)
            return PersonaScores.uniform()

        now = now or datetime.now(timezone.utc)
        raw: Dict[PersonaId, float] = {p: 0.0 for p in PersonaId}

        for signal in signals:
            hint = signal_persona_hint(signal)
            if hint is None:
                continue
            raw[hint] += signal_weight(signal) * recency_multiplier(signal.timestamp, now)

        explicit = visitor.explicit_persona
        if explicit is not None and explicit is not PersonaId.GENERAL:
            raw[explicit] *= EXPLICIT_BOOST

        scores = normalize(raw)

        logger.debug(
            "persona_scored",
            visitor_id=visitor.anonymous_id,
            raw={p.value: round(v, 4) for p, v in raw.items()},
            explicit_persona=explicit.value if explicit else None,
        )

        return scores

    @staticmethod
    def predict(scores: PersonaScores) -> PersonaId:
        """Argmax persona; ties go to the earlier PersonaId."""
        best_persona, best_score = PersonaId.BACKYARD, -1.0
        for persona, value in scores.items():
            if value > best_score:
                best_persona, best_score = persona, value
        return best_persona

    @staticmethod
    def confidence(scores: PersonaScores) -> float:
        """
        0.6 x (top1 - top2) + 0.4 x top1, clamped to [0, 1].

        top2 is the largest value strictly below top1 (0.0 when every persona
        ties), so tied leaders are measured against the next distinct score.
        """
        values: List[float] = [v for _, v in scores.items()]
        top1 = max(values)
        top2 = max((v for v in values if v < top1), default=0.0)
        confidence = (top1 - top2) * CONFIDENCE_MARGIN_WEIGHT + top1 * CONFIDENCE_PEAK_WEIGHT
        return min(1.0, max(0.0, confidence))


def get_effective_persona(visitor: VisitorData) -> PersonaId:
    """Explicit choice if set, otherwise the predicted persona.

    This is the persona downstream consumers treat as canonical.
    """
    return visitor.effective_persona


def has_confident_persona(visitor: VisitorData, threshold: Optional[float] = None) -> bool:
    """True when the visitor made an explicit choice or confidence clears threshold."""
    if threshold is None:
        threshold = scoring_config.confident_persona_threshold
    return visitor.explicit_persona is not None or visitor.persona_confidence >= threshold
