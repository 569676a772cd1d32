"""Visitor domain models for persona and journey-stage state.

This module defines the per-visitor aggregate the scoring engine reads and
rewrites on every event, together with the persona and stage vocabularies.

Core Models:
    - PersonaId: The four audience segments
    - JourneyStage: The ten funnel positions
    - PersonaScores: Probability distribution over personas
    - StageHistoryEntry: One recorded stage transition
    - VisitorData: Root entity, one per anonymous visitor ID

Lifecycle:
    1. Created on the first event for an unseen anonymous_id (uniform scores,
       'unaware' stage)
    2. Rewritten whole on every subsequent event (read-modify-write)
    3. Expired by the store's TTL; the engine never deletes records itself
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, Field

from src.domain.models.signal import Signal


class PersonaId(str, Enum):
    """Audience segments, in tie-break order."""

    BACKYARD = "backyard"
    COMMERCIAL = "commercial"
    LAWN = "lawn"
    GENERAL = "general"

    @classmethod
    def parse(cls, value: object) -> Optional["PersonaId"]:
        """Return the persona named by value, or None for anything else."""
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            return None


class JourneyStage(str, Enum):
    """Funnel positions, lowest to highest detection priority."""

    UNAWARE = "unaware"
    AWARE = "aware"
    RECEPTIVE = "receptive"
    ZMOT = "zmot"
    OBJECTIONS = "objections"
    TEST_PREP = "test_prep"
    CHALLENGE = "challenge"
    SUCCESS = "success"
    COMMITMENT = "commitment"
    EVANGELIST = "evangelist"


class PersonaScores(BaseModel):
    """Probability distribution over the four personas.

    Values are non-negative and sum to 1.0 whenever exposed outside the
    scorer.
    """

    backyard: float = Field(default=0.25, ge=0.0)
    commercial: float = Field(default=0.25, ge=0.0)
    lawn: float = Field(default=0.25, ge=0.0)
    general: float = Field(default=0.25, ge=0.0)

    @classmethod
    def uniform(cls) -> "PersonaScores":
        return cls(backyard=0.25, commercial=0.25, lawn=0.25, general=0.25)

    @classmethod
    def from_mapping(cls, values: Dict[PersonaId, float]) -> "PersonaScores":
        return cls(**{persona.value: values.get(persona, 0.0) for persona in PersonaId})

    def get(self, persona: PersonaId) -> float:
        return getattr(self, persona.value)

    def items(self) -> List[tuple]:
        """(persona, probability) pairs in PersonaId declaration order."""
        return [(persona, self.get(persona)) for persona in PersonaId]

    def total(self) -> float:
        return self.backyard + self.commercial + self.lawn + self.general


class StageHistoryEntry(BaseModel):
    """A stage the visitor entered and when."""

    stage: JourneyStage
    entered_at: datetime


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class VisitorData(BaseModel):
    """Per-visitor aggregate of signal history and derived scores.

    Stored as JSON under key ``visitor:{anonymous_id}``.

    Invariants:
        - persona_scores is a valid distribution (non-negative, sums to 1)
        - len(signals) never exceeds the configured window (FIFO eviction)
        - stage_history only grows when the stage actually changes
        - explicit_persona is only ever replaced by another explicit choice

    Note:
        session_count starts at 1 for a fresh record and is incremented once
        per processed event, so after the first event it reads 2. It counts
        events rather than browsing sessions. Downstream consumers read it
        with that meaning.
    """

    # Identity
    anonymous_id: str
    customer_id: Optional[str] = None
    email: Optional[str] = None

    # Rolling signal window, oldest first
    signals: List[Signal] = Field(default_factory=list)

    # Computed persona
    persona_scores: PersonaScores = Field(default_factory=PersonaScores.uniform)
    predicted_persona: PersonaId = PersonaId.GENERAL
    persona_confidence: float = Field(default=0.0, ge=0.0, le=1.0)

    # Visitor-declared persona (decision engine / quiz)
    explicit_persona: Optional[PersonaId] = None

    # Journey stage
    current_stage: JourneyStage = JourneyStage.UNAWARE
    stage_confidence: float = Field(default=0.0, ge=0.0, le=1.0)
    stage_history: List[StageHistoryEntry] = Field(default_factory=list)

    # Metadata
    first_seen: datetime = Field(default_factory=utc_now)
    last_updated: datetime = Field(default_factory=utc_now)
    session_count: int = Field(default=0, ge=0)
    total_signals: int = Field(default=0, ge=0)

    @classmethod
    def new(cls, anonymous_id: str) -> "VisitorData":
        """Fresh record: uniform scores, 'unaware' stage seeded in history."""
        now = utc_now()
        return cls(
            anonymous_id=anonymous_id,
            stage_history=[StageHistoryEntry(stage=JourneyStage.UNAWARE, entered_at=now)],
            first_seen=now,
            last_updated=now,
            session_count=1,
        )

    @property
    def effective_persona(self) -> PersonaId:
        """Explicit choice if the visitor made one, otherwise the prediction."""
        return self.explicit_persona or self.predicted_persona

    def count_signals(self, signal_type) -> int:
        return sum(1 for s in self.signals if s.type == signal_type)
