"""Domain models package."""

from .signal import Signal, SignalType
from .visitor import (
    JourneyStage,
    PersonaId,
    PersonaScores,
    StageHistoryEntry,
    VisitorData,
)
from .event import PixelEvent, ScoringResponse

__all__ = [
    "Signal",
    "SignalType",
    "JourneyStage",
    "PersonaId",
    "PersonaScores",
    "StageHistoryEntry",
    "VisitorData",
    "PixelEvent",
    "ScoringResponse",
]
