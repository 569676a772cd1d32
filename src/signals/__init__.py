"""Behavioral signal extraction and persona hint detection."""

from src.signals.extractor import EVENT_SIGNAL_BUILDERS, extract_signals
from src.signals.persona_hints import (
    PERSONA_KEYWORDS,
    SIGNAL_WEIGHTS,
    URL_PERSONA_RULES,
    detect_persona_from_text,
    detect_persona_from_url,
    signal_persona_hint,
    signal_weight,
)

__all__ = [
    "EVENT_SIGNAL_BUILDERS",
    "extract_signals",
    "PERSONA_KEYWORDS",
    "SIGNAL_WEIGHTS",
    "URL_PERSONA_RULES",
    "detect_persona_from_text",
    "detect_persona_from_url",
    "signal_persona_hint",
    "signal_weight",
]
