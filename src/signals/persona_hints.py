"""Persona hint tables and detection helpers.

Holds the fixed vocabulary the engine uses to tie behavior to a persona:
- PERSONA_KEYWORDS: keyword dictionary for text (search queries, handles)
- URL_PERSONA_RULES: ordered regex rules for page URLs (first match wins)
- SIGNAL_WEIGHTS: intent strength per signal type

All tables are declared in tie-break order; reordering them changes results.
"""

import re
from typing import Dict, List, Optional, Pattern, Tuple

from src.domain.models.signal import Signal, SignalType
from src.domain.models.visitor import PersonaId

PERSONA_KEYWORDS: Dict[PersonaId, List[str]] = {
    PersonaId.BACKYARD: [
        "backyard",
        "hobby",
        "small flock",
        "hen",
        "eggs",
        "coop",
        "chicken keeping",
        "beginner",
        "pet chickens",
        "laying hens",
        "hen helper",
    ],
    PersonaId.COMMERCIAL: [
        "commercial",
        "bulk",
        "fcr",
        "feed conversion",
        "mortality",
        "broiler",
        "integrator",
        "house",
        "flock size",
        "contract grower",
        "grow out",
        "litter",
        "big ole bird",
    ],
    PersonaId.LAWN: [
        "lawn",
        "turf",
        "grass",
        "fire ant",
        "garden",
        "fertilizer",
        "soil",
        "landscape",
        "organic lawn",
        "humate",
    ],
    PersonaId.GENERAL: [],
}

URL_PERSONA_RULES: List[Tuple[Pattern[str], PersonaId]] = [
    (re.compile(r"/poultry/backyard", re.IGNORECASE), PersonaId.BACKYARD),
    (re.compile(r"/poultry/commercial", re.IGNORECASE), PersonaId.COMMERCIAL),
    (re.compile(r"/lawn", re.IGNORECASE), PersonaId.LAWN),
    (re.compile(r"/shop/poultry/backyard", re.IGNORECASE), PersonaId.BACKYARD),
    (re.compile(r"/shop/poultry/commercial", re.IGNORECASE), PersonaId.COMMERCIAL),
    (re.compile(r"/shop/lawn", re.IGNORECASE), PersonaId.LAWN),
    (re.compile(r"/collections/backyard", re.IGNORECASE), PersonaId.BACKYARD),
    (re.compile(r"/collections/commercial", re.IGNORECASE), PersonaId.COMMERCIAL),
    # Bulk package sizes
    (re.compile(r"/products/.*gallon", re.IGNORECASE), PersonaId.COMMERCIAL),
    (re.compile(r"/products/.*bulk", re.IGNORECASE), PersonaId.COMMERCIAL),
]

SIGNAL_WEIGHTS: Dict[SignalType, float] = {
    SignalType.DECISION_ENGINE: 10,  # explicit choice is strongest
    SignalType.PURCHASE: 8,
    SignalType.PHONE_CALL: 7,
    SignalType.ADD_TO_CART: 6,
    SignalType.SURVEY_RESPONSE: 6,
    SignalType.SEARCH_QUERY: 5,
    SignalType.PRODUCT_VIEW: 4,
    SignalType.COLLECTION_VIEW: 3,
    SignalType.CONTENT_ENGAGEMENT: 3,
    SignalType.EMAIL_SIGNUP: 2,
    SignalType.RETURN_VISIT: 2,
    SignalType.PAGE_VIEW: 1,
}


def detect_persona_from_url(url: str) -> Optional[PersonaId]:
    """First URL rule that matches, or None."""
    for pattern, persona in URL_PERSONA_RULES:
        if pattern.search(url):
            return persona
    return None


def detect_persona_from_text(text: str) -> Optional[PersonaId]:
    """Persona with the strictly highest keyword hit count.

    Ties keep the persona declared first in PERSONA_KEYWORDS. Returns None
    when no keyword matches.
    """
    lower_text = text.lower()

    best_match: Optional[PersonaId] = None
    best_score = 0

    for persona, keywords in PERSONA_KEYWORDS.items():
        if persona is PersonaId.GENERAL:
            continue

        match_count = sum(1 for kw in keywords if kw in lower_text)
        if match_count > best_score:
            best_score = match_count
            best_match = persona

    return best_match


def signal_weight(signal: Signal) -> float:
    return SIGNAL_WEIGHTS.get(signal.type, 1)


def signal_persona_hint(signal: Signal) -> Optional[PersonaId]:
    """Resolve the persona a signal points at.

    Resolution order:
    1. decision_engine signals carry the chosen persona as their value
    2. a detected_persona tag set at extraction time
    3. keyword detection over the signal value
    """
    if signal.type == SignalType.DECISION_ENGINE:
        persona = PersonaId.parse(signal.value)
        if persona is not None:
            return persona

    if signal.detected_persona:
        persona = PersonaId.parse(signal.detected_persona)
        if persona is not None:
            return persona

    return detect_persona_from_text(signal.value)
