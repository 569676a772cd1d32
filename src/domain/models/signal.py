"""Signal domain models for behavioral observation tracking.

A Signal is the atomic unit the scoring engine works with: one typed,
timestamped observation derived from an inbound pixel event. Signals are
appended to a visitor's rolling window and never edited afterwards.

Pipeline Integration:
    - SignalExtractor: creates Signals from PixelEvents
    - PersonaScorer: weights signals by type and recency
    - StageDetector: counts signals by type to place the visitor in the funnel
"""

from enum import Enum
from typing import Any, Dict

from pydantic import BaseModel, ConfigDict, Field


class SignalType(str, Enum):
    """Kinds of behavioral observation the engine understands."""

    PAGE_VIEW = "page_view"
    SEARCH_QUERY = "search_query"
    PRODUCT_VIEW = "product_view"
    COLLECTION_VIEW = "collection_view"
    ADD_TO_CART = "add_to_cart"
    PURCHASE = "purchase"
    EMAIL_SIGNUP = "email_signup"
    CONTENT_ENGAGEMENT = "content_engagement"
    DECISION_ENGINE = "decision_engine"
    SURVEY_RESPONSE = "survey_response"
    PHONE_CALL = "phone_call"
    RETURN_VISIT = "return_visit"


class Signal(BaseModel):
    """Single behavioral observation.

    Attributes:
        - type: What kind of behavior was observed
        - value: Free-text payload (URL, query string, product handle, ...)
        - timestamp: ISO instant copied from the originating event
        - metadata: Open key-value bag; may carry "detected_persona"

    Ordering inside a visitor's window is append order, which is not
    guaranteed to be chronological for rapid bursts.
    """

    model_config = ConfigDict(frozen=True)

    type: SignalType
    value: str
    timestamp: str
    metadata: Dict[str, Any] = Field(default_factory=dict)

    @property
    def detected_persona(self) -> Any:
        """Persona hint attached at extraction time, if any."""
        return self.metadata.get("detected_persona")
