"""Inbound pixel events and the scoring response returned for them."""

from typing import Any, Dict, Optional

from pydantic import BaseModel, Field, field_validator

from src.domain.models.visitor import JourneyStage, PersonaId


class PixelEvent(BaseModel):
    """Behavioral event posted by the storefront pixel.

    Only ``event`` and ``anonymous_id`` are required; missing optional fields
    simply produce fewer signals.
    """

    event: str = Field(..., min_length=1, description="Event name, e.g. 'product_viewed'")
    anonymous_id: str = Field(..., min_length=1, description="Pixel visitor identifier")
    customer_id: Optional[str] = None
    session_id: Optional[str] = None
    timestamp: Optional[str] = Field(default=None, description="ISO instant of the event")

    # Context
    page_url: Optional[str] = None
    page_title: Optional[str] = None
    referrer: Optional[str] = None
    utm_source: Optional[str] = None
    utm_medium: Optional[str] = None
    utm_campaign: Optional[str] = None

    # Event properties
    properties: Optional[Dict[str, Any]] = Field(default_factory=dict)

    @field_validator("properties", mode="before")
    @classmethod
    def null_properties_as_empty(cls, v: Any) -> Any:
        """Pixels send `"properties": null` for events without properties."""
        return {} if v is None else v

    def prop(self, key: str) -> Any:
        """Property value, treating empty strings like missing values."""
        value = self.properties.get(key)
        if value is None or value == "":
            return None
        return value


class ScoringResponse(BaseModel):
    """Compact per-event result returned to the caller."""

    success: bool = True
    visitor_id: str
    persona: PersonaId
    persona_confidence: float
    stage: JourneyStage
    stage_confidence: float
    explicit_choice: Optional[PersonaId] = None
