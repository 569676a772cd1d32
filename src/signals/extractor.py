"""Signal extraction from pixel events.

Converts one inbound PixelEvent into zero or more Signals:

- every event with a page_url yields a page_view signal, tagged with a
  detected_persona when a URL rule matches;
- named events map 1:1 onto a signal type via EVENT_SIGNAL_BUILDERS, but only
  when the properties that signal needs are present.

Extraction is pure: malformed or partial events yield fewer signals rather
than errors.
"""

from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional

from src.domain.models.event import PixelEvent
from src.domain.models.signal import Signal, SignalType
from src.domain.models.visitor import PersonaId
from src.signals.persona_hints import detect_persona_from_text, detect_persona_from_url

SignalBuilder = Callable[[PixelEvent, str], Optional[Signal]]


def _compact(metadata: Dict[str, Any]) -> Dict[str, Any]:
    """Drop keys whose value is None."""
    return {k: v for k, v in metadata.items() if v is not None}


def _persona_tag(persona: Optional[PersonaId]) -> Optional[str]:
    return persona.value if persona is not None else None


def build_page_view(url: str, title: Optional[str], timestamp: str) -> Signal:
    """Page view signal, tagged with the first matching URL rule's persona."""
    return Signal(
        type=SignalType.PAGE_VIEW,
        value=url,
        timestamp=timestamp,
        metadata=_compact(
            {
                "title": title,
                "detected_persona": _persona_tag(detect_persona_from_url(url)),
            }
        ),
    )


def _search(event: PixelEvent, timestamp: str) -> Optional[Signal]:
    query = event.prop("query")
    if query is None:
        return None
    query = str(query)
    return Signal(
        type=SignalType.SEARCH_QUERY,
        value=query,
        timestamp=timestamp,
        metadata=_compact(
            {
                "results_count": event.prop("results_count"),
                "detected_persona": _persona_tag(detect_persona_from_text(query)),
            }
        ),
    )


def _product_view(event: PixelEvent, timestamp: str) -> Optional[Signal]:
    handle = event.prop("product_handle")
    if handle is None:
        return None
    return Signal(
        type=SignalType.PRODUCT_VIEW,
        value=str(handle),
        timestamp=timestamp,
        metadata=_compact(
            {
                "product_title": event.prop("product_title"),
                "price": event.prop("price"),
            }
        ),
    )


def _collection_view(event: PixelEvent, timestamp: str) -> Optional[Signal]:
    handle = event.prop("collection_handle")
    if handle is None:
        return None
    handle = str(handle)
    persona = detect_persona_from_url(f"/collections/{handle}") or detect_persona_from_text(
        handle
    )
    return Signal(
        type=SignalType.COLLECTION_VIEW,
        value=handle,
        timestamp=timestamp,
        metadata=_compact({"detected_persona": _persona_tag(persona)}),
    )


def _add_to_cart(event: PixelEvent, timestamp: str) -> Optional[Signal]:
    handle = event.prop("product_handle")
    if handle is None:
        return None
    return Signal(
        type=SignalType.ADD_TO_CART,
        value=str(handle),
        timestamp=timestamp,
        metadata=_compact(
            {
                "quantity": event.prop("quantity"),
                "variant": event.prop("variant_title"),
            }
        ),
    )


def _purchase(event: PixelEvent, timestamp: str) -> Optional[Signal]:
    return Signal(
        type=SignalType.PURCHASE,
        value=str(event.prop("order_id") or "unknown"),
        timestamp=timestamp,
        metadata=_compact(
            {
                "total": event.prop("total"),
                "products": event.prop("products"),
            }
        ),
    )


def _decision_engine(event: PixelEvent, timestamp: str) -> Optional[Signal]:
    persona = event.prop("persona")
    if persona is None:
        return None
    return Signal(
        type=SignalType.DECISION_ENGINE,
        value=str(persona),
        timestamp=timestamp,
        metadata={"source": "decision_engine"},
    )


def _email_signup(event: PixelEvent, timestamp: str) -> Optional[Signal]:
    list_id = event.prop("list_id")
    return Signal(
        type=SignalType.EMAIL_SIGNUP,
        value=str(list_id) if list_id is not None else "general",
        timestamp=timestamp,
    )


def _content_engagement(event: PixelEvent, timestamp: str) -> Optional[Signal]:
    return Signal(
        type=SignalType.CONTENT_ENGAGEMENT,
        value=str(event.prop("content_type") or event.page_url or "unknown"),
        timestamp=timestamp,
        metadata=_compact(
            {
                "engagement_type": event.prop("engagement_type"),
                "time_on_page": event.prop("time_on_page"),
            }
        ),
    )


def _survey_response(event: PixelEvent, timestamp: str) -> Optional[Signal]:
    declared = event.prop("persona")
    answers = event.prop("answers")
    if declared is None and answers is None:
        return None

    if isinstance(answers, (list, tuple)):
        answers_text = " ".join(str(a) for a in answers)
    elif isinstance(answers, dict):
        answers_text = " ".join(str(a) for a in answers.values())
    else:
        answers_text = str(answers) if answers is not None else ""

    persona = PersonaId.parse(declared) if declared is not None else None
    if persona is None and answers_text:
        persona = detect_persona_from_text(answers_text)

    return Signal(
        type=SignalType.SURVEY_RESPONSE,
        value=str(declared) if declared is not None else answers_text,
        timestamp=timestamp,
        metadata=_compact(
            {
                "survey_id": event.prop("survey_id"),
                "detected_persona": _persona_tag(persona),
            }
        ),
    )


def _phone_call(event: PixelEvent, timestamp: str) -> Optional[Signal]:
    topic = event.prop("topic")
    return Signal(
        type=SignalType.PHONE_CALL,
        value=str(topic) if topic is not None else "call",
        timestamp=timestamp,
        metadata=_compact({"duration_seconds": event.prop("duration_seconds")}),
    )


def _return_visit(event: PixelEvent, timestamp: str) -> Optional[Signal]:
    return Signal(
        type=SignalType.RETURN_VISIT,
        value=event.session_id or "return",
        timestamp=timestamp,
        metadata=_compact({"referrer": event.referrer}),
    )


# Event name -> signal builder
EVENT_SIGNAL_BUILDERS: Dict[str, SignalBuilder] = {
    "search_performed": _search,
    "product_viewed": _product_view,
    "collection_viewed": _collection_view,
    "add_to_cart": _add_to_cart,
    "purchase": _purchase,
    "order_completed": _purchase,
    "persona_selected": _decision_engine,
    "email_signup": _email_signup,
    "newsletter_signup": _email_signup,
    "content_engaged": _content_engagement,
    "survey_submitted": _survey_response,
    "phone_call_logged": _phone_call,
    "return_visit": _return_visit,
}


def extract_signals(event: PixelEvent) -> List[Signal]:
    """Extract behavioral signals from a pixel event.

    Args:
        event: Inbound pixel event

    Returns:
        Signals in emission order: the implicit page_view first (if the
        event has a page_url), then the event-specific signal (if any).
    """
    signals: List[Signal] = []
    timestamp = event.timestamp or datetime.now(timezone.utc).isoformat()

    if event.page_url:
        signals.append(build_page_view(event.page_url, event.page_title, timestamp))

    builder = EVENT_SIGNAL_BUILDERS.get(event.event)
    if builder is not None:
        signal = builder(event, timestamp)
        if signal is not None:
            signals.append(signal)

    return signals
