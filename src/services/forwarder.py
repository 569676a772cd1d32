"""Analytics forwarder - relays enriched events to the analytics sink.

Forwarding is best-effort: every failure is logged and dropped, never
retried and never propagated to the request that produced the event.
dispatch() schedules the call as a background task so the response path
does not wait on it.
"""

import asyncio
import json
from datetime import datetime, timezone
from typing import Any, Dict, Optional, Set

import httpx
import structlog

from src.core.config import Settings, settings as default_settings
from src.core.exceptions import ForwardError
from src.domain.models.event import PixelEvent
from src.domain.models.visitor import VisitorData

log = structlog.get_logger(__name__)


def build_enriched_row(
    event: PixelEvent,
    visitor: VisitorData,
    brand_id: str,
    processed_at: Optional[datetime] = None,
) -> Dict[str, Any]:
    """Flatten the event and stamp it with the visitor's persona/stage state."""
    processed_at = processed_at or datetime.now(timezone.utc)
    return {
        # Original event
        "event_type": event.event,
        "anonymous_id": event.anonymous_id,
        "customer_id": event.customer_id,
        "session_id": event.session_id,
        "timestamp": event.timestamp,
        "page_url": event.page_url,
        "page_title": event.page_title,
        "referrer": event.referrer,
        "utm_source": event.utm_source,
        "utm_medium": event.utm_medium,
        "utm_campaign": event.utm_campaign,
        "properties": json.dumps(event.properties, default=str),
        # Persona / stage enrichment
        "predicted_persona": visitor.predicted_persona.value,
        "persona_confidence": visitor.persona_confidence,
        "explicit_persona": visitor.explicit_persona.value if visitor.explicit_persona else None,
        "current_stage": visitor.current_stage.value,
        "stage_confidence": visitor.stage_confidence,
        "persona_scores": visitor.persona_scores.model_dump_json(),
        # Visitor metadata
        "visitor_first_seen": visitor.first_seen.isoformat(),
        "visitor_session_count": visitor.session_count,
        "visitor_total_signals": visitor.total_signals,
        # Processing metadata
        "processed_at": processed_at.isoformat(),
        "brand_id": brand_id,
    }


class AnalyticsForwarder:
    """
    Fire-and-forget relay of enriched events to a webhook.

    Args:
        webhook_url: Sink URL; None disables forwarding
        brand_id: Brand identifier stamped on every row
        table: Destination table name sent alongside the row
        timeout: Per-call timeout in seconds
    """

    def __init__(
        self,
        webhook_url: Optional[str],
        brand_id: str,
        table: str = "pixel_events_enriched",
        timeout: float = 3.0,
    ):
        self.webhook_url = webhook_url
        self.brand_id = brand_id
        self.table = table
        self.timeout = timeout
        self._pending: Set[asyncio.Task] = set()

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None) -> "AnalyticsForwarder":
        settings = settings or default_settings
        return cls(
            webhook_url=settings.analytics_webhook_url,
            brand_id=settings.brand_id,
            table=settings.analytics_table,
            timeout=settings.forward_timeout_seconds,
        )

    @property
    def enabled(self) -> bool:
        return bool(self.webhook_url)

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    async def _post(self, payload: Dict[str, Any]) -> None:
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.post(self.webhook_url, json=payload)
                response.raise_for_status()
        except httpx.TimeoutException as e:
            raise ForwardError(f"Analytics sink timed out after {self.timeout}s") from e
        except httpx.HTTPStatusError as e:
            raise ForwardError(
                f"Analytics sink returned {e.response.status_code}"
            ) from e
        except httpx.HTTPError as e:
            raise ForwardError(f"Analytics sink unreachable: {e}") from e

    async def forward(self, event: PixelEvent, visitor: VisitorData) -> bool:
        """
        Send one enriched row. Never raises.

        Returns:
            True if the sink accepted the row, False if forwarding is
            disabled or failed
        """
        if not self.enabled:
            return False

        payload = {
            "table": self.table,
            "row": build_enriched_row(event, visitor, self.brand_id),
        }

        try:
            await self._post(payload)
        except ForwardError as e:
            log.warning(
                "analytics_forward_failed",
                visitor_id=visitor.anonymous_id,
                event_type=event.event,
                error=e.message,
            )
            return False
        except Exception as e:
            log.error(
                "analytics_forward_error",
                visitor_id=visitor.anonymous_id,
                event_type=event.event,
                error=str(e),
                exc_info=e,
            )
            return False

        log.debug("analytics_forwarded", visitor_id=visitor.anonymous_id, event_type=event.event)
        return True

    def dispatch(self, event: PixelEvent, visitor: VisitorData) -> Optional[asyncio.Task]:
        """Schedule forward() in the background without awaiting it."""
        if not self.enabled:
            return None

        # Snapshot so later mutations of the caller's record don't leak into the row
        snapshot = visitor.model_copy(deep=True)
        task = asyncio.create_task(self.forward(event, snapshot))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return task

    async def drain(self, timeout: Optional[float] = None) -> None:
        """Wait for in-flight forwards (used at shutdown)."""
        if not self._pending:
            return
        pending = list(self._pending)
        _, not_done = await asyncio.wait(pending, timeout=timeout or self.timeout)
        if not_done:
            log.warning("analytics_forwards_abandoned", count=len(not_done))
            for task in not_done:
                task.cancel()
