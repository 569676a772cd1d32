"""
Visitor service - orchestrates per-event visitor scoring.

Per event:
1. Load the visitor record (or create one)
2. Extract signals and append them to the rolling window (FIFO cap)
3. Apply an explicit persona choice if the event carries one
4. Recompute persona scores, prediction and confidence
5. Recompute journey stage, stage history and stage confidence
6. Persist the record (TTL refreshed)
7. Dispatch the enriched event to the analytics sink without waiting

Concurrent events for the same visitor race on the read-modify-write cycle
and the last write wins. Within one batch, events for the same visitor are
processed sequentially.
"""

import asyncio
from collections import OrderedDict
from datetime import datetime
from typing import Dict, List, Optional, Tuple

import structlog

from src.core.config import ScoringConfig, scoring_config
from src.core.exceptions import StoreError, VisitorNotFoundError
from src.domain.models.event import PixelEvent, ScoringResponse
from src.domain.models.visitor import PersonaId, VisitorData, utc_now
from src.persistence.repositories.visitor_repo import VisitorRepository
from src.services.forwarder import AnalyticsForwarder
from src.services.scoring.persona_scorer import PersonaScorer
from src.services.stages.stage_detector import StageDetector
from src.signals.extractor import extract_signals

log = structlog.get_logger(__name__)

PERSONA_SELECTED_EVENT = "persona_selected"


class VisitorService:
    """Scores inbound events against per-visitor state."""

    def __init__(
        self,
        visitor_repo: VisitorRepository,
        forwarder: AnalyticsForwarder,
        config: Optional[ScoringConfig] = None,
    ):
        self.visitor_repo = visitor_repo
        self.forwarder = forwarder
        self.config = config or scoring_config
        self.scorer = PersonaScorer(self.config)
        self.stage_detector = StageDetector(history_limit=self.config.stage_history_limit)

    # ============ PURE SCORING ============

    def apply_event(
        self,
        event: PixelEvent,
        current: Optional[VisitorData],
        now: Optional[datetime] = None,
    ) -> Tuple[VisitorData, ScoringResponse]:
        """
        Fold one event into a visitor record.

        Args:
            event: Inbound pixel event
            current: Stored record, or None for an unseen visitor
            now: Processing instant (defaults to current UTC time)

        Returns:
            (updated visitor, scoring response). The input record is not
            modified.
        """
        now = now or utc_now()
        if current is None:
            visitor = VisitorData.new(event.anonymous_id)
        else:
            visitor = current.model_copy(deep=True)

        new_signals = extract_signals(event)
        visitor.signals = (visitor.signals + new_signals)[-self.config.max_signals :]
        visitor.total_signals += len(new_signals)
        # Counts processed events, not browsing sessions
        visitor.session_count += 1

        if event.customer_id:
            visitor.customer_id = event.customer_id
        email = event.prop("email")
        if email is not None:
            visitor.email = str(email)

        if event.event == PERSONA_SELECTED_EVENT:
            self._apply_explicit_choice(event, visitor)

        visitor.persona_scores = self.scorer.score(visitor, now=now)
        visitor.predicted_persona = self.scorer.predict(visitor.persona_scores)
        visitor.persona_confidence = self.scorer.confidence(visitor.persona_scores)

        new_stage = self.stage_detector.detect(visitor.signals)
        if new_stage != visitor.current_stage:
            log.info(
                "stage_changed",
                visitor_id=visitor.anonymous_id,
                from_stage=visitor.current_stage.value,
                to_stage=new_stage.value,
            )
        visitor.stage_history = self.stage_detector.record(
            visitor.stage_history, new_stage, now=now
        )
        visitor.current_stage = new_stage
        visitor.stage_confidence = self.stage_detector.confidence(visitor.signals, new_stage)

        visitor.last_updated = now

        response = ScoringResponse(
            success=True,
            visitor_id=visitor.anonymous_id,
            persona=visitor.effective_persona,
            persona_confidence=visitor.persona_confidence,
            stage=visitor.current_stage,
            stage_confidence=visitor.stage_confidence,
            explicit_choice=visitor.explicit_persona,
        )
        return visitor, response

    @staticmethod
    def _apply_explicit_choice(event: PixelEvent, visitor: VisitorData) -> None:
        declared = event.prop("persona")
        if declared is None:
            return
        persona = PersonaId.parse(declared)
        if persona is None:
            log.warning(
                "invalid_persona_selection",
                visitor_id=visitor.anonymous_id,
                persona=str(declared),
            )
            return
        visitor.explicit_persona = persona

    # ============ STORE-BACKED OPERATIONS ============

    async def load_or_create(self, anonymous_id: str) -> Optional[VisitorData]:
        """Stored record, or None when absent or the store cannot be read."""
        try:
            return await self.visitor_repo.get(anonymous_id)
        except StoreError as e:
            log.warning("visitor_fetch_failed", visitor_id=anonymous_id, error=e.message)
            return None

    async def process_event(self, event: PixelEvent) -> ScoringResponse:
        """
        Process one event end to end.

        Raises:
            StoreUnavailableError: If the updated record cannot be written
        """
        current = await self.load_or_create(event.anonymous_id)
        if current is None:
            log.info("visitor_created", visitor_id=event.anonymous_id)

        visitor, response = self.apply_event(event, current)

        await self.visitor_repo.put(visitor)
        self.forwarder.dispatch(event, visitor)

        log.info(
            "event_processed",
            visitor_id=visitor.anonymous_id,
            event_type=event.event,
            persona=response.persona.value,
            persona_confidence=round(response.persona_confidence, 4),
            stage=response.stage.value,
            signal_count=len(visitor.signals),
        )
        return response

    async def process_batch(self, events: List[PixelEvent]) -> List[ScoringResponse]:
        """
        Process events concurrently across visitors.

        Events sharing an anonymous_id run sequentially in input order so
        their updates don't overwrite each other. Results come back in
        input order.
        """
        groups: Dict[str, List[int]] = OrderedDict()
        for index, event in enumerate(events):
            groups.setdefault(event.anonymous_id, []).append(index)

        results: List[Optional[ScoringResponse]] = [None] * len(events)

        async def run_group(indices: List[int]) -> None:
            for index in indices:
                results[index] = await self.process_event(events[index])

        await asyncio.gather(*(run_group(indices) for indices in groups.values()))

        log.info("batch_processed", event_count=len(events), visitor_count=len(groups))
        return results  # type: ignore[return-value]

    async def get_visitor(self, anonymous_id: str) -> VisitorData:
        """
        Fetch a stored visitor.

        Raises:
            VisitorNotFoundError: If no live record exists
        """
        visitor = await self.visitor_repo.get(anonymous_id)
        if visitor is None:
            raise VisitorNotFoundError(f"Visitor {anonymous_id} not found")
        return visitor
