"""Tests for VisitorService: per-event scoring, batches and store handling."""

from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock

import pytest

from src.core.config import ScoringConfig
from src.core.exceptions import StoreError, StoreUnavailableError, VisitorNotFoundError
from src.domain.models.signal import SignalType
from src.domain.models.visitor import JourneyStage, PersonaId, PersonaScores
from src.services.visitor_service import VisitorService

NOW = datetime(2026, 6, 1, 10, 0, tzinfo=timezone.utc)
TS = "2026-06-01T10:00:00Z"
BACKYARD_URL = "/poultry/backyard/flock-starter/"


@pytest.fixture
def service(forwarder):
    """Service for pure apply_event tests (store is never touched)."""
    return VisitorService(visitor_repo=AsyncMock(), forwarder=forwarder)


def fold(service, events, visitor=None):
    """Apply events in order, returning the final visitor and all responses."""
    responses = []
    for event in events:
        visitor, response = service.apply_event(event, visitor, now=NOW)
        responses.append(response)
    return visitor, responses


class TestApplyEvent:
    """Pure state transitions, no store involved."""

    def test_cold_start(self, service, make_event):
        visitor, response = service.apply_event(
            make_event(page_url="/about", timestamp=TS), None, now=NOW
        )

        assert visitor.persona_scores == PersonaScores.uniform()
        assert visitor.current_stage == JourneyStage.UNAWARE
        assert [e.stage for e in visitor.stage_history] == [JourneyStage.UNAWARE]
        assert visitor.session_count == 2
        assert visitor.total_signals == 1
        assert response.success is True
        assert response.persona == PersonaId.BACKYARD  # uniform tie-break
        assert response.explicit_choice is None

    def test_backyard_page_views_predict_backyard(self, service, make_event):
        event = make_event(page_url=BACKYARD_URL, timestamp=TS)

        visitor, _ = fold(service, [event])
        assert visitor.signals[0].metadata["detected_persona"] == "backyard"

        visitor, responses = fold(service, [event, event], visitor)
        assert visitor.predicted_persona == PersonaId.BACKYARD
        assert visitor.persona_confidence > 0
        assert responses[-1].persona == PersonaId.BACKYARD

    def test_add_to_cart_is_test_prep(self, service, make_event):
        visitor, _ = fold(
            service,
            [
                make_event("product_viewed", product_handle="hen-helper", timestamp=TS),
                make_event("add_to_cart", product_handle="hen-helper", timestamp=TS),
            ],
        )
        assert visitor.current_stage == JourneyStage.TEST_PREP

    def test_purchases_move_to_challenge_then_commitment(self, service, make_event):
        purchase = make_event("purchase", order_id="1001", timestamp=TS)

        visitor, _ = fold(service, [purchase])
        assert visitor.current_stage == JourneyStage.CHALLENGE

        visitor, _ = fold(service, [purchase], visitor)
        assert visitor.current_stage == JourneyStage.COMMITMENT
        assert [e.stage for e in visitor.stage_history] == [
            JourneyStage.UNAWARE,
            JourneyStage.CHALLENGE,
            JourneyStage.COMMITMENT,
        ]

    def test_persona_selected_applies_immediately(self, service, make_event):
        visitor, response = service.apply_event(
            make_event("persona_selected", persona="lawn", timestamp=TS), None, now=NOW
        )

        assert visitor.explicit_persona == PersonaId.LAWN
        assert response.explicit_choice == PersonaId.LAWN
        assert response.persona == PersonaId.LAWN
        assert visitor.persona_scores.lawn == pytest.approx(0.7)

    def test_persona_selected_is_case_insensitive(self, service, make_event):
        visitor, _ = service.apply_event(
            make_event("persona_selected", persona=" Commercial ", timestamp=TS), None, now=NOW
        )
        assert visitor.explicit_persona == PersonaId.COMMERCIAL

    def test_invalid_persona_selection_ignored(self, service, make_event):
        visitor, _ = fold(service, [make_event("persona_selected", persona="lawn", timestamp=TS)])
        visitor, response = service.apply_event(
            make_event("persona_selected", persona="astronaut", timestamp=TS), visitor, now=NOW
        )

        assert visitor.explicit_persona == PersonaId.LAWN
        assert response.explicit_choice == PersonaId.LAWN

    def test_explicit_choice_survives_behavior(self, service, make_event):
        events = [make_event("persona_selected", persona="lawn", timestamp=TS)]
        events += [make_event(page_url="/poultry/commercial/", timestamp=TS)] * 25

        visitor, responses = fold(service, events)

        assert visitor.predicted_persona == PersonaId.COMMERCIAL
        assert visitor.effective_persona == PersonaId.LAWN
        assert all(r.persona == PersonaId.LAWN for r in responses)

    def test_new_explicit_choice_replaces_old(self, service, make_event):
        visitor, _ = fold(
            service,
            [
                make_event("persona_selected", persona="lawn", timestamp=TS),
                make_event("persona_selected", persona="backyard", timestamp=TS),
            ],
        )
        assert visitor.explicit_persona == PersonaId.BACKYARD

    def test_purchases_hold_commitment_floor(self, service, make_event):
        events = [make_event("purchase", order_id=str(i), timestamp=TS) for i in range(2)]
        events += [
            make_event(page_url="/faq", timestamp=TS),
            make_event("add_to_cart", product_handle="x", timestamp=TS),
            make_event("search_performed", page_url="/search", query="coop", timestamp=TS),
            make_event("product_viewed", product_handle="y", timestamp=TS),
        ] * 5

        visitor, _ = fold(service, events)
        assert visitor.current_stage in (JourneyStage.COMMITMENT, JourneyStage.EVANGELIST)

    def test_signal_window_is_fifo_capped(self, forwarder, make_event):
        service = VisitorService(
            visitor_repo=AsyncMock(),
            forwarder=forwarder,
            config=ScoringConfig(max_signals=5, min_signals_for_scoring=3),
        )
        events = [make_event(page_url=f"/page/{i}", timestamp=TS) for i in range(8)]

        visitor, _ = fold(service, events)

        assert len(visitor.signals) == 5
        assert [s.value for s in visitor.signals] == [f"/page/{i}" for i in range(3, 8)]
        assert visitor.total_signals == 8

    def test_same_stage_recorded_once(self, service, make_event):
        events = [make_event(page_url="/about", timestamp=TS)] * 4
        visitor, _ = fold(service, events)

        assert visitor.current_stage == JourneyStage.UNAWARE
        assert len(visitor.stage_history) == 1

        visitor, _ = fold(service, [make_event("product_viewed", product_handle="p", timestamp=TS)], visitor)
        assert [e.stage for e in visitor.stage_history] == [
            JourneyStage.UNAWARE,
            JourneyStage.AWARE,
        ]
        assert visitor.stage_history[-1].entered_at == NOW

    def test_scores_stay_a_distribution(self, service, make_event):
        events = [
            make_event(page_url="/lawn/", timestamp=TS),
            make_event("search_performed", query="broiler litter", timestamp=TS),
            make_event("purchase", order_id="7", timestamp="not-a-timestamp"),
            make_event("persona_selected", persona="backyard", timestamp=TS),
            make_event("product_viewed", product_handle="litter-5-gallon", timestamp=TS),
        ]
        visitor = None
        for event in events:
            visitor, _ = service.apply_event(event, visitor, now=NOW)
            assert visitor.persona_scores.total() == pytest.approx(1.0, abs=1e-9)
            assert all(v >= 0 for _, v in visitor.persona_scores.items())

    def test_identity_fields_copied(self, service, make_event):
        event = make_event(email="grower@example.com", timestamp=TS)
        event.customer_id = "cust-42"

        visitor, _ = service.apply_event(event, None, now=NOW)

        assert visitor.customer_id == "cust-42"
        assert visitor.email == "grower@example.com"

    def test_event_without_signals_still_counts(self, service, make_event):
        visitor, _ = service.apply_event(make_event("scroll_depth", timestamp=TS), None, now=NOW)

        assert visitor.signals == []
        assert visitor.session_count == 2
        assert visitor.total_signals == 0
        assert visitor.last_updated == NOW

    def test_input_record_not_modified(self, service, make_event):
        visitor, _ = fold(service, [make_event(page_url="/about", timestamp=TS)])
        before = visitor.model_dump()

        service.apply_event(make_event("purchase", order_id="1", timestamp=TS), visitor, now=NOW)

        assert visitor.model_dump() == before


class TestProcessEvent:
    async def test_persists_and_reloads(self, visitor_service, visitor_repo, make_event):
        response = await visitor_service.process_event(
            make_event(page_url=BACKYARD_URL, anonymous_id="v-store")
        )

        stored = await visitor_repo.get("v-store")
        assert stored is not None
        assert stored.anonymous_id == response.visitor_id
        assert stored.session_count == 2
        assert stored.signals[0].value == BACKYARD_URL

        await visitor_service.process_event(make_event(page_url=BACKYARD_URL, anonymous_id="v-store"))
        stored = await visitor_repo.get("v-store")
        assert stored.session_count == 3
        assert len(stored.signals) == 2

    async def test_dispatches_to_forwarder(self, make_event):
        repo = AsyncMock()
        repo.get.return_value = None
        forwarder = MagicMock()
        service = VisitorService(visitor_repo=repo, forwarder=forwarder)
        event = make_event(page_url="/lawn/")

        await service.process_event(event)

        repo.put.assert_awaited_once()
        forwarder.dispatch.assert_called_once()
        dispatched_event, dispatched_visitor = forwarder.dispatch.call_args.args
        assert dispatched_event is event
        assert dispatched_visitor.anonymous_id == event.anonymous_id

    async def test_store_read_failure_treated_as_new_visitor(self, forwarder, make_event):
        repo = AsyncMock()
        repo.get.side_effect = StoreError("database is locked")
        service = VisitorService(visitor_repo=repo, forwarder=forwarder)

        response = await service.process_event(make_event(page_url="/lawn/"))

        assert response.success is True
        saved = repo.put.await_args.args[0]
        assert saved.session_count == 2

    async def test_store_write_failure_propagates(self, forwarder, make_event):
        repo = AsyncMock()
        repo.get.return_value = None
        repo.put.side_effect = StoreUnavailableError("disk full")
        service = VisitorService(visitor_repo=repo, forwarder=forwarder)

        with pytest.raises(StoreUnavailableError):
            await service.process_event(make_event(page_url="/lawn/"))


class TestProcessBatch:
    async def test_results_in_input_order(self, visitor_service, make_event):
        events = [
            make_event(page_url="/lawn/", anonymous_id="a"),
            make_event(page_url="/lawn/", anonymous_id="b"),
            make_event(page_url="/lawn/", anonymous_id="a"),
            make_event(page_url="/lawn/", anonymous_id="c"),
        ]

        results = await visitor_service.process_batch(events)

        assert [r.visitor_id for r in results] == ["a", "b", "a", "c"]

    async def test_same_visitor_events_are_serialized(self, visitor_service, visitor_repo, make_event):
        events = [
            make_event(page_url=f"/step/{i}", anonymous_id=visitor_id)
            for i in range(4)
            for visitor_id in ("x", "y")
        ]

        await visitor_service.process_batch(events)

        for visitor_id in ("x", "y"):
            stored = await visitor_repo.get(visitor_id)
            assert stored.session_count == 5
            assert [s.value for s in stored.signals] == [f"/step/{i}" for i in range(4)]

    async def test_empty_batch(self, visitor_service):
        assert await visitor_service.process_batch([]) == []


class TestGetVisitor:
    async def test_unknown_visitor_raises(self, visitor_service):
        with pytest.raises(VisitorNotFoundError):
            await visitor_service.get_visitor("never-seen")

    async def test_returns_stored_visitor(self, visitor_service, make_event):
        await visitor_service.process_event(
            make_event("persona_selected", anonymous_id="chooser", persona="lawn")
        )

        visitor = await visitor_service.get_visitor("chooser")
        assert visitor.explicit_persona == PersonaId.LAWN
        assert visitor.signals[0].type == SignalType.DECISION_ENGINE
