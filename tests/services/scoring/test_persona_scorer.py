"""Tests for PersonaScorer and recency decay."""

from datetime import datetime, timedelta, timezone

import pytest

from src.core.config import ScoringConfig
from src.domain.models.signal import Signal, SignalType
from src.domain.models.visitor import PersonaId, PersonaScores, VisitorData
from src.services.scoring.persona_scorer import (
    PersonaScorer,
    explicit_scores,
    get_effective_persona,
    has_confident_persona,
    recency_multiplier,
)
from src.signals.extractor import build_page_view

NOW = datetime(2026, 5, 1, 12, 0, tzinfo=timezone.utc)


def _ts(hours_ago: float) -> str:
    return (NOW - timedelta(hours=hours_ago)).isoformat()


def _page(url: str, hours_ago: float = 0.0) -> Signal:
    return build_page_view(url, None, _ts(hours_ago))


def _visitor(signals, explicit=None) -> VisitorData:
    visitor = VisitorData.new("v-1")
    visitor.signals = list(signals)
    visitor.explicit_persona = explicit
    return visitor


@pytest.fixture
def scorer():
    return PersonaScorer(ScoringConfig())


class TestRecencyMultiplier:
    @pytest.mark.parametrize(
        "hours_ago,expected",
        [
            (0.5, 1.5),
            (1.0, 1.5),
            (2.0, 1.0),
            (24.0, 1.0),
            (48.0, 0.7),
            (72.0, 0.7),
            (100.0, 0.3),
            (-3.0, 1.5),  # future timestamps count as very recent
        ],
    )
    def test_steps(self, hours_ago, expected):
        assert recency_multiplier(_ts(hours_ago), NOW) == expected

    def test_unparseable_timestamp_decays_fully(self):
        assert recency_multiplier("yesterday-ish", NOW) == 0.3

    def test_zulu_and_naive_timestamps(self):
        assert recency_multiplier("2026-05-01T11:30:00Z", NOW) == 1.5
        assert recency_multiplier("2026-05-01T11:30:00", NOW) == 1.5


class TestColdStart:
    def test_uniform_below_threshold(self, scorer):
        visitor = _visitor([_page("/poultry/backyard/")] * 2)
        assert scorer.score(visitor, now=NOW) == PersonaScores.uniform()

    def test_explicit_choice_below_threshold(self, scorer):
        scores = scorer.score(_visitor([], explicit=PersonaId.LAWN), now=NOW)

        assert scores.lawn == pytest.approx(0.7)
        assert scores.backyard == pytest.approx(0.1)
        assert scores.commercial == pytest.approx(0.1)
        assert scores.general == pytest.approx(0.1)

    def test_explicit_general_is_uniform(self):
        scores = explicit_scores(PersonaId.GENERAL)
        for _, value in scores.items():
            assert value == pytest.approx(0.25)


class TestBehavioralScoring:
    def test_single_persona_dominates(self, scorer):
        visitor = _visitor([_page("/poultry/backyard/flock-starter/")] * 3)
        scores = scorer.score(visitor, now=NOW)

        assert scores.backyard == pytest.approx(1.0)
        assert scorer.predict(scores) == PersonaId.BACKYARD
        assert scorer.confidence(scores) == pytest.approx(1.0)

    def test_weights_and_recency_combine(self, scorer):
        signals = [
            # lawn: search (5) x 1.5 = 7.5
            Signal(
                type=SignalType.SEARCH_QUERY,
                value="lawn fertilizer",
                timestamp=_ts(0),
                metadata={"detected_persona": "lawn"},
            ),
            # commercial: purchase (8) x 0.3 = 2.4
            Signal(
                type=SignalType.PURCHASE,
                value="order-1",
                timestamp=_ts(200),
                metadata={"detected_persona": "commercial"},
            ),
            # backyard: page view (1) x 1.0 = 1.0
            _page("/poultry/backyard/", hours_ago=5),
        ]
        scores = scorer.score(_visitor(signals), now=NOW)

        total = 7.5 + 2.4 + 1.0
        assert scores.lawn == pytest.approx(7.5 / total)
        assert scores.commercial == pytest.approx(2.4 / total)
        assert scores.backyard == pytest.approx(1.0 / total)
        assert scores.general == 0.0

    def test_no_hints_fall_back_to_uniform(self, scorer):
        visitor = _visitor([_page("/about"), _page("/faq"), _page("/cart")])
        assert scorer.score(visitor, now=NOW) == PersonaScores.uniform()

    def test_explicit_choice_doubles_bucket(self, scorer):
        # lawn 3.0 vs backyard 1.5, doubled to 3.0 -> tie broken toward backyard
        signals = [_page("/lawn/"), _page("/lawn/"), _page("/poultry/backyard/")]
        scores = scorer.score(_visitor(signals, explicit=PersonaId.BACKYARD), now=NOW)

        assert scores.backyard == pytest.approx(0.5)
        assert scores.lawn == pytest.approx(0.5)
        assert scorer.predict(scores) == PersonaId.BACKYARD

    def test_explicit_general_is_not_boosted(self, scorer):
        signals = [_page("/lawn/")] * 3
        scores = scorer.score(_visitor(signals, explicit=PersonaId.GENERAL), now=NOW)
        assert scores.lawn == pytest.approx(1.0)

    def test_strong_behavior_outweighs_stale_explicit_choice(self, scorer):
        signals = [
            Signal(type=SignalType.DECISION_ENGINE, value="backyard", timestamp=_ts(500)),
            Signal(
                type=SignalType.ADD_TO_CART,
                value="bulk-litter",
                timestamp=_ts(0),
                metadata={"detected_persona": "commercial"},
            ),
            Signal(
                type=SignalType.PURCHASE,
                value="order-2",
                timestamp=_ts(0),
                metadata={"detected_persona": "commercial"},
            ),
        ]
        # backyard: 10 x 0.3 x 2 = 6; commercial: (6 + 8) x 1.5 = 21
        scores = scorer.score(_visitor(signals, explicit=PersonaId.BACKYARD), now=NOW)
        assert scorer.predict(scores) == PersonaId.COMMERCIAL

    @pytest.mark.parametrize(
        "urls",
        [
            ["/lawn/", "/poultry/backyard/", "/poultry/commercial/"],
            ["/products/x-gallon", "/about", "/blog/coop-tips", "/lawn/"],
            ["/a", "/b", "/c"],
        ],
    )
    def test_distribution_is_valid(self, scorer, urls):
        scores = scorer.score(_visitor([_page(u) for u in urls]), now=NOW)

        assert scores.total() == pytest.approx(1.0, abs=1e-9)
        assert all(value >= 0 for _, value in scores.items())


class TestPredictAndConfidence:
    def test_uniform_predicts_first_persona(self, scorer):
        assert scorer.predict(PersonaScores.uniform()) == PersonaId.BACKYARD

    def test_uniform_confidence(self, scorer):
        # no distinct runner-up, so the gap is measured against 0
        assert scorer.confidence(PersonaScores.uniform()) == pytest.approx(0.25)

    def test_tied_leaders_use_next_distinct_score(self, scorer):
        two_way = PersonaScores(backyard=0.5, commercial=0.5, lawn=0.0, general=0.0)
        assert scorer.confidence(two_way) == pytest.approx(0.5)

        three_way = PersonaScores(backyard=0.3, commercial=0.3, lawn=0.3, general=0.1)
        assert scorer.confidence(three_way) == pytest.approx(0.6 * 0.2 + 0.4 * 0.3)

    def test_confidence_formula(self, scorer):
        scores = PersonaScores(backyard=0.2, commercial=0.5, lawn=0.3, general=0.0)
        assert scorer.predict(scores) == PersonaId.COMMERCIAL
        assert scorer.confidence(scores) == pytest.approx(0.6 * 0.2 + 0.4 * 0.5)


class TestEffectivePersona:
    def test_explicit_wins(self):
        visitor = _visitor([], explicit=PersonaId.LAWN)
        visitor.predicted_persona = PersonaId.COMMERCIAL
        assert get_effective_persona(visitor) == PersonaId.LAWN

    def test_prediction_without_explicit(self):
        visitor = _visitor([])
        visitor.predicted_persona = PersonaId.COMMERCIAL
        assert get_effective_persona(visitor) == PersonaId.COMMERCIAL

    def test_has_confident_persona(self):
        visitor = _visitor([])
        visitor.persona_confidence = 0.59
        assert not has_confident_persona(visitor, 0.6)

        visitor.persona_confidence = 0.6
        assert has_confident_persona(visitor, 0.6)

        visitor.persona_confidence = 0.1
        visitor.explicit_persona = PersonaId.GENERAL
        assert has_confident_persona(visitor, 0.6)
