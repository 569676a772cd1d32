"""Journey stage detection from a visitor's signal window.

Stages are detected by an ordered rule table, highest priority first; the
first rule whose check passes wins. The final rule is an unconditional
'unaware' fallback, so detection is total. Detection is recomputed from
scratch on every event and can move backward as well as forward.

Priority order:
    evangelist > commitment > success > challenge > test_prep >
    objections > zmot > receptive > aware > unaware
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Callable, List, Optional, Sequence

from src.domain.models.signal import Signal, SignalType
from src.domain.models.visitor import JourneyStage, StageHistoryEntry, utc_now

OBJECTION_PAGES = ("/faq", "/contact", "/returns", "/guarantee", "/compare", "/vs")
LEARNING_PAGES = ("/blog", "/podcast")
REVIEW_ENGAGEMENT = "review"

PURCHASE_TIER = frozenset(
    {
        JourneyStage.EVANGELIST,
        JourneyStage.COMMITMENT,
        JourneyStage.SUCCESS,
        JourneyStage.CHALLENGE,
    }
)

BASE_CONFIDENCE_CAP = 0.5
PURCHASE_TIER_BONUS = 0.4
TEST_PREP_BONUS = 0.3
RESEARCH_BONUS = 0.2  # zmot, objections
DEFAULT_BONUS = 0.1


def count_type(signals: Sequence[Signal], signal_type: SignalType) -> int:
    return sum(1 for s in signals if s.type == signal_type)


def _page_views_containing(signals: Sequence[Signal], fragments: Sequence[str]) -> int:
    return sum(
        1
        for s in signals
        if s.type == SignalType.PAGE_VIEW and any(f in s.value for f in fragments)
    )


def _is_evangelist(signals: Sequence[Signal]) -> bool:
    has_review = any(
        s.type == SignalType.CONTENT_ENGAGEMENT
        and s.metadata.get("engagement_type") == REVIEW_ENGAGEMENT
        for s in signals
    )
    return count_type(signals, SignalType.PURCHASE) >= 3 and has_review


def _is_commitment(signals: Sequence[Signal]) -> bool:
    return count_type(signals, SignalType.PURCHASE) >= 2


def _is_success(signals: Sequence[Signal]) -> bool:
    return (
        count_type(signals, SignalType.PURCHASE) >= 1
        and count_type(signals, SignalType.RETURN_VISIT) >= 1
    )


def _is_challenge(signals: Sequence[Signal]) -> bool:
    return count_type(signals, SignalType.PURCHASE) == 1


def _is_test_prep(signals: Sequence[Signal]) -> bool:
    return (
        count_type(signals, SignalType.ADD_TO_CART) >= 1
        and count_type(signals, SignalType.PURCHASE) == 0
    )


def _is_objections(signals: Sequence[Signal]) -> bool:
    return _page_views_containing(signals, OBJECTION_PAGES) >= 1


def _is_zmot(signals: Sequence[Signal]) -> bool:
    product_views = count_type(signals, SignalType.PRODUCT_VIEW)
    has_search = count_type(signals, SignalType.SEARCH_QUERY) >= 1
    return product_views >= 2 or (has_search and product_views >= 1)


def _is_receptive(signals: Sequence[Signal]) -> bool:
    return (
        count_type(signals, SignalType.CONTENT_ENGAGEMENT) >= 1
        or _page_views_containing(signals, LEARNING_PAGES) >= 2
    )


def _is_aware(signals: Sequence[Signal]) -> bool:
    return (
        count_type(signals, SignalType.PRODUCT_VIEW) >= 1
        or count_type(signals, SignalType.COLLECTION_VIEW) >= 1
    )


@dataclass(frozen=True)
class StageRule:
    """A stage and the predicate that places a visitor in it."""

    stage: JourneyStage
    check: Callable[[Sequence[Signal]], bool]


# Highest priority first
STAGE_RULES: List[StageRule] = [
    StageRule(JourneyStage.EVANGELIST, _is_evangelist),
    StageRule(JourneyStage.COMMITMENT, _is_commitment),
    StageRule(JourneyStage.SUCCESS, _is_success),
    StageRule(JourneyStage.CHALLENGE, _is_challenge),
    StageRule(JourneyStage.TEST_PREP, _is_test_prep),
    StageRule(JourneyStage.OBJECTIONS, _is_objections),
    StageRule(JourneyStage.ZMOT, _is_zmot),
    StageRule(JourneyStage.RECEPTIVE, _is_receptive),
    StageRule(JourneyStage.AWARE, _is_aware),
    StageRule(JourneyStage.UNAWARE, lambda signals: True),
]


def detect_stage(signals: Sequence[Signal]) -> JourneyStage:
    """First matching stage in STAGE_RULES order."""
    for rule in STAGE_RULES:
        if rule.check(signals):
            return rule.stage
    return JourneyStage.UNAWARE


def stage_confidence(signal_count: int, stage: JourneyStage) -> float:
    """
    Confidence in a detected stage.

    Base min(signal_count / 10, 0.5), plus a bonus for the strength of the
    stage evidence: purchase tier +0.4, test_prep +0.3, zmot/objections +0.2,
    anything else +0.1. Clamped to [0, 1].
    """
    confidence = min(signal_count / 10, BASE_CONFIDENCE_CAP)

    if stage in PURCHASE_TIER:
        confidence += PURCHASE_TIER_BONUS
    elif stage == JourneyStage.TEST_PREP:
        confidence += TEST_PREP_BONUS
    elif stage in (JourneyStage.ZMOT, JourneyStage.OBJECTIONS):
        confidence += RESEARCH_BONUS
    else:
        confidence += DEFAULT_BONUS

    return min(max(confidence, 0.0), 1.0)


def update_stage_history(
    history: Sequence[StageHistoryEntry],
    new_stage: JourneyStage,
    limit: int = 10,
    now: Optional[datetime] = None,
) -> List[StageHistoryEntry]:
    """
    Record a stage transition.

    Appends only when new_stage differs from the last recorded stage and
    keeps the `limit` most recent entries. The input is not modified.
    """
    updated = list(history)
    if not updated or updated[-1].stage != new_stage:
        updated.append(StageHistoryEntry(stage=new_stage, entered_at=now or utc_now()))
    return updated[-limit:]


class StageDetector:
    """Stage detection bound to a history limit."""

    def __init__(self, history_limit: int = 10):
        self.history_limit = history_limit

    def detect(self, signals: Sequence[Signal]) -> JourneyStage:
        return detect_stage(signals)

    def confidence(self, signals: Sequence[Signal], stage: JourneyStage) -> float:
        return stage_confidence(len(signals), stage)

    def record(
        self,
        history: Sequence[StageHistoryEntry],
        stage: JourneyStage,
        now: Optional[datetime] = None,
    ) -> List[StageHistoryEntry]:
        return update_stage_history(history, stage, limit=self.history_limit, now=now)
