from __future__ import annotations

import datetime as dt
import logging
from dataclasses import dataclass, replace
from typing import Dict, List, Optional, Sequence

from src.srs.display import interval_previews
from src.srs.due import (
    BUCKET_NEW,
    BUCKET_ORDER,
    BUCKET_UPCOMING,
    DueBuckets,
    classify,
)
from src.srs.errors import Conflict, InvalidQuality, Outcome, SchedulerError
from src.srs.priority import rank_overdue
from src.srs.sm2 import SM2Calculator, SM2Result
from src.srs.state import (
    MAX_QUALITY,
    MIN_QUALITY,
    ProgressRecord,
    QuestionMeta,
    ReviewLogEntry,
    ReviewState,
    is_valid_quality,
)
from src.srs.stats import Dashboard, build_dashboard
from src.srs.store import ProgressFilters, ProgressStore


logger = logging.getLogger(__name__)


@dataclass
class SchedulerConfig:
    """Configuration for the study queue."""

    include_upcoming: bool = True
    recent_reviews_limit: int = 20


@dataclass(frozen=True)
class StudyCard:
    """A question picked for study, with the bucket it was drawn from."""

    record: ProgressRecord
    bucket: str

    @property
    def question_id(self) -> str:
        return self.record.question_id

    @property
    def state(self) -> ReviewState:
        return self.record.state

    @property
    def meta(self) -> QuestionMeta:
        return self.record.meta

    @property
    def is_new(self) -> bool:
        return self.bucket == BUCKET_NEW


def _utcnow() -> dt.datetime:
    return dt.datetime.now(dt.timezone.utc)


class SchedulerService:
    """
    Study scheduler sitting between the API layer and a `ProgressStore`.

    Answers "what should I study next" and "record this review". All
    operations return an `Outcome`; store failures are reported, never
    retried or masked.

    Concurrent reviews of the same card are guarded by the store's
    optimistic version check: the loser gets a `Conflict` outcome and is
    expected to reload and resubmit.
    """

    def __init__(
        self,
        store: ProgressStore,
        *,
        calculator: Optional[SM2Calculator] = None,
        config: Optional[SchedulerConfig] = None,
    ) -> None:
        self.store = store
        self.calculator = calculator or SM2Calculator()
        self.config = config or SchedulerConfig()

    def _ordered_buckets(self, records: Sequence[ProgressRecord], now: dt.datetime) -> DueBuckets:
        states = {record.question_id: record.state for record in records}
        buckets = classify(states.items(), now)

        buckets.overdue = rank_overdue(
            [(qid, states[qid]) for qid in buckets.overdue],
            now,
        )
        # Soonest due first. The upcoming priority score bottoms out at 0,
        # so far-off cards are ordered by date rather than by score.
        buckets.due_today = sorted(
            buckets.due_today,
            key=lambda qid: states[qid].next_review_date,
        )
        buckets.upcoming = sorted(
            buckets.upcoming,
            key=lambda qid: states[qid].next_review_date,
        )
        return buckets

    async def get_next_card(
        self,
        filters: Optional[ProgressFilters] = None,
        *,
        now: Optional[dt.datetime] = None,
    ) -> Outcome[StudyCard]:
        """
        Pick the most urgent card: overdue > due today > new > upcoming.

        A successful outcome with value `None` means nothing matches the
        filters and the session is complete.
        """
        now = now or _utcnow()
        try:
            records = await self.store.list_progress(filters)
        except SchedulerError as exc:
            return Outcome.failure(exc)

        by_id = {record.question_id: record for record in records}
        buckets = self._ordered_buckets(records, now)

        for bucket in BUCKET_ORDER:
            if bucket == BUCKET_UPCOMING and not self.config.include_upcoming:
                break
            ids = buckets.get(bucket)
            if ids:
                return Outcome.success(StudyCard(record=by_id[ids[0]], bucket=bucket))

        return Outcome.success(None)

    async def record_review(
        self,
        question_id: str,
        quality: int,
        *,
        response_time_ms: int = 0,
        was_revealed: bool = False,
        now: Optional[dt.datetime] = None,
    ) -> Outcome[SM2Result]:
        """
        Apply one rating to a card and persist the new state.

        The write is conditional on the version that was read, so a
        concurrent review of the same card cannot be silently lost.
        """
        if not is_valid_quality(quality):
            return Outcome.failure(
                InvalidQuality(f"quality must be an integer between {MIN_QUALITY} and {MAX_QUALITY}, got {quality!r}")
            )

        now = now or _utcnow()
        try:
            record = await self.store.load_progress(question_id)
            result = self.calculator.apply(record.state, quality, now=now)
            entry = ReviewLogEntry(
                reviewed_at=now,
                quality=quality,
                response_time_ms=max(0, int(response_time_ms or 0)),
                was_revealed=bool(was_revealed),
            )
            await self.store.save_progress(
                self._with_review(record, result.new_state, quality),
                expected_version=record.version,
                review=entry,
            )
        except Conflict as exc:
            logger.warning("Review of %s lost a version race: %s", question_id, exc)
            return Outcome.failure(exc)
        except SchedulerError as exc:
            return Outcome.failure(exc)

        logger.info(
            "Recorded review of %s (q=%s): interval %s -> %s days, ease %.2f -> %.2f",
            question_id,
            quality,
            result.previous_state.interval,
            result.new_state.interval,
            result.previous_state.ease_factor,
            result.new_state.ease_factor,
        )
        return Outcome.success(result)

    def _with_review(self, record: ProgressRecord, state: ReviewState, quality: int) -> ProgressRecord:
        total = record.total_reviews + 1
        correct = record.correct_reviews + (1 if quality >= self.calculator.config.passing_quality else 0)
        average = (record.average_quality * record.total_reviews + quality) / total
        return replace(
            record,
            state=state,
            total_reviews=total,
            correct_reviews=correct,
            average_quality=average,
        )

    async def get_interval_preview(
        self,
        question_id: str,
        *,
        now: Optional[dt.datetime] = None,
    ) -> Outcome[Dict[int, str]]:
        """Dry run of every rating against the stored state. Nothing is written."""
        now = now or _utcnow()
        try:
            record = await self.store.load_progress(question_id)
        except SchedulerError as exc:
            return Outcome.failure(exc)
        return Outcome.success(interval_previews(record.state, now, self.calculator))

    async def get_due_cards(
        self,
        filters: Optional[ProgressFilters] = None,
        *,
        now: Optional[dt.datetime] = None,
    ) -> Outcome[DueBuckets]:
        now = now or _utcnow()
        try:
            records = await self.store.list_progress(filters)
        except SchedulerError as exc:
            return Outcome.failure(exc)
        return Outcome.success(self._ordered_buckets(records, now))

    async def get_dashboard(
        self,
        filters: Optional[ProgressFilters] = None,
        *,
        now: Optional[dt.datetime] = None,
    ) -> Outcome[Dashboard]:
        now = now or _utcnow()
        try:
            records: List[ProgressRecord] = await self.store.list_progress(filters)
        except SchedulerError as exc:
            return Outcome.failure(exc)
        due = self._ordered_buckets(records, now)
        return Outcome.success(
            build_dashboard(records, due, now, recent_limit=self.config.recent_reviews_limit)
        )

    async def reset_progress(
        self,
        question_id: str,
        *,
        now: Optional[dt.datetime] = None,
    ) -> Outcome[ProgressRecord]:
        """Return a card to its never-reviewed state and clear its history."""
        now = now or _utcnow()
        try:
            record = await self.store.load_progress(question_id)
            fresh = replace(
                record,
                state=self.calculator.initial_state(now),
                total_reviews=0,
                correct_reviews=0,
                average_quality=0.0,
                review_history=[],
            )
            stored = await self.store.save_progress(
                fresh,
                expected_version=record.version,
                clear_history=True,
            )
        except SchedulerError as exc:
            return Outcome.failure(exc)

        logger.info("Reset progress of %s", question_id)
        return Outcome.success(stored)
