"""
SQLAlchemy implementation of the scheduler's ProgressStore.
"""

from __future__ import annotations

import datetime as dt
import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Dict, List, Optional, Sequence

from sqlalchemy import delete, func, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from src.db.models import Question, QuestionProgress, ReviewLog, new_question_id
from src.srs.errors import Conflict, NotFound, PersistenceUnavailable
from src.srs.state import (
    DEFAULT_EASE_FACTOR,
    ProgressRecord,
    QuestionMeta,
    ReviewLogEntry,
    ReviewState,
)
from src.srs.store import ProgressFilters


logger = logging.getLogger(__name__)


def _as_utc(value: Optional[dt.datetime]) -> Optional[dt.datetime]:
    # Some backends (SQLite) hand back naive datetimes; values are stored as UTC.
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=dt.timezone.utc)
    return value


def _to_record(
    progress: QuestionProgress,
    question: Question,
    history: Sequence[ReviewLog] = (),
) -> ProgressRecord:
    return ProgressRecord(
        question_id=question.id,
        state=ReviewState(
            ease_factor=progress.ease_factor,
            interval=progress.interval_days,
            repetitions=progress.repetitions,
            next_review_date=_as_utc(progress.next_review_at),
            last_review_date=_as_utc(progress.last_reviewed_at),
        ),
        meta=QuestionMeta(
            category=question.category,
            difficulty=question.difficulty,
            question=question.question,
            answer=question.answer,
        ),
        version=progress.version,
        total_reviews=progress.total_reviews,
        correct_reviews=progress.correct_reviews,
        average_quality=progress.average_quality,
        review_history=[
            ReviewLogEntry(
                reviewed_at=_as_utc(log.reviewed_at),
                quality=log.quality,
                response_time_ms=log.response_time_ms,
                was_revealed=log.was_revealed,
            )
            for log in history
        ],
    )


class SQLProgressStore:
    """
    Progress store backed by the `question_progress` and `review_logs` tables.

    Writes are a conditional UPDATE on the `version` column followed by the
    review log insert, inside one transaction. The record handed back by
    `save_progress` is read inside that same transaction, so nothing that
    can fail runs after the commit. Driver and connection failures surface
    as `PersistenceUnavailable`.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        *,
        history_limit: int = 50,
    ) -> None:
        self.session_factory = session_factory
        self.history_limit = history_limit

    @asynccontextmanager
    async def _session(self) -> AsyncIterator[AsyncSession]:
        try:
            async with self.session_factory() as session:
                yield session
        except (SQLAlchemyError, OSError) as exc:
            logger.error("Progress store unavailable: %s", exc)
            raise PersistenceUnavailable(str(exc)) from exc

    async def _history(
        self,
        session: AsyncSession,
        question_ids: Sequence[str],
    ) -> Dict[str, List[ReviewLog]]:
        """Most recent `history_limit` logs per question, oldest first."""
        if not question_ids:
            return {}

        query = select(ReviewLog).where(ReviewLog.question_id.in_(question_ids))
        if self.history_limit > 0:
            ranked = (
                select(
                    ReviewLog.id,
                    func.row_number()
                    .over(
                        partition_by=ReviewLog.question_id,
                        order_by=(ReviewLog.reviewed_at.desc(), ReviewLog.id.desc()),
                    )
                    .label("recency"),
                )
                .where(ReviewLog.question_id.in_(question_ids))
                .subquery()
            )
            query = query.join(ranked, ranked.c.id == ReviewLog.id).where(
                ranked.c.recency <= self.history_limit
            )

        result = await session.execute(query.order_by(ReviewLog.reviewed_at, ReviewLog.id))
        by_question: Dict[str, List[ReviewLog]] = {}
        for log in result.scalars().all():
            by_question.setdefault(log.question_id, []).append(log)
        return by_question

    async def _load(self, session: AsyncSession, question_id: str) -> ProgressRecord:
        result = await session.execute(
            select(QuestionProgress, Question)
            .join(Question, Question.id == QuestionProgress.question_id)
            .where(QuestionProgress.question_id == question_id)
            .execution_options(populate_existing=True)
        )
        row = result.one_or_none()
        if row is None:
            raise NotFound(f"No progress for question {question_id}")
        progress, question = row
        history = await self._history(session, [question_id])
        return _to_record(progress, question, history.get(question_id, []))

    async def add_question(
        self,
        *,
        category: str,
        question: str,
        answer: str,
        difficulty: Optional[str] = None,
        tags: Optional[str] = None,
        question_id: Optional[str] = None,
        now: Optional[dt.datetime] = None,
    ) -> ProgressRecord:
        """Create a question together with its initial review state."""
        now = now or dt.datetime.now(dt.timezone.utc)
        async with self._session() as session:
            row = Question(
                id=question_id or new_question_id(),
                category=category,
                difficulty=difficulty,
                question=question,
                answer=answer,
                tags=tags,
                created_at=now,
            )
            progress = QuestionProgress(
                question_id=row.id,
                ease_factor=DEFAULT_EASE_FACTOR,
                interval_days=0,
                repetitions=0,
                next_review_at=now,
                last_reviewed_at=None,
                version=0,
                created_at=now,
                updated_at=now,
            )
            session.add_all([row, progress])
            await session.commit()
            return _to_record(progress, row)

    async def load_progress(self, question_id: str) -> ProgressRecord:
        async with self._session() as session:
            return await self._load(session, question_id)

    async def save_progress(
        self,
        record: ProgressRecord,
        *,
        expected_version: Optional[int] = None,
        review: Optional[ReviewLogEntry] = None,
        clear_history: bool = False,
    ) -> ProgressRecord:
        state = record.state
        async with self._session() as session:
            async with session.begin():
                stmt = (
                    update(QuestionProgress)
                    .where(QuestionProgress.question_id == record.question_id)
                    .values(
                        ease_factor=state.ease_factor,
                        interval_days=state.interval,
                        repetitions=state.repetitions,
                        next_review_at=state.next_review_date,
                        last_reviewed_at=state.last_review_date,
                        total_reviews=record.total_reviews,
                        correct_reviews=record.correct_reviews,
                        average_quality=record.average_quality,
                        version=QuestionProgress.version + 1,
                        updated_at=dt.datetime.now(dt.timezone.utc),
                    )
                    .execution_options(synchronize_session=False)
                )
                if expected_version is not None:
                    stmt = stmt.where(QuestionProgress.version == expected_version)

                result = await session.execute(stmt)
                if result.rowcount == 0:
                    current = await session.scalar(
                        select(QuestionProgress.version).where(
                            QuestionProgress.question_id == record.question_id
                        )
                    )
                    if current is None:
                        raise NotFound(f"No progress for question {record.question_id}")
                    raise Conflict(
                        f"Question {record.question_id} is at version {current}, "
                        f"expected {expected_version}"
                    )

                if clear_history:
                    await session.execute(
                        delete(ReviewLog).where(ReviewLog.question_id == record.question_id)
                    )
                if review is not None:
                    session.add(
                        ReviewLog(
                            question_id=record.question_id,
                            reviewed_at=review.reviewed_at,
                            quality=review.quality,
                            response_time_ms=review.response_time_ms,
                            was_revealed=review.was_revealed,
                        )
                    )
                await session.flush()
                stored = await self._load(session, record.question_id)

        return stored

    async def list_progress(
        self,
        filters: Optional[ProgressFilters] = None,
    ) -> List[ProgressRecord]:
        filters = filters or ProgressFilters()
        query = (
            select(QuestionProgress, Question)
            .join(Question, Question.id == QuestionProgress.question_id)
            .order_by(Question.created_at, Question.id)
        )
        if filters.category is not None:
            query = query.where(Question.category == filters.category)
        if filters.difficulty is not None:
            query = query.where(Question.difficulty == filters.difficulty)
        if filters.exclude_ids:
            query = query.where(Question.id.not_in(sorted(filters.exclude_ids)))

        async with self._session() as session:
            result = await session.execute(query)
            rows = result.all()
            history = await self._history(session, [question.id for _, question in rows])
            return [
                _to_record(progress, question, history.get(question.id, []))
                for progress, question in rows
            ]
