from __future__ import annotations

import threading
from dataclasses import dataclass, field, replace
from typing import Dict, FrozenSet, List, Optional, Protocol, runtime_checkable

from src.srs.errors import Conflict, NotFound
from src.srs.state import ProgressRecord, QuestionMeta, ReviewLogEntry, ReviewState


@dataclass(frozen=True)
class ProgressFilters:
    """Optional narrowing of the candidate set for a study query."""

    category: Optional[str] = None
    difficulty: Optional[str] = None
    exclude_ids: FrozenSet[str] = field(default_factory=frozenset)

    def matches(self, record: ProgressRecord) -> bool:
        if self.category is not None and record.meta.category != self.category:
            return False
        if self.difficulty is not None and record.meta.difficulty != self.difficulty:
            return False
        return record.question_id not in self.exclude_ids


@runtime_checkable
class ProgressStore(Protocol):
    """
    Persistence contract consumed by the scheduler.

    Implementations raise `NotFound`, `Conflict` or
    `PersistenceUnavailable` from `src.srs.errors`; they never retry.

    `save_progress` writes the record's state and aggregate counters and,
    when `review` is given, appends it to the history in the same write.
    With `expected_version` set, the write only happens if the stored
    version still matches; the stored version is then incremented.
    """

    async def load_progress(self, question_id: str) -> ProgressRecord:
        ...

    async def save_progress(
        self,
        record: ProgressRecord,
        *,
        expected_version: Optional[int] = None,
        review: Optional[ReviewLogEntry] = None,
        clear_history: bool = False,
    ) -> ProgressRecord:
        ...

    async def list_progress(
        self,
        filters: Optional[ProgressFilters] = None,
    ) -> List[ProgressRecord]:
        ...


class InMemoryProgressStore:
    """
    Dict-backed progress store.

    A single lock makes the version compare-and-set atomic, so two writers
    racing from the same base version see exactly one success.
    """

    def __init__(self, *, history_limit: int = 50) -> None:
        self.history_limit = history_limit
        self._records: Dict[str, ProgressRecord] = {}
        self._lock = threading.Lock()

    def add(
        self,
        question_id: str,
        state: ReviewState,
        meta: Optional[QuestionMeta] = None,
    ) -> ProgressRecord:
        record = ProgressRecord(
            question_id=question_id,
            state=state,
            meta=meta or QuestionMeta(),
        )
        with self._lock:
            self._records[question_id] = record
        return record

    def remove(self, question_id: str) -> None:
        with self._lock:
            self._records.pop(question_id, None)

    async def load_progress(self, question_id: str) -> ProgressRecord:
        with self._lock:
            record = self._records.get(question_id)
        if record is None:
            raise NotFound(f"No progress for question {question_id}")
        return record

    async def save_progress(
        self,
        record: ProgressRecord,
        *,
        expected_version: Optional[int] = None,
        review: Optional[ReviewLogEntry] = None,
        clear_history: bool = False,
    ) -> ProgressRecord:
        with self._lock:
            current = self._records.get(record.question_id)
            if current is None:
                raise NotFound(f"No progress for question {record.question_id}")
            if expected_version is not None and current.version != expected_version:
                raise Conflict(
                    f"Question {record.question_id} is at version {current.version}, "
                    f"expected {expected_version}"
                )

            history = [] if clear_history else list(current.review_history)
            if review is not None:
                history.append(review)
            if self.history_limit > 0:
                history = history[-self.history_limit:]

            stored = replace(
                record,
                meta=current.meta,
                version=current.version + 1,
                review_history=history,
            )
            self._records[record.question_id] = stored
            return stored

    async def list_progress(
        self,
        filters: Optional[ProgressFilters] = None,
    ) -> List[ProgressRecord]:
        filters = filters or ProgressFilters()
        with self._lock:
            records = list(self._records.values())
        return [record for record in records if filters.matches(record)]
