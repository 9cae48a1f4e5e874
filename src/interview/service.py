from __future__ import annotations

import asyncio
import datetime as dt
from dataclasses import dataclass
from typing import Optional

from src.interview.evaluator import AnswerFeedback, SupportsChat, evaluate_answer
from src.interview.prompts import ASK_QUESTION_PROMPT, INTERVIEWER_SYSTEM_PROMPT
from src.srs.errors import Outcome, SchedulerError
from src.srs.scheduler_service import SchedulerService, StudyCard
from src.srs.store import ProgressFilters


@dataclass
class InterviewTurn:
    question_id: str
    bucket: str
    message: str


class InterviewService:
    """
    Mock interviewer on top of the study queue.

    The next question comes from the scheduler, so interview practice
    follows the same urgency order as flashcards. Answers are graded for
    feedback only; recording a review stays an explicit user action.
    """

    def __init__(self, scheduler: SchedulerService, client: SupportsChat) -> None:
        self.scheduler = scheduler
        self.client = client

    def _ask(self, card: StudyCard) -> str:
        prompt = ASK_QUESTION_PROMPT.format(
            category=card.meta.category or "general",
            difficulty=card.meta.difficulty or "unspecified",
            question=card.meta.question.strip(),
        )
        message = self.client.chat(
            [
                {"role": "system", "content": INTERVIEWER_SYSTEM_PROMPT},
                {"role": "user", "content": prompt},
            ],
            max_tokens=512,
            temperature=0.7,
        )
        # Fall back to the raw question when the model gives nothing back.
        return message or card.meta.question

    async def next_question(
        self,
        filters: Optional[ProgressFilters] = None,
        *,
        now: Optional[dt.datetime] = None,
    ) -> Outcome[InterviewTurn]:
        outcome = await self.scheduler.get_next_card(filters, now=now)
        if not outcome.ok or outcome.value is None:
            return Outcome(value=None, error=outcome.error)

        card = outcome.value
        # Chat calls block, backoff sleeps included; run them in a worker thread.
        message = await asyncio.to_thread(self._ask, card)
        return Outcome.success(
            InterviewTurn(question_id=card.question_id, bucket=card.bucket, message=message)
        )

    async def feedback(self, question_id: str, answer: str) -> Outcome[AnswerFeedback]:
        try:
            record = await self.scheduler.store.load_progress(question_id)
        except SchedulerError as exc:
            return Outcome.failure(exc)

        feedback = await asyncio.to_thread(
            evaluate_answer,
            self.client,
            question=record.meta.question,
            reference_answer=record.meta.answer,
            candidate_answer=answer,
            category=record.meta.category,
        )
        return Outcome.success(feedback)
