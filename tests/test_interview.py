from __future__ import annotations

import asyncio
import datetime as dt
import json
import time
from types import SimpleNamespace

import pytest

from src.interview.evaluator import evaluate_answer
from src.interview.service import InterviewService
from src.llm import client as llm_client
from src.llm.client import ChatClient
from src.srs.errors import NotFound
from src.srs.scheduler_service import SchedulerService
from src.srs.state import QuestionMeta, ReviewState
from src.srs.store import InMemoryProgressStore


NOW = dt.datetime(2025, 1, 10, 12, 0, tzinfo=dt.timezone.utc)


class FakeChatClient:
    def __init__(self, responses: list[str]) -> None:
        self._responses = list(responses)
        self.calls = []

    def chat(self, messages, max_tokens=2048, temperature=0.7, max_retries=3) -> str:
        self.calls.append(messages)
        if not self._responses:
            return ""
        return self._responses.pop(0)


def _evaluate(raw: str):
    return evaluate_answer(
        FakeChatClient([raw]),
        question="What does `position: sticky` do?",
        reference_answer="Acts relative until a scroll threshold, then fixed within its container.",
        candidate_answer="It sticks the element while scrolling.",
        category="css-layout",
    )


def test_evaluate_answer_parses_feedback() -> None:
    payload = {
        "quality": 4,
        "verdict": "Correct",
        "strengths": ["Mentions scrolling behaviour."],
        "improvements": ["Explain the containing block limit."],
        "summary": "Mostly right.",
    }

    result = _evaluate(json.dumps(payload))

    assert result.suggested_quality == 4
    assert result.verdict == "correct"
    assert result.strengths == ["Mentions scrolling behaviour."]
    assert result.improvements == ["Explain the containing block limit."]
    assert result.summary == "Mostly right."


def test_evaluate_answer_clamps_quality_and_infers_verdict() -> None:
    result = _evaluate(json.dumps({"quality": 9, "improvements": "Be precise."}))

    assert result.suggested_quality == 5
    assert result.verdict == "correct"
    assert result.improvements == ["Be precise."]


def test_evaluate_answer_fallback_on_invalid_json() -> None:
    result = _evaluate("not-json")

    assert result.suggested_quality == 3
    assert result.verdict == "partially_correct"
    assert result.strengths == []


@pytest.mark.anyio
async def test_next_question_uses_model_phrasing() -> None:
    store = InMemoryProgressStore()
    store.add(
        "q1",
        ReviewState.initial(NOW),
        QuestionMeta(category="closures", difficulty="mid", question="What is a closure?", answer="..."),
    )
    chat = FakeChatClient(["Can you walk me through what a closure is?"])
    svc = InterviewService(SchedulerService(store), chat)

    outcome = await svc.next_question(now=NOW)

    assert outcome.ok
    assert outcome.value.question_id == "q1"
    assert outcome.value.bucket == "new"
    assert outcome.value.message == "Can you walk me through what a closure is?"
    system, user = chat.calls[0]
    assert system["role"] == "system"
    assert "What is a closure?" in user["content"]
    assert "closures" in user["content"]


@pytest.mark.anyio
async def test_next_question_when_queue_is_empty() -> None:
    chat = FakeChatClient([])
    svc = InterviewService(SchedulerService(InMemoryProgressStore()), chat)

    outcome = await svc.next_question(now=NOW)

    assert outcome.ok
    assert outcome.value is None
    assert chat.calls == []


@pytest.mark.anyio
async def test_feedback_does_not_record_a_review() -> None:
    store = InMemoryProgressStore()
    store.add("q1", ReviewState.initial(NOW), QuestionMeta(question="What is a closure?", answer="A function with its scope."))
    svc = InterviewService(SchedulerService(store), FakeChatClient([json.dumps({"quality": 2})]))

    outcome = await svc.feedback("q1", "A loop.")

    assert outcome.ok
    assert outcome.value.suggested_quality == 2
    assert outcome.value.verdict == "incorrect"
    record = await store.load_progress("q1")
    assert record.version == 0
    assert record.total_reviews == 0


@pytest.mark.anyio
async def test_feedback_for_unknown_question() -> None:
    svc = InterviewService(SchedulerService(InMemoryProgressStore()), FakeChatClient([]))

    outcome = await svc.feedback("missing", "anything")

    assert isinstance(outcome.error, NotFound)


def _stub_openai(create):
    return SimpleNamespace(chat=SimpleNamespace(completions=SimpleNamespace(create=create)))


def _reply(text: str):
    return SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content=text))])


def test_chat_client_requires_api_key(monkeypatch) -> None:
    monkeypatch.delenv("LLM_API_KEY", raising=False)
    with pytest.raises(ValueError):
        ChatClient()


def test_chat_client_returns_stripped_reply() -> None:
    chat = ChatClient(api_key="test-key")
    chat.client = _stub_openai(lambda **_kwargs: _reply("  Hello  "))

    assert chat.chat([{"role": "user", "content": "hi"}]) == "Hello"


def test_chat_client_retries_rate_limits(monkeypatch) -> None:
    monkeypatch.setattr(llm_client.time, "sleep", lambda _seconds: None)
    attempts = []

    def create(**_kwargs):
        attempts.append(1)
        if len(attempts) < 2:
            raise RuntimeError("Error code: 429 - rate limit")
        return _reply("ok")

    chat = ChatClient(api_key="test-key")
    chat.client = _stub_openai(create)

    assert chat.chat([{"role": "user", "content": "hi"}]) == "ok"
    assert len(attempts) == 2


def test_chat_client_returns_empty_on_other_errors() -> None:
    def create(**_kwargs):
        raise RuntimeError("connection refused")

    chat = ChatClient(api_key="test-key")
    chat.client = _stub_openai(create)

    assert chat.chat([{"role": "user", "content": "hi"}]) == ""


class SlowChatClient(FakeChatClient):
    def chat(self, messages, max_tokens=2048, temperature=0.7, max_retries=3) -> str:
        time.sleep(0.3)
        return super().chat(messages, max_tokens, temperature, max_retries)


async def _tick_while(coro, interval: float = 0.02):
    """Run `coro` next to a ticker; return its result and the tick times."""
    ticks = []
    done = asyncio.Event()

    async def ticker():
        while not done.is_set():
            await asyncio.sleep(interval)
            ticks.append(time.monotonic())

    async def run():
        try:
            return await coro
        finally:
            done.set()

    result, _ = await asyncio.gather(run(), ticker())
    return result, ticks


@pytest.mark.anyio
async def test_next_question_does_not_block_event_loop() -> None:
    store = InMemoryProgressStore()
    store.add("q1", ReviewState.initial(NOW), QuestionMeta(question="What is hoisting?", answer="..."))
    svc = InterviewService(SchedulerService(store), SlowChatClient(["Tell me about hoisting."]))

    start = time.monotonic()
    outcome, ticks = await _tick_while(svc.next_question(now=NOW))

    assert outcome.value.message == "Tell me about hoisting."
    assert ticks
    assert ticks[0] - start < 0.2


@pytest.mark.anyio
async def test_feedback_does_not_block_event_loop() -> None:
    store = InMemoryProgressStore()
    store.add("q1", ReviewState.initial(NOW), QuestionMeta(question="What is hoisting?", answer="..."))
    svc = InterviewService(SchedulerService(store), SlowChatClient([json.dumps({"quality": 5})]))

    start = time.monotonic()
    outcome, ticks = await _tick_while(svc.feedback("q1", "Declarations move to the top."))

    assert outcome.value.suggested_quality == 5
    assert ticks[0] - start < 0.2
