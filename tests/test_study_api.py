"""
Tests for the study and interview routes, backed by an in-memory store.
"""

from __future__ import annotations

import datetime as dt
import json

import pytest
from fastapi.testclient import TestClient

from src.api.deps import get_interview_service, get_scheduler
from src.api.main import app
from src.interview.service import InterviewService
from src.srs.errors import PersistenceUnavailable
from src.srs.scheduler_service import SchedulerService
from src.srs.state import QuestionMeta, ReviewState
from src.srs.store import InMemoryProgressStore


class FakeChatClient:
    """Empty reply for the interviewer prompt, canned JSON for grading."""

    def __init__(self, grade_reply: str = "") -> None:
        self.grade_reply = grade_reply
        self.calls = []

    def chat(self, messages, max_tokens=2048, temperature=0.7, max_retries=3):
        self.calls.append(messages)
        if messages[0]["role"] == "system":
            return ""
        return self.grade_reply


class UnavailableStore(InMemoryProgressStore):
    async def load_progress(self, question_id):
        raise PersistenceUnavailable("database is down")

    async def list_progress(self, filters=None):
        raise PersistenceUnavailable("database is down")


def _now() -> dt.datetime:
    return dt.datetime.now(dt.timezone.utc)


def _meta(category: str, difficulty: str = "mid") -> QuestionMeta:
    return QuestionMeta(
        category=category,
        difficulty=difficulty,
        question=f"Explain {category}",
        answer=f"{category} explained",
    )


@pytest.fixture
def store():
    return InMemoryProgressStore()


@pytest.fixture
def client(store):
    scheduler = SchedulerService(store)
    chat = FakeChatClient(
        json.dumps(
            {
                "quality": 4,
                "verdict": "correct",
                "strengths": ["clear"],
                "improvements": [],
                "summary": "Good answer.",
            }
        )
    )
    app.dependency_overrides[get_scheduler] = lambda: scheduler
    app.dependency_overrides[get_interview_service] = lambda: InterviewService(scheduler, chat)
    yield TestClient(app)
    app.dependency_overrides.clear()


def test_health(client):
    r = client.get("/api/health")
    assert r.status_code == 200
    assert r.json()["status"] == "ok"


def test_next_card_when_nothing_to_study(client):
    r = client.post("/api/study/next", json={})
    assert r.status_code == 200
    data = r.json()
    assert data["done"] is True
    assert data["card"] is None


def test_next_card_returns_overdue_before_new(client, store):
    now = _now()
    store.add("new-1", ReviewState.initial(now), _meta("flexbox"))
    store.add(
        "late-1",
        ReviewState(
            ease_factor=2.3,
            interval=6,
            repetitions=2,
            next_review_date=now - dt.timedelta(days=3),
            last_review_date=now - dt.timedelta(days=9),
        ),
        _meta("closures"),
    )

    r = client.post("/api/study/next", json={})

    assert r.status_code == 200
    card = r.json()["card"]
    assert card["question_id"] == "late-1"
    assert card["bucket"] == "overdue"
    assert card["is_new"] is False
    assert card["state"]["mastery"] == "learning"
    assert set(card["interval_previews"]) == {"0", "1", "2", "3", "4", "5"}

    r = client.post("/api/study/next", json={"exclude_ids": ["late-1"]})
    assert r.json()["card"]["question_id"] == "new-1"
    assert r.json()["card"]["is_new"] is True


def test_next_card_filters_by_category(client, store):
    now = _now()
    store.add("a", ReviewState.initial(now), _meta("flexbox"))
    store.add("b", ReviewState.initial(now), _meta("closures"))

    r = client.post("/api/study/next", json={"category": "closures"})

    assert r.json()["card"]["question_id"] == "b"


def test_record_review_with_quality(client, store):
    store.add("q1", ReviewState.initial(_now()), _meta("flexbox"))

    r = client.post("/api/study/review", json={"question_id": "q1", "quality": 5, "response_time_ms": 900})

    assert r.status_code == 200
    data = r.json()
    assert data["quality"] == 5
    assert data["state"]["repetitions"] == 1
    assert data["state"]["interval_days"] == 1
    assert data["next_review_in"] == "1 day"
    assert data["ease_factor_delta"] == pytest.approx(0.1)


@pytest.mark.parametrize(
    "button, quality",
    [("again", 0), ("hard", 2), ("good", 4), ("easy", 5)],
)
def test_record_review_with_button(client, store, button, quality):
    store.add("q1", ReviewState.initial(_now()), _meta("flexbox"))

    r = client.post("/api/study/review", json={"question_id": "q1", "button": button})

    assert r.status_code == 200
    assert r.json()["quality"] == quality


def test_record_review_requires_a_rating(client, store):
    store.add("q1", ReviewState.initial(_now()), _meta("flexbox"))
    r = client.post("/api/study/review", json={"question_id": "q1"})
    assert r.status_code == 422


def test_record_review_rejects_out_of_range_quality(client, store):
    store.add("q1", ReviewState.initial(_now()), _meta("flexbox"))

    r = client.post("/api/study/review", json={"question_id": "q1", "quality": 7})

    assert r.status_code == 422
    assert r.json()["detail"]["kind"] == "invalid_quality"


def test_record_review_unknown_question(client):
    r = client.post("/api/study/review", json={"question_id": "missing", "quality": 4})
    assert r.status_code == 404
    assert r.json()["detail"]["kind"] == "not_found"


def test_interval_preview(client, store):
    store.add("q1", ReviewState.initial(_now()), _meta("flexbox"))

    r = client.get("/api/study/preview/q1")

    assert r.status_code == 200
    assert r.json()["previews"] == {str(q): "1 day" for q in range(6)}


def test_due_cards_and_dashboard(client, store):
    now = _now()
    store.add("a", ReviewState.initial(now), _meta("flexbox"))
    store.add("b", ReviewState.initial(now), _meta("closures"))
    client.post("/api/study/review", json={"question_id": "a", "quality": 4})

    due = client.get("/api/study/due").json()
    assert due["new"] == ["b"]
    assert due["counts"]["new"] == 1

    dashboard = client.get("/api/study/dashboard").json()
    assert dashboard["total_questions"] == 2
    assert dashboard["total_studied"] == 1
    assert dashboard["streak_days"] == 1
    assert dashboard["recent_reviews"][0]["question_id"] == "a"

    filtered = client.get("/api/study/dashboard", params={"category": "closures"}).json()
    assert filtered["total_questions"] == 1
    assert filtered["total_studied"] == 0


def test_reset_progress(client, store):
    store.add("q1", ReviewState.initial(_now()), _meta("flexbox"))
    client.post("/api/study/review", json={"question_id": "q1", "quality": 5})

    r = client.post("/api/study/progress/q1/reset")

    assert r.status_code == 200
    assert r.json()["state"]["repetitions"] == 0
    assert r.json()["state"]["mastery"] == "new"


def test_store_outage_maps_to_503():
    scheduler = SchedulerService(UnavailableStore())
    app.dependency_overrides[get_scheduler] = lambda: scheduler
    try:
        r = TestClient(app).post("/api/study/next", json={})
    finally:
        app.dependency_overrides.clear()

    assert r.status_code == 503
    assert r.json()["detail"]["kind"] == "persistence_unavailable"


def test_interview_question_and_feedback(client, store):
    store.add("q1", ReviewState.initial(_now()), _meta("flexbox"))

    r = client.post("/api/interview/question", json={})
    assert r.status_code == 200
    data = r.json()
    assert data["question_id"] == "q1"
    # Empty model reply falls back to the stored question.
    assert data["message"] == "Explain flexbox"

    r = client.post("/api/interview/feedback", json={"question_id": "q1", "answer": "It lays out items."})
    assert r.status_code == 200
    data = r.json()
    assert data["suggested_quality"] == 4
    assert data["verdict"] == "correct"
    assert data["summary"] == "Good answer."


def test_interview_feedback_requires_answer(client, store):
    store.add("q1", ReviewState.initial(_now()), _meta("flexbox"))
    r = client.post("/api/interview/feedback", json={"question_id": "q1", "answer": ""})
    assert r.status_code == 422
