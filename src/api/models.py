"""
Request and response models for the study API.
"""

from __future__ import annotations

import datetime as dt
from typing import Dict, List, Literal, Optional

from pydantic import BaseModel, Field


class HealthResponse(BaseModel):
    """Response for GET /api/health."""

    status: str = "ok"


class StudyFilters(BaseModel):
    """Optional filters for picking study cards."""

    category: Optional[str] = Field(default=None, description="Category slug, e.g. 'css-layout'")
    difficulty: Optional[str] = Field(default=None, description="junior, mid or senior")
    exclude_ids: List[str] = Field(
        default_factory=list,
        description="Question ids already seen in this session",
    )


class ReviewStateOut(BaseModel):
    ease_factor: float
    interval_days: int
    repetitions: int
    next_review_at: dt.datetime
    last_reviewed_at: Optional[dt.datetime] = None
    mastery: str


class StudyCardOut(BaseModel):
    """Single card to present to the user."""

    question_id: str
    category: Optional[str] = None
    difficulty: Optional[str] = None
    question: str
    answer: str
    bucket: str
    is_new: bool
    state: ReviewStateOut
    interval_previews: Dict[int, str] = Field(
        default_factory=dict,
        description="Formatted next interval for each quality rating 0-5",
    )


class NextCardResponse(BaseModel):
    """Response body for /api/study/next. `card` is null when nothing is left."""

    card: Optional[StudyCardOut] = None
    done: bool = False


class ReviewRequest(BaseModel):
    """
    Request body for recording a review.

    Either `quality` (0-5) or a rating `button` must be given. Quality is
    range-checked by the scheduler so out-of-range values come back as an
    invalid-quality error rather than being clamped.
    """

    question_id: str
    quality: Optional[int] = Field(
        default=None,
        description="Self-assessed quality from 0 (complete blackout) to 5 (perfect recall)",
    )
    button: Optional[Literal["again", "hard", "good", "easy"]] = Field(
        default=None,
        description="Rating button; again=0, hard=2, good=4, easy=5",
    )
    response_time_ms: int = Field(default=0, ge=0, description="Time to answer in milliseconds")
    was_revealed: bool = Field(default=False, description="Whether the answer was revealed before rating")


class ReviewResponse(BaseModel):
    question_id: str
    quality: int
    state: ReviewStateOut
    interval_delta_days: int
    ease_factor_delta: float
    next_review_in: str = Field(..., description="Human readable interval, e.g. '6 days'")


class IntervalPreviewResponse(BaseModel):
    question_id: str
    previews: Dict[int, str] = Field(default_factory=dict)


class DueCardsResponse(BaseModel):
    overdue: List[str] = Field(default_factory=list)
    due_today: List[str] = Field(default_factory=list)
    new: List[str] = Field(default_factory=list)
    upcoming: List[str] = Field(default_factory=list)
    counts: Dict[str, int] = Field(default_factory=dict)


class CategoryProgressOut(BaseModel):
    category: str
    total_questions: int
    studied_questions: int
    mastered_questions: int
    average_ease_factor: float
    due_count: int


class RecentReviewOut(BaseModel):
    question_id: str
    reviewed_at: dt.datetime
    quality: int
    response_time_ms: int
    was_revealed: bool


class DashboardResponse(BaseModel):
    total_questions: int
    total_studied: int
    total_mastered: int
    streak_days: int
    last_study_date: Optional[dt.date] = None
    due_counts: Dict[str, int] = Field(default_factory=dict)
    categories: List[CategoryProgressOut] = Field(default_factory=list)
    recent_reviews: List[RecentReviewOut] = Field(default_factory=list)


class ResetProgressResponse(BaseModel):
    question_id: str
    state: ReviewStateOut


class InterviewQuestionResponse(BaseModel):
    question_id: Optional[str] = None
    bucket: Optional[str] = None
    message: Optional[str] = None
    done: bool = False


class InterviewFeedbackRequest(BaseModel):
    question_id: str
    answer: str = Field(..., min_length=1, description="The candidate's free-text answer")


class InterviewFeedbackResponse(BaseModel):
    question_id: str
    suggested_quality: int = Field(..., ge=0, le=5)
    verdict: str
    strengths: List[str] = Field(default_factory=list)
    improvements: List[str] = Field(default_factory=list)
    summary: str = ""
