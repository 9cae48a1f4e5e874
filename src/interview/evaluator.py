from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Protocol

from src.srs.state import MAX_QUALITY, MIN_QUALITY


class SupportsChat(Protocol):
    def chat(self, messages: List[Dict[str, str]], max_tokens: int = ..., temperature: float = ...) -> str:
        ...


@dataclass
class AnswerFeedback:
    suggested_quality: int
    verdict: str
    strengths: List[str] = field(default_factory=list)
    improvements: List[str] = field(default_factory=list)
    summary: str = ""


def _normalize_verdict(raw_verdict: str, *, quality: int) -> str:
    normalized = raw_verdict.strip().lower().replace("-", "_").replace(" ", "_")
    if "partial" in normalized:
        return "partially_correct"
    if "incorrect" in normalized or "wrong" in normalized:
        return "incorrect"
    if normalized == "correct":
        return "correct"
    if quality >= 5:
        return "correct"
    if quality >= 3:
        return "partially_correct"
    return "incorrect"


def _coerce_string_list(value: Any) -> List[str]:
    if not isinstance(value, list):
        if isinstance(value, str) and value.strip():
            return [value.strip()]
        return []
    return [str(item).strip() for item in value if str(item).strip()]


def _build_prompt(
    *,
    question: str,
    reference_answer: str,
    candidate_answer: str,
    category: Optional[str] = None,
) -> str:
    topic = category or "frontend engineering"
    return "\n".join(
        [
            f"You are evaluating a candidate's answer to a {topic} interview question.",
            "",
            """Compare the candidate's answer to the reference answer and rate recall quality from 0 to 5:
- 5: Perfect, complete answer with no hesitation.
- 4: Correct after some hesitation; minor gaps.
- 3: Correct but with serious difficulty; important points missing.
- 2: Incorrect, though the key idea is recognisable.
- 1: Incorrect; only a hint of the right idea.
- 0: No meaningful answer.

Respond with a single JSON object:
{
  "quality": <integer from 0 to 5>,
  "verdict": "correct" | "partially_correct" | "incorrect",
  "strengths": ["..."],
  "improvements": ["..."],
  "summary": "<one or two sentences of feedback>"
}

The JSON must be the only content in your reply.""",
            "",
            "Question:",
            question.strip(),
            "",
            "Reference answer:",
            reference_answer.strip(),
            "",
            "Candidate answer:",
            candidate_answer.strip(),
            "",
            "JSON:",
        ]
    )


def evaluate_answer(
    client: SupportsChat,
    *,
    question: str,
    reference_answer: str,
    candidate_answer: str,
    category: Optional[str] = None,
) -> AnswerFeedback:
    """
    Ask the model to grade an answer and suggest an SM-2 quality rating.

    The suggestion is only shown to the user; it is never recorded as a
    review on its own.
    """
    prompt = _build_prompt(
        question=question,
        reference_answer=reference_answer,
        candidate_answer=candidate_answer,
        category=category,
    )
    raw = client.chat([{"role": "user", "content": prompt}], max_tokens=512, temperature=0.1)

    quality = 3
    verdict = ""
    strengths: List[str] = []
    improvements: List[str] = []
    summary = ""

    try:
        data: Dict[str, Any] = json.loads(raw)
        quality = int(data.get("quality", quality))
        verdict = str(data.get("verdict", verdict))
        strengths = _coerce_string_list(data.get("strengths"))
        improvements = _coerce_string_list(data.get("improvements"))
        summary = str(data.get("summary", "")).strip()
    except (ValueError, TypeError, AttributeError):
        # Not valid JSON; keep the neutral suggestion.
        pass

    quality = max(MIN_QUALITY, min(MAX_QUALITY, quality))
    return AnswerFeedback(
        suggested_quality=quality,
        verdict=_normalize_verdict(verdict, quality=quality),
        strengths=strengths,
        improvements=improvements,
        summary=summary,
    )
