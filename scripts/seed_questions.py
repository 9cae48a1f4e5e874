"""
Utility script for seeding study questions from a JSONL file.

Two modes:
- Default (dry-run): summarize the questions file (counts by category and
  difficulty), no DB writes.
- Apply mode (--apply): create questions, each with a fresh review state,
  in the database.

Each line is a JSON object with at least "category", "question" and
"answer"; "difficulty" and "tags" are optional.
"""

from __future__ import annotations

import argparse
import asyncio
import json
from collections import Counter
from pathlib import Path
from typing import Dict, List, Optional

from sqlalchemy import select

from src.db.models import Question
from src.db.progress_store import SQLProgressStore
from src.db.session import create_session_factory


def load_questions(path: Path) -> List[Dict]:
    questions: List[Dict] = []
    with path.open("r", encoding="utf-8") as f:
        for line in f:
            line = line.strip()
            if not line or line.startswith("#") or line.startswith("//"):
                continue
            try:
                questions.append(json.loads(line))
            except json.JSONDecodeError:
                # Ignore malformed lines in dry-run mode
                continue
    return questions


def summarize_questions(questions: List[Dict]) -> None:
    total = len(questions)
    print(f"Loaded {total} questions")
    if total == 0:
        return

    by_category: Counter = Counter(q.get("category", "unknown") for q in questions)
    by_difficulty: Counter = Counter(q.get("difficulty", "unknown") for q in questions)

    print("\nBy category:")
    for name, count in sorted(by_category.items()):
        pct = (count / total) * 100
        print(f"  {name:24s}: {count:5d} ({pct:5.1f}%)")

    print("\nBy difficulty:")
    for name, count in sorted(by_difficulty.items()):
        pct = (count / total) * 100
        print(f"  {name:10s}: {count:5d} ({pct:5.1f}%)")


async def apply_seed(questions: List[Dict], database_url: Optional[str] = None) -> None:
    """
    Create questions and their initial progress rows.
    """
    if not questions:
        print("No questions to seed.")
        return

    session_factory = create_session_factory(database_url)
    store = SQLProgressStore(session_factory)

    async with session_factory() as session:
        result = await session.execute(select(Question.question))
        existing = set(result.scalars().all())

    inserted = 0
    skipped_existing = 0
    skipped_incomplete = 0

    for q in questions:
        category = q.get("category")
        question = q.get("question")
        answer = q.get("answer")
        if not category or not question or not answer:
            skipped_incomplete += 1
            continue
        if question in existing:
            skipped_existing += 1
            continue

        tags = q.get("tags")
        await store.add_question(
            category=category,
            question=question,
            answer=answer,
            difficulty=q.get("difficulty"),
            tags=",".join(tags) if isinstance(tags, list) else tags,
        )
        existing.add(question)
        inserted += 1

    print("\nSeeding complete.")
    print(f"  Inserted questions:    {inserted}")
    print(f"  Skipped existing:      {skipped_existing}")
    print(f"  Skipped incomplete:    {skipped_incomplete}")


def main() -> None:
    parser = argparse.ArgumentParser(
        description="Summarize or seed study questions from a JSONL file.",
    )
    parser.add_argument(
        "--input",
        type=Path,
        default=Path("data/questions.jsonl"),
        help="Path to questions JSONL file",
    )
    parser.add_argument(
        "--apply",
        action="store_true",
        help="Apply changes to the database. Without this flag, runs in dry-run mode.",
    )
    parser.add_argument(
        "--database-url",
        default=None,
        help="Async SQLAlchemy URL (defaults to DATABASE_URL)",
    )
    args = parser.parse_args()

    if not args.input.exists():
        print(f"Error: input file not found: {args.input}")
        return

    print(f"Loading questions from {args.input}...")
    questions = load_questions(args.input)
    summarize_questions(questions)

    if not args.apply:
        print("\nDry run complete. No database changes were made.")
        return

    print("\nApply mode enabled: seeding questions into the database...")
    asyncio.run(apply_seed(questions, args.database_url))


if __name__ == "__main__":
    main()
