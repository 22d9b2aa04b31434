"""Practice operations exposed to the HTTP layer and the CLI.

Composes the spelling judge, progress ledger, error tracker and test paper
generation over a :class:`~spelling_trainer.db.Database`.
"""
from __future__ import annotations

import logging
from datetime import date, datetime, timedelta, timezone
from typing import TYPE_CHECKING

from spelling_trainer import error_tracker, papers, progress
from spelling_trainer.errors import InvalidArgumentError, NotFoundError
from spelling_trainer.judge import judge
from spelling_trainer.models import (
    AttemptResult,
    ErrorWord,
    TestPaper,
    UserProgress,
    Verdict,
    Word,
)

if TYPE_CHECKING:
    from spelling_trainer.db import Database

log = logging.getLogger(__name__)


def _require_word(db: Database, word_id: str) -> Word:
    word = db.get_word(word_id)
    if word is None:
        raise NotFoundError(f"Word not found: {word_id}")
    return word


def submit_attempt(
    db: Database, word_id: str, user_id: str, submitted_text: str
) -> AttemptResult:
    """Judge a spelling, log it, and update progress and the error ledger."""
    if not submitted_text or not submitted_text.strip():
        raise InvalidArgumentError("Submitted spelling is empty")
    word = _require_word(db, word_id)
    verdict = judge(word.word, submitted_text)

    with db.transaction():
        attempt = db.create_practice_attempt(
            word_id, user_id, submitted_text, verdict.is_correct
        )
        updated = progress.record_attempt(
            db, word.unit_id, user_id, word_id, verdict.is_correct,
            attempt_id=attempt.id,
        )
        error_tracker.on_attempt(
            db, word_id, user_id, submitted_text, verdict.is_correct
        )

    log.debug(
        "Attempt %s by %s on %r: %s",
        attempt.id, user_id, word.word, "correct" if verdict.is_correct else "wrong",
    )
    return AttemptResult(
        is_correct=verdict.is_correct,
        correct_spelling=word.word,
        user_spelling=submitted_text.strip(),
        attempt_id=attempt.id,
        progress=updated,
    )


def check_spelling(db: Database, word_id: str, submitted_text: str) -> Verdict:
    """Judge a spelling without recording anything."""
    word = _require_word(db, word_id)
    return judge(word.word, submitted_text)


def list_active_errors(db: Database, user_id: str) -> list[tuple[ErrorWord, Word]]:
    return error_tracker.list_active_errors(db, user_id)


def get_progress(db: Database, unit_id: str, user_id: str) -> UserProgress | None:
    return db.get_user_progress(unit_id, user_id)


def list_all_progress(db: Database, user_id: str) -> list[UserProgress]:
    return db.get_all_user_progress(user_id)


def generate_test_papers(
    db: Database, unit_id: str, words_per_paper: int, use_predefined: bool
) -> list[TestPaper]:
    if use_predefined:
        return papers.generate_from_predefined_structure(db, unit_id)
    return papers.generate(db, unit_id, words_per_paper)


def get_test_paper_words(db: Database, test_paper_id: str) -> list[Word]:
    return papers.get_test_paper_words(db, test_paper_id)


def current_streak(days: list[str], today: date | None = None) -> int:
    """Length of the run of consecutive practice days ending today or yesterday.

    *days* are ISO dates, newest first.
    """
    today = today or datetime.now(timezone.utc).date()
    practiced = {date.fromisoformat(d) for d in days}
    cursor = today if today in practiced else today - timedelta(days=1)
    streak = 0
    while cursor in practiced:
        streak += 1
        cursor -= timedelta(days=1)
    return streak


def get_stats(db: Database, user_id: str) -> dict:
    units = db.get_units()
    all_progress = db.get_all_user_progress(user_id)
    active_errors = error_tracker.list_active_errors(db, user_id)

    total_attempts = sum(p.total_attempts for p in all_progress)
    correct_attempts = sum(p.correct_attempts for p in all_progress)

    return {
        "total_units": len(units),
        "total_words": sum(u.word_count for u in units),
        "mastered_words": sum(p.completed_words for p in all_progress),
        "error_words": len(active_errors),
        "total_attempts": total_attempts,
        "correct_attempts": correct_attempts,
        "current_streak": current_streak(db.get_attempt_dates(user_id)),
        "overall_accuracy": (
            round(correct_attempts / total_attempts * 100)
            if total_attempts > 0
            else 0
        ),
    }
