"""Per-unit progress counters updated from practice attempts."""
from __future__ import annotations

from datetime import datetime, timezone
from typing import TYPE_CHECKING

from spelling_trainer.models import UserProgress

if TYPE_CHECKING:
    from spelling_trainer.db import Database


def record_attempt(
    db: Database,
    unit_id: str,
    user_id: str,
    word_id: str,
    is_correct: bool,
    attempt_id: str | None = None,
) -> UserProgress:
    """Fold one attempt into the (unit, user) progress record.

    ``completed_words`` counts distinct words with at least one correct
    attempt, so it only moves on a word's first-ever correct attempt.
    *attempt_id* is the attempt being recorded, if it is already in the log;
    it is left out of that check so the attempt is not counted against itself.

    Returns the updated record.
    """
    with db.transaction():
        progress = db.get_user_progress(unit_id, user_id)
        if progress is None:
            progress = UserProgress(unit_id=unit_id, user_id=user_id)

        progress.total_attempts += 1
        if is_correct:
            progress.correct_attempts += 1
            prior = [
                a for a in db.get_practice_attempts(word_id, user_id)
                if a.is_correct and a.id != attempt_id
            ]
            if not prior:
                progress.completed_words += 1
        progress.last_practiced_at = datetime.now(timezone.utc)

        db.upsert_user_progress(progress)
    return progress
