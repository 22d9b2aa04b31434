"""Open-error ledger: words a user has misspelled and not yet corrected.

Each (word, user) pair is either clean or has exactly one unresolved
ErrorWord. Misspellings open or bump it; the next correct attempt resolves
it. Resolved rows stay in the table as history.
"""
from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from spelling_trainer.models import ErrorWord, Word

if TYPE_CHECKING:
    from spelling_trainer.db import Database

log = logging.getLogger(__name__)


def on_attempt(
    db: Database,
    word_id: str,
    user_id: str,
    submitted_text: str,
    is_correct: bool,
) -> ErrorWord | None:
    """Apply one attempt to the ledger.

    Returns the error row as it stands afterwards, or None when a correct
    attempt found nothing open.
    """
    with db.transaction():
        open_error = db.get_open_error_word(word_id, user_id)
        if is_correct:
            if open_error is None:
                return None
            db.resolve_error_word(open_error.id)
            log.info(
                "Resolved error on word %s for %s after %d misses",
                word_id, user_id, open_error.attempt_count,
            )
            return db.get_error_word(open_error.id)
        if open_error is None:
            return db.create_error_word(word_id, user_id, submitted_text)
        db.bump_error_word(open_error.id, submitted_text)
        return db.get_error_word(open_error.id)


def list_active_errors(db: Database, user_id: str) -> list[tuple[ErrorWord, Word]]:
    """Unresolved errors for *user_id* with their words, in creation order.

    Errors pointing at a word that no longer exists are left out.
    """
    active: list[tuple[ErrorWord, Word]] = []
    for error, word in db.get_unresolved_error_rows(user_id):
        if word is None:
            log.debug("Skipping error %s: word %s not found", error.id, error.word_id)
            continue
        active.append((error, word))
    return active
