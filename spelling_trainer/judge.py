"""Spelling comparison."""
from __future__ import annotations

from spelling_trainer.models import Verdict


def judge(expected: str, submitted: str) -> Verdict:
    """Compare a submitted spelling against the expected word.

    Surrounding whitespace on the submission is ignored and both sides are
    compared case-insensitively. No fuzzy matching or partial credit.
    """
    normalized_expected = expected.lower()
    normalized_submitted = submitted.strip().lower()
    return Verdict(
        is_correct=normalized_expected == normalized_submitted,
        normalized_expected=normalized_expected,
        normalized_submitted=normalized_submitted,
    )
