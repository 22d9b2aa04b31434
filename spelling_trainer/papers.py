"""Test paper generation: split a unit's words into practice papers."""
from __future__ import annotations

import logging
import math
from collections.abc import Sequence
from typing import TYPE_CHECKING, TypeVar

from spelling_trainer.errors import InvalidArgumentError, NotFoundError
from spelling_trainer.models import TestPaper, Unit, Word

if TYPE_CHECKING:
    from spelling_trainer.db import Database

T = TypeVar("T")

log = logging.getLogger(__name__)


def partition(items: Sequence[T], size: int) -> list[list[T]]:
    """Chunk *items* into consecutive lists of *size*; the last may be shorter."""
    if size <= 0:
        raise InvalidArgumentError(f"words_per_paper must be positive, got {size}")
    count = math.ceil(len(items) / size)
    return [list(items[i * size : min((i + 1) * size, len(items))]) for i in range(count)]


def paper_title(unit: Unit, number: int) -> str:
    return f"{unit.title} - Test {number}"


def _require_unit(db: Database, unit_id: str) -> Unit:
    unit = db.get_unit(unit_id)
    if unit is None:
        raise NotFoundError(f"Unit not found: {unit_id}")
    return unit


def generate(db: Database, unit_id: str, words_per_paper: int) -> list[TestPaper]:
    """Replace the unit's papers with uniform chunks of *words_per_paper* words."""
    if words_per_paper <= 0:
        raise InvalidArgumentError(
            f"words_per_paper must be positive, got {words_per_paper}"
        )
    with db.transaction():
        unit = _require_unit(db, unit_id)
        words = db.get_words_by_unit(unit_id)
        chunks = partition([w.id for w in words], words_per_paper)
        papers = db.replace_test_papers(
            unit_id,
            [
                (i + 1, paper_title(unit, i + 1), words_per_paper, chunk)
                for i, chunk in enumerate(chunks)
            ],
        )
    log.info(
        "Generated %d test papers for %s (%d words, %d per paper)",
        len(papers), unit.title, len(words), words_per_paper,
    )
    return papers


def group_by_predefined_paper(words: Sequence[Word]) -> dict[int, list[Word]]:
    """Group words by their source-assigned paper number, papers in ascending order.

    Words without a paper number are dropped; order within a paper is kept.
    """
    groups: dict[int, list[Word]] = {}
    for w in words:
        if w.paper_number is None:
            continue
        groups.setdefault(w.paper_number, []).append(w)
    return dict(sorted(groups.items()))


def generate_from_predefined_structure(db: Database, unit_id: str) -> list[TestPaper]:
    """Replace the unit's papers with the paper membership from its word list."""
    with db.transaction():
        unit = _require_unit(db, unit_id)
        words = db.get_words_by_unit(unit_id)
        groups = group_by_predefined_paper(words)
        if words and not groups:
            raise InvalidArgumentError(
                f"Unit {unit.title!r} has no predefined test paper structure"
            )
        target = max((len(g) for g in groups.values()), default=0)
        papers = db.replace_test_papers(
            unit_id,
            [
                (number, paper_title(unit, number), target, [w.id for w in group])
                for number, group in groups.items()
            ],
        )
    log.info("Built %d predefined test papers for %s", len(papers), unit.title)
    return papers


def list_test_papers(db: Database, unit_id: str) -> list[TestPaper]:
    _require_unit(db, unit_id)
    return db.get_test_papers(unit_id)


def get_test_paper_words(db: Database, test_paper_id: str) -> list[Word]:
    if db.get_test_paper(test_paper_id) is None:
        raise NotFoundError(f"Test paper not found: {test_paper_id}")
    return db.get_test_paper_words(test_paper_id)
