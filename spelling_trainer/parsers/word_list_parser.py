"""Parse spelling word lists exported from the source workbook.

One row per word, in the workbook's column order:
  chapter, test_paper, word[, phonetic, definition]

The first row is a header. Rows missing a chapter or a word are skipped;
a blank test_paper leaves the word off every predefined paper.
"""
from __future__ import annotations

import csv
import logging
from pathlib import Path

from spelling_trainer.models import WordListEntry

log = logging.getLogger(__name__)


def _int_or_none(value: str) -> int | None:
    value = value.strip()
    if not value:
        return None
    # Spreadsheet exports write whole numbers as "3.0"
    return int(float(value))


def _optional(row: list[str], index: int) -> str | None:
    if index < len(row) and row[index].strip():
        return row[index].strip()
    return None


def parse_word_list_file(path: Path) -> list[WordListEntry]:
    entries: list[WordListEntry] = []
    with path.open(newline="", encoding="utf-8-sig") as f:
        rows = list(csv.reader(f))

    for line_no, row in enumerate(rows[1:], start=2):
        if len(row) < 3 or not row[0].strip() or not row[2].strip():
            continue
        try:
            chapter = _int_or_none(row[0])
            paper_number = _int_or_none(row[1])
        except ValueError:
            log.warning("%s:%d: unreadable chapter/test paper %r, skipped",
                        path.name, line_no, row[:2])
            continue
        entries.append(WordListEntry(
            chapter=chapter,
            word=row[2].strip().lower(),
            paper_number=paper_number,
            phonetic=_optional(row, 3),
            definition=_optional(row, 4),
        ))

    return entries
