"""Load parsed word lists into the store, one unit per chapter."""
from __future__ import annotations

import logging
from pathlib import Path
from typing import TYPE_CHECKING

from spelling_trainer.models import WordListEntry
from spelling_trainer.parsers.word_list_parser import parse_word_list_file

if TYPE_CHECKING:
    from spelling_trainer.db import Database

log = logging.getLogger("auto-import")


def difficulty_for_chapter(chapter: int) -> str:
    if chapter >= 20:
        return "Advanced"
    if chapter >= 10:
        return "Intermediate"
    return "Beginner"


def import_word_list(
    db: Database, entries: list[WordListEntry], source_file: str
) -> int:
    """Merge *entries* into the units previously imported from *source_file*.

    Units are matched by chapter and words by spelling, so ids (and every
    attempt, error and progress row hanging off them) survive a re-import.
    New words are added, known words get their phonetic, definition and
    paper number refreshed, and words missing from the list are kept.
    A unit whose paper membership changed loses its generated test papers.
    Duplicate words within a chapter keep their first occurrence.

    Returns the number of chapters imported.
    """
    chapters: dict[int, dict[str, WordListEntry]] = {}
    for e in entries:
        chapters.setdefault(e.chapter, {}).setdefault(e.word, e)

    with db.transaction():
        for number in sorted(chapters):
            unit = db.get_unit_by_source(source_file, number)
            if unit is None:
                unit = db.create_unit(
                    number=number,
                    title=f"Chapter {number}",
                    difficulty=difficulty_for_chapter(number),
                    description=f"Spelling vocabulary from {source_file}, chapter {number}",
                    source_file=source_file,
                )
            known = {w.word: w for w in db.get_words_by_unit(unit.id)}

            membership_changed = False
            for e in chapters[number].values():
                current = known.pop(e.word, None)
                if current is None:
                    db.create_word(
                        unit.id,
                        e.word,
                        phonetic=e.phonetic,
                        definition=e.definition,
                        paper_number=e.paper_number,
                    )
                    membership_changed = True
                elif (current.phonetic, current.definition, current.paper_number) != (
                    e.phonetic, e.definition, e.paper_number
                ):
                    db.update_word_annotations(
                        current.id, e.phonetic, e.definition, e.paper_number
                    )
                    if current.paper_number != e.paper_number:
                        membership_changed = True

            if known:
                log.info("  %s: %d words no longer listed, kept",
                         unit.title, len(known))
            if membership_changed:
                dropped = db.delete_test_papers(unit.id)
                if dropped:
                    log.info("  %s: dropped %d stale test papers", unit.title, dropped)
    return len(chapters)


def import_file(db: Database, path: Path) -> int:
    entries = parse_word_list_file(path)
    n = import_word_list(db, entries, path.name)
    db.set_file_mtime(str(path), path.stat().st_mtime_ns)
    return n


def import_if_changed(db: Database, files: list[Path]) -> int:
    """Re-import word lists whose mtime has changed since the last import."""
    imported = 0
    for wf in files:
        if not wf.exists():
            continue
        current_mtime = wf.stat().st_mtime_ns
        if db.get_file_mtime(str(wf)) == current_mtime:
            continue
        log.info("Changed: %s, re-importing", wf.name)
        n = import_file(db, wf)
        log.info("  %d units imported", n)
        imported += n
    return imported
