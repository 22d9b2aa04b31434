from __future__ import annotations

import sqlite3
import threading
import uuid
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path

from spelling_trainer.errors import StorageError
from spelling_trainer.models import (
    ErrorWord,
    PracticeAttempt,
    PracticeSettings,
    TestPaper,
    Unit,
    UserProgress,
    Word,
)

SCHEMA = """
CREATE TABLE IF NOT EXISTS units (
    id TEXT PRIMARY KEY,
    number INTEGER NOT NULL,
    title TEXT NOT NULL,
    description TEXT,
    difficulty TEXT NOT NULL,
    word_count INTEGER NOT NULL DEFAULT 0,
    source_file TEXT
);

CREATE TABLE IF NOT EXISTS words (
    id TEXT PRIMARY KEY,
    unit_id TEXT NOT NULL REFERENCES units(id),
    word TEXT NOT NULL,
    phonetic TEXT,
    definition TEXT,
    paper_number INTEGER
);
CREATE INDEX IF NOT EXISTS idx_words_unit ON words (unit_id);

CREATE TABLE IF NOT EXISTS user_progress (
    unit_id TEXT NOT NULL REFERENCES units(id),
    user_id TEXT NOT NULL,
    completed_words INTEGER NOT NULL DEFAULT 0,
    total_attempts INTEGER NOT NULL DEFAULT 0,
    correct_attempts INTEGER NOT NULL DEFAULT 0,
    last_practiced_at TEXT,
    PRIMARY KEY (unit_id, user_id)
);

CREATE TABLE IF NOT EXISTS practice_attempts (
    id TEXT PRIMARY KEY,
    word_id TEXT NOT NULL REFERENCES words(id),
    user_id TEXT NOT NULL,
    user_spelling TEXT NOT NULL,
    is_correct INTEGER NOT NULL,
    attempted_at TEXT NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_attempts_word_user
    ON practice_attempts (word_id, user_id);

CREATE TABLE IF NOT EXISTS error_words (
    id TEXT PRIMARY KEY,
    word_id TEXT NOT NULL REFERENCES words(id),
    user_id TEXT NOT NULL,
    user_spelling TEXT NOT NULL,
    attempt_count INTEGER NOT NULL DEFAULT 1,
    last_attempted_at TEXT NOT NULL,
    resolved INTEGER NOT NULL DEFAULT 0
);
CREATE INDEX IF NOT EXISTS idx_error_words_user ON error_words (user_id, resolved);
CREATE UNIQUE INDEX IF NOT EXISTS uq_error_words_open
    ON error_words (word_id, user_id) WHERE resolved = 0;

CREATE TABLE IF NOT EXISTS test_papers (
    id TEXT PRIMARY KEY,
    unit_id TEXT NOT NULL REFERENCES units(id),
    paper_number INTEGER NOT NULL,
    title TEXT NOT NULL,
    words_per_paper INTEGER NOT NULL,
    created_at TEXT NOT NULL,
    UNIQUE (unit_id, paper_number)
);

CREATE TABLE IF NOT EXISTS test_paper_words (
    test_paper_id TEXT NOT NULL REFERENCES test_papers(id),
    position INTEGER NOT NULL,
    word_id TEXT NOT NULL REFERENCES words(id),
    PRIMARY KEY (test_paper_id, position)
);

CREATE TABLE IF NOT EXISTS practice_settings (
    user_id TEXT PRIMARY KEY,
    play_audio_automatically INTEGER NOT NULL DEFAULT 1,
    show_definitions INTEGER NOT NULL DEFAULT 1,
    practice_speed TEXT NOT NULL DEFAULT 'normal'
);

CREATE TABLE IF NOT EXISTS file_mtimes (
    file_path TEXT PRIMARY KEY,
    mtime_ns INTEGER NOT NULL
);
"""


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _parse_ts(value: str | None) -> datetime | None:
    if value is None:
        return None
    ts = datetime.fromisoformat(value)
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=timezone.utc)
    return ts


def _new_id() -> str:
    return str(uuid.uuid4())


def _unit(row: sqlite3.Row) -> Unit:
    return Unit(
        id=row["id"],
        number=row["number"],
        title=row["title"],
        difficulty=row["difficulty"],
        description=row["description"],
        word_count=row["word_count"],
    )


def _word(row: sqlite3.Row, prefix: str = "") -> Word:
    return Word(
        id=row[prefix + "id"],
        unit_id=row[prefix + "unit_id"],
        word=row[prefix + "word"],
        phonetic=row[prefix + "phonetic"],
        definition=row[prefix + "definition"],
        paper_number=row[prefix + "paper_number"],
    )


def _progress(row: sqlite3.Row) -> UserProgress:
    return UserProgress(
        unit_id=row["unit_id"],
        user_id=row["user_id"],
        completed_words=row["completed_words"],
        total_attempts=row["total_attempts"],
        correct_attempts=row["correct_attempts"],
        last_practiced_at=_parse_ts(row["last_practiced_at"]),
    )


def _attempt(row: sqlite3.Row) -> PracticeAttempt:
    return PracticeAttempt(
        id=row["id"],
        word_id=row["word_id"],
        user_id=row["user_id"],
        user_spelling=row["user_spelling"],
        is_correct=bool(row["is_correct"]),
        attempted_at=_parse_ts(row["attempted_at"]),
    )


def _error_word(row: sqlite3.Row) -> ErrorWord:
    return ErrorWord(
        id=row["id"],
        word_id=row["word_id"],
        user_id=row["user_id"],
        user_spelling=row["user_spelling"],
        attempt_count=row["attempt_count"],
        last_attempted_at=_parse_ts(row["last_attempted_at"]),
        resolved=bool(row["resolved"]),
    )


class Database:
    """SQLite-backed entity store.

    One connection shared across threads, guarded by a re-entrant lock.
    Every write goes through :meth:`transaction`, which opens
    ``BEGIN IMMEDIATE`` at the outermost level so multi-step updates are
    applied (or rolled back) as a unit.
    """

    def __init__(self, db_path: Path | str):
        self.db_path = db_path
        self.conn = sqlite3.connect(
            str(db_path), check_same_thread=False, isolation_level=None
        )
        self.conn.row_factory = sqlite3.Row
        self.conn.execute("PRAGMA journal_mode=WAL")
        self._lock = threading.RLock()
        self._depth = 0
        self._init_schema()

    def _init_schema(self) -> None:
        with self._lock:
            self.conn.executescript(SCHEMA)

    def close(self) -> None:
        self.conn.close()

    # ── Transactions ──────────────────────────────────────────────────────

    @contextmanager
    def transaction(self) -> Iterator[None]:
        """Run the enclosed block atomically; nested blocks join the outer one."""
        with self._lock:
            if self._depth:
                self._depth += 1
                try:
                    yield
                finally:
                    self._depth -= 1
                return

            try:
                self.conn.execute("BEGIN IMMEDIATE")
            except sqlite3.Error as e:
                raise StorageError(f"Storage failure: {e}") from e
            self._depth = 1
            try:
                yield
            except sqlite3.Error as e:
                self.conn.execute("ROLLBACK")
                raise StorageError(f"Storage failure: {e}") from e
            except BaseException:
                self.conn.execute("ROLLBACK")
                raise
            else:
                try:
                    self.conn.execute("COMMIT")
                except sqlite3.Error as e:
                    self.conn.execute("ROLLBACK")
                    raise StorageError(f"Storage failure: {e}") from e
            finally:
                self._depth = 0

    def _fetchall(self, sql: str, params: tuple = ()) -> list[sqlite3.Row]:
        with self._lock:
            try:
                return self.conn.execute(sql, params).fetchall()
            except sqlite3.Error as e:
                raise StorageError(f"Storage failure: {e}") from e

    def _fetchone(self, sql: str, params: tuple = ()) -> sqlite3.Row | None:
        with self._lock:
            try:
                return self.conn.execute(sql, params).fetchone()
            except sqlite3.Error as e:
                raise StorageError(f"Storage failure: {e}") from e

    # ── Units ─────────────────────────────────────────────────────────────

    def create_unit(
        self,
        number: int,
        title: str,
        difficulty: str,
        description: str | None = None,
        source_file: str | None = None,
    ) -> Unit:
        unit = Unit(
            id=_new_id(),
            number=number,
            title=title,
            difficulty=difficulty,
            description=description,
        )
        with self.transaction():
            self.conn.execute(
                "INSERT INTO units (id, number, title, description, difficulty, "
                "word_count, source_file) VALUES (?, ?, ?, ?, ?, 0, ?)",
                (unit.id, number, title, description, difficulty, source_file),
            )
        return unit

    def get_units(self) -> list[Unit]:
        rows = self._fetchall("SELECT * FROM units ORDER BY number, rowid")
        return [_unit(r) for r in rows]

    def get_unit(self, unit_id: str) -> Unit | None:
        row = self._fetchone("SELECT * FROM units WHERE id = ?", (unit_id,))
        return _unit(row) if row else None

    def get_unit_by_number(self, number: int) -> Unit | None:
        row = self._fetchone(
            "SELECT * FROM units WHERE number = ? ORDER BY rowid LIMIT 1", (number,)
        )
        return _unit(row) if row else None

    def get_unit_count(self) -> int:
        return self._fetchone("SELECT COUNT(*) FROM units")[0]

    def get_unit_by_source(self, source_file: str, number: int) -> Unit | None:
        """The unit imported from chapter *number* of *source_file*, if any."""
        row = self._fetchone(
            "SELECT * FROM units WHERE source_file = ? AND number = ? "
            "ORDER BY rowid LIMIT 1",
            (source_file, number),
        )
        return _unit(row) if row else None

    # ── Words ─────────────────────────────────────────────────────────────

    def create_word(
        self,
        unit_id: str,
        word: str,
        phonetic: str | None = None,
        definition: str | None = None,
        paper_number: int | None = None,
    ) -> Word:
        w = Word(
            id=_new_id(),
            unit_id=unit_id,
            word=word,
            phonetic=phonetic,
            definition=definition,
            paper_number=paper_number,
        )
        with self.transaction():
            self.conn.execute(
                "INSERT INTO words (id, unit_id, word, phonetic, definition, paper_number) "
                "VALUES (?, ?, ?, ?, ?, ?)",
                (w.id, unit_id, word, phonetic, definition, paper_number),
            )
            # Cached count follows the word set
            self.conn.execute(
                "UPDATE units SET word_count = "
                "(SELECT COUNT(*) FROM words WHERE unit_id = ?) WHERE id = ?",
                (unit_id, unit_id),
            )
        return w

    def update_word_annotations(
        self,
        word_id: str,
        phonetic: str | None,
        definition: str | None,
        paper_number: int | None,
    ) -> None:
        """Refresh the source-supplied fields of a word; its id and spelling stay fixed."""
        with self.transaction():
            self.conn.execute(
                "UPDATE words SET phonetic = ?, definition = ?, paper_number = ? "
                "WHERE id = ?",
                (phonetic, definition, paper_number, word_id),
            )

    def get_word(self, word_id: str) -> Word | None:
        row = self._fetchone("SELECT * FROM words WHERE id = ?", (word_id,))
        return _word(row) if row else None

    def get_words_by_unit(self, unit_id: str) -> list[Word]:
        rows = self._fetchall(
            "SELECT * FROM words WHERE unit_id = ? ORDER BY rowid", (unit_id,)
        )
        return [_word(r) for r in rows]

    def get_word_count(self) -> int:
        return self._fetchone("SELECT COUNT(*) FROM words")[0]

    def get_random_words(
        self, count: int, exclude_unit_ids: list[str] | None = None
    ) -> list[Word]:
        if exclude_unit_ids:
            marks = ", ".join("?" for _ in exclude_unit_ids)
            rows = self._fetchall(
                f"SELECT * FROM words WHERE unit_id NOT IN ({marks}) "
                "ORDER BY RANDOM() LIMIT ?",
                (*exclude_unit_ids, count),
            )
        else:
            rows = self._fetchall(
                "SELECT * FROM words ORDER BY RANDOM() LIMIT ?", (count,)
            )
        return [_word(r) for r in rows]

    # ── User progress ─────────────────────────────────────────────────────

    def get_user_progress(self, unit_id: str, user_id: str) -> UserProgress | None:
        row = self._fetchone(
            "SELECT * FROM user_progress WHERE unit_id = ? AND user_id = ?",
            (unit_id, user_id),
        )
        return _progress(row) if row else None

    def upsert_user_progress(self, progress: UserProgress) -> None:
        last = progress.last_practiced_at.isoformat() if progress.last_practiced_at else None
        with self.transaction():
            self.conn.execute(
                "INSERT INTO user_progress (unit_id, user_id, completed_words, "
                "total_attempts, correct_attempts, last_practiced_at) "
                "VALUES (?, ?, ?, ?, ?, ?) "
                "ON CONFLICT (unit_id, user_id) DO UPDATE SET "
                "completed_words=excluded.completed_words, "
                "total_attempts=excluded.total_attempts, "
                "correct_attempts=excluded.correct_attempts, "
                "last_practiced_at=excluded.last_practiced_at",
                (
                    progress.unit_id,
                    progress.user_id,
                    progress.completed_words,
                    progress.total_attempts,
                    progress.correct_attempts,
                    last,
                ),
            )

    def get_all_user_progress(self, user_id: str) -> list[UserProgress]:
        rows = self._fetchall(
            "SELECT up.* FROM user_progress up "
            "LEFT JOIN units u ON u.id = up.unit_id "
            "WHERE up.user_id = ? ORDER BY u.number, up.rowid",
            (user_id,),
        )
        return [_progress(r) for r in rows]

    # ── Practice attempts (append-only) ───────────────────────────────────

    def create_practice_attempt(
        self, word_id: str, user_id: str, user_spelling: str, is_correct: bool
    ) -> PracticeAttempt:
        attempt = PracticeAttempt(
            id=_new_id(),
            word_id=word_id,
            user_id=user_id,
            user_spelling=user_spelling,
            is_correct=is_correct,
            attempted_at=_now(),
        )
        with self.transaction():
            self.conn.execute(
                "INSERT INTO practice_attempts "
                "(id, word_id, user_id, user_spelling, is_correct, attempted_at) "
                "VALUES (?, ?, ?, ?, ?, ?)",
                (
                    attempt.id,
                    word_id,
                    user_id,
                    user_spelling,
                    1 if is_correct else 0,
                    attempt.attempted_at.isoformat(),
                ),
            )
        return attempt

    def get_practice_attempts(self, word_id: str, user_id: str) -> list[PracticeAttempt]:
        rows = self._fetchall(
            "SELECT * FROM practice_attempts WHERE word_id = ? AND user_id = ? "
            "ORDER BY rowid",
            (word_id, user_id),
        )
        return [_attempt(r) for r in rows]

    def get_attempt_dates(self, user_id: str) -> list[str]:
        """Distinct UTC dates (YYYY-MM-DD) with at least one attempt, newest first."""
        rows = self._fetchall(
            "SELECT DISTINCT substr(attempted_at, 1, 10) AS day "
            "FROM practice_attempts WHERE user_id = ? ORDER BY day DESC",
            (user_id,),
        )
        return [r["day"] for r in rows]

    # ── Error words ───────────────────────────────────────────────────────

    def get_open_error_word(self, word_id: str, user_id: str) -> ErrorWord | None:
        row = self._fetchone(
            "SELECT * FROM error_words "
            "WHERE word_id = ? AND user_id = ? AND resolved = 0",
            (word_id, user_id),
        )
        return _error_word(row) if row else None

    def get_error_word(self, error_id: str) -> ErrorWord | None:
        row = self._fetchone("SELECT * FROM error_words WHERE id = ?", (error_id,))
        return _error_word(row) if row else None

    def create_error_word(
        self, word_id: str, user_id: str, user_spelling: str
    ) -> ErrorWord:
        err = ErrorWord(
            id=_new_id(),
            word_id=word_id,
            user_id=user_id,
            user_spelling=user_spelling,
            attempt_count=1,
            last_attempted_at=_now(),
        )
        with self.transaction():
            self.conn.execute(
                "INSERT INTO error_words (id, word_id, user_id, user_spelling, "
                "attempt_count, last_attempted_at, resolved) VALUES (?, ?, ?, ?, 1, ?, 0)",
                (err.id, word_id, user_id, user_spelling, err.last_attempted_at.isoformat()),
            )
        return err

    def bump_error_word(self, error_id: str, user_spelling: str) -> None:
        """Count another misspelling, keeping only the latest text."""
        with self.transaction():
            self.conn.execute(
                "UPDATE error_words SET attempt_count = attempt_count + 1, "
                "user_spelling = ?, last_attempted_at = ? WHERE id = ?",
                (user_spelling, _now().isoformat(), error_id),
            )

    def resolve_error_word(self, error_id: str) -> None:
        with self.transaction():
            self.conn.execute(
                "UPDATE error_words SET resolved = 1 WHERE id = ?", (error_id,)
            )

    def get_unresolved_error_rows(
        self, user_id: str
    ) -> list[tuple[ErrorWord, Word | None]]:
        """Unresolved errors in creation order, each paired with its word (None if gone)."""
        rows = self._fetchall(
            "SELECT e.*, w.id AS w_id, w.unit_id AS w_unit_id, w.word AS w_word, "
            "w.phonetic AS w_phonetic, w.definition AS w_definition, "
            "w.paper_number AS w_paper_number "
            "FROM error_words e LEFT JOIN words w ON w.id = e.word_id "
            "WHERE e.user_id = ? AND e.resolved = 0 "
            "ORDER BY e.rowid",
            (user_id,),
        )
        return [
            (_error_word(r), _word(r, prefix="w_") if r["w_id"] is not None else None)
            for r in rows
        ]

    # ── Test papers ───────────────────────────────────────────────────────

    def delete_test_papers(self, unit_id: str) -> int:
        """Drop every test paper of the unit. Returns how many were removed."""
        with self.transaction():
            self.conn.execute(
                "DELETE FROM test_paper_words WHERE test_paper_id IN "
                "(SELECT id FROM test_papers WHERE unit_id = ?)",
                (unit_id,),
            )
            cur = self.conn.execute(
                "DELETE FROM test_papers WHERE unit_id = ?", (unit_id,)
            )
        return cur.rowcount

    def replace_test_papers(
        self, unit_id: str, papers: list[tuple[int, str, int, list[str]]]
    ) -> list[TestPaper]:
        """Swap the unit's papers for *papers* in one transaction.

        Each entry is ``(paper_number, title, words_per_paper, word_ids)``.
        """
        created_at = _now()
        result: list[TestPaper] = []
        with self.transaction():
            self.delete_test_papers(unit_id)
            for number, title, per_paper, word_ids in papers:
                paper = TestPaper(
                    id=_new_id(),
                    unit_id=unit_id,
                    paper_number=number,
                    title=title,
                    words_per_paper=per_paper,
                    word_ids=list(word_ids),
                    created_at=created_at,
                )
                self.conn.execute(
                    "INSERT INTO test_papers (id, unit_id, paper_number, title, "
                    "words_per_paper, created_at) VALUES (?, ?, ?, ?, ?, ?)",
                    (paper.id, unit_id, number, title, per_paper, created_at.isoformat()),
                )
                self.conn.executemany(
                    "INSERT INTO test_paper_words (test_paper_id, position, word_id) "
                    "VALUES (?, ?, ?)",
                    [(paper.id, pos, wid) for pos, wid in enumerate(paper.word_ids)],
                )
                result.append(paper)
        return result

    def _paper_word_ids(self, paper_id: str) -> list[str]:
        rows = self._fetchall(
            "SELECT word_id FROM test_paper_words WHERE test_paper_id = ? "
            "ORDER BY position",
            (paper_id,),
        )
        return [r["word_id"] for r in rows]

    def _test_paper(self, row: sqlite3.Row) -> TestPaper:
        return TestPaper(
            id=row["id"],
            unit_id=row["unit_id"],
            paper_number=row["paper_number"],
            title=row["title"],
            words_per_paper=row["words_per_paper"],
            word_ids=self._paper_word_ids(row["id"]),
            created_at=_parse_ts(row["created_at"]),
        )

    def get_test_papers(self, unit_id: str) -> list[TestPaper]:
        # Held under the lock so a concurrent replace is never observed half-done
        with self._lock:
            rows = self._fetchall(
                "SELECT * FROM test_papers WHERE unit_id = ? ORDER BY paper_number",
                (unit_id,),
            )
            return [self._test_paper(r) for r in rows]

    def get_test_paper(self, paper_id: str) -> TestPaper | None:
        with self._lock:
            row = self._fetchone("SELECT * FROM test_papers WHERE id = ?", (paper_id,))
            return self._test_paper(row) if row else None

    def get_test_paper_words(self, paper_id: str) -> list[Word]:
        rows = self._fetchall(
            "SELECT w.* FROM test_paper_words tpw "
            "JOIN words w ON w.id = tpw.word_id "
            "WHERE tpw.test_paper_id = ? ORDER BY tpw.position",
            (paper_id,),
        )
        return [_word(r) for r in rows]

    # ── Practice settings ─────────────────────────────────────────────────

    def get_practice_settings(self, user_id: str) -> PracticeSettings | None:
        row = self._fetchone(
            "SELECT * FROM practice_settings WHERE user_id = ?", (user_id,)
        )
        if row is None:
            return None
        return PracticeSettings(
            user_id=row["user_id"],
            play_audio_automatically=bool(row["play_audio_automatically"]),
            show_definitions=bool(row["show_definitions"]),
            practice_speed=row["practice_speed"],
        )

    def upsert_practice_settings(self, settings: PracticeSettings) -> None:
        with self.transaction():
            self.conn.execute(
                "INSERT OR REPLACE INTO practice_settings "
                "(user_id, play_audio_automatically, show_definitions, practice_speed) "
                "VALUES (?, ?, ?, ?)",
                (
                    settings.user_id,
                    1 if settings.play_audio_automatically else 0,
                    1 if settings.show_definitions else 0,
                    settings.practice_speed,
                ),
            )

    # ── File mtimes ───────────────────────────────────────────────────────

    def get_file_mtime(self, file_path: str) -> int | None:
        row = self._fetchone(
            "SELECT mtime_ns FROM file_mtimes WHERE file_path = ?", (file_path,)
        )
        return row[0] if row else None

    def set_file_mtime(self, file_path: str, mtime_ns: int) -> None:
        with self.transaction():
            self.conn.execute(
                "INSERT OR REPLACE INTO file_mtimes (file_path, mtime_ns) VALUES (?, ?)",
                (file_path, mtime_ns),
            )
