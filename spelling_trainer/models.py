from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime


@dataclass
class Unit:
    id: str
    number: int
    title: str
    difficulty: str  # Beginner | Intermediate | Advanced
    description: str | None = None
    word_count: int = 0


@dataclass
class Word:
    id: str
    unit_id: str
    word: str
    phonetic: str | None = None
    definition: str | None = None
    paper_number: int | None = None  # test paper assigned by the source word list


@dataclass
class UserProgress:
    unit_id: str
    user_id: str
    completed_words: int = 0
    total_attempts: int = 0
    correct_attempts: int = 0
    last_practiced_at: datetime | None = None


@dataclass
class PracticeAttempt:
    id: str
    word_id: str
    user_id: str
    user_spelling: str
    is_correct: bool
    attempted_at: datetime


@dataclass
class ErrorWord:
    id: str
    word_id: str
    user_id: str
    user_spelling: str  # most recent misspelling only
    attempt_count: int
    last_attempted_at: datetime
    resolved: bool = False


@dataclass
class TestPaper:
    __test__ = False  # keep pytest from collecting it

    id: str
    unit_id: str
    paper_number: int
    title: str
    words_per_paper: int
    word_ids: list[str]
    created_at: datetime


@dataclass
class PracticeSettings:
    user_id: str
    play_audio_automatically: bool = True
    show_definitions: bool = True
    practice_speed: str = "normal"  # slow | normal | fast


@dataclass
class Verdict:
    is_correct: bool
    normalized_expected: str
    normalized_submitted: str


@dataclass
class AttemptResult:
    is_correct: bool
    correct_spelling: str
    user_spelling: str
    attempt_id: str
    progress: UserProgress


@dataclass
class WordListEntry:
    chapter: int
    word: str
    paper_number: int | None = None
    phonetic: str | None = None
    definition: str | None = None

