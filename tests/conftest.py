"""Shared test fixtures."""
from __future__ import annotations

import pytest

from spelling_trainer.db import Database
from spelling_trainer.models import WordListEntry

TRAVEL_WORDS = [
    ("accommodation", "/əˌkɑːməˈdeɪʃn/", "A place in which someone may live or stay"),
    ("departure", "/dɪˈpɑːrtʃər/", "The action of leaving to start a journey"),
    ("destination", "/ˌdestɪˈneɪʃn/", "The place to which someone is going"),
    ("itinerary", "/aɪˈtɪnəreri/", "A planned route or journey"),
    ("passenger", "/ˈpæsɪndʒər/", "A traveller other than the crew"),
    ("reservation", "/ˌrezərˈveɪʃn/", "A booking"),
    ("terminal", "/ˈtɜːrmɪnl/", "An airport building for passengers"),
    ("transport", "/ˈtrænspɔːrt/", "Carry people or goods by vehicle"),
    ("voyage", "/ˈvɔɪɪdʒ/", "A long journey by sea or in space"),
    ("luggage", "/ˈlʌɡɪdʒ/", "Bags packed for travelling"),
]


@pytest.fixture
def tmp_db(tmp_path):
    """Create a fresh temporary database."""
    db = Database(tmp_path / "test.db")
    yield db
    db.close()


@pytest.fixture
def travel_unit(tmp_db):
    """A unit with ten words, the last four assigned to predefined paper 2."""
    unit = tmp_db.create_unit(2, "Travel & Transport", "Beginner",
                              description="Travel and transportation vocabulary")
    for i, (word, phonetic, definition) in enumerate(TRAVEL_WORDS):
        tmp_db.create_word(unit.id, word, phonetic=phonetic, definition=definition,
                           paper_number=1 if i < 6 else 2)
    return tmp_db.get_unit(unit.id)


@pytest.fixture
def travel_words(tmp_db, travel_unit):
    return tmp_db.get_words_by_unit(travel_unit.id)


@pytest.fixture
def make_unit(tmp_db):
    """Factory: a unit holding *n* generated words."""
    def _make(n: int, title: str = "Chapter 7", number: int = 7):
        unit = tmp_db.create_unit(number, title, "Beginner")
        for i in range(n):
            tmp_db.create_word(unit.id, f"word{i:03d}")
        return tmp_db.get_unit(unit.id)
    return _make


@pytest.fixture
def sample_entries():
    """Parsed word-list rows spanning two chapters, with one duplicate."""
    return [
        WordListEntry(chapter=1, word="academic", paper_number=1),
        WordListEntry(chapter=1, word="analysis", paper_number=1),
        WordListEntry(chapter=1, word="concept", paper_number=2),
        WordListEntry(chapter=1, word="academic", paper_number=2),
        WordListEntry(chapter=12, word="laboratory", paper_number=1,
                      phonetic="/ˈlæbrətɔːri/", definition="A room for experiments"),
    ]


@pytest.fixture
def word_list_csv_content():
    """Minimal word-list export for parser testing."""
    return """\
chapter,test_paper,word,phonetic,definition
1,1,Academic ,/ˌækəˈdemɪk/,Relating to education
1,1,analysis,,
1.0,2.0,concept,/ˈkɑːnsept/,An abstract idea
,3,orphan,,
2,,voyage
3,1,
"""
