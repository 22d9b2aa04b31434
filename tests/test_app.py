"""Tests for the FastAPI application routes."""
from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from spelling_trainer import app as app_module
from spelling_trainer.app import app
from spelling_trainer.config import Settings
from spelling_trainer.db import Database
from spelling_trainer.errors import StorageError


@pytest.fixture
def test_app(tmp_path):
    """Set up test app with temporary database and settings."""
    db = Database(tmp_path / "test.db")
    settings = Settings(db_path=str(tmp_path / "test.db"), words_per_paper=4)

    # Set globals BEFORE creating TestClient so startup() is a no-op
    app_module._db = db
    app_module._settings = settings

    client = TestClient(app, raise_server_exceptions=False)
    yield client, db, settings
    client.close()

    db.close()
    app_module._db = None
    app_module._settings = None


@pytest.fixture
def test_app_with_data(test_app):
    """Test app with the travel unit loaded into the app's database."""
    client, db, settings = test_app
    unit = db.create_unit(2, "Travel & Transport", "Beginner")
    for i, word in enumerate(["accommodation", "departure", "destination",
                              "itinerary", "passenger", "voyage"]):
        db.create_word(unit.id, word, paper_number=1 if i < 4 else 2)
    return client, db, db.get_unit(unit.id)


class TestUnits:
    def test_empty(self, test_app):
        client, _, _ = test_app
        assert client.get("/api/units").json() == []

    def test_list_and_get(self, test_app_with_data):
        client, _, unit = test_app_with_data
        units = client.get("/api/units").json()
        assert [u["id"] for u in units] == [unit.id]
        assert units[0]["word_count"] == 6

        resp = client.get(f"/api/units/{unit.id}")
        assert resp.status_code == 200
        assert resp.json()["title"] == "Travel & Transport"

    def test_unknown_unit(self, test_app):
        client, _, _ = test_app
        resp = client.get("/api/units/missing")
        assert resp.status_code == 404
        assert "detail" in resp.json()

    def test_unit_words(self, test_app_with_data):
        client, _, unit = test_app_with_data
        words = client.get(f"/api/units/{unit.id}/words").json()
        assert [w["word"] for w in words][:2] == ["accommodation", "departure"]
        assert words[0]["paper_number"] == 1

    def test_unit_words_unknown_unit(self, test_app):
        client, _, _ = test_app
        assert client.get("/api/units/missing/words").status_code == 404


class TestRandomWords:
    def test_count(self, test_app_with_data):
        client, _, _ = test_app_with_data
        assert len(client.get("/api/words/random?count=3").json()) == 3

    def test_exclude_units(self, test_app_with_data):
        client, _, unit = test_app_with_data
        resp = client.get(f"/api/words/random?count=10&exclude_units={unit.id}")
        assert resp.json() == []

    def test_invalid_count(self, test_app):
        client, _, _ = test_app
        assert client.get("/api/words/random?count=0").status_code == 400


class TestPracticeAttempts:
    def _word(self, db, unit, index=0):
        return db.get_words_by_unit(unit.id)[index]

    def test_correct(self, test_app_with_data):
        client, db, unit = test_app_with_data
        word = self._word(db, unit)
        resp = client.post("/api/practice-attempts",
                           json={"word_id": word.id, "user_spelling": " Accommodation "},
                           headers={"X-User-Id": "ann"})
        assert resp.status_code == 200
        data = resp.json()
        assert data["is_correct"] is True
        assert data["correct_spelling"] == "accommodation"
        assert data["user_spelling"] == "Accommodation"
        assert data["progress"]["completed_words"] == 1
        assert data["progress"]["user_id"] == "ann"

    def test_wrong_then_listed_as_error(self, test_app_with_data):
        client, db, unit = test_app_with_data
        word = self._word(db, unit, 5)
        client.post("/api/practice-attempts",
                    json={"word_id": word.id, "user_spelling": "voyag"})

        errors = client.get("/api/error-words").json()
        assert len(errors) == 1
        assert errors[0]["word"]["word"] == "voyage"
        assert errors[0]["error_word"]["user_spelling"] == "voyag"
        assert errors[0]["error_word"]["attempt_count"] == 1

    def test_default_user(self, test_app_with_data):
        client, db, unit = test_app_with_data
        word = self._word(db, unit)
        client.post("/api/practice-attempts",
                    json={"word_id": word.id, "user_spelling": "accommodation"})
        assert db.get_user_progress(unit.id, "default_user").total_attempts == 1

    def test_empty_spelling(self, test_app_with_data):
        client, db, unit = test_app_with_data
        word = self._word(db, unit)
        resp = client.post("/api/practice-attempts",
                           json={"word_id": word.id, "user_spelling": "  "})
        assert resp.status_code == 400

    def test_missing_fields(self, test_app):
        client, _, _ = test_app
        resp = client.post("/api/practice-attempts", json={"word_id": "x"})
        assert resp.status_code == 400

    def test_unknown_word(self, test_app):
        client, _, _ = test_app
        resp = client.post("/api/practice-attempts",
                           json={"word_id": "missing", "user_spelling": "word"})
        assert resp.status_code == 404

    def test_spell_check_records_nothing(self, test_app_with_data):
        client, db, unit = test_app_with_data
        word = self._word(db, unit)
        resp = client.post("/api/spell-check",
                           json={"word_id": word.id, "user_spelling": "acomodation"})
        assert resp.json() == {
            "is_correct": False,
            "correct_spelling": "accommodation",
            "user_spelling": "acomodation",
        }
        assert db.get_practice_attempts(word.id, "default_user") == []


class TestProgress:
    def test_progress_after_attempt(self, test_app_with_data):
        client, db, unit = test_app_with_data
        word = db.get_words_by_unit(unit.id)[0]
        client.post("/api/practice-attempts",
                    json={"word_id": word.id, "user_spelling": "accommodation"})

        (p,) = client.get("/api/progress").json()
        assert p["unit_id"] == unit.id
        assert client.get(f"/api/progress/{unit.id}").json()["correct_attempts"] == 1

    def test_unit_progress_absent(self, test_app_with_data):
        client, _, unit = test_app_with_data
        resp = client.get(f"/api/progress/{unit.id}")
        assert resp.status_code == 200
        assert resp.json() is None

    def test_progress_is_per_user(self, test_app_with_data):
        client, db, unit = test_app_with_data
        word = db.get_words_by_unit(unit.id)[0]
        client.post("/api/practice-attempts",
                    json={"word_id": word.id, "user_spelling": "accommodation"},
                    headers={"X-User-Id": "bob"})
        assert client.get("/api/progress").json() == []


class TestStats:
    def test_empty_stats(self, test_app):
        client, _, _ = test_app
        data = client.get("/api/stats").json()
        assert data["total_units"] == 0
        assert data["overall_accuracy"] == 0

    def test_stats_with_data(self, test_app_with_data):
        client, db, unit = test_app_with_data
        words = db.get_words_by_unit(unit.id)
        client.post("/api/practice-attempts",
                    json={"word_id": words[0].id, "user_spelling": "accommodation"})
        client.post("/api/practice-attempts",
                    json={"word_id": words[1].id, "user_spelling": "departur"})

        data = client.get("/api/stats").json()
        assert data["total_words"] == 6
        assert data["mastered_words"] == 1
        assert data["error_words"] == 1
        assert data["overall_accuracy"] == 50
        assert data["current_streak"] == 1


class TestPracticeSettings:
    def test_get_defaults(self, test_app):
        client, _, _ = test_app
        data = client.get("/api/settings").json()
        assert data == {
            "user_id": "default_user",
            "play_audio_automatically": True,
            "show_definitions": True,
            "practice_speed": "normal",
        }

    def test_update_settings(self, test_app):
        client, db, _ = test_app
        resp = client.put("/api/settings", json={"practice_speed": "slow"},
                          headers={"X-User-Id": "ann"})
        assert resp.json()["practice_speed"] == "slow"
        assert db.get_practice_settings("ann").practice_speed == "slow"
        assert client.get("/api/settings").json()["practice_speed"] == "normal"

    def test_invalid_speed(self, test_app):
        client, _, _ = test_app
        resp = client.put("/api/settings", json={"practice_speed": "warp"})
        assert resp.status_code == 400

    def test_invalid_flag(self, test_app):
        client, _, _ = test_app
        resp = client.put("/api/settings", json={"show_definitions": "yes"})
        assert resp.status_code == 400


class TestTestPapers:
    def test_generate_uniform(self, test_app_with_data):
        client, _, unit = test_app_with_data
        resp = client.post(f"/api/units/{unit.id}/generate-test-papers",
                           json={"use_predefined": False})
        assert resp.status_code == 200
        assert [len(p["word_ids"]) for p in resp.json()] == [4, 2]

    def test_generate_predefined_by_default(self, test_app_with_data):
        client, _, unit = test_app_with_data
        resp = client.post(f"/api/units/{unit.id}/generate-test-papers")
        data = resp.json()
        assert [p["paper_number"] for p in data] == [1, 2]
        assert data[1]["title"] == "Travel & Transport - Test 2"

    def test_list_and_words(self, test_app_with_data):
        client, _, unit = test_app_with_data
        client.post(f"/api/units/{unit.id}/generate-test-papers",
                    json={"words_per_paper": 3, "use_predefined": False})

        listed = client.get(f"/api/units/{unit.id}/test-papers").json()
        assert len(listed) == 2
        words = client.get(f"/api/test-papers/{listed[1]['id']}/words").json()
        assert [w["word"] for w in words] == ["itinerary", "passenger", "voyage"]

    def test_invalid_size(self, test_app_with_data):
        client, _, unit = test_app_with_data
        resp = client.post(f"/api/units/{unit.id}/generate-test-papers",
                           json={"words_per_paper": 0, "use_predefined": False})
        assert resp.status_code == 400

    @pytest.mark.parametrize("value", ["false", 0, None])
    def test_use_predefined_must_be_boolean(self, test_app_with_data, value):
        client, db, unit = test_app_with_data
        client.post(f"/api/units/{unit.id}/generate-test-papers",
                    json={"words_per_paper": 3, "use_predefined": False})
        resp = client.post(f"/api/units/{unit.id}/generate-test-papers",
                           json={"words_per_paper": 2, "use_predefined": value})
        assert resp.status_code == 400
        assert [len(p.word_ids) for p in db.get_test_papers(unit.id)] == [3, 3]

    def test_unknown_unit(self, test_app):
        client, _, _ = test_app
        resp = client.post("/api/units/missing/generate-test-papers",
                           json={"use_predefined": False})
        assert resp.status_code == 404
        assert client.get("/api/units/missing/test-papers").status_code == 404

    def test_unknown_paper(self, test_app):
        client, _, _ = test_app
        assert client.get("/api/test-papers/missing/words").status_code == 404


class TestImport:
    def test_import_configured_files(self, test_app, tmp_path, word_list_csv_content):
        client, _, settings = test_app
        f = tmp_path / "words.csv"
        f.write_text(word_list_csv_content, encoding="utf-8")
        settings.word_list_files = [str(f)]

        data = client.post("/api/import").json()
        assert data == {"units_imported": 2, "total_units": 2, "total_words": 4}


class TestStorageFailure:
    def test_storage_error_maps_to_500(self, test_app, monkeypatch):
        client, db, _ = test_app

        def broken():
            raise StorageError("disk I/O error")

        monkeypatch.setattr(db, "get_units", broken)
        resp = client.get("/api/units")
        assert resp.status_code == 500
        assert resp.json() == {"detail": "Storage failure"}
