"""FastAPI application with all routes."""
from __future__ import annotations

import logging
import os
from dataclasses import asdict

logging.basicConfig(level=logging.INFO, format="%(name)s | %(message)s")

from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse

from spelling_trainer import papers, practice
from spelling_trainer.config import Settings, load_settings
from spelling_trainer.db import Database
from spelling_trainer.errors import InvalidArgumentError, NotFoundError, StorageError
from spelling_trainer.importer import import_file, import_if_changed
from spelling_trainer.models import PracticeSettings

app = FastAPI(title="Spelling Trainer")

# Global state (initialized in startup)
_db: Database | None = None
_settings: Settings | None = None

PRACTICE_SPEEDS = ("slow", "normal", "fast")

log = logging.getLogger("spelling_trainer.api")


def get_db() -> Database:
    assert _db is not None
    return _db


def get_settings() -> Settings:
    assert _settings is not None
    return _settings


def _user_id(request: Request) -> str:
    return request.headers.get("x-user-id") or get_settings().default_user


async def _json_body(request: Request) -> dict:
    if not await request.body():
        return {}
    body = await request.json()
    if not isinstance(body, dict):
        raise HTTPException(400, "Expected a JSON object")
    return body


@app.on_event("startup")
async def startup():
    global _db, _settings
    if _db is not None:
        return  # Already initialized (e.g. by tests)
    _settings = load_settings()
    logging.getLogger().setLevel(_settings.log_level)
    _db = Database(_settings.db_full_path)
    if not os.environ.get("SPELLING_TRAINER_NO_AUTO_IMPORT"):
        import_if_changed(_db, _settings.resolved_word_list_files())


@app.on_event("shutdown")
async def shutdown():
    if _db:
        _db.close()


# ── Error mapping ─────────────────────────────────────────────────────────

@app.exception_handler(NotFoundError)
async def not_found_handler(request: Request, exc: NotFoundError):
    return JSONResponse(status_code=404, content={"detail": str(exc)})


@app.exception_handler(InvalidArgumentError)
async def invalid_argument_handler(request: Request, exc: InvalidArgumentError):
    return JSONResponse(status_code=400, content={"detail": str(exc)})


@app.exception_handler(StorageError)
async def storage_error_handler(request: Request, exc: StorageError):
    log.error("%s %s failed: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=500, content={"detail": "Storage failure"})


# ── API: Units & words ────────────────────────────────────────────────────

@app.get("/api/units")
async def api_units():
    return [asdict(u) for u in get_db().get_units()]


@app.get("/api/units/{unit_id}")
async def api_unit(unit_id: str):
    unit = get_db().get_unit(unit_id)
    if unit is None:
        raise HTTPException(404, "Unit not found")
    return asdict(unit)


@app.get("/api/units/{unit_id}/words")
async def api_unit_words(unit_id: str):
    db = get_db()
    if db.get_unit(unit_id) is None:
        raise HTTPException(404, "Unit not found")
    return [asdict(w) for w in db.get_words_by_unit(unit_id)]


@app.get("/api/words/random")
async def api_random_words(count: int | None = None, exclude_units: str | None = None):
    if count is None:
        count = get_settings().random_word_count
    if count <= 0:
        raise HTTPException(400, "count must be positive")
    exclude = [u for u in exclude_units.split(",") if u] if exclude_units else None
    return [asdict(w) for w in get_db().get_random_words(count, exclude)]


# ── API: Progress ─────────────────────────────────────────────────────────

@app.get("/api/progress")
async def api_progress(request: Request):
    return [asdict(p) for p in practice.list_all_progress(get_db(), _user_id(request))]


@app.get("/api/progress/{unit_id}")
async def api_unit_progress(unit_id: str, request: Request):
    progress = practice.get_progress(get_db(), unit_id, _user_id(request))
    return asdict(progress) if progress else None


# ── API: Practice ─────────────────────────────────────────────────────────

@app.post("/api/practice-attempts")
async def api_practice_attempt(request: Request):
    body = await _json_body(request)
    word_id = body.get("word_id")
    user_spelling = body.get("user_spelling")
    if not isinstance(word_id, str) or not isinstance(user_spelling, str):
        raise HTTPException(400, "word_id and user_spelling are required")

    result = practice.submit_attempt(get_db(), word_id, _user_id(request), user_spelling)
    return asdict(result)


@app.post("/api/spell-check")
async def api_spell_check(request: Request):
    body = await _json_body(request)
    word_id = body.get("word_id")
    user_spelling = body.get("user_spelling")
    if not isinstance(word_id, str) or not isinstance(user_spelling, str):
        raise HTTPException(400, "word_id and user_spelling are required")

    db = get_db()
    verdict = practice.check_spelling(db, word_id, user_spelling)
    return {
        "is_correct": verdict.is_correct,
        "correct_spelling": db.get_word(word_id).word,
        "user_spelling": user_spelling.strip(),
    }


@app.get("/api/error-words")
async def api_error_words(request: Request):
    active = practice.list_active_errors(get_db(), _user_id(request))
    return [{"error_word": asdict(e), "word": asdict(w)} for e, w in active]


@app.get("/api/stats")
async def api_stats(request: Request):
    return practice.get_stats(get_db(), _user_id(request))


# ── API: Practice settings ────────────────────────────────────────────────

@app.get("/api/settings")
async def api_get_settings(request: Request):
    user_id = _user_id(request)
    settings = get_db().get_practice_settings(user_id) or PracticeSettings(user_id=user_id)
    return asdict(settings)


@app.put("/api/settings")
async def api_update_settings(request: Request):
    body = await _json_body(request)
    user_id = _user_id(request)
    db = get_db()
    settings = db.get_practice_settings(user_id) or PracticeSettings(user_id=user_id)

    for key in ("play_audio_automatically", "show_definitions"):
        if key in body:
            if not isinstance(body[key], bool):
                raise InvalidArgumentError(f"{key} must be a boolean")
            setattr(settings, key, body[key])
    if "practice_speed" in body:
        if body["practice_speed"] not in PRACTICE_SPEEDS:
            raise InvalidArgumentError(
                f"practice_speed must be one of {', '.join(PRACTICE_SPEEDS)}"
            )
        settings.practice_speed = body["practice_speed"]

    db.upsert_practice_settings(settings)
    return asdict(settings)


# ── API: Test papers ──────────────────────────────────────────────────────

@app.get("/api/units/{unit_id}/test-papers")
async def api_test_papers(unit_id: str):
    return [asdict(p) for p in papers.list_test_papers(get_db(), unit_id)]


@app.post("/api/units/{unit_id}/generate-test-papers")
async def api_generate_test_papers(unit_id: str, request: Request):
    body = await _json_body(request)
    s = get_settings()
    words_per_paper = body.get("words_per_paper", s.words_per_paper)
    use_predefined = body.get("use_predefined", s.use_predefined_papers)
    if isinstance(words_per_paper, bool) or not isinstance(words_per_paper, int):
        raise HTTPException(400, "words_per_paper must be an integer")
    if not isinstance(use_predefined, bool):
        raise HTTPException(400, "use_predefined must be a boolean")

    generated = practice.generate_test_papers(
        get_db(), unit_id, words_per_paper, use_predefined
    )
    return [asdict(p) for p in generated]


@app.get("/api/test-papers/{test_paper_id}/words")
async def api_test_paper_words(test_paper_id: str):
    return [asdict(w) for w in practice.get_test_paper_words(get_db(), test_paper_id)]


# ── API: Import ───────────────────────────────────────────────────────────

@app.post("/api/import")
async def api_import():
    db = get_db()
    total_units = 0
    for wf in get_settings().resolved_word_list_files():
        if not wf.exists():
            continue
        total_units += import_file(db, wf)

    return {
        "units_imported": total_units,
        "total_units": db.get_unit_count(),
        "total_words": db.get_word_count(),
    }
