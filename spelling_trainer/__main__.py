"""CLI entry point for spelling-trainer.

Usage:
  python -m spelling_trainer serve [--port PORT] [--host HOST] [--no-auto-import]
  python -m spelling_trainer stop
  python -m spelling_trainer restart [--port PORT]
  python -m spelling_trainer status
  python -m spelling_trainer import
  python -m spelling_trainer papers [--unit NUMBER] [--size N] [--predefined]
  python -m spelling_trainer stats [--user USER]
"""
from __future__ import annotations

import os
import signal
import sys
from pathlib import Path

PID_FILE = Path(__file__).resolve().parent.parent / ".server.pid"


def main():
    args = sys.argv[1:]
    command = args[0] if args else "serve"

    if command == "serve":
        _serve(args[1:])
    elif command == "stop":
        _stop()
    elif command == "restart":
        _restart(args[1:])
    elif command == "status":
        _status()
    elif command == "import":
        _import_word_lists()
    elif command == "papers":
        _papers(args[1:])
    elif command == "stats":
        _stats(args[1:])
    else:
        print(f"Unknown command: {command}")
        print("Commands: serve, stop, restart, status, import, papers, stats")
        sys.exit(1)


def _parse_flag(args: list[str], name: str, default: str) -> str:
    for i, a in enumerate(args):
        if a == name and i + 1 < len(args):
            return args[i + 1]
    return default


def _read_pid() -> int | None:
    """Read PID from file, return None if stale or missing."""
    if not PID_FILE.exists():
        return None
    try:
        pid = int(PID_FILE.read_text().strip())
        os.kill(pid, 0)
        return pid
    except (ValueError, ProcessLookupError, PermissionError):
        PID_FILE.unlink(missing_ok=True)
        return None


def _stop() -> bool:
    """Stop a running server. Returns True if a server was stopped."""
    pid = _read_pid()
    if pid is None:
        print("Server is not running.")
        return False
    try:
        os.kill(pid, signal.SIGTERM)
        print(f"Stopped server (PID {pid}).")
        PID_FILE.unlink(missing_ok=True)
        return True
    except ProcessLookupError:
        print("Server was not running (stale PID file removed).")
        PID_FILE.unlink(missing_ok=True)
        return False


def _status():
    pid = _read_pid()
    if pid is None:
        print("Server is not running.")
    else:
        print(f"Server is running (PID {pid}).")


def _restart(args: list[str]):
    import time
    _stop()
    time.sleep(1)
    _serve(args)


def _serve(args: list[str]):
    import uvicorn

    existing = _read_pid()
    if existing is not None:
        print(f"Server already running (PID {existing}). Use 'restart' or 'stop' first.")
        sys.exit(1)

    if "--no-auto-import" in args:
        os.environ["SPELLING_TRAINER_NO_AUTO_IMPORT"] = "1"

    port = int(_parse_flag(args, "--port", "8765"))
    host = _parse_flag(args, "--host", "127.0.0.1")
    PID_FILE.write_text(str(os.getpid()))

    print(f"Starting Spelling Trainer on http://{host}:{port}")
    print("Press Ctrl+C to stop\n")
    try:
        uvicorn.run(
            "spelling_trainer.app:app",
            host=host,
            port=port,
            reload=False,
            timeout_graceful_shutdown=5,
        )
    finally:
        PID_FILE.unlink(missing_ok=True)
        os.environ.pop("SPELLING_TRAINER_NO_AUTO_IMPORT", None)


def _import_word_lists():
    from spelling_trainer.config import load_settings
    from spelling_trainer.db import Database
    from spelling_trainer.importer import import_file

    settings = load_settings()
    db = Database(settings.db_full_path)

    total_units = 0
    for wf in settings.resolved_word_list_files():
        if not wf.exists():
            print(f"  Skipping (not found): {wf}")
            continue
        print(f"  Parsing: {wf.name}")
        n = import_file(db, wf)
        total_units += n
        print(f"    {n} units")

    print(f"\nTotal in DB: {db.get_unit_count()} units, {db.get_word_count()} words")
    db.close()


def _papers(args: list[str]):
    from spelling_trainer.config import load_settings
    from spelling_trainer.db import Database
    from spelling_trainer.errors import TrainerError
    from spelling_trainer.practice import generate_test_papers

    settings = load_settings()
    size = int(_parse_flag(args, "--size", str(settings.words_per_paper)))
    predefined = "--predefined" in args
    unit_number = _parse_flag(args, "--unit", "")

    db = Database(settings.db_full_path)
    if unit_number:
        unit = db.get_unit_by_number(int(unit_number))
        units = [unit] if unit else []
    else:
        units = db.get_units()
    if not units:
        print("No matching units. Run 'import' first.")
        db.close()
        sys.exit(1)

    mode = "predefined" if predefined else f"{size} words per paper"
    print(f"Generating test papers ({mode})")
    for unit in units:
        try:
            generated = generate_test_papers(db, unit.id, size, predefined)
        except TrainerError as e:
            print(f"  {unit.title}: FAILED ({e})")
            continue
        sizes = ", ".join(str(len(p.word_ids)) for p in generated)
        print(f"  {unit.title}: {len(generated)} papers [{sizes}]")
    db.close()


def _stats(args: list[str]):
    from spelling_trainer.config import load_settings
    from spelling_trainer.db import Database
    from spelling_trainer.practice import get_stats

    settings = load_settings()
    user = _parse_flag(args, "--user", settings.default_user)
    db = Database(settings.db_full_path)
    stats = get_stats(db, user)

    print(f"Spelling Trainer Stats ({user})")
    print("=" * 40)
    print(f"Units:              {stats['total_units']}")
    print(f"Total words:        {stats['total_words']}")
    print(f"Mastered words:     {stats['mastered_words']}")
    print(f"Open errors:        {stats['error_words']}")
    print(f"Attempts:           {stats['total_attempts']}")
    print(f"Overall accuracy:   {stats['overall_accuracy']}%")
    print(f"Current streak:     {stats['current_streak']} days")
    db.close()


if __name__ == "__main__":
    main()
