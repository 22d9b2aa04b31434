from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path

CONFIG_PATH = Path(__file__).resolve().parent.parent / "config.json"

DEFAULTS = {
    "db_path": "progress.db",
    "word_list_files": [],
    "default_user": "default_user",
    "words_per_paper": 30,
    "use_predefined_papers": True,
    "random_word_count": 20,
    "log_level": "INFO",
}


@dataclass
class Settings:
    db_path: str = DEFAULTS["db_path"]
    word_list_files: list[str] = field(
        default_factory=lambda: list(DEFAULTS["word_list_files"])
    )
    default_user: str = DEFAULTS["default_user"]
    words_per_paper: int = DEFAULTS["words_per_paper"]
    use_predefined_papers: bool = DEFAULTS["use_predefined_papers"]
    random_word_count: int = DEFAULTS["random_word_count"]
    log_level: str = DEFAULTS["log_level"]

    @property
    def project_root(self) -> Path:
        return Path(__file__).resolve().parent.parent

    @property
    def data_dir(self) -> Path:
        return self.project_root / "data"

    @property
    def db_full_path(self) -> Path:
        return self.project_root / self.db_path

    def resolved_word_list_files(self) -> list[Path]:
        if self.word_list_files:
            root = self.project_root
            return [root / f for f in self.word_list_files]
        return sorted(self.data_dir.glob("*.csv"))

    def to_dict(self) -> dict:
        return {
            "db_path": self.db_path,
            "word_list_files": self.word_list_files,
            "default_user": self.default_user,
            "words_per_paper": self.words_per_paper,
            "use_predefined_papers": self.use_predefined_papers,
            "random_word_count": self.random_word_count,
            "log_level": self.log_level,
        }


def load_settings() -> Settings:
    if CONFIG_PATH.exists():
        raw = json.loads(CONFIG_PATH.read_text())
        known = {f.name for f in Settings.__dataclass_fields__.values()}
        filtered = {k: v for k, v in raw.items() if k in known}
        return Settings(**filtered)
    return Settings()


def save_settings(settings: Settings) -> None:
    CONFIG_PATH.write_text(json.dumps(settings.to_dict(), indent=4) + "\n")
