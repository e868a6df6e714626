from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from .schemes import DEFAULT_SCHEME, SCHEMES

SCORER_HEURISTIC = "heuristic"
SCORER_EXTERNAL = "external"
SCORERS = (SCORER_HEURISTIC, SCORER_EXTERNAL)
LOG_LEVELS = ("debug", "info", "warning", "error", "critical")

DEFAULT_DB_PATH = Path("data") / "fairhire.db"
DEFAULT_LLM_MODEL = "gpt-4"
DEFAULT_LLM_BASE_URL = "https://api.openai.com/v1"


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _env_choice(name: str, default: str, choices) -> str:
    raw = (os.getenv(name) or "").strip().lower()
    return raw if raw in choices else default


@dataclass(frozen=True)
class Settings:
    db_path: Path
    scoring_scheme: str
    scorer: str
    max_workers: int
    llm_api_key: Optional[str]
    llm_model: str
    llm_base_url: str
    llm_timeout: int
    log_level: str

    def __repr__(self) -> str:
        # Never print the API key
        key_state = "set" if self.llm_api_key else "unset"
        return (
            f"Settings(db_path={str(self.db_path)!r}, scoring_scheme={self.scoring_scheme!r}, "
            f"scorer={self.scorer!r}, max_workers={self.max_workers}, llm_api_key=<{key_state}>, "
            f"llm_model={self.llm_model!r})"
        )


def load_settings() -> Settings:
    """Read settings from the environment; unknown or malformed values fall back to defaults."""
    return Settings(
        db_path=Path(os.getenv("FAIRHIRE_DB_PATH") or DEFAULT_DB_PATH),
        scoring_scheme=_env_choice("FAIRHIRE_SCORING_SCHEME", DEFAULT_SCHEME, SCHEMES),
        scorer=_env_choice("FAIRHIRE_SCORER", SCORER_HEURISTIC, SCORERS),
        max_workers=max(1, _env_int("FAIRHIRE_MAX_WORKERS", 1)),
        llm_api_key=os.getenv("FAIRHIRE_LLM_API_KEY") or os.getenv("OPENAI_API_KEY") or None,
        llm_model=(os.getenv("FAIRHIRE_LLM_MODEL") or "").strip() or DEFAULT_LLM_MODEL,
        llm_base_url=((os.getenv("FAIRHIRE_LLM_BASE_URL") or "").strip() or DEFAULT_LLM_BASE_URL).rstrip("/"),
        llm_timeout=max(1, _env_int("FAIRHIRE_LLM_TIMEOUT", 30)),
        log_level=_env_choice("FAIRHIRE_LOG_LEVEL", "info", LOG_LEVELS).upper(),
    )
