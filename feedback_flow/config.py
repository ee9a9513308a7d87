"""Runtime configuration: .env, optional YAML file, environment overrides."""
from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Iterator, Optional, Tuple

import yaml

logger = logging.getLogger(__name__)

BASE_DIR = Path(__file__).resolve().parents[1]

DEFAULT_SEARCH_FIELDS: Tuple[str, ...] = ("id", "order", "description", "amount")

_ENV_LOADED = False


def _env_assignments(text: str) -> Iterator[Tuple[str, str]]:
    for raw in text.splitlines():
        line = raw.strip()
        if line.startswith("#") or "=" not in line:
            continue
        name, _, value = line.partition("=")
        name = name.strip()
        if name:
            yield name, value.strip().strip("\"'")


def _load_env_once() -> None:
    """Copy KEY=VALUE pairs from .env files into os.environ without overriding."""

    global _ENV_LOADED
    if _ENV_LOADED:
        return
    _ENV_LOADED = True

    for env_file in dict.fromkeys((BASE_DIR / ".env", Path.cwd() / ".env")):
        if not env_file.is_file():
            continue
        try:
            text = env_file.read_text(encoding="utf-8")
        except OSError:
            logger.debug("Skipping unreadable env file %s", env_file)
            continue
        for name, value in _env_assignments(text):
            os.environ.setdefault(name, value)


@dataclass(frozen=True)
class Settings:
    db_path: Optional[Path] = None
    statistics_limit: int = 100
    search_fields: Tuple[str, ...] = field(default=DEFAULT_SEARCH_FIELDS)
    search_threshold: float = 0.6
    search_min_query_length: int = 4
    search_max_limit: int = 1000
    page_limit: int = 10
    log_level: str = "INFO"

    @classmethod
    def from_mapping(cls, data: Dict[str, Any]) -> "Settings":
        statistics = data.get("statistics") or {}
        search = data.get("search") or {}
        pagination = data.get("pagination") or {}
        database = data.get("database")
        return cls(
            db_path=Path(database).expanduser() if database else None,
            statistics_limit=int(statistics.get("limit", 100)),
            search_fields=tuple(search.get("fields") or DEFAULT_SEARCH_FIELDS),
            search_threshold=float(search.get("threshold", 0.6)),
            search_min_query_length=int(search.get("min_query_length", 4)),
            search_max_limit=int(search.get("max_limit", 1000)),
            page_limit=int(pagination.get("limit", 10)),
            log_level=str(data.get("log_level", "INFO")).upper(),
        )


def _read_yaml(path: Path) -> Dict[str, Any]:
    with path.open("r", encoding="utf-8") as f:
        data = yaml.safe_load(f)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValueError(f"Configuration file {path} must contain a mapping")
    return data


def _env_int(name: str, current: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return current
    try:
        return int(raw)
    except ValueError:
        logger.warning("Ignoring non-integer %s=%r", name, raw)
        return current


def _env_float(name: str, current: float) -> float:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return current
    try:
        return float(raw)
    except ValueError:
        logger.warning("Ignoring non-numeric %s=%r", name, raw)
        return current


def load_settings(config_path: Optional[Path] = None) -> Settings:
    """Build settings from the YAML file (if any) and the environment."""

    _load_env_once()
    path = config_path
    if path is None and os.getenv("FEEDBACK_FLOW_CONFIG"):
        path = Path(os.environ["FEEDBACK_FLOW_CONFIG"]).expanduser()
    data = _read_yaml(path) if path is not None else {}
    base = Settings.from_mapping(data)

    db_override = os.getenv("FEEDBACK_FLOW_DB_PATH")
    fields_override = os.getenv("SEARCH_FIELDS")
    return Settings(
        db_path=Path(db_override).expanduser() if db_override else base.db_path,
        statistics_limit=_env_int("STATISTICS_LIMIT", base.statistics_limit),
        search_fields=(
            tuple(part.strip() for part in fields_override.split(",") if part.strip())
            if fields_override
            else base.search_fields
        ),
        search_threshold=_env_float("SEARCH_THRESHOLD", base.search_threshold),
        search_min_query_length=_env_int("SEARCH_MIN_QUERY_LENGTH", base.search_min_query_length),
        search_max_limit=_env_int("SEARCH_MAX_LIMIT", base.search_max_limit),
        page_limit=base.page_limit,
        log_level=(os.getenv("FEEDBACK_FLOW_LOG_LEVEL") or base.log_level).upper(),
    )
