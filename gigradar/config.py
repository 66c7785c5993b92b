"""Load profile and env configuration."""
from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml
from dotenv import load_dotenv

from gigradar.errors import ProfileError
from gigradar.log import get_logger
from gigradar.models import UserProfile

log = get_logger(__name__)

load_dotenv()

ROOT_DIR: Path = Path(__file__).resolve().parent.parent
CONFIG_DIR: Path = ROOT_DIR / "config"
PROFILE_PATH: Path = CONFIG_DIR / "profile.yaml"
DATA_DIR: Path = ROOT_DIR / "data"

DEFAULT_EMBEDDING_URL = (
    "https://api-inference.huggingface.co/pipeline/feature-extraction/BAAI/bge-base-en-v1.5"
)


def get_env(key: str, default: str = "") -> str:
    return os.environ.get(key, default).strip()


def get_int_env(key: str, default: int) -> int:
    raw = get_env(key)
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        log.warning("%s=%r is not an integer, using %d", key, raw, default)
        return default


def get_float_env(key: str, default: float) -> float:
    raw = get_env(key)
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        log.warning("%s=%r is not a number, using %s", key, raw, default)
        return default


def split_list(raw: str) -> list[str]:
    """Comma-delimited setting → list of non-empty stripped items."""
    return [part.strip() for part in raw.split(",") if part.strip()]


@dataclass(frozen=True)
class Settings:
    flaresolverr_url: str = "http://localhost:8191"
    bypass_timeout_ms: int = 60_000
    job_delay_ms: tuple[int, int] = (10_000, 20_000)
    page_delay_ms: tuple[int, int] = (3_000, 6_000)
    process_delay_ms: int = 2_000
    embedding_url: str = DEFAULT_EMBEDDING_URL
    hf_api_key: str = ""
    embedding_timeout: float = 30.0
    notification_threshold: float = 65.0
    telegram_bot_token: str = ""
    telegram_chat_ids: tuple[str, ...] = ()
    alert_emails: tuple[str, ...] = ()
    search_queries: tuple[str, ...] = ("nextjs react",)
    max_jobs_per_run: int = 20
    cron_secret: str = ""
    database_path: str = str(DATA_DIR / "gigradar.db")
    budget_gap_alert_ratio: float = 0.5


def load_settings() -> Settings:
    return Settings(
        flaresolverr_url=get_env("FLARESOLVERR_URL", "http://localhost:8191").rstrip("/"),
        bypass_timeout_ms=get_int_env("BYPASS_TIMEOUT_MS", 60_000),
        job_delay_ms=(
            get_int_env("SCRAPE_DELAY_MIN", 10_000),
            get_int_env("SCRAPE_DELAY_MAX", 20_000),
        ),
        page_delay_ms=(
            get_int_env("PAGE_DELAY_MIN", 3_000),
            get_int_env("PAGE_DELAY_MAX", 6_000),
        ),
        process_delay_ms=get_int_env("PROCESS_DELAY_MS", 2_000),
        embedding_url=get_env("EMBEDDING_API_URL", DEFAULT_EMBEDDING_URL),
        hf_api_key=get_env("HF_API_KEY"),
        embedding_timeout=get_float_env("EMBEDDING_TIMEOUT", 30.0),
        notification_threshold=get_float_env("NOTIFICATION_SCORE_THRESHOLD", 65.0),
        telegram_bot_token=get_env("TELEGRAM_BOT_TOKEN"),
        telegram_chat_ids=tuple(split_list(get_env("TELEGRAM_CHAT_ID"))),
        alert_emails=tuple(split_list(get_env("ALERT_EMAILS"))),
        search_queries=tuple(split_list(get_env("DEFAULT_SEARCH_QUERY", "nextjs react")))
        or ("nextjs react",),
        max_jobs_per_run=get_int_env("MAX_JOBS_PER_RUN", 20),
        cron_secret=get_env("CRON_SECRET"),
        database_path=get_env("DATABASE_PATH", str(DATA_DIR / "gigradar.db")),
        budget_gap_alert_ratio=get_float_env("BUDGET_GAP_ALERT_RATIO", 0.5),
    )


def ensure_dirs() -> None:
    for d in (CONFIG_DIR, DATA_DIR):
        d.mkdir(parents=True, exist_ok=True)


def validate_profile(data: dict[str, Any]) -> UserProfile:
    skills = data.get("skills")
    if not isinstance(skills, list) or not [s for s in skills if str(s).strip()]:
        raise ProfileError("skills must be a non-empty list")
    # Ordered set: first spelling wins.
    skills = list(dict.fromkeys(str(s).strip() for s in skills if str(s).strip()))

    try:
        min_budget = float(data.get("min_budget", 0) or 0)
    except (TypeError, ValueError) as exc:
        raise ProfileError("min_budget must be a number") from exc
    if min_budget < 0:
        raise ProfileError("min_budget must be non-negative")

    countries = data.get("preferred_countries") or []
    if not isinstance(countries, list):
        raise ProfileError("preferred_countries must be a list")

    return UserProfile(
        skills=skills,
        min_budget=min_budget,
        preferred_countries=list(dict.fromkeys(str(c).strip() for c in countries if str(c).strip())),
    )


def load_profile(path: Path | None = None) -> UserProfile:
    path = path or PROFILE_PATH
    if not path.exists():
        raise ProfileError(f"profile not found at {path}")
    with open(path, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}
    return validate_profile(data)


def update_profile(
    skills: list[str],
    min_budget: float,
    preferred_countries: list[str] | None = None,
    *,
    path: Path | None = None,
) -> UserProfile:
    """Validate and persist a new profile.

    The cached profile embedding is run-scoped, so the next processing run
    picks up changed skills without any explicit invalidation.
    """
    profile = validate_profile(
        {
            "skills": skills,
            "min_budget": min_budget,
            "preferred_countries": preferred_countries or [],
        }
    )
    path = path or PROFILE_PATH
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        yaml.safe_dump(
            {
                "skills": profile.skills,
                "min_budget": profile.min_budget,
                "preferred_countries": profile.preferred_countries,
            },
            f,
            sort_keys=False,
        )
    log.info("Profile updated: %d skills, min budget %.0f", len(profile.skills), profile.min_budget)
    return profile
