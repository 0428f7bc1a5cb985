from __future__ import annotations

import os
from dataclasses import dataclass

from dotenv import load_dotenv


@dataclass
class Config:
    bot_token: str
    api_base_url: str = "http://localhost:3000"
    api_timeout: float = 15.0
    api_log_requests: bool = False
    session_db_path: str = os.path.join("data", "sessions.db")
    log_level: str = "INFO"
    log_file: str = os.path.join("data", "booknest.log")
    log_max_bytes: int = 5 * 1024 * 1024
    log_backup_count: int = 3
    redirect_delay: float = 2.0
    page_size: int = 6
    admin_page_size: int = 15


def _parse_bool(raw: str | None, default: bool = False) -> bool:
    if raw is None:
        return default
    value = raw.strip().lower()
    if value in ("1", "true", "yes", "y", "on"):
        return True
    if value in ("0", "false", "no", "n", "off"):
        return False
    return default


def _parse_int(raw: str | None, default: int) -> int:
    if raw is None:
        return default
    try:
        return int(raw.strip())
    except ValueError:
        return default


def _parse_float(raw: str | None, default: float) -> float:
    if raw is None:
        return default
    try:
        return float(raw.strip())
    except ValueError:
        return default


def load_config() -> Config:
    load_dotenv()
    token = os.getenv("BOT_TOKEN")
    if not token:
        raise RuntimeError("BOT_TOKEN is required. Set it in .env")

    api_base_url = os.getenv("API_BASE_URL", "http://localhost:3000").rstrip("/")
    session_db_path = os.getenv("SESSION_DB_PATH", os.path.join("data", "sessions.db"))

    return Config(
        bot_token=token,
        api_base_url=api_base_url,
        api_timeout=_parse_float(os.getenv("API_TIMEOUT"), 15.0),
        api_log_requests=_parse_bool(os.getenv("API_LOG_REQUESTS"), default=False),
        session_db_path=session_db_path,
        log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
        log_file=os.getenv("LOG_FILE", os.path.join("data", "booknest.log")),
        log_max_bytes=_parse_int(os.getenv("LOG_MAX_BYTES"), 5 * 1024 * 1024),
        log_backup_count=_parse_int(os.getenv("LOG_BACKUP_COUNT"), 3),
        redirect_delay=_parse_float(os.getenv("REDIRECT_DELAY"), 2.0),
        page_size=max(1, _parse_int(os.getenv("PAGE_SIZE"), 6)),
        admin_page_size=max(1, _parse_int(os.getenv("ADMIN_PAGE_SIZE"), 15)),
    )
