from __future__ import annotations

import logging
import os
from pathlib import Path

from dotenv import load_dotenv


def _load_env() -> None:
    """Load ``.env`` from the project root, falling back to the cwd.

    Existing OS environment variables are never overridden.
    """
    env_path = Path(__file__).resolve().parents[1] / ".env"
    if env_path.exists():
        load_dotenv(env_path, override=False)
    else:
        load_dotenv(override=False)


_load_env()


def _clean(s: str | None) -> str:
    s = (s or "").strip()
    if len(s) >= 2 and ((s[0] == s[-1] == '"') or (s[0] == s[-1] == "'")):
        s = s[1:-1].strip()
    return s


def _int(name: str, default: int) -> int:
    try:
        return int(_clean(os.getenv(name)) or default)
    except ValueError:
        return default


def _bool(name: str, default: bool) -> bool:
    raw = _clean(os.getenv(name)).lower()
    if not raw:
        return default
    return raw in ("1", "true", "yes", "on")


DATABASE_URL = _clean(os.getenv("DATABASE_URL")) or "sqlite:///./bello.db"

SESSION_COOKIE = "session_id"
SESSION_TTL_DAYS = _int("SESSION_TTL_DAYS", 7)
COOKIE_SECURE = _bool("COOKIE_SECURE", False)

PASSWORD_HASH_ITERATIONS = _int("PASSWORD_HASH_ITERATIONS", 210_000)

LOG_LEVEL = _clean(os.getenv("LOG_LEVEL")).upper() or "INFO"

HOST = _clean(os.getenv("HOST")) or "0.0.0.0"
PORT = _int("PORT", 3000)


def configure_logging() -> None:
    logging.basicConfig(
        level=LOG_LEVEL,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
