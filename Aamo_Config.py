from __future__ import annotations

import os
from pathlib import Path

from dotenv import load_dotenv

BASE_DIR = Path(__file__).resolve().parent
load_dotenv(BASE_DIR / "Aamo.env")

DEFAULT_SESSION_ID = "session1"
MESSAGE_PLACEHOLDER = "..."
DEFAULT_WELCOME_TEXT = (
    "Hei! I'm Aamo, a little fox from the Finnish forest. "
    "How are you feeling today?"
)
DEFAULT_API_BASE = "https://api.groq.com/openai/v1"
DEFAULT_MODEL = "llama-3.1-8b-instant"


def _env_str(name: str, default: str) -> str:
    return (os.getenv(name) or default).strip() or default


def _env_int(name: str, default: int, min_value: int, max_value: int) -> int:
    raw = os.getenv(name)
    try:
        value = int(raw) if raw not in (None, "") else default
    except ValueError:
        value = default
    return max(min_value, min(max_value, value))


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw in (None, ""):
        return default
    try:
        return float(raw)
    except ValueError:
        return default


PORT = _env_int("PORT", 3000, 1, 65535)
GROQ_API_KEY = (os.getenv("GROQ_API_KEY") or "").strip()
AAMO_MODEL = _env_str("AAMO_MODEL", DEFAULT_MODEL)
AAMO_API_BASE = _env_str("AAMO_API_BASE", DEFAULT_API_BASE)
AAMO_TEMPERATURE = _env_float("AAMO_TEMPERATURE", 0.7)
AAMO_MAX_TOKENS = _env_int("AAMO_MAX_TOKENS", 160, 1, 4096)
AAMO_COMPLETION_TIMEOUT_SECONDS = _env_float("AAMO_COMPLETION_TIMEOUT_SECONDS", 30.0)
AAMO_MAX_HISTORY_TURNS = _env_int("AAMO_MAX_HISTORY_TURNS", 10, 1, 50)
AAMO_MAX_MESSAGE_CHARS = _env_int("AAMO_MAX_MESSAGE_CHARS", 500, 1, 10000)
AAMO_MAX_REPLY_BYTES = _env_int("AAMO_MAX_REPLY_BYTES", 1024, 64, 65536)
AAMO_PERSONA_PATH = Path(_env_str("AAMO_PERSONA_PATH", str(BASE_DIR / "persona" / "system.md")))
AAMO_WELCOME_TEXT = _env_str("AAMO_WELCOME_TEXT", DEFAULT_WELCOME_TEXT)
LOGS_ROOT = Path(_env_str("AAMO_LOGS_DIR", str(BASE_DIR / "logs")))
