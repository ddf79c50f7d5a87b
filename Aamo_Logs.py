from __future__ import annotations

import re
import traceback
from datetime import datetime, timezone
from pathlib import Path

from Aamo_Config import LOGS_ROOT

RUN_LOG_PATH = LOGS_ROOT / f"Aamo_{datetime.now(timezone.utc).strftime('%Y%m%d_%H%M%S')}.log"
ERROR_LOG_PATH = LOGS_ROOT / "Aamo_errors.log"


def ensure_dir(path: Path) -> None:
    path.mkdir(parents=True, exist_ok=True)


def now_iso() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="seconds")


def log_line(path: Path, line: str) -> None:
    ensure_dir(path.parent)
    with path.open("a", encoding="utf-8") as handle:
        handle.write(line + "\n")


def log_event(line: str) -> None:
    log_line(RUN_LOG_PATH, f"[{now_iso()}] {line}")


def log_error(message: str) -> None:
    line = f"[{now_iso()}] {message}"
    log_line(RUN_LOG_PATH, line)
    log_line(ERROR_LOG_PATH, line)


def redact_secrets(text: str) -> str:
    text = re.sub(r"gsk_[A-Za-z0-9]+", "gsk_***", text)
    return re.sub(r"sk-[A-Za-z0-9]+", "sk-***", text)


def trim_log_text(text: str, max_len: int = 120) -> str:
    cleaned = text.replace("\n", " ").replace("\r", " ")
    if len(cleaned) <= max_len:
        return cleaned
    return cleaned[:max_len] + "…"


def safe_error_reason(exc: BaseException) -> str:
    reason = f"{type(exc).__name__}: {exc}"
    reason = redact_secrets(reason)
    return reason[:160]


def log_exception(label: str, request_id: str, exc: BaseException) -> None:
    trace = traceback.format_exc(limit=3)
    message = redact_secrets(str(exc))
    log_error(
        f"{label} request_id={request_id} type={type(exc).__name__} "
        f"message=\"{message}\" trace=\"{trim_log_text(trace.strip(), 800)}\""
    )


def log_request_line(
    endpoint: str,
    request_id: str,
    session_id: str,
    message: str,
    status: int,
    outcome: str,
    elapsed_ms: int,
    detail: str = "",
) -> None:
    snippet = trim_log_text(redact_secrets(message))
    suffix = f" {detail}" if detail else ""
    log_event(
        f"endpoint={endpoint} request_id={request_id} session={session_id or '-'} "
        f"status={status} outcome={outcome or '-'} elapsed_ms={elapsed_ms}{suffix} msg=\"{snippet}\""
    )
