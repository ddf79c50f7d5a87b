"""Aamo Chat Engine - one chat exchange from normalized input to reply."""
from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from Aamo_BodyNormalizer import NormalizedInput
from Aamo_CompletionGateway import CompletionError, CompletionGateway
from Aamo_Config import AAMO_MAX_REPLY_BYTES, AAMO_PERSONA_PATH
from Aamo_Logs import log_error, log_event, log_exception
from Aamo_ReplySanitizer import (
    QUIET_FALLBACK_REPLY,
    clamp_reply,
    guard_reply,
    sanitize_history,
    sanitize_punctuation,
)
from Aamo_SessionMemory import SessionMemory, Turn

STATUS_OK = "ok"
STATUS_GUARDED = "guarded"
STATUS_FALLBACK = "fallback"
STATUS_DEGRADED = "degraded"

DEFAULT_SYSTEM_PROMPT = (
    "You are Aamo, a gentle Finnish fox who chats warmly and simply. "
    "Speak like a supportive friend, not like a narrator. "
    "Do not describe actions. Keep replies short: 1-2 sentences. "
    "Use Finnish words only occasionally and keep the reply in English. "
    "Respond directly to what the user actually said. "
    "Never mention that you are an AI."
)


@dataclass(frozen=True)
class ChatOutcome:
    reply: str
    status: str
    session_id: str
    reason: str = ""

    @property
    def stored(self) -> bool:
        return self.status in (STATUS_OK, STATUS_GUARDED)


def read_text_if_exists(path: Path) -> str:
    if not path.exists():
        return ""
    return path.read_text(encoding="utf-8")


def load_system_prompt(path: Path = AAMO_PERSONA_PATH) -> str:
    return read_text_if_exists(path).strip() or DEFAULT_SYSTEM_PROMPT


def offline_reply(message: str) -> str:
    return (
        "Hei ystävä. I can hear you, but my cloud brain is offline right now. "
        f"I still want you to know you're not alone with \"{message}\"."
    )


def glitch_reply(message: str) -> str:
    return (
        f"Hei ystävä. My little fox brain glitched for a moment, but I still heard \"{message}\". "
        "Please try again soon, okay?"
    )


def shape_reply(text: str, max_bytes: int = AAMO_MAX_REPLY_BYTES) -> str:
    return clamp_reply(sanitize_punctuation(text), max_bytes)


def run_exchange(
    memory: SessionMemory,
    gateway: CompletionGateway | None,
    normalized: NormalizedInput,
    system_prompt: str | None = None,
    request_id: str = "-",
    max_reply_bytes: int = AAMO_MAX_REPLY_BYTES,
) -> ChatOutcome:
    session_id = normalized.session_id
    message = normalized.message

    if gateway is None:
        return ChatOutcome(
            reply=shape_reply(offline_reply(message), max_reply_bytes),
            status=STATUS_DEGRADED,
            session_id=session_id,
            reason="missing_credential",
        )

    prompt = system_prompt if system_prompt is not None else load_system_prompt()

    with memory.session_lock(session_id):
        stored = memory.get_history(session_id)
        history = sanitize_history(stored)
        if len(history) != len(stored):
            log_event(
                f"history_sanitized request_id={request_id} session={session_id} "
                f"dropped={len(stored) - len(history)}"
            )

        try:
            generated = gateway.complete(prompt, history, message, request_id=request_id)
        except CompletionError as exc:
            log_exception("completion_failed", request_id, exc)
            return ChatOutcome(
                reply=shape_reply(glitch_reply(message), max_reply_bytes),
                status=STATUS_FALLBACK,
                session_id=session_id,
                reason=f"upstream_error: {exc}"[:160],
            )

        if not generated:
            log_error(f"completion_empty request_id={request_id} session={session_id}")
            return ChatOutcome(
                reply=shape_reply(glitch_reply(message), max_reply_bytes),
                status=STATUS_FALLBACK,
                session_id=session_id,
                reason="empty_reply",
            )

        reply = guard_reply(message, generated)
        status = STATUS_OK
        reason = ""
        if reply == QUIET_FALLBACK_REPLY and reply != generated:
            status = STATUS_GUARDED
            reason = "quiet_accusation"
            log_event(f"reply_guarded request_id={request_id} session={session_id}")

        reply = shape_reply(reply, max_reply_bytes)
        memory.append_turn(session_id, Turn.user(message), Turn.assistant(reply))

    return ChatOutcome(reply=reply, status=status, session_id=session_id, reason=reason)


def start_session(memory: SessionMemory, session_id: str, welcome_text: str) -> str:
    if memory.seed_welcome(session_id, welcome_text):
        log_event(f"session_seeded session={session_id}")
    return welcome_text
