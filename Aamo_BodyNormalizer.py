"""Turn whatever the game client sent into a (session id, message) pair.

Construct 3 posts bodies in several shapes: a flat JSON object, the
``Dictionary.AsJSON`` wrapper (``{"c2dictionary": true, "data": {...}}``),
plain text, or nothing at all. GET requests carry the same fields in the
query string. None of these may ever produce an error for the client.
"""
from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any, Mapping

from Aamo_Config import AAMO_MAX_MESSAGE_CHARS, DEFAULT_SESSION_ID, MESSAGE_PLACEHOLDER

SESSION_FIELD = "sessionId"
MESSAGE_FIELD = "message"
WRAPPER_FLAG = "c2dictionary"
WRAPPER_DATA = "data"
MAX_SESSION_ID_CHARS = 128


@dataclass(frozen=True)
class NormalizedInput:
    session_id: str
    message: str
    source: str = "empty"


def _field_text(value: Any) -> str:
    if value is None or isinstance(value, (dict, list, tuple)):
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (bytes, bytearray)):
        value = bytes(value).decode("utf-8", errors="replace")
    return str(value).strip()


def is_wrapped(obj: Mapping[str, Any]) -> bool:
    return obj.get(WRAPPER_FLAG) is True and isinstance(obj.get(WRAPPER_DATA), Mapping)


def extract_fields(obj: Mapping[str, Any]) -> tuple[str, str, bool]:
    """Return (session_id, message, wrapped) from a decoded body object."""
    wrapped = is_wrapped(obj)
    source = obj[WRAPPER_DATA] if wrapped else obj
    return (
        _field_text(source.get(SESSION_FIELD)),
        _field_text(source.get(MESSAGE_FIELD)),
        wrapped,
    )


def _body_text(raw_body: Any) -> str:
    if raw_body is None:
        return ""
    if isinstance(raw_body, (bytes, bytearray)):
        return bytes(raw_body).decode("utf-8", errors="replace").strip()
    return str(raw_body).strip()


def _read_body(raw_body: Any) -> tuple[str, str, str]:
    if isinstance(raw_body, Mapping):
        session_id, message, wrapped = extract_fields(raw_body)
        return session_id, message, "wrapped" if wrapped else "object"

    text = _body_text(raw_body)
    if not text:
        return "", "", "empty"
    try:
        parsed = json.loads(text)
    except (ValueError, RecursionError):
        return "", text, "text"
    if not isinstance(parsed, Mapping):
        return "", text, "text"
    session_id, message, wrapped = extract_fields(parsed)
    return session_id, message, "wrapped" if wrapped else "json"


def normalize_body(raw_body: Any, query: Mapping[str, Any] | None = None) -> NormalizedInput:
    query_session = _field_text((query or {}).get(SESSION_FIELD))
    query_message = _field_text((query or {}).get(MESSAGE_FIELD))

    body_session, body_message, source = _read_body(raw_body)

    session_id = query_session or body_session or DEFAULT_SESSION_ID
    message = query_message or body_message
    if query_message:
        source = "query"
    if not message:
        message = MESSAGE_PLACEHOLDER

    return NormalizedInput(
        session_id=session_id[:MAX_SESSION_ID_CHARS],
        message=message[:AAMO_MAX_MESSAGE_CHARS],
        source=source,
    )
