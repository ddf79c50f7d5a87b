"""Guardrail for the "you seem quiet" loop plus reply shaping for the game client.

The completion model sometimes tells the user they are being quiet when
they said nothing of the kind. Once such a line is in the history the model
repeats it, so it is filtered both out of the stored context and out of
fresh replies. Remove this module's guard once the provider stops doing it.
"""
from __future__ import annotations

import re
from typing import Iterable

from Aamo_Config import AAMO_MAX_REPLY_BYTES
from Aamo_SessionMemory import ROLE_ASSISTANT, Turn

QUIET_FALLBACK_REPLY = "I'm really glad you're here. What would you like to talk about?"

USER_QUIET_PHRASES = (
    "quiet",
    "silent",
    "shy",
    "introvert",
    "don't talk much",
    "dont talk much",
    "not talking much",
    "not much of a talker",
    "don't feel like talking",
    "dont feel like talking",
    "nothing to say",
)

QUIET_ACCUSATION_PHRASES = (
    "you seem quiet",
    "you seem a bit quiet",
    "you seem a little quiet",
    "you seem silent",
    "you're quiet",
    "you are quiet",
    "you're being quiet",
    "you are being quiet",
    "you've been quiet",
    "you have been quiet",
    "you're so quiet",
    "you're very quiet",
    "you're a bit quiet",
    "you're a little quiet",
    "you don't talk much",
    "you do not talk much",
    "you don't say much",
    "you're not saying much",
    "you aren't saying much",
    "you haven't said much",
    "not very talkative",
    "not much of a talker",
    "cat got your tongue",
)

_PUNCTUATION_MAP = str.maketrans(
    {
        "\u2019": "'",
        "\u2018": "'",
        "\u201c": '"',
        "\u201d": '"',
        "\u2013": "-",
        "\u2014": "-",
    }
)


def sanitize_punctuation(text: str) -> str:
    return text.translate(_PUNCTUATION_MAP)


def _phrase_pattern(phrases: Iterable[str]) -> re.Pattern[str]:
    # Phrases must start on a word boundary: "shy" is not "pushy", "quiet" still finds "quietly".
    return re.compile(r"\b(?:" + "|".join(re.escape(phrase) for phrase in phrases) + ")")


_USER_QUIET_RE = _phrase_pattern(USER_QUIET_PHRASES)
_QUIET_ACCUSATION_RE = _phrase_pattern(QUIET_ACCUSATION_PHRASES)


def _fold(text: str) -> str:
    return sanitize_punctuation(text or "").lower()


def user_mentioned_quiet(text: str) -> bool:
    return _USER_QUIET_RE.search(_fold(text)) is not None


def contains_quiet_accusation(text: str) -> bool:
    return _QUIET_ACCUSATION_RE.search(_fold(text)) is not None


def sanitize_history(history: Iterable[Turn]) -> list[Turn]:
    """Copy of ``history`` without assistant turns that accuse the user of being quiet."""
    return [
        turn
        for turn in history
        if not (turn.role == ROLE_ASSISTANT and contains_quiet_accusation(turn.text))
    ]


def guard_reply(user_text: str, generated_reply: str) -> str:
    if contains_quiet_accusation(generated_reply) and not user_mentioned_quiet(user_text):
        return QUIET_FALLBACK_REPLY
    return generated_reply


REPLY_ELLIPSIS = "…"
SENTENCE_ENDS = ".!?"


def _head_bytes(text: str, max_bytes: int) -> str:
    return text.encode("utf-8")[:max(0, max_bytes)].decode("utf-8", errors="ignore")


def clamp_reply(text: str, max_bytes: int = AAMO_MAX_REPLY_BYTES) -> str:
    """Fit ``text`` into ``max_bytes`` of UTF-8 for the game client's text box.

    Prefers ending on a whole sentence, then on a whole word with an ellipsis.
    """
    if len(text.encode("utf-8")) <= max_bytes:
        return text

    head = _head_bytes(text, max_bytes)
    sentence_end = max(head.rfind(mark) for mark in SENTENCE_ENDS)
    if sentence_end > 0:
        return head[: sentence_end + 1]

    head = _head_bytes(text, max_bytes - len(REPLY_ELLIPSIS.encode("utf-8")))
    word_end = head.rfind(" ")
    if word_end > 0:
        head = head[:word_end]
    return head.rstrip() + REPLY_ELLIPSIS
