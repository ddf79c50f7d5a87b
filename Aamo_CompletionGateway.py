from __future__ import annotations

import time
from typing import Any, Iterable

import openai as openai_pkg
from openai import OpenAI

from Aamo_Config import (
    AAMO_API_BASE,
    AAMO_COMPLETION_TIMEOUT_SECONDS,
    AAMO_MAX_TOKENS,
    AAMO_MODEL,
    AAMO_TEMPERATURE,
    GROQ_API_KEY,
)
from Aamo_Logs import log_event
from Aamo_SessionMemory import Turn


class CompletionError(RuntimeError):
    """The completion provider could not produce a reply."""


def build_messages(
    system_prompt: str, history: Iterable[Turn], message: str
) -> list[dict[str, str]]:
    messages: list[dict[str, str]] = [{"role": "system", "content": system_prompt}]
    for turn in history:
        if turn.text:
            messages.append(turn.to_message())
    messages.append({"role": "user", "content": message})
    return messages


class CompletionGateway:
    """Single chat-completions call against an OpenAI-compatible endpoint (Groq by default)."""

    def __init__(
        self,
        client: Any,
        model: str = AAMO_MODEL,
        temperature: float = AAMO_TEMPERATURE,
        max_tokens: int = AAMO_MAX_TOKENS,
    ) -> None:
        self.client = client
        self.model = model
        self.temperature = temperature
        self.max_tokens = max_tokens

    def complete(
        self,
        system_prompt: str,
        history: Iterable[Turn],
        new_user_text: str,
        temperature: float | None = None,
        max_tokens: int | None = None,
        request_id: str = "-",
    ) -> str:
        messages = build_messages(system_prompt, history, new_user_text)
        started = time.perf_counter()
        log_event(
            f"completion_request_start request_id={request_id} model={self.model} "
            f"messages={len(messages)}"
        )
        try:
            response = self.client.chat.completions.create(
                model=self.model,
                messages=messages,
                temperature=self.temperature if temperature is None else temperature,
                max_tokens=self.max_tokens if max_tokens is None else max_tokens,
            )
        except openai_pkg.OpenAIError as exc:
            raise CompletionError(f"{type(exc).__name__}: {exc}") from exc

        elapsed_ms = int((time.perf_counter() - started) * 1000)
        choices = getattr(response, "choices", None) or []
        content = ""
        if choices:
            content = (choices[0].message.content or "").strip()
        log_event(
            f"completion_request_done request_id={request_id} elapsed_ms={elapsed_ms} "
            f"output_chars={len(content)}"
        )
        return content


def build_gateway(
    api_key: str = GROQ_API_KEY,
    base_url: str = AAMO_API_BASE,
    timeout: float = AAMO_COMPLETION_TIMEOUT_SECONDS,
) -> CompletionGateway | None:
    if not api_key:
        return None
    client = OpenAI(api_key=api_key, base_url=base_url, timeout=timeout, max_retries=0)
    return CompletionGateway(client)
