from __future__ import annotations

import json
import time
from typing import Any
from uuid import uuid4

from flask import Flask, Response, request

from Aamo_BodyNormalizer import normalize_body
from Aamo_ChatEngine import (
    STATUS_FALLBACK,
    ChatOutcome,
    glitch_reply,
    run_exchange,
    shape_reply,
    start_session,
)
from Aamo_CompletionGateway import build_gateway
from Aamo_Config import (
    AAMO_API_BASE,
    AAMO_MAX_HISTORY_TURNS,
    AAMO_MODEL,
    AAMO_PERSONA_PATH,
    AAMO_WELCOME_TEXT,
    GROQ_API_KEY,
    LOGS_ROOT,
    PORT,
)
from Aamo_Logs import ensure_dir, log_event, log_exception, log_request_line, trim_log_text
from Aamo_SessionMemory import SessionMemory

app = Flask(__name__)

MEMORY = SessionMemory(AAMO_MAX_HISTORY_TURNS)
GATEWAY = build_gateway()

HEALTH_TEXT = "Aamo brain is running (AI chat mode, c2dictionary-aware)"

DEBUG_CHAT_PAGE = """<!doctype html>
<html>
<head>
  <meta charset="utf-8" />
  <title>Aamo Debug Chat</title>
</head>
<body>
  <h1>Aamo Debug Chat</h1>
  <p>Type a message to Aamo and press "Send".</p>
  <textarea id="msg" rows="4" cols="60">Hei Aamo, how are you today?</textarea><br />
  <button id="send">Send</button>
  <h2>Reply:</h2>
  <div id="reply"></div>
  <script>
    const msgInput = document.getElementById('msg');
    const replyDiv = document.getElementById('reply');
    document.getElementById('send').addEventListener('click', async () => {
      replyDiv.textContent = 'Asking Aamo...';
      try {
        const res = await fetch('/aamo-chat?sessionId=debug', {
          method: 'POST',
          headers: { 'Content-Type': 'text/plain' },
          body: msgInput.value
        });
        const data = await res.json();
        replyDiv.textContent = data.reply || '(no reply)';
      } catch (err) {
        replyDiv.textContent = 'Error: ' + err.message;
      }
    });
  </script>
</body>
</html>"""


def json_response(payload: dict[str, Any], status_code: int = 200) -> tuple[Response, int]:
    return (
        Response(
            json.dumps(payload, ensure_ascii=False),
            mimetype="application/json; charset=utf-8",
        ),
        status_code,
    )


def elapsed_since(start_time: float) -> int:
    return int((time.perf_counter() - start_time) * 1000)


def log_startup_status() -> None:
    log_event(
        f"server_starting port={PORT} model={AAMO_MODEL} api_base={AAMO_API_BASE} "
        f"api_key_set={int(bool(GROQ_API_KEY))} max_history_turns={AAMO_MAX_HISTORY_TURNS}"
    )
    log_event(
        f"server_paths logs_root={LOGS_ROOT} persona_path={AAMO_PERSONA_PATH} "
        f"persona_found={int(AAMO_PERSONA_PATH.exists())}"
    )


@app.after_request
def add_cors_headers(response: Response) -> Response:
    response.headers["Access-Control-Allow-Origin"] = "*"
    response.headers["Access-Control-Allow-Methods"] = "GET, POST, OPTIONS"
    response.headers["Access-Control-Allow-Headers"] = "Content-Type"
    return response


@app.get("/")
def index() -> tuple[str, int]:
    return HEALTH_TEXT, 200


@app.get("/health")
def health() -> tuple[str, int]:
    return "OK", 200


@app.get("/debug-chat")
def debug_chat() -> Response:
    return Response(DEBUG_CHAT_PAGE, mimetype="text/html; charset=utf-8")


@app.get("/aamo-start")
def aamo_start() -> tuple[Response, int]:
    start_time = time.perf_counter()
    request_id = uuid4().hex[:8]
    session_id = normalize_body(None, request.args).session_id
    reply = start_session(MEMORY, session_id, AAMO_WELCOME_TEXT)
    log_request_line(
        "/aamo-start",
        request_id,
        session_id,
        "",
        200,
        "start",
        elapsed_since(start_time),
        detail=f"sessions={MEMORY.session_count()}",
    )
    return json_response({"reply": reply}, 200)


@app.route("/aamo-chat", methods=["GET", "POST"])
def aamo_chat() -> tuple[Response, int]:
    start_time = time.perf_counter()
    request_id = uuid4().hex[:8]
    raw_body = request.get_data(cache=True, as_text=True) or ""
    log_event(
        f"incoming endpoint=/aamo-chat request_id={request_id} method={request.method} "
        f"content_type={request.content_type or '-'} raw_body=\"{trim_log_text(raw_body, 800)}\""
    )

    normalized = normalize_body(raw_body, request.args)
    try:
        outcome = run_exchange(MEMORY, GATEWAY, normalized, request_id=request_id)
    except Exception as exc:
        log_exception("chat_unhandled", request_id, exc)
        outcome = ChatOutcome(
            reply=shape_reply(glitch_reply(normalized.message)),
            status=STATUS_FALLBACK,
            session_id=normalized.session_id,
            reason="server_exception",
        )

    log_request_line(
        "/aamo-chat",
        request_id,
        outcome.session_id,
        normalized.message,
        200,
        outcome.status,
        elapsed_since(start_time),
        detail=(
            f"source={normalized.source} stored={int(outcome.stored)} "
            f"reason={outcome.reason or '-'}"
        ),
    )
    return json_response({"reply": outcome.reply}, 200)


@app.route("/aamo-reset", methods=["GET", "POST"])
def aamo_reset() -> tuple[Response, int]:
    start_time = time.perf_counter()
    request_id = uuid4().hex[:8]
    raw_body = request.get_data(cache=True, as_text=True) or ""
    session_id = normalize_body(raw_body, request.args).session_id
    MEMORY.reset(session_id)
    log_request_line(
        "/aamo-reset",
        request_id,
        session_id,
        "",
        200,
        "reset",
        elapsed_since(start_time),
        detail=f"sessions={MEMORY.session_count()}",
    )
    return json_response({"ok": True}, 200)


if __name__ == "__main__":
    from waitress import serve

    ensure_dir(LOGS_ROOT)
    log_startup_status()
    serve(app, host="0.0.0.0", port=PORT)
