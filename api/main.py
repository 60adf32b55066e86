"""FastAPI chat endpoints for the portfolio assistant.

Run locally with:
    uvicorn api.main:app --reload --port 8000

Endpoints:
    POST /api/chats        JSON {message, conversationId?, history?}
    POST /api/chats/audio  multipart audio file + conversationId?, history? (JSON string)
    GET  /health
"""

import json
import logging
import os
import sys
from typing import Any

from fastapi import Depends, FastAPI, File, Form, Request, UploadFile
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel

# Add project root to path so the portfolio_agent package is importable
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from portfolio_agent.core.chat_engine import ChatEngine
from portfolio_agent.errors import ChatbotError, GenerationError, PolicyError, UpstreamError, ValidationError
from portfolio_agent.flows.chat_flow import handle_audio_message, handle_message
from portfolio_agent.observability.langsmith_tracer import is_tracing_enabled

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

app = FastAPI(title="Portfolio Agent API")

# --- CORS ---
origins = [
    "http://localhost:3000",
]
frontend_url = os.getenv("FRONTEND_URL")
if frontend_url:
    origins.append(frontend_url)

app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["Content-Type"],
)

# --- Shared chat engine (built once, on first use) ---
_engine: ChatEngine | None = None


def get_engine() -> ChatEngine:
    global _engine
    if _engine is None:
        _engine = ChatEngine.from_settings()
    return _engine


# --- Request / Response models ---
class Turn(BaseModel):
    role: str
    message: str | None = ""


class ChatRequest(BaseModel):
    message: str | None = None
    conversationId: str | None = None
    history: list[Turn] | None = None


class ChatResponse(BaseModel):
    message: str | None
    links: list[dict[str, str]]
    product: dict[str, Any] | None = None
    project: dict[str, Any] | None = None
    developer: dict[str, Any] | None = None
    user: dict[str, Any] | None = None
    products: list[dict[str, Any]]
    projects: list[dict[str, Any]]
    developers: list[dict[str, Any]]
    userLanguage: str
    translations: dict[str, Any] | None = None


# --- Error mapping ---
_STATUS_CODES = {
    ValidationError: 400,
    PolicyError: 422,
    UpstreamError: 500,
    GenerationError: 500,
}

_ERROR_MESSAGES = {
    ValidationError: "Invalid message",
    PolicyError: "Message rejected",
    UpstreamError: "Failed to process message",
    GenerationError: "Failed to process message",
}


def _error_response(status_code: int, error: str, details: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": error, "details": details})


@app.exception_handler(ChatbotError)
def chatbot_error_handler(request: Request, exc: ChatbotError):
    status_code = _STATUS_CODES.get(type(exc), 500)
    error = _ERROR_MESSAGES.get(type(exc), "An error occurred while processing your request")
    if status_code >= 500:
        logger.error(f"{request.url.path} failed: {exc}", exc_info=exc)
    else:
        logger.warning(f"{request.url.path} rejected: {exc}")
    return _error_response(status_code, error, str(exc))


@app.exception_handler(Exception)
def unexpected_error_handler(request: Request, exc: Exception):
    logger.error(f"{request.url.path} crashed: {exc}", exc_info=exc)
    return _error_response(500, "An error occurred while processing your request", str(exc))


def _history(turns: list[Turn] | list[dict] | None) -> list[dict]:
    result = []
    for turn in turns or []:
        if isinstance(turn, Turn):
            turn = turn.model_dump()
        if isinstance(turn, dict) and turn.get("role"):
            result.append({"role": turn["role"], "message": turn.get("message") or ""})
    return result


def _entity_payload(result: dict) -> dict:
    return {
        "links": result["links"],
        "product": result["product"],
        "project": result["project"],
        "developer": result["developer"],
        "user": result["user"],
    }


# Use sync def so FastAPI runs it in a threadpool (the chat flow is blocking I/O)
@app.post("/api/chats", response_model=ChatResponse, response_model_exclude_none=False)
def add_chat(req: ChatRequest, engine: ChatEngine = Depends(get_engine)):
    if not req.message:
        return _error_response(400, "Message is required", "Request body must include a non-empty 'message'")

    result = handle_message(
        req.message,
        engine,
        conversation_id=req.conversationId,
        history=_history(req.history),
    )
    payload = {
        "message": result["ai_response"],
        **_entity_payload(result),
        "products": result["product_list"],
        "projects": result["project_list"],
        "developers": result["developer_list"],
        "userLanguage": result["user_language"] or engine.settings.pivot_language,
    }
    if result["translations"]:
        payload["translations"] = result["translations"]
    return payload


@app.post("/api/chats/audio")
def send_audio_message(
    audio: UploadFile | None = File(None),
    conversationId: str | None = Form(None),
    history: str | None = Form(None),
    engine: ChatEngine = Depends(get_engine),
):
    if audio is None:
        return _error_response(400, "Audio file is required", "Multipart field 'audio' is missing")

    turns: list[dict] = []
    if history:
        try:
            turns = _history(json.loads(history))
        except (json.JSONDecodeError, TypeError, AttributeError) as e:
            logger.warning(f"Ignoring unparsable audio history: {e}")

    data = audio.file.read()
    result = handle_audio_message(
        data,
        engine,
        filename=audio.filename or "audio.wav",
        conversation_id=conversationId,
        history=turns,
    )

    payload = {
        "message": result["ai_response"],
        "userMessage": result["user_message"],
        "audio": result["audio"],
        "links": result["links"],
        "translations": result["translations"],
        "userLanguage": result["user_language"] or engine.settings.pivot_language,
    }
    for field, key in (("developer_list", "developers"), ("product_list", "products"), ("project_list", "projects")):
        if result[field]:
            payload[key] = result[field]
    return payload


@app.get("/health")
def health(engine: ChatEngine = Depends(get_engine)):
    return {
        "status": "ok",
        "capabilities": {
            "users": engine.settings.enable_users,
            "company_info": engine.settings.enable_company_info,
            "tracing": is_tracing_enabled(),
        },
    }
