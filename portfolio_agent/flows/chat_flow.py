"""Chat pipeline orchestration.

Pipeline (first node to set ``pipeline_halt`` ends the run):
1. preprocess_message → validate, policy check, normalize
2. detect_and_translate → user language + pivot (English) message
3. apply_short_circuit → canned replies (company, time, identity, names,
   lists, best-of)
4. detect_intent_node → wants_product / wants_project / wants_developer
5. resolve_entities_node → fuzzy lookup of at most one record per kind
6. reply_with_entity → a strong match is returned directly, no LLM
7. assemble_context → featured samples, entity summary, links
8. build_prompt → system prompt with live records
9. generate_reply → LLM call
10. finalize_response → extras appended, translated back

``handle_message`` and ``handle_audio_message`` share this pipeline; the
audio variant adds transcription in front and speech synthesis at the end.
"""

from __future__ import annotations

import logging
import time
from typing import Any, Callable, Dict, List, Optional, Sequence

from portfolio_agent.core.chat_engine import ChatEngine
from portfolio_agent.errors import UpstreamError, ValidationError
from portfolio_agent.flows.node_logic import (
    apply_short_circuit,
    assemble_context,
    build_prompt,
    detect_and_translate,
    detect_intent_node,
    finalize_response,
    generate_reply,
    preprocess_message,
    reply_with_entity,
    resolve_entities_node,
)
from portfolio_agent.observability.langsmith_tracer import create_custom_span
from portfolio_agent.state.conversation_state import ChatState, ConversationTurn

logger = logging.getLogger(__name__)

Node = Callable[[ChatState], ChatState]

RESULT_FIELDS = (
    "ai_response",
    "translations",
    "product",
    "project",
    "developer",
    "user",
    "product_list",
    "project_list",
    "developer_list",
    "user_language",
    "links",
    "short_circuit",
)


def default_nodes(engine: ChatEngine) -> Sequence[Node]:
    return (
        lambda s: preprocess_message(s, engine.settings.max_message_length, engine.forbidden_keywords),
        lambda s: detect_and_translate(s, engine.language),
        lambda s: apply_short_circuit(s, engine),
        detect_intent_node,
        lambda s: resolve_entities_node(s, engine),
        lambda s: reply_with_entity(s, engine),
        lambda s: assemble_context(s, engine),
        lambda s: build_prompt(s, engine),
        lambda s: generate_reply(s, engine),
        lambda s: finalize_response(s, engine),
    )


def run_chat_flow(
    state: ChatState,
    engine: ChatEngine,
    nodes: Optional[Sequence[Node]] = None,
) -> ChatState:
    """Run the node sequence until one of them halts the pipeline.

    Errors are not caught here: ValidationError, PolicyError, UpstreamError
    and GenerationError reach the caller unchanged.
    """
    pipeline = nodes or default_nodes(engine)
    start = time.time()
    for node in pipeline:
        state = node(state)
        if state.get("pipeline_halt"):
            break
    elapsed_ms = int((time.time() - start) * 1000)
    logger.info(
        f"Chat flow finished in {elapsed_ms}ms "
        f"(short_circuit={state.get('short_circuit')}, language={state.get('user_language')})"
    )
    return state


def _result(state: ChatState) -> Dict[str, Any]:
    result = {field: state.get(field) for field in RESULT_FIELDS}
    for field in ("product_list", "project_list", "developer_list", "links"):
        result[field] = result[field] or []
    return result


def handle_message(
    message: str,
    engine: ChatEngine,
    conversation_id: Optional[str] = None,
    history: Optional[List[ConversationTurn]] = None,
    user_language: Optional[str] = None,
) -> Dict[str, Any]:
    """Answer one text message.

    Args:
        message: Raw user message
        engine: Collaborators (store, language, LLM, session names)
        conversation_id: Key for the conversation name memory
        history: Prior turns ``[{role, message}]``, oldest first
        user_language: Fallback language when detection gives no signal

    Returns:
        Dict with ai_response (None for a direct entity reply), translations,
        product/project/developer/user, the three *_list fields, links,
        user_language and the name of the short-circuit rule (if any).
    """
    state: ChatState = {
        "raw_message": message,
        "conversation_id": conversation_id,
        "history": list(history or []),
        "pipeline_halt": False,
    }
    if user_language:
        state["user_language"] = user_language

    with create_custom_span("handle_message", {"conversation_id": conversation_id}):
        state = run_chat_flow(state, engine)
    return _result(state)


def _speakable_text(result: Dict[str, Any], engine: ChatEngine) -> str:
    """Text to synthesize: the reply, else the directly returned entity in the user's language."""
    if result.get("ai_response"):
        return result["ai_response"]
    for field in ("product", "project", "developer"):
        item = result.get(field)
        if item:
            text = f"{item['name']}: {item['description']}" if item.get("description") else item["name"]
            return engine.language.from_pivot(text, result.get("user_language"))
    return ""


def handle_audio_message(
    audio: bytes,
    engine: ChatEngine,
    filename: str = "audio.wav",
    conversation_id: Optional[str] = None,
    history: Optional[List[ConversationTurn]] = None,
) -> Dict[str, Any]:
    """Transcribe, answer through the text pipeline, synthesize the answer.

    Returns the ``handle_message`` result plus ``user_message`` (the
    transcription) and ``audio`` (base64 MP3, "" when there is nothing to say).

    Raises:
        ValidationError: empty upload or empty transcription
        UpstreamError: transcription or synthesis failed
    """
    if not audio:
        raise ValidationError("Audio file is required")
    if engine.speech is None:
        raise UpstreamError("Speech service is not configured", provider="openai")

    with create_custom_span("handle_audio_message", {"conversation_id": conversation_id, "bytes": len(audio)}):
        user_message = engine.speech.transcribe(audio, filename=filename).strip()
        if not user_message:
            logger.error(f"Empty transcription for {filename} ({len(audio)} bytes)")
            raise ValidationError("Empty transcription")

        result = handle_message(user_message, engine, conversation_id=conversation_id, history=history)

        text = _speakable_text(result, engine)
        result["audio"] = engine.speech.synthesize_base64(text, result.get("user_language") or "en") if text else ""
        result["user_message"] = user_message
        result["translations"] = result.get("translations") or {}
    return result
