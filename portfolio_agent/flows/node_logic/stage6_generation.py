"""LLM generation node."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from portfolio_agent.errors import GenerationError
from portfolio_agent.flows.node_logic.stage5_prompt import build_chat_turns
from portfolio_agent.observability.langsmith_tracer import create_custom_span
from portfolio_agent.state.conversation_state import ChatState

if TYPE_CHECKING:
    from portfolio_agent.core.chat_engine import ChatEngine

logger = logging.getLogger(__name__)


def generate_reply(state: ChatState, engine: "ChatEngine") -> ChatState:
    """Call the LLM with the system prompt, filtered history and pivot message.

    Raises:
        GenerationError: the provider answered without content
        UpstreamError: the provider call failed
    """
    turns = build_chat_turns(state.get("history"), state.get("pivot_message", ""))
    with create_custom_span("generate_reply", {"turns": len(turns)}, run_type="llm"):
        reply = engine.llm.complete(state.get("system_prompt", ""), turns)

    if not reply:
        logger.error("LLM returned empty content")
        raise GenerationError("Failed to generate AI response")

    state["ai_response"] = reply
    logger.info(f"Generated reply ({len(reply)} chars)")
    return state
