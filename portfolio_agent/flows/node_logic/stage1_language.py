"""Language detection and pivot translation node."""

import logging

from portfolio_agent.core.language_service import LanguageService
from portfolio_agent.observability.langsmith_tracer import create_custom_span
from portfolio_agent.state.conversation_state import ChatState

logger = logging.getLogger(__name__)


def detect_and_translate(state: ChatState, language_service: LanguageService) -> ChatState:
    """Set ``user_language`` and ``pivot_message``.

    Detection runs on the trimmed original message (typo corrections are
    English-specific). An undetectable message keeps the caller-supplied
    language, or the pivot language when none was given.

    A message already in the pivot language is classified from its
    normalized form (``processed_message``: lowercased, typos corrected);
    anything else is translated from the original text.
    """
    message = state.get("message", "")
    pivot = language_service.pivot_language
    with create_custom_span("detect_language", {"message": message[:120]}):
        detected = language_service.detect_language(message)
        user_language = detected or state.get("user_language") or pivot
        state["user_language"] = user_language

        if user_language == pivot:
            state["pivot_message"] = state.get("processed_message") or message
        else:
            state["pivot_message"] = language_service.to_pivot(message, user_language)
        logger.info(f"Language: detected={detected}, using={user_language}")
    return state
