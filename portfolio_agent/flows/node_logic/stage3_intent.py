"""Coarse intent detection from surface keywords."""

import logging
import re
from typing import Dict

from portfolio_agent.state.conversation_state import ChatState

logger = logging.getLogger(__name__)

_KEYWORD_GROUPS = {
    "wants_product": re.compile(r"\bproducts?\b", re.IGNORECASE),
    "wants_project": re.compile(r"\bprojects?\b", re.IGNORECASE),
    "wants_developer": re.compile(r"\bdevelopers?\b", re.IGNORECASE),
}


def detect_intent(text: str) -> Dict[str, bool]:
    """Return wants_product / wants_project / wants_developer / ambiguous.

    Exactly one keyword group present gives a non-ambiguous want; none or
    several mark the intent ambiguous so the resolver tries every kind.
    """
    text = text or ""
    intent = {key: pattern.search(text) is not None for key, pattern in _KEYWORD_GROUPS.items()}
    hits = sum(intent.values())
    intent["ambiguous"] = hits != 1
    return intent


def wants_kind(intent: Dict[str, bool], kind_name: str) -> bool:
    """True when the intent singles out ``kind_name`` (never when ambiguous)."""
    return not intent.get("ambiguous", True) and intent.get(f"wants_{kind_name}", False)


def detect_intent_node(state: ChatState) -> ChatState:
    state["intent"] = detect_intent(state.get("pivot_message") or state.get("message", ""))
    logger.debug(f"Intent: {state['intent']}")
    return state
