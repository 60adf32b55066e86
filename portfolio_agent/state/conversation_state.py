"""ChatState TypedDict passed between pipeline nodes.

Each node receives the full state, mutates/extends it and returns it. Uses
TypedDict with total=False so nodes only need to set the fields they own.

Example Usage:
    ```python
    from portfolio_agent.state.conversation_state import ChatState

    def detect_intent_node(state: ChatState) -> ChatState:
        state["intent"] = detect_intent(state["pivot_message"])
        return state
    ```
"""

from typing import Any, Dict, List, Optional
from typing_extensions import TypedDict


class ConversationTurn(TypedDict):
    """One prior turn supplied by the caller (never persisted here)."""

    role: str
    message: str


class ChatState(TypedDict, total=False):
    """State dictionary for one chat request.

    Field Categories:
        Input: raw_message, conversation_id, history, user_language
        Preprocessing: message, processed_message, pivot_message
        Classification: intent, short_circuit, wants_pricing, wants_location
        Resolution: resolution, product/project/developer/user, *_list
        Generation: entity_context, links, ai_response
        Control: pipeline_halt
    """

    # --- Input ---
    raw_message: str
    """Message exactly as received from the caller."""

    conversation_id: Optional[str]
    """Key into the session name store (may be absent)."""

    history: List[ConversationTurn]
    """Prior turns, oldest first."""

    user_language: str
    """ISO-639-1 code of the user's language (detected, falls back to pivot)."""

    # --- Preprocessing ---
    message: str
    """Trimmed original message (original casing, used for labelled lookups)."""

    processed_message: str
    """Lowercased, sanitized and typo-corrected message."""

    pivot_message: str
    """Message translated to the pivot language for classification."""

    # --- Classification ---
    intent: Dict[str, bool]
    """wants_product / wants_project / wants_developer / ambiguous."""

    short_circuit: Optional[str]
    """Name of the short-circuit rule that produced the reply, if any."""

    wants_pricing: bool
    wants_location: bool

    # --- Resolution ---
    resolution: Dict[str, Any]
    """Raw records matched by the fuzzy resolver plus (always empty) suggestions."""

    product: Optional[Dict[str, Any]]
    project: Optional[Dict[str, Any]]
    developer: Optional[Dict[str, Any]]
    user: Optional[Dict[str, Any]]
    """Normalized entities ({id, name, image, url, description})."""

    product_list: List[Dict[str, Any]]
    project_list: List[Dict[str, Any]]
    developer_list: List[Dict[str, Any]]

    # --- Generation ---
    company_context: str
    entity_context: str
    links: List[Dict[str, str]]
    system_prompt: str
    ai_response: Optional[str]
    translations: Optional[Dict[str, Any]]

    # --- Control ---
    pipeline_halt: bool
    """Set by any node that produced the final reply."""


def empty_result_fields() -> Dict[str, Any]:
    """Entity fields of a reply that carries no entity data."""
    return {
        "translations": None,
        "product": None,
        "project": None,
        "developer": None,
        "user": None,
        "product_list": [],
        "project_list": [],
        "developer_list": [],
    }
