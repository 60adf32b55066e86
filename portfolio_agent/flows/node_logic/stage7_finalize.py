"""Response finalization.

Appends, in this order, to the model reply:
1. the entity/context summary
2. ``Links: label: url | label: url``
3. the pricing contact line (pricing questions)
4. the location availability line (location questions)

and then translates the whole reply back to the user's language.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Dict, List, Optional

from portfolio_agent.observability.langsmith_tracer import create_custom_span
from portfolio_agent.state.conversation_state import ChatState

if TYPE_CHECKING:
    from portfolio_agent.config.settings import Settings
    from portfolio_agent.core.chat_engine import ChatEngine

logger = logging.getLogger(__name__)


def format_links(links: List[Dict[str, str]]) -> str:
    return " | ".join(f"{link['label']}: {link['url']}" for link in links)


def pricing_contact_line(settings: "Settings") -> str:
    return (
        "For pricing or payment details, you can share this contact: "
        f"Mobile: {settings.contact_phone} (WhatsApp) | Email: {settings.contact_email}"
    )


def location_availability_line(settings: "Settings") -> str:
    return (
        "You can inquire about product and project availability in Dubai by contacting us at "
        f"{settings.contact_phone} or visiting our website {settings.contact_website}."
    )


def compose_reply(
    reply: str,
    settings: "Settings",
    entity_context: str = "",
    links: Optional[List[Dict[str, str]]] = None,
    wants_pricing: bool = False,
    wants_location: bool = False,
) -> str:
    extras = []
    if entity_context:
        extras.append(entity_context)
    if links:
        extras.append(f"Links: {format_links(links)}")
    if wants_pricing:
        extras.append(pricing_contact_line(settings))

    if extras:
        reply = f"{reply}\n\n" + "\n".join(extras)
    if wants_location:
        reply = f"{reply}\n{location_availability_line(settings)}"
    return reply


def finalize_response(state: ChatState, engine: "ChatEngine") -> ChatState:
    """Pipeline node: append extras and translate back to the user's language."""
    with create_custom_span("finalize_response"):
        reply = compose_reply(
            state.get("ai_response") or "",
            engine.settings,
            entity_context=state.get("entity_context", ""),
            links=state.get("links"),
            wants_pricing=state.get("wants_pricing", False),
            wants_location=state.get("wants_location", False),
        )
        language = state.get("user_language") or engine.language.pivot_language
        state["ai_response"] = engine.language.from_pivot(reply, language)
        state["translations"] = None
        state["pipeline_halt"] = True
    logger.info(f"Finalized reply for language '{language}'")
    return state
