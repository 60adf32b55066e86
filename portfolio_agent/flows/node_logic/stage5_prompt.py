"""System prompt and chat-history construction.

The system prompt embeds the five most recently created records of every
catalog kind (names in all locales, descriptions cut at 100 characters) so
the model answers from live data. History turns that start with one of our
own canned fallback replies are dropped; they would teach the model to
repeat templated text.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Dict, List, Optional, Sequence

from portfolio_agent.core.document_store import DESCENDING, DocumentStore
from portfolio_agent.core.entity_kinds import CATALOG_KINDS, LOCALES, EntityKind
from portfolio_agent.errors import UpstreamError
from portfolio_agent.observability.langsmith_tracer import create_custom_span
from portfolio_agent.state.conversation_state import ChatState, ConversationTurn

if TYPE_CHECKING:
    from portfolio_agent.config.settings import Settings
    from portfolio_agent.core.chat_engine import ChatEngine

logger = logging.getLogger(__name__)

PROMPT_RECORDS_PER_KIND = 5
PROMPT_DESCRIPTION_CHARS = 100
EMPTY_TURN_PLACEHOLDER = "..."

FALLBACK_PHRASES = (
    "I couldn't confidently resolve what you meant.",
    "I'm sorry, but I don't have specific details about",
    "Company information:",
)

_EMPTY_KIND_NOTICE = {
    "product": "I'm sorry, I don't have the current database of available products at the moment.",
    "project": "No projects currently available in database.",
    "developer": "I'm sorry, I don't have the specific developer information in my database at the moment.",
}


def fetch_database_context(
    store: DocumentStore,
    kinds: Sequence[EntityKind] = CATALOG_KINDS,
    limit: int = PROMPT_RECORDS_PER_KIND,
) -> Dict[str, List[Dict[str, Any]]]:
    """Newest records per kind; a store failure degrades to empty lists."""
    try:
        return {
            kind.name: store.find(
                kind.collection,
                projection=kind.prompt_fields,
                sort=[("createdAt", DESCENDING)],
                limit=limit,
            )
            for kind in kinds
        }
    except UpstreamError as e:
        logger.error(f"Error fetching database context: {e}", exc_info=True)
        return {kind.name: [] for kind in kinds}


def _format_record(kind: EntityKind, record: Dict[str, Any]) -> str:
    base = kind.display_field
    name = record.get(base) or "N/A"
    localized = ", ".join(str(record.get(f"{base}_{locale}") or "") for locale in LOCALES)
    description = record.get("description")
    if description:
        description = f"{str(description)[:PROMPT_DESCRIPTION_CHARS]}..."
    else:
        description = "N/A"
    return f"    - Name: {name} ({localized})\n    - Description: {description}"


def _format_kind(kind: EntityKind, records: List[Dict[str, Any]]) -> str:
    if not records:
        return _EMPTY_KIND_NOTICE.get(kind.name, f"No {kind.plural} currently available in database.")
    return "\n".join(_format_record(kind, record) for record in records)


def build_system_prompt(
    db_context: Dict[str, List[Dict[str, Any]]],
    settings: "Settings",
    kinds: Sequence[EntityKind] = CATALOG_KINDS,
) -> str:
    agent = settings.agent_name
    company = settings.company_name
    sections = "\n\n".join(
        f"AVAILABLE {kind.plural.upper()}:\n{_format_kind(kind, db_context.get(kind.name) or [])}"
        for kind in kinds
    )
    plural_names = ", ".join(kind.plural for kind in kinds)

    return f"""
You are a friendly and professional assistant for {company} called "{agent}."

IMPORTANT DATABASE CONTEXT:
Here is the latest data directly fetched from our database:

{sections}

CRITICAL INSTRUCTIONS:
- For any question about {plural_names}, ALWAYS use the database context information provided above.
- If the context contains relevant results, ONLY use those results in your answer. Do NOT invent, guess, or supplement with information not present in the context.
- If the context is empty or does not contain the requested information, politely say that you do not have that information and suggest contacting {company} at {settings.contact_phone} or {settings.contact_email}.
- Never fabricate product, project, or developer names, details, or statistics.

LANGUAGE SUPPORT:
- You MUST respond in the same language as the user's query (Arabic, English, German, French or Chinese).
- For partial or incomplete queries, infer the complete meaning and answer in the user's language.

When asked your name, reply exactly: "{agent}."
When greeted, respond with a friendly greeting.
When asked about your mood, respond with a positive statement.

You should be able to answer questions about:
- The company and its services, contact details and business hours
- Products, projects and developers in the database context
- Pricing and payment questions (payment plans, down payments, installments)
- Location and availability questions
- What you can do and which languages you support

Always provide accurate, helpful and context-aware responses.
""".strip()


def is_fallback_reply(text: Optional[str]) -> bool:
    if not text:
        return False
    return any(text.startswith(phrase) for phrase in FALLBACK_PHRASES)


def build_chat_turns(history: Optional[Sequence[ConversationTurn]], message: str) -> List[Dict[str, str]]:
    """OpenAI-style turns: filtered history, then the current user message."""
    turns = []
    for turn in history or []:
        content = turn.get("message")
        if is_fallback_reply(content):
            continue
        if not isinstance(content, str) or not content.strip():
            content = EMPTY_TURN_PLACEHOLDER
        role = turn.get("role") if turn.get("role") in ("user", "assistant") else "user"
        turns.append({"role": role, "content": content})
    turns.append({"role": "user", "content": message if message and message.strip() else EMPTY_TURN_PLACEHOLDER})
    return turns


def build_prompt(state: ChatState, engine: "ChatEngine") -> ChatState:
    """Pipeline node: fill ``system_prompt``."""
    with create_custom_span("build_prompt"):
        db_context = fetch_database_context(engine.store, engine.kinds)
        state["system_prompt"] = build_system_prompt(db_context, engine.settings, engine.kinds)
    logger.debug(
        "Prompt context: " + ", ".join(f"{name}={len(records)}" for name, records in db_context.items())
    )
    return state
