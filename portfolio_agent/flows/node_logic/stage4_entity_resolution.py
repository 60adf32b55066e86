"""Fuzzy entity resolution against the document store.

``resolve_one`` runs three case-insensitive tiers over a kind's name fields
and returns the first record of the first tier that hits:

1. exact: the whole query anchored on any field (``^query$``)
2. substring: the query anywhere in any field
3. first token: the query's first word (2+ characters) anywhere in any field

Ties inside a tier go to the store's natural order. The query is escaped
before it is embedded in a regex, so "a+b (c)" matches literally.

``resolve_entities`` first honours labelled mentions ("product: Marina
Heights", "developer name: Emaar"), then retries the kinds the intent points
at (every kind when ambiguous) with the message's content words, and finally
clears other kinds when the intent is exclusive.
"""

from __future__ import annotations

import logging
import re
from typing import TYPE_CHECKING, Any, Dict, Iterable, List, Optional, Sequence

from portfolio_agent.core.document_store import DocumentStore
from portfolio_agent.core.entity_kinds import CATALOG_KINDS, USER, EntityKind, record_id
from portfolio_agent.flows.node_logic.stage3_intent import wants_kind
from portfolio_agent.observability.langsmith_tracer import create_custom_span
from portfolio_agent.state.conversation_state import ChatState, empty_result_fields

if TYPE_CHECKING:
    from portfolio_agent.core.chat_engine import ChatEngine

logger = logging.getLogger(__name__)

STOPWORDS = frozenset({
    "write", "link", "of", "the", "for", "give", "me", "product",
    "project", "developer", "please", "show", "url", "what", "is",
    "my", "in", "to", "and", "a", "an", "on", "about", "any", "you",
    "could", "would", "like", "here", "there",
})

MIN_TOKEN_LENGTH = 3
MIN_FIRST_TOKEN_LENGTH = 2


def _or_clause(fields: Iterable[str], pattern: str) -> Dict[str, Any]:
    return {"$or": [{field: {"$regex": pattern, "$options": "i"}} for field in fields]}


def resolve_one(
    store: DocumentStore,
    collection: str,
    query_text: Optional[str],
    fields: Sequence[str],
) -> Optional[Dict[str, Any]]:
    """Best record for ``query_text`` in ``collection``, or None."""
    if not query_text:
        return None
    clean = query_text.strip()
    if not clean:
        return None

    escaped = re.escape(clean)
    record = store.find_one(collection, _or_clause(fields, f"^{escaped}$"))
    if record:
        return record

    record = store.find_one(collection, _or_clause(fields, escaped))
    if record:
        return record

    first_token = clean.split()[0]
    if len(first_token) >= MIN_FIRST_TOKEN_LENGTH:
        return store.find_one(collection, _or_clause(fields, re.escape(first_token)))
    return None


def labelled_mention(message: str, kind_name: str) -> Optional[str]:
    """Value of a "<kind> [name]: <value>" mention, cut at , ? . ! or newline."""
    match = re.search(rf"{kind_name}\s*(?:name)?:\s*([^\n,?.!]+)", message or "", re.IGNORECASE)
    if not match:
        return None
    value = match.group(1).strip()
    return value or None


def content_phrase(message: str) -> str:
    """Message words minus stop-words and words shorter than 3 characters."""
    tokens = [
        token for token in re.split(r"\W+", (message or "").lower())
        if token and token not in STOPWORDS and len(token) >= MIN_TOKEN_LENGTH
    ]
    return " ".join(tokens)


def enforce_exclusive_intent(
    resolution: Dict[str, Any],
    intent: Dict[str, bool],
    kinds: Sequence[EntityKind] = CATALOG_KINDS,
) -> Dict[str, Any]:
    """Drop matches of other kinds when the intent singles one out."""
    wanted = [kind.name for kind in kinds if wants_kind(intent, kind.name)]
    if not wanted:
        return resolution
    for kind in kinds:
        if kind.name not in wanted and resolution.get(kind.name) is not None:
            logger.debug(f"Exclusive intent for {wanted[0]}: dropping {kind.name} match")
            resolution[kind.name] = None
    return resolution


def resolve_entities(
    message: str,
    intent: Dict[str, bool],
    store: DocumentStore,
    kinds: Sequence[EntityKind] = CATALOG_KINDS,
    enable_users: bool = False,
) -> Dict[str, Any]:
    """Resolve at most one record per kind.

    Returns ``{product, project, developer, user, suggestions}`` holding raw
    records (or None). ``suggestions`` is always an empty list.
    """
    resolution: Dict[str, Any] = {kind.name: None for kind in kinds}
    resolution["user"] = None
    suggestions: List[Dict[str, Any]] = []

    with create_custom_span("resolve_entities", {"message": (message or "")[:120]}):
        for kind in kinds:
            value = labelled_mention(message, kind.name)
            if value:
                resolution[kind.name] = resolve_one(store, kind.collection, value, kind.name_fields)

        if enable_users:
            value = labelled_mention(message, USER.name)
            if value:
                resolution["user"] = resolve_one(store, USER.collection, value, USER.name_fields)

        phrase = content_phrase(message)
        ambiguous = intent.get("ambiguous", True)
        for kind in kinds:
            if resolution[kind.name] is None and (ambiguous or intent.get(f"wants_{kind.name}")):
                resolution[kind.name] = resolve_one(store, kind.collection, phrase, kind.name_fields)

        enforce_exclusive_intent(resolution, intent, kinds)

    logger.debug(
        "resolve_entities: "
        + ", ".join(f"{name}={(record or {}).get('_id')}" for name, record in resolution.items())
        + f", intent={intent}"
    )
    resolution["suggestions"] = suggestions
    return resolution


def resolve_entities_node(state: ChatState, engine: "ChatEngine") -> ChatState:
    """Pipeline node: fill ``resolution`` and the normalized entity fields.

    Labelled mentions and content words come from the original message so
    localized names (``name_ar`` and friends) can match; the intent comes
    from the pivot message.
    """
    resolution = resolve_entities(
        state.get("message", ""),
        state.get("intent") or {},
        engine.store,
        engine.kinds,
        enable_users=engine.users_enabled,
    )
    state["resolution"] = resolution
    site_url = engine.settings.site_url
    for kind in tuple(engine.kinds) + (USER,):
        state[kind.name] = kind.normalize(resolution.get(kind.name), site_url)
    return state


def reply_with_entity(state: ChatState, engine: "ChatEngine") -> ChatState:
    """Pipeline node: a single strong catalog match is returned as-is.

    The first resolved kind (in registry order) that carries an id wins;
    ``ai_response`` stays None and the LLM is skipped.
    """
    resolution = state.get("resolution") or {}
    site_url = engine.settings.site_url
    for kind in engine.kinds:
        record = resolution.get(kind.name)
        if not record or not record_id(record):
            continue

        item = kind.normalize(record, site_url)
        state.update(empty_result_fields())
        state[kind.name] = item
        state[f"{kind.name}_list"] = [item]
        state["links"] = [kind.link(record, site_url)]
        state["ai_response"] = None
        state["pipeline_halt"] = True
        logger.info(f"Direct {kind.name} reply: {item['id']}")
        break
    return state
