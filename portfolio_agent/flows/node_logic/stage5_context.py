"""Context assembly for the LLM reply.

This module gathers everything the final reply may need besides the model
output itself:
- Company-info sections scored against the message (cached with a TTL)
- Entity summaries for resolved records
- Structured links ``{type, label, url}`` for records that carry an id
- Featured samples per kind when the user asks for featured items or the
  intent points at a kind without a specific match

Company-info scoring:
    +3 for every section tag that appears in the lowercased message
    +1 for every unique message token found in the section's English content
Up to three positive sections are returned, best first. When nothing scores
the single top section is returned so the model always gets some company
background.
"""

from __future__ import annotations

import logging
import re
import threading
import time
from typing import TYPE_CHECKING, Any, Callable, Dict, List, Optional, Sequence

from portfolio_agent.core.document_store import DocumentStore
from portfolio_agent.core.entity_kinds import CATALOG_KINDS, PRODUCT, PROJECT, USER, EntityKind
from portfolio_agent.flows.node_logic import stage2_classifiers as classifiers
from portfolio_agent.flows.node_logic.stage3_intent import wants_kind
from portfolio_agent.observability.langsmith_tracer import create_custom_span
from portfolio_agent.state.conversation_state import ChatState

if TYPE_CHECKING:
    from portfolio_agent.core.chat_engine import ChatEngine

logger = logging.getLogger(__name__)

COMPANY_INFO_COLLECTION = "companyinfos"
MAX_COMPANY_SECTIONS = 3
FEATURED_SAMPLE_LIMIT = 3

TAG_WEIGHT = 3
TOKEN_WEIGHT = 1

_FEATURED_CLASSIFIERS = {
    PRODUCT.name: classifiers.is_featured_products_query,
    PROJECT.name: classifiers.is_featured_projects_query,
}


class CompanyInfoCache:
    """Company-info sections read once and kept for ``ttl_seconds``.

    Concurrent first loads may both hit the store; the last one wins.
    """

    def __init__(
        self,
        store: DocumentStore,
        ttl_seconds: float = 3600,
        enabled: bool = True,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._store = store
        self._ttl = ttl_seconds
        self._enabled = enabled
        self._clock = clock
        self._sections: Optional[List[Dict[str, Any]]] = None
        self._loaded_at = 0.0
        self._lock = threading.Lock()

    def load(self) -> List[Dict[str, Any]]:
        if not self._enabled:
            return []
        with self._lock:
            if self._sections is not None and self._clock() - self._loaded_at < self._ttl:
                return self._sections
        sections = self._store.find(COMPANY_INFO_COLLECTION)
        with self._lock:
            self._sections = sections
            self._loaded_at = self._clock()
        logger.info(f"Loaded {len(sections)} company-info sections")
        return sections

    def invalidate(self) -> None:
        with self._lock:
            self._sections = None

    def relevant_sections(self, message: str, max_sections: int = MAX_COMPANY_SECTIONS) -> List[str]:
        return retrieve_relevant_company_info(self.load(), message, max_sections)


def _section_content(section: Dict[str, Any]) -> str:
    content = section.get("content")
    if isinstance(content, dict):
        return content.get("en") or ""
    return ""


def score_section(section: Dict[str, Any], message: str) -> int:
    lower = (message or "").lower()
    tokens = set(re.findall(r"\b\w+\b", lower))
    content = _section_content(section).lower()

    score = sum(TAG_WEIGHT for tag in section.get("tags") or [] if str(tag).lower() in lower)
    score += sum(TOKEN_WEIGHT for token in tokens if token in content)
    return score


def retrieve_relevant_company_info(
    sections: Sequence[Dict[str, Any]],
    message: str,
    max_sections: int = MAX_COMPANY_SECTIONS,
) -> List[str]:
    """Rank sections against ``message`` and format them as "<title>: <content>"."""
    if not sections:
        return []
    scored = sorted(
        ((score_section(section, message), section) for section in sections),
        key=lambda pair: pair[0],
        reverse=True,
    )
    relevant = [pair for pair in scored if pair[0] > 0][:max_sections]
    if not relevant:
        relevant = scored[:1]
    return [f"{section.get('title', '')}: {_section_content(section)}" for _, section in relevant]


# ---------------------------------------------------------------------------
# Entities
# ---------------------------------------------------------------------------

def build_structured_links(
    resolution: Dict[str, Any],
    site_url: str,
    kinds: Sequence[EntityKind] = CATALOG_KINDS,
) -> List[Dict[str, str]]:
    links = []
    for kind in tuple(kinds) + (USER,):
        link = kind.link(resolution.get(kind.name), site_url)
        if link:
            links.append(link)
    return links


def fetch_featured_samples(
    store: DocumentStore,
    kind: EntityKind,
    limit: int = FEATURED_SAMPLE_LIMIT,
) -> List[Dict[str, Any]]:
    """Featured records first, any records when none are featured."""
    projection = (kind.display_field, "description", "image", "photo")
    samples = store.find(kind.collection, {"isFeatured": True}, projection=projection, limit=limit)
    if not samples:
        samples = store.find(kind.collection, projection=projection, limit=limit)
    return samples


def build_entity_context(
    resolution: Dict[str, Any],
    lists: Dict[str, List[Dict[str, Any]]],
    kinds: Sequence[EntityKind] = CATALOG_KINDS,
    stored_name: Optional[str] = None,
) -> str:
    """One paragraph of summaries and example names, "" when there is nothing."""
    parts: List[str] = []
    if stored_name:
        parts.append(f"User name: {stored_name}.")
    for kind in tuple(kinds) + (USER,):
        record = resolution.get(kind.name)
        if record:
            parts.append(kind.summarize(record))
    for kind in kinds:
        names = [item["name"] for item in lists.get(kind.name) or [] if item.get("name")]
        if names:
            parts.append(f"Example available {kind.plural}: {', '.join(names)}.")
    return " ".join(parts)


def assemble_context(state: ChatState, engine: "ChatEngine") -> ChatState:
    """Pipeline node: featured lists, entity context and links."""
    resolution = state.get("resolution") or {}
    intent = state.get("intent") or {}
    message = state.get("pivot_message") or state.get("message", "")
    site_url = engine.settings.site_url

    with create_custom_span("assemble_context", {"message": message[:120]}):
        lists: Dict[str, List[Dict[str, Any]]] = {}
        for kind in engine.kinds:
            featured = _FEATURED_CLASSIFIERS.get(kind.name)
            asked = (featured is not None and featured(message)) or wants_kind(intent, kind.name)
            if asked and not resolution.get(kind.name):
                samples = fetch_featured_samples(engine.store, kind)
                lists[kind.name] = [kind.normalize(record, site_url) for record in samples]
            else:
                lists[kind.name] = []
            state[f"{kind.name}_list"] = lists[kind.name]

        stored_name = None
        if classifiers.is_name_query(message):
            stored_name = engine.sessions.get(state.get("conversation_id"))

        state["entity_context"] = build_entity_context(resolution, lists, engine.kinds, stored_name)
        state["links"] = build_structured_links(resolution, site_url, engine.kinds)
        state["wants_pricing"] = classifiers.is_pricing_query(message)
        state["wants_location"] = classifiers.is_location_availability_query(message)

    logger.info(
        f"Context: {len(state['links'])} links, "
        + ", ".join(f"{name}={len(items)}" for name, items in lists.items())
    )
    return state
