"""Short-circuit chain: canned and templated replies that skip the LLM.

The chain is an ordered tuple of ``ShortCircuitRule(name, matches, respond)``.
Rules are tried in priority order and the first match wins:

    company -> time -> bot identity -> name declaration -> bare name
    -> name query -> list developers -> list products -> list projects
    -> best-of

``matches`` is a pure predicate over the state (mostly the pivot message).
``respond`` builds the reply in the user's language and may fill entity
lists. When a rule fires the pipeline halts with ``short_circuit`` set to the
rule name.

The company, time and identity replies never fail because of a provider:
a company-info read or a translation that raises is logged and the English
reply is used instead.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Callable, Dict, List, NamedTuple, Optional

from portfolio_agent.core.entity_kinds import DEVELOPER, PRODUCT, PROJECT, EntityKind
from portfolio_agent.errors import UpstreamError
from portfolio_agent.flows.node_logic import stage2_classifiers as classifiers
from portfolio_agent.flows.node_logic.stage4_entity_resolution import labelled_mention
from portfolio_agent.observability.langsmith_tracer import create_custom_span
from portfolio_agent.state.conversation_state import ChatState, empty_result_fields

if TYPE_CHECKING:
    from portfolio_agent.core.chat_engine import ChatEngine

logger = logging.getLogger(__name__)

LIST_LIMIT = 10

NAME_PROMPT = "What should I call you?"

# Hand-written Arabic for the replies users see most; everything else goes
# through the translator.
_ARABIC_REPLIES: Dict[str, str] = {
    "contact": "يمكنك الاتصال بنا عبر الهاتف أو الواتساب على الرقم: {phone}\nأو عبر البريد الإلكتروني: {email}",
    "apology_products": "عذرًا، لا توجد تفاصيل عن المنتجات في الوقت الحالي. يرجى الاتصال بنا للحصول على معلومات محدثة.",
    "apology_projects": "عذرًا، لا توجد تفاصيل عن المشاريع في الوقت الحالي. يرجى الاتصال بنا للحصول على معلومات محدثة.",
    "apology_developers": "عذرًا، لا توجد تفاصيل عن المطورين في الوقت الحالي. يرجى الاتصال بنا للحصول على معلومات محدثة.",
}

BEST_OF_REPLIES: Dict[str, str] = {
    "projects": (
        "The best projects in Dubai include Dubai Marina, Downtown Dubai, and Palm Jumeirah. "
        "These areas are known for their luxury and high-quality developments."
    ),
    "products": (
        "The best products in Dubai include luxury villas in Emirates Hills, apartments in "
        "Burj Khalifa, and waterfront products in Jumeirah Beach Residence."
    ),
    "developers": (
        "The best developers in Dubai include Emaar Products, Nakheel, and DAMAC Products, "
        "known for their iconic and high-quality developments."
    ),
}

# Short replies to "What should I call you?" that are not names
_NOT_A_BARE_NAME = {
    "hi", "hello", "hey", "thanks", "thank you", "yes", "no", "ok", "okay",
    "sure", "nope", "nothing", "never mind", "help",
}


class ShortCircuitRule(NamedTuple):
    name: str
    matches: Callable[[ChatState], bool]
    respond: Callable[[ChatState, "ChatEngine"], str]


# ---------------------------------------------------------------------------
# Localization helpers
# ---------------------------------------------------------------------------

def _user_language(state: ChatState, engine: "ChatEngine") -> str:
    return state.get("user_language") or engine.language.pivot_language


def _localize(state: ChatState, engine: "ChatEngine", text: str, tolerate_failure: bool = False) -> str:
    """Translate an English reply to the user's language."""
    language = _user_language(state, engine)
    if not tolerate_failure:
        return engine.language.from_pivot(text, language)
    try:
        return engine.language.from_pivot(text, language)
    except UpstreamError as e:
        logger.warning(f"Keeping English canned reply, translation to '{language}' failed: {e}")
        return text


def _canned(state: ChatState, engine: "ChatEngine", key: str, english: str, tolerate_failure: bool = False) -> str:
    if _user_language(state, engine) == "ar" and key in _ARABIC_REPLIES:
        return _ARABIC_REPLIES[key].format(
            phone=engine.settings.contact_phone,
            email=engine.settings.contact_email,
        )
    return _localize(state, engine, english, tolerate_failure=tolerate_failure)


def _pivot(state: ChatState) -> str:
    return state.get("pivot_message") or state.get("message", "")


# ---------------------------------------------------------------------------
# Company / time / identity
# ---------------------------------------------------------------------------

def _company_context(state: ChatState, engine: "ChatEngine") -> str:
    fallback = (
        f"Company information: {engine.settings.company_name} portfolio that specializes in "
        "designing and developing, and selling software products."
    )
    try:
        sections = engine.company_info.relevant_sections(state.get("message", ""))
    except UpstreamError as e:
        logger.warning(f"Company info unavailable, using default description: {e}")
        return fallback
    if not sections:
        return fallback
    return "Company information:\n" + "\n".join(sections) + "\n"


def respond_company(state: ChatState, engine: "ChatEngine") -> str:
    message = _pivot(state)
    settings = engine.settings

    if classifiers.is_contact_query(message):
        english = (
            f"You can contact us by phone or WhatsApp at {settings.contact_phone}.\n"
            f"Or by email: {settings.contact_email}"
        )
        return _canned(state, engine, "contact", english, tolerate_failure=True)

    if classifiers.is_ownership_query(message):
        english = (
            f"{settings.company_name} portfolio that specializes in designing and developing, "
            f"and selling software products. Founded and owned by {settings.company_name}."
        )
        return _localize(state, engine, english, tolerate_failure=True)

    context = _company_context(state, engine)
    state["company_context"] = context
    return context


def respond_time(state: ChatState, engine: "ChatEngine") -> str:
    now = engine.now()
    english = f"The current time is {now.strftime('%I:%M %p')} in {engine.settings.timezone_label}."
    return _localize(state, engine, english, tolerate_failure=True)


def respond_bot_identity(state: ChatState, engine: "ChatEngine") -> str:
    english = f"I am {engine.settings.agent_name}. How can I assist you with the digital services?"
    return _localize(state, engine, english, tolerate_failure=True)


# ---------------------------------------------------------------------------
# Conversation name memory
# ---------------------------------------------------------------------------

def _greet(state: ChatState, engine: "ChatEngine", name: str) -> str:
    engine.sessions.set(state.get("conversation_id"), name)
    logger.info(f"Stored name for conversation {state.get('conversation_id')}")
    return _localize(state, engine, f"Nice to meet you, {name}. How can I assist you with your inquiries?")


def respond_name_declaration(state: ChatState, engine: "ChatEngine") -> str:
    name = classifiers.match_name_declaration(_pivot(state))
    return _greet(state, engine, name)


def _last_assistant_message(state: ChatState) -> str:
    for turn in reversed(state.get("history") or []):
        if turn.get("role") == "assistant":
            return turn.get("message") or ""
    return ""


def is_bare_name_reply(state: ChatState) -> bool:
    """A lone name sent right after the assistant asked what to call the user."""
    message = state.get("message", "").strip()
    if not classifiers.is_single_name(message):
        return False
    if message.lower() in _NOT_A_BARE_NAME or classifiers.is_any_list_query(message):
        return False
    return NAME_PROMPT in _last_assistant_message(state)


def respond_bare_name(state: ChatState, engine: "ChatEngine") -> str:
    words = state.get("message", "").strip().split()
    name = " ".join(word[:1].upper() + word[1:] for word in words)
    return _greet(state, engine, name)


def respond_name_query(state: ChatState, engine: "ChatEngine") -> str:
    stored = engine.sessions.get(state.get("conversation_id"))
    if stored:
        return _localize(state, engine, f"Your name is {stored}.")
    return _localize(state, engine, f"I don't know your name yet. {NAME_PROMPT}")


# ---------------------------------------------------------------------------
# List queries
# ---------------------------------------------------------------------------

def apology_for(kind: EntityKind) -> str:
    return (
        f"I'm sorry, but I don't have specific details about {kind.plural} at the moment. "
        "Please contact us directly for updated and accurate information."
    )


def _dedupe_by_name(items: List[Dict]) -> List[Dict]:
    seen = set()
    unique = []
    for item in items:
        if item["name"] in seen:
            continue
        seen.add(item["name"])
        unique.append(item)
    return unique


def list_entities(state: ChatState, engine: "ChatEngine", kind: EntityKind) -> str:
    """Reply with up to ``LIST_LIMIT`` records of ``kind``, or an apology."""
    records = engine.store.find(
        kind.collection,
        projection=(kind.display_field, "description", "image", "photo"),
        limit=LIST_LIMIT,
    )
    site_url = engine.settings.site_url
    items = [item for item in (kind.normalize(record, site_url) for record in records) if item]

    if not items:
        logger.info(f"List query for {kind.plural}: collection is empty")
        return _canned(state, engine, f"apology_{kind.plural}", apology_for(kind))

    language = _user_language(state, engine)
    if language != engine.language.pivot_language:
        for item in items:
            item["name"] = engine.language.from_pivot(item["name"], language)
            item["description"] = engine.language.from_pivot(item["description"], language)

    items = _dedupe_by_name(items)
    state[f"{kind.name}_list"] = items
    logger.info(f"List query for {kind.plural}: {len(items)} items")

    lines = "\n".join(f"{i}. {item['name']}: {item['description']}" for i, item in enumerate(items, 1))
    intro = _localize(state, engine, kind.list_intro)
    return f"{intro}\n{lines}"


def respond_best_of(state: ChatState, engine: "ChatEngine") -> str:
    category = classifiers.match_best_of_query(_pivot(state))
    return _localize(state, engine, BEST_OF_REPLIES[category])


# ---------------------------------------------------------------------------
# The chain
# ---------------------------------------------------------------------------

def _on_pivot(predicate: Callable[[str], object]) -> Callable[[ChatState], bool]:
    return lambda state: bool(predicate(_pivot(state)))


def _names_an_entity(state: ChatState) -> bool:
    """A labelled mention ("product: Marina Heights") asks for one record, not a list."""
    message = state.get("message", "")
    return any(labelled_mention(message, kind.name) for kind in (PRODUCT, PROJECT, DEVELOPER))


def _list_request(predicate: Callable[[str], object]) -> Callable[[ChatState], bool]:
    return lambda state: bool(predicate(_pivot(state))) and not _names_an_entity(state)


def _lister(kind: EntityKind) -> Callable[[ChatState, "ChatEngine"], str]:
    return lambda state, engine: list_entities(state, engine, kind)


SHORT_CIRCUIT_RULES = (
    ShortCircuitRule("company", _on_pivot(classifiers.is_company_query), respond_company),
    ShortCircuitRule("time", _on_pivot(classifiers.is_time_query), respond_time),
    ShortCircuitRule("bot_identity", _on_pivot(classifiers.is_bot_name_query), respond_bot_identity),
    ShortCircuitRule("name_declaration", _on_pivot(classifiers.match_name_declaration), respond_name_declaration),
    ShortCircuitRule("bare_name", is_bare_name_reply, respond_bare_name),
    ShortCircuitRule("name_query", _on_pivot(classifiers.is_name_query), respond_name_query),
    ShortCircuitRule("list_developers", _list_request(classifiers.is_list_developers_query), _lister(DEVELOPER)),
    ShortCircuitRule("list_products", _list_request(classifiers.is_list_products_query), _lister(PRODUCT)),
    ShortCircuitRule("list_projects", _list_request(classifiers.is_list_projects_query), _lister(PROJECT)),
    ShortCircuitRule("best_of", _on_pivot(classifiers.match_best_of_query), respond_best_of),
)


def find_rule(state: ChatState, rules=SHORT_CIRCUIT_RULES) -> Optional[ShortCircuitRule]:
    """First rule whose predicate matches, else None."""
    for rule in rules:
        if rule.matches(state):
            return rule
    return None


def apply_short_circuit(state: ChatState, engine: "ChatEngine", rules=SHORT_CIRCUIT_RULES) -> ChatState:
    """Pipeline node: answer from the chain or leave the state untouched."""
    rule = find_rule(state, rules)
    if rule is None:
        state["short_circuit"] = None
        return state

    with create_custom_span("short_circuit", {"rule": rule.name}):
        state.update(empty_result_fields())
        state["ai_response"] = rule.respond(state, engine)
        state["short_circuit"] = rule.name
        state["links"] = []
        state["pipeline_halt"] = True
    logger.info(f"Short-circuit reply from rule '{rule.name}'")
    return state
