"""Keyword/regex classifiers.

Every classifier here is a pure function of the message text: no state, no
I/O, same answer every time. They expect the message already translated to
the pivot language (English).

Predicates:
- is_company_query / is_ownership_query / is_contact_query
- is_time_query / is_bot_name_query
- match_name_declaration / is_single_name / is_name_query
- is_list_{products,projects,developers}_query
- is_featured_{products,projects}_query
- match_best_of_query
- is_pricing_query / is_location_availability_query
"""

import re
from typing import Optional

_APOS = "(?:'|’)?"

COMPANY_QUERY = re.compile(
    r"\b(?:company|about your company|about the company|company info(?:rmation)?|"
    r"what do you do|what is your business|what does your (?:company|business) do|"
    r"what services do you offer|what do you offer|services|contact|address|"
    r"where are you located|who owns|owner|ceo|founder|founded|"
    r"your history|company history|background of the company)\b",
    re.IGNORECASE,
)

OWNERSHIP_QUERY = re.compile(
    r"\b(?:who owns|who is the owner|who(?:'s| is) the (?:ceo|founder)|"
    r"who founded|owner|owned by|founder|ceo)\b",
    re.IGNORECASE,
)

CONTACT_QUERY = re.compile(
    r"\b(?:contact|phone|telephone|call you|call us|whatsapp|e-?mail|"
    r"reach you|reach out|get in touch|your number|mobile)\b",
    re.IGNORECASE,
)

TIME_QUERY = re.compile(
    rf"\b(?:what{_APOS}s the time|what is the time|whats the time|what time is it|"
    rf"tell me the time|show (?:me )?the time|current time|time now|the clock)\b",
    re.IGNORECASE,
)

BOT_NAME_QUERY = re.compile(
    rf"\b(?:what{_APOS}s your name|what is your name|who are you|what are you called)\b",
    re.IGNORECASE,
)

NAME_QUERY = re.compile(
    rf"\b(?:what{_APOS}s my name|do you know my name|what is my name)\b",
    re.IGNORECASE,
)

NAME_DECLARATION = re.compile(
    rf"\b(?:my name is|i am|i{_APOS}m|name(?:'|’)s|call me)\s+([A-Za-zÀ-ſ][A-Za-zÀ-ſ'-]*)",
    re.IGNORECASE,
)

SINGLE_NAME = re.compile(r"^([A-Za-zÀ-ſ]+(?:\s+[A-Za-zÀ-ſ]+)?)$")

# Words that follow "i am" / "i'm" without being a name
_NOT_A_NAME = {
    "a", "an", "the", "looking", "interested", "searching", "trying", "here",
    "fine", "good", "great", "ok", "okay", "well", "not", "just", "also",
    "very", "so", "from", "in", "at", "on", "new", "back", "sorry", "curious",
    "planning", "going", "wondering", "asking", "happy", "glad", "thinking",
    "buying", "selling", "investing", "want", "need", "still", "currently",
    "available", "ready", "free", "busy", "able", "unable", "open", "done",
    "sure", "waiting", "calling", "visiting", "coming", "moving", "living",
    "based", "located", "staying", "really", "now", "today", "tomorrow",
    "aware", "afraid", "excited", "only", "writing", "contacting",
}


def _list_query(noun: str) -> re.Pattern:
    return re.compile(
        rf"\b(?:list|show|display|view|browse|see)\s+(?:me\s+)?(?:all\s+)?(?:the\s+)?"
        rf"(?:your\s+)?(?:available\s+)?{noun}s\b"
        rf"|\b(?:all|available)\s+(?:the\s+)?{noun}s\b"
        rf"|\bwhat\s+{noun}s\s+(?:do you have|are available|are there)\b"
        rf"|^\s*{noun}s\s*\??\s*$",
        re.IGNORECASE,
    )


def _featured_query(noun: str) -> re.Pattern:
    return re.compile(
        rf"\b(?:featured|popular|recommended|highlighted|new|latest|some|example)\s+{noun}s?\b"
        rf"|\b{noun}s?\s+(?:examples|suggestions|recommendations)\b",
        re.IGNORECASE,
    )


LIST_PRODUCTS_QUERY = _list_query("product")
LIST_PROJECTS_QUERY = _list_query("project")
LIST_DEVELOPERS_QUERY = _list_query("developer")

FEATURED_PRODUCTS_QUERY = _featured_query("product")
FEATURED_PROJECTS_QUERY = _featured_query("project")

BEST_OF_QUERY = re.compile(
    r"\b(best|top|most popular)\s*(projects|products|developers)\s*(in dubai|dubai)?\b",
    re.IGNORECASE,
)

PRICING_QUERY = re.compile(
    r"\b(?:price|prices|pricing|priced|cost|costs|how much|payment|payments|"
    r"payment plan|installments?|down ?payment|fees?|budget|afford)\b",
    re.IGNORECASE,
)

LOCATION_AVAILABILITY_QUERY = re.compile(
    r"\b(?:availability|available in|available at|available near|located|"
    r"location|locations|where is|where are|schedule a visit|site visit|viewing)\b",
    re.IGNORECASE,
)


def is_company_query(text: str) -> bool:
    return bool(text) and COMPANY_QUERY.search(text) is not None


def is_ownership_query(text: str) -> bool:
    return bool(text) and OWNERSHIP_QUERY.search(text) is not None


def is_contact_query(text: str) -> bool:
    return bool(text) and CONTACT_QUERY.search(text) is not None


def is_time_query(text: str) -> bool:
    return bool(text) and TIME_QUERY.search(text) is not None


def is_bot_name_query(text: str) -> bool:
    return bool(text) and BOT_NAME_QUERY.search(text) is not None


def is_name_query(text: str) -> bool:
    return bool(text) and NAME_QUERY.search(text) is not None


def match_name_declaration(text: str) -> Optional[str]:
    """Return the declared first name ("my name is Sara" -> "Sara"), else None."""
    if not text:
        return None
    match = NAME_DECLARATION.search(text)
    if not match:
        return None
    name = match.group(1).strip("'-")
    if not name or name.lower() in _NOT_A_NAME:
        return None
    return name[:1].upper() + name[1:]


def is_single_name(text: str) -> bool:
    """One or two alphabetic words and nothing else ("Sara", "Sara Adel")."""
    return bool(text) and SINGLE_NAME.match(text.strip()) is not None


def is_list_products_query(text: str) -> bool:
    return bool(text) and LIST_PRODUCTS_QUERY.search(text) is not None


def is_list_projects_query(text: str) -> bool:
    return bool(text) and LIST_PROJECTS_QUERY.search(text) is not None


def is_list_developers_query(text: str) -> bool:
    return bool(text) and LIST_DEVELOPERS_QUERY.search(text) is not None


def is_featured_products_query(text: str) -> bool:
    return bool(text) and FEATURED_PRODUCTS_QUERY.search(text) is not None


def is_featured_projects_query(text: str) -> bool:
    return bool(text) and FEATURED_PROJECTS_QUERY.search(text) is not None


def match_best_of_query(text: str) -> Optional[str]:
    """Return "projects" / "products" / "developers" for best-of questions."""
    if not text:
        return None
    match = BEST_OF_QUERY.search(text)
    return match.group(2).lower() if match else None


def is_pricing_query(text: str) -> bool:
    return bool(text) and PRICING_QUERY.search(text) is not None


def is_location_availability_query(text: str) -> bool:
    return bool(text) and LOCATION_AVAILABILITY_QUERY.search(text) is not None


def is_any_list_query(text: str) -> bool:
    return is_list_products_query(text) or is_list_projects_query(text) or is_list_developers_query(text)
