"""Input validation, sanitization and typo normalization.

This module provides the first pipeline stage:
- Validation: non-empty text under the configured maximum length
- Policy: forbidden keywords are rejected before anything else runs
- Sanitization: <script> blocks stripped
- Normalization: lowercase, collapsed whitespace
- Typo/slang correction from a fixed, ordered table

The correction table is applied entry by entry, in order, with whole-word
case-insensitive matching. Later entries see the output of earlier ones
("im" -> "i am" runs after "wont" -> "will not", and so on), so the order of
``TYPO_CORRECTIONS`` is part of its behaviour.
"""

import logging
import re
from typing import Iterable, Optional, Tuple

from portfolio_agent.errors import PolicyError, ValidationError
from portfolio_agent.observability.langsmith_tracer import create_custom_span
from portfolio_agent.state.conversation_state import ChatState

logger = logging.getLogger(__name__)

DEFAULT_MAX_LENGTH = 1000

FORBIDDEN_KEYWORDS: Tuple[str, ...] = (
    "malware",
    "phishing",
    "ddos attack",
    "sql injection",
    "drop table",
    "porn",
    "xxx",
    "casino",
    "terrorist",
)

# (incorrect, correct) applied in order
TYPO_CORRECTIONS: Tuple[Tuple[str, str], ...] = (
    ("propertie", "product"),
    ("developr", "developer"),
    ("developrs", "developers"),
    ("projct", "project"),
    ("projcts", "projects"),
    ("dubaii", "dubai"),
    ("duba", "dubai"),
    ("properti", "product"),
    ("developement", "development"),
    ("realestate", "real estate"),
    ("real-estate", "real estate"),
    ("apartmnt", "apartment"),
    ("apartmnts", "apartments"),
    ("vila", "villa"),
    ("vilas", "villas"),
    ("luxry", "luxury"),
    ("wat", "what"),
    ("wer", "where"),
    ("wen", "when"),
    ("wich", "which"),
    ("thier", "their"),
    ("ther", "there"),
    ("teh", "the"),
    ("adn", "and"),
    ("fo", "for"),
    ("frm", "from"),
    ("abt", "about"),
    ("pls", "please"),
    ("thx", "thanks"),
    ("u", "you"),
    ("r", "are"),
    ("2", "to"),
    ("4", "for"),
    ("b4", "before"),
    ("c", "see"),
    ("y", "why"),
    ("hv", "have"),
    ("wud", "would"),
    ("cud", "could"),
    ("shud", "should"),
    ("dnt", "do not"),
    ("cnt", "cannot"),
    ("wont", "will not"),
    ("cant", "cannot"),
    ("im", "i am"),
    ("ive", "i have"),
    ("id", "i would"),
    ("ill", "i will"),
    ("theyre", "they are"),
    ("youre", "you are"),
    ("were", "we are"),
    ("thats", "that is"),
    ("its", "it is"),
    ("isnt", "is not"),
    ("arent", "are not"),
    ("werent", "were not"),
    ("dont", "do not"),
    ("doesnt", "does not"),
    ("didnt", "did not"),
    ("havent", "have not"),
    ("hasnt", "has not"),
    ("hadnt", "had not"),
    ("wouldnt", "would not"),
    ("couldnt", "could not"),
    ("shouldnt", "should not"),
    ("mightnt", "might not"),
    ("mustnt", "must not"),
)

_SCRIPT_BLOCK = re.compile(r"<script\b[^<]*(?:(?!</script>)<[^<]*)*</script>", re.IGNORECASE)

_COMPILED_CORRECTIONS = tuple(
    (re.compile(rf"\b{re.escape(incorrect)}\b", re.IGNORECASE), correct)
    for incorrect, correct in TYPO_CORRECTIONS
)


def validate_message_length(message, max_length: int = DEFAULT_MAX_LENGTH) -> str:
    """Return the trimmed message or raise ValidationError."""
    if not isinstance(message, str) or not message.strip():
        raise ValidationError("Message must be a non-empty string")
    trimmed = message.strip()
    if len(trimmed) > max_length:
        raise ValidationError(f"Message too long. Maximum length is {max_length} characters")
    return trimmed


def contains_forbidden_keyword(message: str, keywords: Iterable[str] = FORBIDDEN_KEYWORDS) -> Optional[str]:
    """Return the first forbidden keyword found (case-insensitive substring), else None."""
    if not isinstance(message, str) or not message:
        return None
    lowered = message.lower()
    for keyword in keywords:
        if keyword and keyword.lower() in lowered:
            return keyword
    return None


def sanitize_input(text: str) -> str:
    """Strip <script>...</script> blocks."""
    return _SCRIPT_BLOCK.sub("", text)


def apply_typo_corrections(text: str) -> str:
    for pattern, correct in _COMPILED_CORRECTIONS:
        text = pattern.sub(correct, text)
    return text


def preprocess_text(
    raw,
    max_length: int = DEFAULT_MAX_LENGTH,
    forbidden_keywords: Iterable[str] = FORBIDDEN_KEYWORDS,
) -> str:
    """Validate and normalize a raw chat message.

    Raises:
        ValidationError: empty, non-text or longer than ``max_length``
        PolicyError: contains a forbidden keyword
    """
    trimmed = validate_message_length(raw, max_length)

    keyword = contains_forbidden_keyword(trimmed, forbidden_keywords)
    if keyword:
        logger.warning(f"Message rejected: contains forbidden keyword '{keyword}'")
        raise PolicyError("Message contains invalid keywords")

    processed = sanitize_input(trimmed).lower()
    processed = re.sub(r"\s+", " ", processed).strip()
    return apply_typo_corrections(processed)


def preprocess_message(
    state: ChatState,
    max_length: int = DEFAULT_MAX_LENGTH,
    forbidden_keywords: Iterable[str] = FORBIDDEN_KEYWORDS,
) -> ChatState:
    """Pipeline node: fill ``message`` and ``processed_message``.

    Errors propagate; a rejected message never reaches later stages.
    """
    raw = state.get("raw_message", "")
    with create_custom_span("preprocess_message", {"message": str(raw)[:120]}):
        processed = preprocess_text(raw, max_length, forbidden_keywords)
        state["message"] = raw.strip()
        state["processed_message"] = processed
        if processed != raw.strip().lower():
            logger.info(f"Message normalized: '{raw.strip()[:60]}' → '{processed[:60]}'")
    return state
