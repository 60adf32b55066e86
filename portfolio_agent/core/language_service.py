"""Language detection and translation.

Detection uses langdetect (seeded so results are reproducible); translation
uses deep-translator's GoogleTranslator. Every message is translated to the
pivot language (English) before classification and the reply is translated
back to the user's language at the end of the pipeline.

Both backends can be swapped through the constructor, which is how tests
run without network access.
"""

from __future__ import annotations

import logging
import re
from typing import Callable, List, Optional

from deep_translator import GoogleTranslator
from langdetect import DetectorFactory, detect_langs
from langdetect.lang_detect_exception import LangDetectException

from portfolio_agent.errors import UpstreamError

logger = logging.getLogger(__name__)

# Reproducible langdetect results
DetectorFactory.seed = 0

# Google Translate wants region-qualified codes for a few languages
_TRANSLATOR_CODES = {
    "zh": "zh-CN",
    "zh-cn": "zh-CN",
    "zh-tw": "zh-TW",
    "he": "iw",
}

# Short English messages ("list projects") are often misdetected; when an
# ASCII-only message contains one of these words it is treated as English.
_ENGLISH_HINT_WORDS = {
    "what", "whats", "what's", "who", "where", "when", "which", "how", "why",
    "is", "are", "the", "my", "your", "you", "we",
    "list", "show", "tell", "give", "time", "price", "about",
    "products", "projects", "developers",
    "please", "hello", "hey", "thanks", "best", "available",
}

# Google Translate rejects payloads above 5000 characters
_MAX_TRANSLATE_CHARS = 4500

Detector = Callable[[str], Optional[str]]
Translator = Callable[[str, str], str]


def _langdetect_detector(text: str) -> Optional[str]:
    try:
        candidates = detect_langs(text)
    except LangDetectException:
        return None
    if not candidates:
        return None
    return candidates[0].lang


def _google_translator(text: str, target: str) -> str:
    return GoogleTranslator(source="auto", target=target).translate(text)


def _split_for_translation(text: str, max_chars: int = _MAX_TRANSLATE_CHARS) -> List[str]:
    """Split long text on line/word boundaries into translator-sized chunks."""
    if len(text) <= max_chars:
        return [text]
    chunks: List[str] = []
    current = ""
    for piece in re.split(r"(\s+)", text):
        if len(current) + len(piece) > max_chars and current:
            chunks.append(current)
            current = ""
        current += piece
    if current:
        chunks.append(current)
    return chunks


class LanguageService:
    """Detect the user's language and translate to/from the pivot language."""

    def __init__(
        self,
        pivot_language: str = "en",
        detector: Optional[Detector] = None,
        translator: Optional[Translator] = None,
    ):
        self.pivot_language = pivot_language
        self._detector = detector or _langdetect_detector
        self._translator = translator or _google_translator

    def detect_language(self, text: str) -> Optional[str]:
        """Return an ISO-639-1 code, or None when the text gives no signal."""
        if not text or not text.strip():
            return None

        if self.pivot_language == "en" and _looks_english(text):
            return "en"

        try:
            code = self._detector(text)
        except Exception as e:
            logger.error(f"Language detection failed: {e}", exc_info=True)
            raise UpstreamError("Language detection failed", provider="langdetect", details=str(e)) from e

        if not code:
            return None
        # langdetect returns zh-cn / zh-tw
        return code.split("-")[0].lower()

    def translate(self, text: str, target: str) -> str:
        """Translate ``text`` to ``target``; empty text is returned unchanged."""
        if not text or not text.strip():
            return text

        target_code = _TRANSLATOR_CODES.get(target.lower(), target)
        try:
            parts = [self._translator(chunk, target_code) for chunk in _split_for_translation(text)]
        except Exception as e:
            logger.error(f"Translation to '{target}' failed: {e}", exc_info=True)
            raise UpstreamError("Translation failed", provider="google-translate", details=str(e)) from e

        # The translator returns None for payloads it cannot handle
        translated = "".join(part if part is not None else chunk
                             for part, chunk in zip(parts, _split_for_translation(text)))
        logger.debug(f"Translated to {target}: '{text[:50]}' → '{translated[:50]}'")
        return translated

    def to_pivot(self, text: str, source_language: Optional[str]) -> str:
        """Translate to the pivot language unless the text is already in it."""
        if not source_language or source_language == self.pivot_language:
            return text
        return self.translate(text, self.pivot_language)

    def from_pivot(self, text: str, target_language: Optional[str]) -> str:
        """Translate pivot-language text back to the user's language."""
        if not target_language or target_language == self.pivot_language:
            return text
        return self.translate(text, target_language)


def _looks_english(text: str) -> bool:
    if not text.isascii():
        return False
    words = re.findall(r"[a-z']+", text.lower())
    return any(word in _ENGLISH_HINT_WORDS for word in words)
