"""Shared fixtures: an in-memory catalog and a ChatEngine built from fakes.

No test here talks to MongoDB, Google Translate or OpenAI.
"""

import os
import re
from datetime import datetime
from unittest.mock import MagicMock

import pytest

# api.main builds its engine lazily, but keep the OpenAI client constructible
os.environ.setdefault("OPENAI_API_KEY", "test-key")

from portfolio_agent.config.settings import Settings
from portfolio_agent.core.chat_engine import ChatEngine
from portfolio_agent.core.document_store import InMemoryDocumentStore
from portfolio_agent.core.language_service import LanguageService
from portfolio_agent.core.llm_client import LLMClient
from portfolio_agent.core.speech_service import SpeechService
from portfolio_agent.state.session_store import SessionNameStore

_ARABIC = re.compile(r"[؀-ۿ]")


def fake_detector(text):
    if _ARABIC.search(text):
        return "ar"
    if "bonjour" in text.lower():
        return "fr"
    return "en"


def fake_translator(text, target):
    """Tag text with the target language instead of translating it."""
    if target == "en":
        return ARABIC_TO_ENGLISH.get(text, text)
    return f"[{target}] {text}"


ARABIC_TO_ENGLISH = {
    "كم الساعة الآن": "what time is it",
    "اعرض المشاريع": "list projects",
}


PRODUCTS = [
    {
        "_id": "p1",
        "name": "Marina Heights Tower",
        "description": "Sea view apartments",
        "price": "2,000,000 AED",
        "isFeatured": False,
        "createdAt": datetime(2024, 1, 1),
    },
    {
        "_id": "p2",
        "name": "Marina Heights",
        "name_ar": "مارينا هايتس",
        "description": "Waterfront apartments in Dubai Marina",
        "beds": 3,
        "isFeatured": True,
        "image": {"filePath": "https://cdn.example.com/marina.jpg"},
        "createdAt": datetime(2024, 3, 1),
    },
    {
        "_id": "p3",
        "name": "Palm Villa",
        "description": "Private beach villa",
        "isFeatured": False,
        "createdAt": datetime(2024, 2, 1),
    },
]

DEVELOPERS = [
    {"_id": "d1", "developerName": "Emaar", "description": "Master developer", "photo": "https://cdn.example.com/emaar.png"},
    {"_id": "d2", "developerName": "Nakheel", "description": "Palm Jumeirah developer"},
]

COMPANY_INFO = [
    {"title": "About", "tags": ["about", "company"], "content": {"en": "We design and sell software products."}},
    {"title": "Services", "tags": ["services"], "content": {"en": "Web development, mobile apps and consulting."}},
]


@pytest.fixture
def settings():
    return Settings(openai_api_key="test-key", site_url="https://example.test")


@pytest.fixture
def store():
    return InMemoryDocumentStore({
        "products": PRODUCTS,
        "projects": [],
        "developers": DEVELOPERS,
        "companyinfos": COMPANY_INFO,
    })


@pytest.fixture
def language_service():
    return LanguageService(pivot_language="en", detector=fake_detector, translator=fake_translator)


@pytest.fixture
def llm():
    client = MagicMock(spec=LLMClient)
    client.complete.return_value = "Here is what I found."
    return client


@pytest.fixture
def speech():
    service = MagicMock(spec=SpeechService)
    service.transcribe.return_value = "what is your name"
    service.synthesize_base64.return_value = "QVVESU8="
    return service


@pytest.fixture
def fixed_clock():
    def clock(tz=None):
        return datetime(2025, 5, 4, 15, 7, tzinfo=tz)
    return clock


@pytest.fixture
def engine(settings, store, language_service, llm, speech, fixed_clock):
    return ChatEngine(
        settings=settings,
        store=store,
        language=language_service,
        llm=llm,
        speech=speech,
        sessions=SessionNameStore(max_entries=100, ttl_seconds=3600),
        clock=fixed_clock,
    )
