"""ChatEngine: the collaborators one chat pipeline needs, built once.

Holds settings, the document store, language/LLM/speech services, the
conversation-name store and the company-info cache. Nodes receive the
engine instead of importing globals, so tests can assemble one from fakes.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Optional, Sequence
from zoneinfo import ZoneInfo

from portfolio_agent.config.settings import Settings, get_settings
from portfolio_agent.core.document_store import DocumentStore, InMemoryDocumentStore, MongoDocumentStore
from portfolio_agent.core.entity_kinds import CATALOG_KINDS, EntityKind
from portfolio_agent.core.language_service import LanguageService
from portfolio_agent.core.llm_client import LLMClient
from portfolio_agent.core.speech_service import SpeechService
from portfolio_agent.flows.node_logic.stage0_preprocessing import FORBIDDEN_KEYWORDS
from portfolio_agent.flows.node_logic.stage5_context import CompanyInfoCache
from portfolio_agent.state.session_store import SessionNameStore

logger = logging.getLogger(__name__)


@dataclass
class ChatEngine:
    settings: Settings
    store: DocumentStore
    language: LanguageService
    llm: LLMClient
    speech: Optional[SpeechService] = None
    sessions: SessionNameStore = field(default_factory=SessionNameStore)
    company_info: Optional[CompanyInfoCache] = None
    kinds: Sequence[EntityKind] = CATALOG_KINDS
    clock: Callable[..., datetime] = datetime.now

    def __post_init__(self):
        if self.company_info is None:
            self.company_info = CompanyInfoCache(
                self.store,
                ttl_seconds=self.settings.company_info_ttl_seconds,
                enabled=self.settings.enable_company_info,
            )

    @property
    def users_enabled(self) -> bool:
        return self.settings.enable_users

    @property
    def forbidden_keywords(self) -> Sequence[str]:
        return FORBIDDEN_KEYWORDS + tuple(self.settings.extra_forbidden_keywords)

    def now(self) -> datetime:
        """Current time in the configured time zone."""
        return self.clock(ZoneInfo(self.settings.timezone))

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None) -> "ChatEngine":
        """Wire production collaborators from settings.

        Without ``MONGODB_URI`` an empty in-memory store is used so the API
        still starts (every lookup comes back empty).
        """
        settings = settings or get_settings()
        if settings.mongodb_uri:
            store: DocumentStore = MongoDocumentStore(settings.mongodb_uri, settings.mongodb_database)
        else:
            logger.warning("MONGODB_URI not set; using an empty in-memory document store")
            store = InMemoryDocumentStore()

        return cls(
            settings=settings,
            store=store,
            language=LanguageService(pivot_language=settings.pivot_language),
            llm=LLMClient(settings),
            speech=SpeechService(settings),
            sessions=SessionNameStore(
                max_entries=settings.session_max_entries,
                ttl_seconds=settings.session_ttl_seconds,
            ),
        )
