"""Tests for context assembly, prompt construction and reply finalization.

Run: pytest tests/test_context_and_prompt.py -v
"""

from unittest.mock import MagicMock

import pytest

from portfolio_agent.core.document_store import InMemoryDocumentStore
from portfolio_agent.core.entity_kinds import PRODUCT
from portfolio_agent.errors import GenerationError, UpstreamError
from portfolio_agent.flows.node_logic.stage5_context import (
    CompanyInfoCache,
    build_entity_context,
    build_structured_links,
    fetch_featured_samples,
    retrieve_relevant_company_info,
)
from portfolio_agent.flows.node_logic.stage5_prompt import (
    build_chat_turns,
    build_system_prompt,
    fetch_database_context,
)
from portfolio_agent.flows.node_logic.stage6_generation import generate_reply
from portfolio_agent.flows.node_logic.stage7_finalize import compose_reply

SECTIONS = [
    {"title": "About", "tags": ["about"], "content": {"en": "We build software products."}},
    {"title": "Hours", "tags": ["hours", "open"], "content": {"en": "Open Sunday to Thursday."}},
    {"title": "Team", "tags": [], "content": {"en": "Designers and engineers."}},
]


class TestCompanyInfo:
    """Section scoring and caching."""

    def test_tag_hits_rank_first(self):
        assert retrieve_relevant_company_info(SECTIONS, "what are your opening hours")[0] == (
            "Hours: Open Sunday to Thursday."
        )

    def test_only_positive_sections_are_returned(self):
        result = retrieve_relevant_company_info(SECTIONS, "about hours")
        assert result == ["About: We build software products.", "Hours: Open Sunday to Thursday."]

    def test_falls_back_to_top_section(self):
        assert retrieve_relevant_company_info(SECTIONS, "zzz") == ["About: We build software products."]

    def test_empty_sections(self):
        assert retrieve_relevant_company_info([], "about") == []

    def test_cache_respects_ttl(self):
        store = MagicMock()
        store.find.return_value = SECTIONS
        now = [0.0]
        cache = CompanyInfoCache(store, ttl_seconds=10, clock=lambda: now[0])

        cache.load()
        cache.load()
        assert store.find.call_count == 1

        now[0] = 11.0
        cache.load()
        assert store.find.call_count == 2

        cache.invalidate()
        cache.load()
        assert store.find.call_count == 3

    def test_disabled_cache_never_reads(self):
        store = MagicMock()
        assert CompanyInfoCache(store, enabled=False).relevant_sections("about") == []
        store.find.assert_not_called()


class TestEntityContext:
    """Summaries, links and featured samples."""

    def test_featured_records_first(self, store):
        samples = fetch_featured_samples(store, PRODUCT)
        assert [doc["_id"] for doc in samples] == ["p2"]

    def test_featured_falls_back_to_any_records(self):
        store = InMemoryDocumentStore({"products": [{"_id": "a", "name": "A"}, {"_id": "b", "name": "B"}]})
        assert [doc["_id"] for doc in fetch_featured_samples(store, PRODUCT)] == ["a", "b"]

    def test_context_blob(self):
        resolution = {"product": None, "project": None, "developer": {"_id": "d1", "developerName": "Emaar"}}
        lists = {"product": [{"name": "Marina Heights"}, {"name": "Palm Villa"}]}
        context = build_entity_context(resolution, lists, stored_name="Sara")
        assert context == (
            "User name: Sara. Developer details: Name: Emaar. "
            "Example available products: Marina Heights, Palm Villa."
        )

    def test_empty_context(self):
        assert build_entity_context({}, {}) == ""

    def test_links_only_for_records_with_id(self):
        resolution = {"product": {"_id": "p2", "name": "Marina Heights"}, "project": {"name": "No id"}}
        assert build_structured_links(resolution, "https://s") == [
            {"type": "product", "label": "Marina Heights", "url": "https://s/product/p2"},
        ]


class TestPrompt:
    """System prompt and history."""

    def test_prompt_embeds_newest_records(self, store, settings):
        context = fetch_database_context(store)
        prompt = build_system_prompt(context, settings)
        assert context["product"][0]["name"] == "Marina Heights"
        assert "- Name: Marina Heights (مارينا هايتس, , , )" in prompt
        assert "No projects currently available in database." in prompt
        assert '"Portfolio Agent."' in prompt

    def test_descriptions_cut_at_100_characters(self, settings):
        store = InMemoryDocumentStore({"products": [{"_id": "a", "name": "A", "description": "x" * 150}]})
        prompt = build_system_prompt(fetch_database_context(store), settings)
        assert "x" * 100 + "..." in prompt
        assert "x" * 101 not in prompt

    def test_store_failure_degrades_to_empty_lists(self):
        store = MagicMock()
        store.find.side_effect = UpstreamError("down", provider="mongodb")
        assert fetch_database_context(store) == {"product": [], "project": [], "developer": []}

    def test_history_filters_canned_replies(self):
        history = [
            {"role": "user", "message": "list projects"},
            {"role": "assistant", "message": "I'm sorry, but I don't have specific details about projects"},
            {"role": "assistant", "message": ""},
        ]
        assert build_chat_turns(history, "and products?") == [
            {"role": "user", "content": "list projects"},
            {"role": "assistant", "content": "..."},
            {"role": "user", "content": "and products?"},
        ]


class TestGenerationAndFinalize:
    """LLM call and reply composition."""

    def test_empty_llm_content_raises(self, engine, llm):
        llm.complete.return_value = None
        with pytest.raises(GenerationError):
            generate_reply({"pivot_message": "hello", "system_prompt": "sys"}, engine)

    def test_llm_receives_system_prompt_and_turns(self, engine, llm):
        state = generate_reply({"pivot_message": "hello", "system_prompt": "sys", "history": []}, engine)
        llm.complete.assert_called_once_with("sys", [{"role": "user", "content": "hello"}])
        assert state["ai_response"] == "Here is what I found."

    def test_extras_in_order(self, settings):
        reply = compose_reply(
            "Answer.",
            settings,
            entity_context="Product details: Name: A.",
            links=[{"type": "product", "label": "A", "url": "https://s/product/a"}],
            wants_pricing=True,
            wants_location=True,
        )
        lines = reply.split("\n")
        assert lines[0] == "Answer."
        assert lines[2] == "Product details: Name: A."
        assert lines[3] == "Links: A: https://s/product/a"
        assert lines[4].startswith("For pricing or payment details")
        assert lines[5].startswith("You can inquire about product and project availability")

    def test_no_extras(self, settings):
        assert compose_reply("Answer.", settings) == "Answer."
