"""End-to-end tests for the chat pipeline with fake collaborators.

Scenarios:
- Canned replies (identity, time, company, best-of) never reach the LLM
- Conversation name memory per conversation id
- Direct entity replies skip the LLM
- List queries, including the empty-collection apology
- Forbidden keywords stop the pipeline before any lookup
- Contextual LLM replies with featured samples and pricing info
- Audio flow: transcription in, synthesized speech out

Run: pytest tests/test_chat_flow.py -v
"""

from unittest.mock import MagicMock

import pytest

from portfolio_agent.core.document_store import InMemoryDocumentStore
from portfolio_agent.core.language_service import LanguageService
from portfolio_agent.errors import GenerationError, PolicyError, UpstreamError, ValidationError
from portfolio_agent.flows.chat_flow import handle_audio_message, handle_message
from portfolio_agent.flows.node_logic.stage2_short_circuit import SHORT_CIRCUIT_RULES

IDENTITY_REPLY = "I am Portfolio Agent. How can I assist you with the digital services?"


class TestShortCircuitChain:
    """Ordered canned-reply rules."""

    def test_rule_order(self):
        assert [rule.name for rule in SHORT_CIRCUIT_RULES] == [
            "company",
            "time",
            "bot_identity",
            "name_declaration",
            "bare_name",
            "name_query",
            "list_developers",
            "list_products",
            "list_projects",
            "best_of",
        ]

    def test_bot_identity_is_data_independent(self, engine, llm):
        first = handle_message("what's your name", engine)
        engine.store = InMemoryDocumentStore()
        second = handle_message("What is your name?", engine)

        assert first["ai_response"] == IDENTITY_REPLY
        assert second["ai_response"] == IDENTITY_REPLY
        assert first["short_circuit"] == "bot_identity"
        llm.complete.assert_not_called()

    def test_time_query_never_touches_store_or_llm(self, engine, store, llm):
        result = handle_message("what time is it", engine)

        assert result["ai_response"] == "The current time is 03:07 PM in Mansoura."
        assert store.queries == []
        llm.complete.assert_not_called()

    def test_time_query_in_arabic(self, engine, store):
        result = handle_message("كم الساعة الآن", engine)

        assert result["user_language"] == "ar"
        assert result["ai_response"] == "[ar] The current time is 03:07 PM in Mansoura."
        assert store.queries == []

    def test_identity_survives_translation_failure(self, engine):
        def translator(text, target):
            if target == "en":
                return "who are you"
            raise RuntimeError("translate quota exceeded")

        engine.language = LanguageService(detector=lambda text: "ar", translator=translator)
        result = handle_message("من أنت", engine)

        assert result["ai_response"] == IDENTITY_REPLY

    def test_company_context(self, engine, llm):
        result = handle_message("tell me about your company", engine)

        assert result["short_circuit"] == "company"
        assert result["ai_response"].startswith("Company information:\nAbout: We design and sell software products.")
        llm.complete.assert_not_called()

    def test_company_contact(self, engine):
        result = handle_message("how can I contact you", engine)
        assert result["ai_response"] == (
            "You can contact us by phone or WhatsApp at +01028496209.\nOr by email: elsaeidellithy@gmail.com"
        )

    def test_company_info_failure_uses_default_description(self, engine):
        engine.company_info = MagicMock()
        engine.company_info.relevant_sections.side_effect = UpstreamError("down", provider="mongodb")

        result = handle_message("tell me about your company", engine)

        assert result["ai_response"] == (
            "Company information: Alsaaeid Ellithy portfolio that specializes in "
            "designing and developing, and selling software products."
        )

    def test_best_of(self, engine, llm):
        result = handle_message("top developers in dubai", engine)
        assert result["ai_response"].startswith("The best developers in Dubai include Emaar")
        llm.complete.assert_not_called()


class TestNameMemory:
    """Names are remembered per conversation id."""

    def test_declare_then_ask(self, engine):
        greeting = handle_message("my name is Sara", engine, conversation_id="c1")
        assert greeting["ai_response"] == "Nice to meet you, Sara. How can I assist you with your inquiries?"

        assert handle_message("what's my name", engine, conversation_id="c1")["ai_response"] == "Your name is Sara."

    def test_other_conversation_does_not_see_the_name(self, engine):
        handle_message("my name is Sara", engine, conversation_id="c1")
        result = handle_message("what's my name", engine, conversation_id="c2")
        assert result["ai_response"] == "I don't know your name yet. What should I call you?"

    def test_bare_name_after_being_asked(self, engine):
        history = [
            {"role": "user", "message": "what's my name"},
            {"role": "assistant", "message": "I don't know your name yet. What should I call you?"},
        ]
        result = handle_message("Layla", engine, conversation_id="c3", history=history)

        assert result["short_circuit"] == "bare_name"
        assert engine.sessions.get("c3") == "Layla"


class TestEntityReplies:
    """Direct entity replies and list queries."""

    def test_labelled_product_is_returned_directly(self, engine, llm):
        result = handle_message("product name: Marina Heights", engine)

        expected = {
            "id": "p2",
            "name": "Marina Heights",
            "image": "https://cdn.example.com/marina.jpg",
            "url": "https://example.test/product/p2",
            "description": "Waterfront apartments in Dubai Marina",
        }
        assert result["ai_response"] is None
        assert result["product"] == expected
        assert result["product_list"] == [expected]
        assert result["links"] == [
            {"type": "product", "label": "Marina Heights", "url": "https://example.test/product/p2"},
        ]
        llm.complete.assert_not_called()

    def test_list_projects_on_empty_collection(self, engine, llm):
        result = handle_message("list projects", engine)

        assert result["ai_response"] == (
            "I'm sorry, but I don't have specific details about projects at the moment. "
            "Please contact us directly for updated and accurate information."
        )
        assert result["project_list"] == []
        llm.complete.assert_not_called()

    def test_list_projects_apology_in_arabic(self, engine):
        result = handle_message("اعرض المشاريع", engine)

        assert result["user_language"] == "ar"
        assert result["ai_response"].startswith("عذرًا")
        assert result["project_list"] == []

    def test_list_developers(self, engine):
        result = handle_message("list developers", engine)

        assert result["ai_response"] == (
            "Our partner developers include:\n1. Emaar: Master developer\n2. Nakheel: Palm Jumeirah developer"
        )
        assert [item["name"] for item in result["developer_list"]] == ["Emaar", "Nakheel"]
        assert result["developer_list"][0]["image"] == "https://cdn.example.com/emaar.png"


class TestPolicy:
    """Rejected input never reaches resolution or the LLM."""

    def test_forbidden_keyword(self, engine, store, llm):
        with pytest.raises(PolicyError):
            handle_message("show me phishing products", engine)
        assert store.queries == []
        llm.complete.assert_not_called()

    def test_empty_message(self, engine):
        with pytest.raises(ValidationError):
            handle_message("   ", engine)


class TestContextualReplies:
    """Messages that fall through to the LLM."""

    def test_pricing_question(self, engine, llm):
        result = handle_message("how much does a villa in palm cost", engine)

        assert result["ai_response"].startswith("Here is what I found.")
        assert "For pricing or payment details, you can share this contact: Mobile: +01028496209" in result["ai_response"]
        system_prompt = llm.complete.call_args.args[0]
        assert "Marina Heights" in system_prompt

    def test_featured_products(self, engine):
        result = handle_message("show me featured products", engine)

        assert [item["name"] for item in result["product_list"]] == ["Marina Heights"]
        assert "Example available products: Marina Heights." in result["ai_response"]

    def test_empty_generation_raises(self, engine, llm):
        llm.complete.return_value = ""
        with pytest.raises(GenerationError):
            handle_message("how much does a villa in palm cost", engine)


class TestAudioFlow:
    """Transcription in, synthesized speech out."""

    def test_audio_round(self, engine, speech):
        result = handle_audio_message(b"RIFF", engine, filename="voice.wav", conversation_id="c1")

        speech.transcribe.assert_called_once_with(b"RIFF", filename="voice.wav")
        speech.synthesize_base64.assert_called_once_with(IDENTITY_REPLY, "en")
        assert result["user_message"] == "what is your name"
        assert result["audio"] == "QVVESU8="
        assert result["translations"] == {}

    def test_direct_entity_is_spoken(self, engine, speech):
        speech.transcribe.return_value = "product name: Marina Heights"

        result = handle_audio_message(b"RIFF", engine)

        assert result["ai_response"] is None
        speech.synthesize_base64.assert_called_once_with("Marina Heights: Waterfront apartments in Dubai Marina", "en")

    def test_empty_upload(self, engine):
        with pytest.raises(ValidationError):
            handle_audio_message(b"", engine)

    def test_empty_transcription(self, engine, speech):
        speech.transcribe.return_value = "   "
        with pytest.raises(ValidationError):
            handle_audio_message(b"RIFF", engine)
        speech.synthesize_base64.assert_not_called()


class TestRoutingEdgeCases:
    """Typo normalization, singular requests and spoken entities."""

    def test_typo_corrected_list_query(self, engine, llm):
        result = handle_message("list projcts", engine)
        assert result["short_circuit"] == "list_projects"
        llm.complete.assert_not_called()

    def test_typo_corrected_time_query(self, engine):
        result = handle_message("wat time is it", engine)
        assert result["short_circuit"] == "time"
        assert result["ai_response"] == "The current time is 03:07 PM in Mansoura."

    def test_labelled_product_inside_show_request(self, engine, llm):
        result = handle_message("show me the product: Marina Heights", engine)

        assert result["short_circuit"] is None
        assert result["ai_response"] is None
        assert result["product"]["id"] == "p2"
        assert [item["id"] for item in result["product_list"]] == ["p2"]
        llm.complete.assert_not_called()

    def test_singular_project_request_is_not_listed(self, engine):
        result = handle_message("show project Creek Harbour", engine)
        assert result["short_circuit"] is None

    def test_availability_is_not_a_name(self, engine, llm):
        result = handle_message("i am available tomorrow for a visit", engine, conversation_id="c4")

        assert result["short_circuit"] is None
        assert engine.sessions.get("c4") is None
        llm.complete.assert_called_once()

    def test_direct_entity_is_spoken_in_user_language(self, engine, speech):
        def translator(text, target):
            return text if target == "en" else f"[{target}] {text}"

        engine.language = LanguageService(detector=lambda text: "ar", translator=translator)
        speech.transcribe.return_value = "product name: Marina Heights"

        result = handle_audio_message(b"RIFF", engine)

        assert result["user_language"] == "ar"
        speech.synthesize_base64.assert_called_once_with(
            "[ar] Marina Heights: Waterfront apartments in Dubai Marina", "ar"
        )
