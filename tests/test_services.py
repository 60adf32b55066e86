"""Tests for the session name store, language service and speech service.

Run: pytest tests/test_services.py -v
"""

import base64
import os
from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest
from openai import OpenAIError

from portfolio_agent.config.settings import Settings, _is_feature_enabled
from portfolio_agent.core.language_service import LanguageService
from portfolio_agent.core.llm_client import LLMClient
from portfolio_agent.core.speech_service import SpeechService, chunk_text_by_bytes
from portfolio_agent.errors import UpstreamError
from portfolio_agent.state.session_store import SessionNameStore


class TestSessionNameStore:
    """LRU + TTL conversation name memory."""

    def test_set_and_get(self):
        store = SessionNameStore()
        store.set("c1", "Sara")
        assert store.get("c1") == "Sara"
        assert store.get("c2") is None

    def test_missing_conversation_id_is_ignored(self):
        store = SessionNameStore()
        store.set(None, "Sara")
        assert len(store) == 0
        assert store.get(None) is None

    def test_lru_eviction(self):
        store = SessionNameStore(max_entries=2)
        store.set("a", "A")
        store.set("b", "B")
        store.get("a")
        store.set("c", "C")
        assert "b" not in store
        assert store.get("a") == "A"
        assert store.get("c") == "C"

    def test_ttl_expiry(self):
        now = [0.0]
        store = SessionNameStore(ttl_seconds=60, clock=lambda: now[0])
        store.set("c1", "Sara")
        now[0] = 61.0
        assert store.get("c1") is None
        assert len(store) == 0

    def test_last_writer_wins(self):
        store = SessionNameStore()
        store.set("c1", "Sara")
        store.set("c1", "Omar")
        assert store.get("c1") == "Omar"


class TestLanguageService:
    """Detection and translation with injected backends."""

    def test_english_text_is_detected_as_pivot(self):
        detector = MagicMock(return_value="nl")
        service = LanguageService(detector=detector, translator=MagicMock())
        assert service.detect_language("what is the price") == "en"
        detector.assert_not_called()

    def test_region_suffix_is_dropped(self):
        service = LanguageService(detector=lambda text: "zh-cn", translator=MagicMock())
        assert service.detect_language("你好") == "zh"

    def test_empty_text_has_no_language(self):
        assert LanguageService(detector=MagicMock(), translator=MagicMock()).detect_language("  ") is None

    def test_translator_failure_is_upstream_error(self):
        def broken(text, target):
            raise RuntimeError("quota exceeded")

        service = LanguageService(detector=MagicMock(), translator=broken)
        with pytest.raises(UpstreamError, match="quota exceeded"):
            service.translate("hello", "ar")

    def test_pivot_text_is_not_translated(self):
        translator = MagicMock()
        service = LanguageService(detector=MagicMock(), translator=translator)
        assert service.from_pivot("hello", "en") == "hello"
        assert service.to_pivot("hello", None) == "hello"
        translator.assert_not_called()

    def test_chinese_uses_region_code(self):
        translator = MagicMock(return_value="你好")
        LanguageService(detector=MagicMock(), translator=translator).translate("hello", "zh")
        translator.assert_called_once_with("hello", "zh-CN")


class TestChunking:
    """TTS chunking under a byte limit."""

    def test_short_text_is_one_chunk(self):
        assert chunk_text_by_bytes("hello world", 100) == ["hello world"]

    def test_chunks_stay_below_limit(self):
        text = " ".join(["word"] * 50)
        chunks = chunk_text_by_bytes(text, 30)
        assert len(chunks) > 1
        assert all(len(chunk.encode("utf-8")) < 30 for chunk in chunks)
        assert " ".join(chunks) == text

    def test_multibyte_text(self):
        text = " ".join(["مرحبا"] * 20)
        chunks = chunk_text_by_bytes(text, 40)
        assert all(len(chunk.encode("utf-8")) < 40 for chunk in chunks)
        assert " ".join(chunks) == text

    def test_oversized_word_is_cut(self):
        chunks = chunk_text_by_bytes("a" * 25, 10)
        assert all(len(chunk) < 10 for chunk in chunks)
        assert "".join(chunks) == "a" * 25


class TestSpeechService:
    """OpenAI audio calls with a mocked client."""

    def _service(self, client, max_bytes=4000):
        return SpeechService(Settings(openai_api_key="test", tts_max_bytes=max_bytes), client=client)

    def test_synthesize_concatenates_chunks(self):
        client = MagicMock()
        client.audio.speech.create.side_effect = [SimpleNamespace(content=b"one"), SimpleNamespace(content=b"two")]
        service = self._service(client, max_bytes=13)

        audio = service.synthesize_base64("hello there friend", "en")

        assert client.audio.speech.create.call_count == 2
        assert base64.b64decode(audio) == b"onetwo"

    def test_transcribe_removes_temp_file(self):
        client = MagicMock()
        seen = {}

        def create(model, file, response_format):
            seen["path"] = file.name
            assert file.read() == b"RIFF"
            return "  what is your name  "

        client.audio.transcriptions.create.side_effect = create
        assert self._service(client).transcribe(b"RIFF", filename="voice.wav") == "what is your name"
        assert not os.path.exists(seen["path"])

    def test_transcribe_failure_still_removes_temp_file(self):
        client = MagicMock()
        seen = {}

        def create(model, file, response_format):
            seen["path"] = file.name
            raise OpenAIError("bad audio")

        client.audio.transcriptions.create.side_effect = create
        with pytest.raises(UpstreamError):
            self._service(client).transcribe(b"RIFF")
        assert not os.path.exists(seen["path"])


class TestLLMClient:
    """Chat completion wrapper."""

    def test_passes_settings_and_strips_content(self):
        client = MagicMock()
        client.chat.completions.create.return_value = SimpleNamespace(
            choices=[SimpleNamespace(message=SimpleNamespace(content="  Hi there  "))],
            usage=None,
        )
        llm = LLMClient(Settings(openai_api_key="test"), client=client)

        assert llm.complete("sys", [{"role": "user", "content": "hi"}]) == "Hi there"
        kwargs = client.chat.completions.create.call_args.kwargs
        assert kwargs["temperature"] == 0.5
        assert kwargs["max_tokens"] == 800
        assert kwargs["messages"][0] == {"role": "system", "content": "sys"}

    def test_provider_error_is_upstream_error(self):
        client = MagicMock()
        client.chat.completions.create.side_effect = OpenAIError("rate limited")
        with pytest.raises(UpstreamError) as exc_info:
            LLMClient(Settings(openai_api_key="test"), client=client).complete("sys", [])
        assert exc_info.value.provider == "openai"


class TestFeatureFlags:
    """Environment flag parsing."""

    @pytest.mark.parametrize("value,expected", [("true", True), ("1", True), ("yes", True), ("off", False)])
    def test_flag_values(self, monkeypatch, value, expected):
        monkeypatch.setenv("ENABLE_USERS", value)
        assert _is_feature_enabled("ENABLE_USERS") is expected

    def test_settings_from_env(self, monkeypatch):
        monkeypatch.setenv("ENABLE_USERS", "true")
        monkeypatch.setenv("FORBIDDEN_KEYWORDS", "Crypto, spam")
        monkeypatch.setenv("LLM_MAX_TOKENS", "not-a-number")
        settings = Settings.from_env()
        assert settings.enable_users is True
        assert settings.extra_forbidden_keywords == ("crypto", "spam")
        assert settings.llm_max_tokens == 800
