"""Speech synthesis and transcription through the OpenAI audio APIs.

Synthesis: the provider caps the input payload, so text is split on spaces
into chunks below ``max_bytes`` (UTF-8), each chunk is synthesized on its
own and the MP3 bytes are concatenated.

Transcription: the upload is written to a temporary file that is always
removed, whether transcription succeeds or fails.
"""

from __future__ import annotations

import base64
import logging
import os
import tempfile
from typing import List, Optional

from openai import OpenAI, OpenAIError

from portfolio_agent.config.settings import Settings
from portfolio_agent.errors import UpstreamError

logger = logging.getLogger(__name__)


def chunk_text_by_bytes(text: str, max_bytes: int) -> List[str]:
    """Split ``text`` on spaces into chunks whose UTF-8 size stays below ``max_bytes``.

    A single word larger than the limit is cut on character boundaries.
    """
    if max_bytes < 2:
        raise ValueError("max_bytes must be at least 2")

    chunks: List[str] = []
    current = ""
    for word in text.split(" "):
        if not word:
            continue
        candidate = f"{current}{word} "
        if len(candidate.encode("utf-8")) < max_bytes:
            current = candidate
            continue
        if current.strip():
            chunks.append(current.strip())
        current = ""
        # Oversized single word
        while len(f"{word} ".encode("utf-8")) >= max_bytes:
            head = word
            while len(head.encode("utf-8")) >= max_bytes:
                head = head[:-1]
            chunks.append(head)
            word = word[len(head):]
        current = f"{word} " if word else ""
    if current.strip():
        chunks.append(current.strip())
    return chunks


class SpeechService:
    def __init__(self, settings: Settings, client: Optional[OpenAI] = None):
        self.tts_model = settings.tts_model
        self.voice = settings.tts_voice
        self.transcribe_model = settings.transcribe_model
        self.max_bytes = settings.tts_max_bytes
        self._client = client or OpenAI(api_key=settings.openai_api_key)

    def synthesize(self, text: str, language: str = "en") -> bytes:
        """Synthesize MP3 audio for ``text``. The voice speaks whatever language the text is in."""
        chunks = chunk_text_by_bytes(text or "", self.max_bytes)
        logger.info(f"Synthesizing speech: language={language}, chunks={len(chunks)}")
        audio = bytearray()
        for chunk in chunks:
            try:
                response = self._client.audio.speech.create(
                    model=self.tts_model,
                    voice=self.voice,
                    input=chunk,
                    response_format="mp3",
                )
            except OpenAIError as e:
                logger.error(f"Speech synthesis failed: {e}", exc_info=True)
                raise UpstreamError("Failed to generate audio", provider="openai-tts", details=str(e)) from e
            audio.extend(response.content)
        return bytes(audio)

    def synthesize_base64(self, text: str, language: str = "en") -> str:
        return base64.b64encode(self.synthesize(text, language)).decode("ascii")

    def transcribe(self, audio: bytes, filename: str = "audio.wav") -> str:
        """Transcribe an uploaded audio buffer to text."""
        suffix = os.path.splitext(filename)[1] or ".wav"
        fd, temp_path = tempfile.mkstemp(prefix="chat_audio_", suffix=suffix)
        try:
            with os.fdopen(fd, "wb") as f:
                f.write(audio)
            with open(temp_path, "rb") as audio_file:
                transcription = self._client.audio.transcriptions.create(
                    model=self.transcribe_model,
                    file=audio_file,
                    response_format="text",
                )
        except OpenAIError as e:
            logger.error(f"Transcription failed ({len(audio)} bytes): {e}", exc_info=True)
            raise UpstreamError("Failed to transcribe audio", provider="openai-whisper", details=str(e)) from e
        finally:
            try:
                os.unlink(temp_path)
            except FileNotFoundError:
                pass

        if isinstance(transcription, str):
            return transcription.strip()
        return (getattr(transcription, "text", "") or "").strip()
