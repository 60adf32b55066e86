"""OpenAI chat completion client.

Thin wrapper so the pipeline depends on ``complete(system_prompt, turns)``
rather than on the OpenAI SDK shape. Temperature is kept low (0.5 by
default) so answers stay close to the embedded database context.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from openai import OpenAI, OpenAIError

from portfolio_agent.config.settings import Settings
from portfolio_agent.errors import UpstreamError

logger = logging.getLogger(__name__)


class LLMClient:
    def __init__(self, settings: Settings, client: Optional[OpenAI] = None):
        self.model = settings.openai_model
        self.temperature = settings.llm_temperature
        self.max_tokens = settings.llm_max_tokens
        self._client = client or OpenAI(api_key=settings.openai_api_key)

    def complete(self, system_prompt: str, turns: List[Dict[str, str]]) -> Optional[str]:
        """Run one chat completion.

        Args:
            system_prompt: Instructions plus embedded database context
            turns: ``[{"role": "user"|"assistant", "content": str}, ...]``,
                ending with the current user message

        Returns:
            Stripped completion text, or None when the provider returned no content

        Raises:
            UpstreamError: the OpenAI call failed
        """
        messages: List[Dict[str, Any]] = [{"role": "system", "content": system_prompt}, *turns]
        try:
            completion = self._client.chat.completions.create(
                model=self.model,
                messages=messages,
                temperature=self.temperature,
                max_tokens=self.max_tokens,
            )
        except OpenAIError as e:
            logger.error(f"OpenAI completion failed (model={self.model}): {e}", exc_info=True)
            raise UpstreamError("LLM completion failed", provider="openai", details=str(e)) from e

        if not completion.choices:
            return None
        content = completion.choices[0].message.content
        if not content:
            return None
        usage = getattr(completion, "usage", None)
        if usage is not None:
            logger.info(
                f"LLM completion: model={self.model}, "
                f"prompt_tokens={usage.prompt_tokens}, completion_tokens={usage.completion_tokens}"
            )
        return content.strip() or None
