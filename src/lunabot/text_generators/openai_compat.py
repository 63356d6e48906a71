# text_generators/openai_compat.py
from __future__ import annotations

import logging
from typing import Any, List

from openai import AsyncOpenAI

from lunabot.settings import FALLBACK_PERSONA, FallbackSettings

from .base import TextGeneratorAPI
from .errors import ProviderError

_LOG = logging.getLogger(__name__)


class OpenAICompatibleTextGenerator(TextGeneratorAPI):
    """Secondary backend for any OpenAI-compatible Chat Completions endpoint.

    Defaults to GitHub Models (``GITHUB_TOKEN``). Every call sends a fixed
    persona as the system message and the full prompt as the user turn.
    """

    name = "github-ai"

    def __init__(
        self,
        model: str,
        *,
        api_key: str,
        base_url: str,
        system_prompt: str = FALLBACK_PERSONA,
        client: AsyncOpenAI | None = None,
        temperature: float = 0.8,
        max_tokens: int = 500,
    ) -> None:
        self.model = model
        self.api_key = api_key
        self.base_url = base_url
        self.system_prompt = system_prompt
        self.temperature = temperature
        self.max_tokens = max_tokens
        self._client = client

    @classmethod
    def from_settings(cls, settings: FallbackSettings) -> OpenAICompatibleTextGenerator:
        return cls(settings.model, api_key=settings.token, base_url=settings.base_url)

    def _get_client(self) -> AsyncOpenAI:
        if self._client is None:
            self._client = AsyncOpenAI(api_key=self.api_key, base_url=self.base_url)
        return self._client

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.close()

    @staticmethod
    def _content_to_text(content: Any) -> str:
        """Best-effort conversion of OpenAI-style content into plain text."""
        if content is None:
            return ""
        if isinstance(content, str):
            return content
        if isinstance(content, list):
            parts: List[str] = []
            for item in content:
                if isinstance(item, dict) and item.get("type") == "text":
                    parts.append(item.get("text", ""))
                else:
                    parts.append(str(item))
            return "\n".join(p for p in parts if p)
        return str(content)

    async def generate(self, prompt: str) -> str:
        if not self.api_key:
            raise ProviderError("no credential configured", provider=self.name)
        client = self._get_client()
        resp = await client.chat.completions.create(
            model=self.model,
            messages=[
                {"role": "system", "content": self.system_prompt},
                {"role": "user", "content": prompt},
            ],
            temperature=self.temperature,
            max_tokens=self.max_tokens,
        )
        if not resp.choices:
            raise ProviderError("response contained no choices", provider=self.name)
        choice = resp.choices[0]
        return self._content_to_text(choice.message.content).strip()
