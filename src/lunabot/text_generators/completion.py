"""Completion client: primary provider, secondary provider, then an apology."""
from __future__ import annotations

import logging

from lunabot.settings import APOLOGY_TEXT, BotSettings

from .base import TextGeneratorAPI
from .errors import ProviderError
from .gemini import GeminiTextGenerator
from .openai_compat import OpenAICompatibleTextGenerator

_LOG = logging.getLogger(__name__)


class CompletionClient:
    """Obtain a completion for a prompt, tolerating provider failures.

    :meth:`generate` never raises: every failure ends in the next provider or
    the static apology text, so the result is always a non-empty string.
    """

    def __init__(
        self,
        primary: TextGeneratorAPI | None,
        secondary: TextGeneratorAPI | None = None,
        *,
        apology: str = APOLOGY_TEXT,
    ) -> None:
        self.primary = primary
        self.secondary = secondary
        self.apology = apology

    @classmethod
    def from_settings(cls, settings: BotSettings) -> CompletionClient:
        primary = GeminiTextGenerator(settings.gemini) if settings.gemini.configured else None
        secondary = (
            OpenAICompatibleTextGenerator.from_settings(settings.fallback)
            if settings.fallback.configured
            else None
        )
        return cls(primary, secondary)

    @property
    def current_model(self) -> str | None:
        session = getattr(self.primary, "session", None)
        return getattr(session, "model", None)

    async def _try(self, provider: TextGeneratorAPI, prompt: str) -> str | None:
        try:
            text = await provider.generate(prompt)
        except ProviderError as exc:
            _LOG.warning("%s failed: %s", provider.name, exc)
            return None
        except Exception:  # noqa: BLE001
            _LOG.exception("Unexpected error from %s", provider.name)
            return None
        text = (text or "").strip()
        if not text:
            _LOG.warning("%s returned an empty completion", provider.name)
            return None
        return text

    async def generate(self, prompt: str) -> str:
        if self.primary is not None:
            text = await self._try(self.primary, prompt)
            if text:
                return text

        if self.secondary is not None:
            _LOG.info("Falling back to %s", self.secondary.name)
            text = await self._try(self.secondary, prompt)
            if text:
                return text
        else:
            _LOG.warning("No secondary provider configured")

        return self.apology

    async def aclose(self) -> None:
        for provider in (self.primary, self.secondary):
            if provider is not None:
                try:
                    await provider.aclose()
                except Exception:  # noqa: BLE001
                    _LOG.exception("Failed to close %s", provider.name)
