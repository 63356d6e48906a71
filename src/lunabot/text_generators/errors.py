"""Exceptions raised by the text generator backends.

These never escape :class:`~lunabot.text_generators.completion.CompletionClient`;
it turns every failure into fallback text.
"""
from __future__ import annotations


class ProviderError(RuntimeError):
    """A provider call failed with a non-success status or unusable body."""

    def __init__(
        self,
        message: str,
        *,
        status: int | None = None,
        retry_after: float | None = None,
        provider: str = "gemini",
    ) -> None:
        self.message = message
        self.status = status
        self.retry_after = retry_after
        self.provider = provider
        super().__init__(f"{provider} error (status={status}): {message}")


class RateLimitError(ProviderError):
    """HTTP 429 / RESOURCE_EXHAUSTED."""


class ModelNotFoundError(ProviderError):
    """HTTP 404 for the selected model."""


class TransientProviderError(ProviderError):
    """5xx responses, timeouts and connection failures."""
