"""Tests for the OpenAI-compatible secondary provider."""

from __future__ import annotations

from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest

from lunabot.settings import FALLBACK_PERSONA
from lunabot.text_generators import OpenAICompatibleTextGenerator, ProviderError


def make_client(content):
    client = MagicMock()
    response = SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content=content))])
    client.chat.completions.create = AsyncMock(return_value=response)
    return client


@pytest.mark.asyncio
async def test_sends_persona_and_prompt():
    client = make_client("  hello from github  ")
    gen = OpenAICompatibleTextGenerator("openai/gpt-4o-mini", api_key="gh", base_url="https://x", client=client)

    assert await gen.generate("user text here") == "hello from github"

    kwargs = client.chat.completions.create.await_args.kwargs
    assert kwargs["model"] == "openai/gpt-4o-mini"
    assert kwargs["messages"][0] == {"role": "system", "content": FALLBACK_PERSONA}
    assert kwargs["messages"][1] == {"role": "user", "content": "user text here"}


@pytest.mark.asyncio
async def test_list_content_is_flattened():
    client = make_client([{"type": "text", "text": "a"}, {"type": "text", "text": "b"}])
    gen = OpenAICompatibleTextGenerator("m", api_key="gh", base_url="https://x", client=client)

    assert await gen.generate("hi") == "a\nb"


@pytest.mark.asyncio
async def test_missing_credential_raises():
    gen = OpenAICompatibleTextGenerator("m", api_key="", base_url="https://x", client=make_client("x"))
    with pytest.raises(ProviderError):
        await gen.generate("hi")


@pytest.mark.asyncio
async def test_no_choices_raises():
    client = MagicMock()
    client.chat.completions.create = AsyncMock(return_value=SimpleNamespace(choices=[]))
    gen = OpenAICompatibleTextGenerator("m", api_key="gh", base_url="https://x", client=client)
    with pytest.raises(ProviderError):
        await gen.generate("hi")
