# text_generators/__init__.py
from .base import TextGeneratorAPI
from .completion import CompletionClient
from .errors import ModelNotFoundError, ProviderError, RateLimitError, TransientProviderError
from .gemini import GeminiTextGenerator, ProviderSession
from .openai_compat import OpenAICompatibleTextGenerator

__all__ = [
    "TextGeneratorAPI",
    "CompletionClient",
    "GeminiTextGenerator",
    "OpenAICompatibleTextGenerator",
    "ProviderSession",
    "ProviderError",
    "RateLimitError",
    "ModelNotFoundError",
    "TransientProviderError",
]
