# text_generators/gemini.py
"""Gemini text generator over the Generative Language REST API.

Handles model discovery, quota backoff and fallback models. Raises
:class:`ProviderError` once it runs out of options; the completion client
decides what happens next.
"""
from __future__ import annotations

import asyncio
import json
import logging
import random
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Iterable, Mapping

import aiohttp

from lunabot.settings import GeminiSettings

from .base import TextGeneratorAPI
from .credentials import CredentialCache, adc_fetcher, api_key_fetcher
from .decoding import DecodedText, decode_response
from .errors import ModelNotFoundError, ProviderError, RateLimitError, TransientProviderError
from .retry import backoff_delay, extract_retry_hint, is_no_free_quota

_LOG = logging.getLogger(__name__)

# Substrings tried in order against the provider's model listing.
MODEL_PREFERENCES: tuple[str, ...] = (
    "gemini-2.5-flash",
    "gemini-2.0-flash",
    "gemini-1.5-flash",
    "gemini-1.5-pro",
    "gemini-pro",
)

# Listed models that support generateContent but are not chat models.
_UNSUITABLE_MARKERS = ("tts", "image", "embedding", "audio", "live", "vision")

QUOTA_SWITCH_DELAY = 1.0


@dataclass
class ProviderSession:
    """Mutable state owned by one :class:`GeminiTextGenerator`.

    Holds the credential cache and the resolved model. It is only touched from
    the bot's event loop; handlers interleave at ``await`` points but never run
    in parallel, and the credential cache serializes its own refreshes.
    """

    credentials: CredentialCache
    model: str | None = None
    listed_models: list[str] = field(default_factory=list)

    def invalidate_model(self) -> None:
        self.model = None


@dataclass(frozen=True)
class HttpResult:
    status: int
    payload: Any
    headers: Mapping[str, str] = field(default_factory=dict)


def pick_preferred_model(
    available: Iterable[str],
    *,
    override: str = "",
    preferences: Iterable[str] = MODEL_PREFERENCES,
    exclude: Iterable[str] = (),
) -> str:
    """Choose the model to call from the provider's listing.

    An override wins when it matches a listed name (exactly, else as a
    substring). Otherwise the first listed model matching the preference
    substrings in order. With an empty listing the override or the first
    preference is returned verbatim.
    """
    excluded = set(exclude)
    candidates = [name for name in available if name not in excluded]
    preferences = tuple(preferences)
    override = override.removeprefix("models/") if override else ""

    if override:
        if override in candidates:
            return override
        for name in candidates:
            if override in name:
                return name

    for pref in preferences:
        for name in candidates:
            if pref in name:
                return name

    if candidates:
        return candidates[0]
    if override and override not in excluded:
        return override
    for pref in preferences:
        if pref not in excluded:
            return pref
    return preferences[0]


def _error_message(payload: Any) -> str:
    if isinstance(payload, dict):
        error = payload.get("error")
        if isinstance(error, dict) and error.get("message"):
            return str(error["message"])
    return str(payload)[:300]


def error_from_result(result: HttpResult, provider: str = "gemini") -> ProviderError:
    message = _error_message(result.payload)
    if result.status == 429:
        return RateLimitError(
            message,
            status=429,
            retry_after=extract_retry_hint(result.payload, result.headers),
            provider=provider,
        )
    if result.status == 404:
        return ModelNotFoundError(message, status=404, provider=provider)
    if result.status >= 500:
        return TransientProviderError(message, status=result.status, provider=provider)
    return ProviderError(message, status=result.status, provider=provider)


class GeminiTextGenerator(TextGeneratorAPI):
    """Primary completion backend.

    Requires ``GEMINI_API_KEY`` (sent as ``x-goog-api-key``) or
    ``GEMINI_USE_ADC=1`` (OAuth bearer token from application-default
    credentials).
    """

    name = "gemini"

    def __init__(
        self,
        settings: GeminiSettings,
        *,
        session: ProviderSession | None = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        rng: random.Random | None = None,
        temperature: float = 0.8,
        max_output_tokens: int = 800,
    ) -> None:
        self.settings = settings
        if session is None:
            fetcher = adc_fetcher() if settings.use_adc else api_key_fetcher(settings.api_key)
            session = ProviderSession(credentials=CredentialCache(fetcher))
        self.session = session
        self._sleep = sleep
        self._rng = rng or random.Random()
        self.temperature = temperature
        self.max_output_tokens = max_output_tokens
        self._http: aiohttp.ClientSession | None = None

    # ==================== HTTP ====================

    async def aclose(self) -> None:
        if self._http and not self._http.closed:
            await self._http.close()

    async def _request(self, method: str, url: str, *, json_body: Any = None) -> HttpResult:
        credential = await self.session.credentials.get()
        if self._http is None or self._http.closed:
            self._http = aiohttp.ClientSession(timeout=aiohttp.ClientTimeout(total=self.settings.timeout))
        async with self._http.request(method, url, json=json_body, headers=credential.headers()) as rsp:
            try:
                payload = await rsp.json(content_type=None)
            except (json.JSONDecodeError, aiohttp.ContentTypeError):
                payload = await rsp.text()
            return HttpResult(rsp.status, payload, dict(rsp.headers))

    def _models_url(self) -> str:
        return f"{self.settings.api_base}/v1beta/models?pageSize=1000"

    def _generate_url(self, model: str) -> str:
        return f"{self.settings.api_base}/v1beta/models/{model}:generateContent"

    # ==================== Model resolution ====================

    async def list_models(self) -> list[str]:
        """Return chat-capable model ids (without the ``models/`` prefix)."""
        result = await self._request("GET", self._models_url())
        if result.status != 200:
            raise error_from_result(result)
        names: list[str] = []
        entries = result.payload.get("models", []) if isinstance(result.payload, dict) else []
        for entry in entries:
            if not isinstance(entry, dict):
                continue
            methods = entry.get("supportedGenerationMethods") or []
            if methods and "generateContent" not in methods:
                continue
            name = str(entry.get("name", "")).removeprefix("models/")
            if name and not any(marker in name for marker in _UNSUITABLE_MARKERS):
                names.append(name)
        return names

    async def resolve_model(self, *, exclude: Iterable[str] = ()) -> str:
        excluded = set(exclude)
        if self.session.model and self.session.model not in excluded:
            return self.session.model
        try:
            available = await self.list_models()
        except (ProviderError, aiohttp.ClientError, asyncio.TimeoutError) as exc:
            _LOG.warning("Could not list Gemini models, using configured defaults: %s", exc)
            available = []
        self.session.listed_models = available
        model = pick_preferred_model(
            available,
            override=self.settings.model_override,
            exclude=excluded,
        )
        self.session.model = model
        _LOG.info("Resolved Gemini model: %s", model)
        return model

    def _next_fallback_model(self, tried: set[str]) -> str | None:
        for name in self.settings.fallback_models:
            if name not in tried:
                return name
        return None

    # ==================== Generation ====================

    def _body(self, prompt: str) -> dict[str, Any]:
        return {
            "contents": [{"role": "user", "parts": [{"text": prompt}]}],
            "generationConfig": {
                "temperature": self.temperature,
                "maxOutputTokens": self.max_output_tokens,
            },
        }

    def _extract_text(self, payload: Any, model: str) -> str:
        decoded = decode_response(payload)
        if isinstance(decoded, DecodedText):
            return decoded.text
        if decoded.blocked:
            raise ProviderError(decoded.reason, status=200)
        _LOG.warning("Unrecognized Gemini response shape for model=%s; returning raw payload", model)
        return decoded.fallback_text()

    def _wait_for(self, attempt: int, hint: float | None = None) -> float:
        if hint is not None:
            return min(hint, self.settings.max_backoff)
        return backoff_delay(attempt, cap=self.settings.max_backoff, rng=self._rng)

    async def generate(self, prompt: str) -> str:
        model = await self.resolve_model()
        tried = {model}
        reresolved = False
        last_error: ProviderError | None = None
        max_attempts = self.settings.max_attempts
        body = self._body(prompt)

        attempt = -1
        budget = max_attempts
        while attempt + 1 < budget:
            attempt += 1
            is_last = attempt == budget - 1
            try:
                result = await self._request("POST", self._generate_url(model), json_body=body)
            except (aiohttp.ClientError, asyncio.TimeoutError) as exc:
                last_error = TransientProviderError(str(exc) or type(exc).__name__)
                _LOG.warning("Gemini request failed (attempt %d/%d): %r", attempt + 1, max_attempts, exc)
                if not is_last:
                    await self._sleep(self._wait_for(attempt))
                continue

            if result.status == 200:
                return self._extract_text(result.payload, model)

            error = error_from_result(result)
            last_error = error

            if isinstance(error, RateLimitError):
                if is_no_free_quota(error.message):
                    next_model = self._next_fallback_model(tried)
                    if next_model:
                        _LOG.warning("Model %s has no free quota; switching to %s", model, next_model)
                        model = next_model
                        tried.add(model)
                        self.session.model = model
                        if not is_last:
                            await self._sleep(QUOTA_SWITCH_DELAY)
                        continue
                delay = self._wait_for(attempt, error.retry_after)
                _LOG.warning(
                    "Gemini rate limited on %s (attempt %d/%d); waiting %.1fs",
                    model,
                    attempt + 1,
                    max_attempts,
                    delay,
                )
                if not is_last:
                    await self._sleep(delay)
                continue

            if isinstance(error, ModelNotFoundError):
                if reresolved:
                    raise error
                reresolved = True
                _LOG.warning("Gemini model %s not found; re-resolving", model)
                self.session.invalidate_model()
                model = await self.resolve_model(exclude=tried)
                tried.add(model)
                # The retry with the re-resolved model always runs
                if is_last:
                    budget += 1
                continue

            if isinstance(error, TransientProviderError):
                _LOG.warning("Gemini server error %s (attempt %d/%d)", error.status, attempt + 1, max_attempts)
                if not is_last:
                    await self._sleep(self._wait_for(attempt))
                continue

            if error.status in (401, 403):
                _LOG.error("Gemini rejected the credential (status=%s): %s", error.status, error.message)
                self.session.credentials.invalidate()
            raise error

        raise last_error or ProviderError("no attempts made")
