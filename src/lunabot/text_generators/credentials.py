"""Credential caching for the Gemini REST API.

Neither an API key nor an access token comes with an authoritative lifetime we
can rely on, so credentials are kept for a fixed assumed lifetime and refreshed
a little before it runs out.
"""
from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Awaitable, Callable

import google.auth
from google.auth.transport.requests import Request

_LOG = logging.getLogger(__name__)

DEFAULT_LIFETIME = 55 * 60
DEFAULT_MARGIN = 60

GENERATIVE_LANGUAGE_SCOPES = (
    "https://www.googleapis.com/auth/generative-language",
    "https://www.googleapis.com/auth/cloud-platform",
)


@dataclass(frozen=True)
class Credential:
    """A header name/value pair that authorizes a request."""

    header: str
    value: str

    @classmethod
    def api_key(cls, key: str) -> Credential:
        return cls("x-goog-api-key", key)

    @classmethod
    def bearer(cls, token: str) -> Credential:
        return cls("Authorization", f"Bearer {token}")

    def headers(self) -> dict[str, str]:
        return {self.header: self.value}


CredentialFetcher = Callable[[], Awaitable[Credential]]


def api_key_fetcher(key: str) -> CredentialFetcher:
    async def _fetch() -> Credential:
        return Credential.api_key(key)

    return _fetch


def _refresh_adc_token(scopes: tuple[str, ...]) -> str:
    credentials, _project = google.auth.default(scopes=list(scopes))
    credentials.refresh(Request())
    if not credentials.token:
        raise RuntimeError("Application default credentials returned no access token")
    return credentials.token


def adc_fetcher(scopes: tuple[str, ...] = GENERATIVE_LANGUAGE_SCOPES) -> CredentialFetcher:
    """Fetch an OAuth access token from Google application-default credentials."""

    async def _fetch() -> Credential:
        token = await asyncio.to_thread(_refresh_adc_token, scopes)
        return Credential.bearer(token)

    return _fetch


class CredentialCache:
    """Caches a credential until ``margin`` seconds before its assumed expiry.

    Intended for use from a single event loop. Refreshes are serialized with an
    ``asyncio.Lock`` so concurrent handlers share one fetch.
    """

    def __init__(
        self,
        fetcher: CredentialFetcher,
        *,
        lifetime: float = DEFAULT_LIFETIME,
        margin: float = DEFAULT_MARGIN,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._fetcher = fetcher
        self._lifetime = lifetime
        self._margin = margin
        self._clock = clock
        self._credential: Credential | None = None
        self._expires_at = 0.0
        self._lock = asyncio.Lock()

    def _is_fresh(self) -> bool:
        return self._credential is not None and self._clock() < self._expires_at - self._margin

    async def get(self) -> Credential:
        if self._is_fresh():
            return self._credential  # type: ignore[return-value]
        async with self._lock:
            if not self._is_fresh():
                credential = await self._fetcher()
                self._credential = credential
                self._expires_at = self._clock() + self._lifetime
                _LOG.debug("Refreshed provider credential (valid for %ss)", self._lifetime)
        return self._credential  # type: ignore[return-value]

    def invalidate(self) -> None:
        self._credential = None
        self._expires_at = 0.0
