"""Retry-delay parsing and backoff policy for provider rate limits."""
from __future__ import annotations

import random
import re
from typing import Any, Mapping

DEFAULT_BASE_DELAY = 1.0
DEFAULT_MAX_DELAY = 60.0

_SECONDS_RE = re.compile(r"^(\d+(?:\.\d+)?)\s*s$", re.IGNORECASE)
_ISO_DURATION_RE = re.compile(
    r"^P(?:(?P<days>\d+(?:\.\d+)?)D)?"
    r"(?:T(?:(?P<hours>\d+(?:\.\d+)?)H)?(?:(?P<minutes>\d+(?:\.\d+)?)M)?(?:(?P<seconds>\d+(?:\.\d+)?)S)?)?$",
    re.IGNORECASE,
)
_MESSAGE_HINT_RE = re.compile(r"retry in\s+(\d+(?:\.\d+)?)\s*(ms|s)\b", re.IGNORECASE)
_NO_FREE_QUOTA_RE = re.compile(
    r"limit:\s*0(?![\d.])|free quota|no free tier|free tier is not available|not available on the free tier",
    re.IGNORECASE,
)


def parse_retry_delay(value: Any) -> float | None:
    """Parse a provider retry hint into seconds.

    Accepts ``"5s"``, ``"1.5s"``, ISO-8601 durations (``"PT1M30S"``) and
    bare numbers (``Retry-After`` header). Returns ``None`` for anything else.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value) if value >= 0 else None

    text = str(value).strip()
    if not text:
        return None

    match = _SECONDS_RE.match(text)
    if match:
        return float(match.group(1))

    match = _ISO_DURATION_RE.match(text)
    if match and any(match.groupdict().values()):
        parts = {k: float(v) for k, v in match.groupdict().items() if v}
        return (
            parts.get("days", 0.0) * 86400
            + parts.get("hours", 0.0) * 3600
            + parts.get("minutes", 0.0) * 60
            + parts.get("seconds", 0.0)
        )

    try:
        seconds = float(text)
    except ValueError:
        return None
    return seconds if seconds >= 0 else None


def extract_retry_hint(payload: Any, headers: Mapping[str, str] | None = None) -> float | None:
    """Find a retry delay in a Google API error body or the response headers."""
    error = payload.get("error") if isinstance(payload, dict) else None
    if isinstance(error, dict):
        for detail in error.get("details") or []:
            if isinstance(detail, dict) and "retryDelay" in detail:
                delay = parse_retry_delay(detail.get("retryDelay"))
                if delay is not None:
                    return delay
        message = error.get("message")
        if isinstance(message, str):
            match = _MESSAGE_HINT_RE.search(message)
            if match:
                amount = float(match.group(1))
                return amount / 1000.0 if match.group(2).lower() == "ms" else amount

    if headers:
        raw = headers.get("Retry-After") or headers.get("retry-after")
        if raw is not None:
            return parse_retry_delay(raw)
    return None


def backoff_delay(
    attempt: int,
    *,
    base: float = DEFAULT_BASE_DELAY,
    cap: float = DEFAULT_MAX_DELAY,
    rng: random.Random | None = None,
) -> float:
    """Exponential backoff with equal jitter, never above ``cap``.

    Half of ``min(cap, base * 2**attempt)`` is fixed and the other half is
    drawn uniformly, so the wait still grows with the attempt number.
    """
    rng = rng or random
    ceiling = min(cap, base * (2 ** max(0, attempt)))
    half = ceiling / 2.0
    return min(cap, half + rng.uniform(0.0, half))


def is_no_free_quota(message: str | None) -> bool:
    """True when a 429 says the model has no free quota at all (not just a spent window)."""
    if not message:
        return False
    return bool(_NO_FREE_QUOTA_RE.search(message))
