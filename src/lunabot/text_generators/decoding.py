"""Decoder for generateContent response envelopes.

The envelope differs between model families, so each known schema is tried in
order and the caller gets a tagged result instead of a guess.
"""
from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any, Callable, Union

SHAPE_DIRECT = "direct"
SHAPE_PARTS = "parts"
SHAPE_OUTPUT = "output"


@dataclass(frozen=True)
class DecodedText:
    text: str
    shape: str


@dataclass(frozen=True)
class UnrecognizedShape:
    raw: Any
    reason: str = "unrecognized response shape"
    blocked: bool = False

    def fallback_text(self, limit: int = 500) -> str:
        """Serialized raw payload, truncated; last resort when nothing matched."""
        try:
            text = json.dumps(self.raw, ensure_ascii=False, default=str)
        except (TypeError, ValueError):
            text = str(self.raw)
        return text[:limit]


DecodeResult = Union[DecodedText, UnrecognizedShape]


def _first_candidate(payload: dict[str, Any]) -> dict[str, Any] | None:
    candidates = payload.get("candidates")
    if isinstance(candidates, list) and candidates and isinstance(candidates[0], dict):
        return candidates[0]
    return None


def _direct(payload: dict[str, Any]) -> str | None:
    text = payload.get("text")
    if isinstance(text, str):
        return text
    candidate = _first_candidate(payload)
    if candidate is not None:
        content = candidate.get("content")
        if isinstance(content, str):
            return content
        if isinstance(candidate.get("text"), str):
            return candidate["text"]
    return None


def _parts(payload: dict[str, Any]) -> str | None:
    candidate = _first_candidate(payload)
    if candidate is None:
        return None
    content = candidate.get("content")
    if not isinstance(content, dict):
        return None
    parts = content.get("parts")
    if not isinstance(parts, list):
        return None
    texts = [
        part["text"]
        for part in parts
        if isinstance(part, dict) and isinstance(part.get("text"), str) and not part.get("thought")
    ]
    return "\n".join(texts) if texts else None


def _output(payload: dict[str, Any]) -> str | None:
    candidate = _first_candidate(payload)
    if candidate is not None and isinstance(candidate.get("output"), str):
        return candidate["output"]
    output = payload.get("output")
    if isinstance(output, str):
        return output
    if isinstance(output, dict) and isinstance(output.get("text"), str):
        return output["text"]
    if isinstance(output, list) and output and isinstance(output[0], dict):
        content = output[0].get("content")
        if isinstance(content, list) and content and isinstance(content[0], dict):
            text = content[0].get("text")
            if isinstance(text, str):
                return text
    return None


_DECODERS: tuple[tuple[str, Callable[[dict[str, Any]], str | None]], ...] = (
    (SHAPE_DIRECT, _direct),
    (SHAPE_PARTS, _parts),
    (SHAPE_OUTPUT, _output),
)


def decode_response(payload: Any) -> DecodeResult:
    if not isinstance(payload, dict):
        return UnrecognizedShape(payload, "response is not a JSON object")

    for shape, decoder in _DECODERS:
        text = decoder(payload)
        if text and text.strip():
            return DecodedText(text.strip(), shape)

    feedback = payload.get("promptFeedback")
    if isinstance(feedback, dict) and feedback.get("blockReason"):
        return UnrecognizedShape(payload, f"prompt blocked: {feedback['blockReason']}", blocked=True)

    candidate = _first_candidate(payload)
    if candidate is not None and candidate.get("finishReason") in {"SAFETY", "PROHIBITED_CONTENT", "BLOCKLIST"}:
        return UnrecognizedShape(payload, f"response blocked: {candidate['finishReason']}", blocked=True)

    return UnrecognizedShape(payload)
