"""Tests for the generateContent response decoder."""

from __future__ import annotations

import json

from lunabot.text_generators.decoding import (
    SHAPE_DIRECT,
    SHAPE_OUTPUT,
    SHAPE_PARTS,
    DecodedText,
    UnrecognizedShape,
    decode_response,
)


def test_direct_text_field():
    result = decode_response({"text": " hello "})
    assert result == DecodedText("hello", SHAPE_DIRECT)


def test_direct_candidate_content_string():
    result = decode_response({"candidates": [{"content": "hi there"}]})
    assert result == DecodedText("hi there", SHAPE_DIRECT)


def test_parts_are_joined_by_newline():
    payload = {
        "candidates": [
            {
                "content": {
                    "role": "model",
                    "parts": [{"text": "line one"}, {"inlineData": {}}, {"text": "line two"}],
                },
                "finishReason": "STOP",
            }
        ]
    }
    result = decode_response(payload)
    assert result == DecodedText("line one\nline two", SHAPE_PARTS)


def test_thought_parts_are_skipped():
    payload = {"candidates": [{"content": {"parts": [{"text": "thinking...", "thought": True}, {"text": "answer"}]}}]}
    assert decode_response(payload) == DecodedText("answer", SHAPE_PARTS)


def test_nested_output_paths():
    assert decode_response({"candidates": [{"output": "legacy"}]}) == DecodedText("legacy", SHAPE_OUTPUT)
    assert decode_response({"output": {"text": "flat"}}) == DecodedText("flat", SHAPE_OUTPUT)
    assert decode_response({"output": [{"content": [{"text": "deep"}]}]}) == DecodedText("deep", SHAPE_OUTPUT)


def test_direct_wins_over_parts():
    payload = {"text": "direct", "candidates": [{"content": {"parts": [{"text": "parts"}]}}]}
    assert decode_response(payload).shape == SHAPE_DIRECT


def test_unrecognized_shape():
    payload = {"candidates": [{"content": {"parts": []}, "finishReason": "MAX_TOKENS"}], "usage": {"x": 1}}
    result = decode_response(payload)
    assert isinstance(result, UnrecognizedShape)
    assert not result.blocked
    assert json.loads(result.fallback_text(limit=10_000)) == payload
    assert len(result.fallback_text(limit=20)) == 20


def test_non_object_payload():
    result = decode_response("<html>oops</html>")
    assert isinstance(result, UnrecognizedShape)
    assert "not a JSON object" in result.reason


def test_blocked_prompt():
    result = decode_response({"promptFeedback": {"blockReason": "SAFETY"}})
    assert isinstance(result, UnrecognizedShape)
    assert result.blocked
    assert "SAFETY" in result.reason
