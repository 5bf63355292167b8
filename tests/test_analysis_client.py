"""Tests for AnalysisClient."""

from __future__ import annotations

import json
import threading

import httpx
import pytest

from analysis_client import AnalysisClient, parse_feedback
from errors import (
    EmptyScriptError,
    MalformedResponseError,
    NetworkError,
    RequestInFlightError,
    ServerError,
)
from models import AudioPayload, TranscriptPayload

OK_BODY = {
    "score": 7,
    "positiveFeedback": "Clear opening.",
    "improvementPoints": "Vary your pace.",
    "audioUrl": "https://cdn/x.mp3",
}


def _client(handler) -> AnalysisClient:  # noqa: ANN001
    return AnalysisClient(base_url="http://coach.test/", transport=httpx.MockTransport(handler))


# ---------------------------------------------------------------
# Single flight
# ---------------------------------------------------------------

def test_second_submit_while_pending_is_rejected_without_io() -> None:
    gate = threading.Event()
    calls: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        gate.wait(timeout=5)
        return httpx.Response(200, json=OK_BODY)

    client = _client(handler)
    first = client.submit("script", TranscriptPayload("hi"))
    assert client.in_flight is True

    with pytest.raises(RequestInFlightError):
        client.submit("script", TranscriptPayload("hi again"))

    gate.set()
    assert first.result(timeout=5).score == 7
    assert len(calls) == 1
    assert client.in_flight is False


def test_slot_is_free_once_the_future_settles() -> None:
    calls: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        return httpx.Response(500, json={"message": "boom"})

    client = _client(handler)
    with pytest.raises(ServerError):
        client.submit("script", TranscriptPayload("one")).result(timeout=5)
    with pytest.raises(ServerError):
        client.submit("script", TranscriptPayload("two")).result(timeout=5)

    assert len(calls) == 2


def test_empty_script_fails_without_request() -> None:
    calls: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        return httpx.Response(200, json=OK_BODY)

    client = _client(handler)
    with pytest.raises(EmptyScriptError):
        client.submit("   \n", TranscriptPayload("hi"))

    assert calls == []
    assert client.in_flight is False


# ---------------------------------------------------------------
# Wire format
# ---------------------------------------------------------------

def test_transcript_payload_posts_json() -> None:
    seen: dict = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["path"] = request.url.path
        seen["body"] = json.loads(request.read())
        return httpx.Response(200, json=OK_BODY)

    _client(handler).submit("My script", TranscriptPayload("my spoken words ")).result(timeout=5)

    assert seen["path"] == "/api/analyze"
    assert seen["body"] == {"originalScript": "My script", "spokenTranscript": "my spoken words "}


def test_audio_payload_posts_multipart() -> None:
    seen: dict = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["path"] = request.url.path
        seen["type"] = request.headers["content-type"]
        seen["body"] = request.read()
        return httpx.Response(200, json=OK_BODY)

    payload = AudioPayload(wav_bytes=b"RIFF-fake-wav")
    _client(handler).submit("My script", payload).result(timeout=5)

    assert seen["path"] == "/api/v1/analyze"
    assert seen["type"].startswith("multipart/form-data")
    assert b'name="audioFile"; filename="recording.wav"' in seen["body"]
    assert b"RIFF-fake-wav" in seen["body"]
    assert b"My script" in seen["body"]


# ---------------------------------------------------------------
# Failures
# ---------------------------------------------------------------

def test_transport_failure_raises_network_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(NetworkError):
        _client(handler).submit("script", TranscriptPayload("hi")).result(timeout=5)


def test_server_error_carries_server_message() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(500, json={"message": "TTS quota exceeded"})

    with pytest.raises(ServerError) as info:
        _client(handler).submit("script", TranscriptPayload("hi")).result(timeout=5)

    assert info.value.message == "TTS quota exceeded"
    assert info.value.status_code == 500


def test_server_error_without_message_is_generic() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(502, text="Bad gateway")

    with pytest.raises(ServerError) as info:
        _client(handler).submit("script", TranscriptPayload("hi")).result(timeout=5)

    assert info.value.message == "An unknown error occurred."


@pytest.mark.parametrize(
    "body",
    [
        {"score": "seven", "positiveFeedback": "a", "improvementPoints": "b"},
        {"score": True, "positiveFeedback": "a", "improvementPoints": "b"},
        {"score": 7, "improvementPoints": "b"},
        {"score": 7, "positiveFeedback": "a", "improvementPoints": None},
        ["not", "an", "object"],
    ],
)
def test_incomplete_success_body_is_malformed(body) -> None:  # noqa: ANN001
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json=body)

    with pytest.raises(MalformedResponseError):
        _client(handler).submit("script", TranscriptPayload("hi")).result(timeout=5)


def test_non_json_success_body_is_malformed() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, text="<html>ok</html>")

    with pytest.raises(MalformedResponseError):
        _client(handler).submit("script", TranscriptPayload("hi")).result(timeout=5)


# ---------------------------------------------------------------
# Response parsing
# ---------------------------------------------------------------

def test_score_outside_range_is_clamped() -> None:
    assert parse_feedback({**OK_BODY, "score": 14}).score == 10
    assert parse_feedback({**OK_BODY, "score": -2}).score == 0
    assert parse_feedback({**OK_BODY, "score": 8.5}).score == 8.5


def test_voice_recommendation_is_parsed() -> None:
    body = {
        **OK_BODY,
        "spokenTranscript": "thank you for coming",
        "voiceRecommendation": {
            "voiceOption": {
                "voiceId": "en-US-natalie",
                "name": "Natalie",
                "gender": "Female",
                "accent": "US",
                "description": "Professional female voice",
                "supportedTones": ["confident", "conversational"],
            },
            "recommendedTone": "confident",
            "recommendationReason": "Formal business script.",
            "confidenceScore": 1.3,
        },
    }

    result = parse_feedback(body)

    assert result.spoken_transcript == "thank you for coming"
    rec = result.voice_recommendation
    assert rec is not None
    assert rec.voice_option.voice_id == "en-US-natalie"
    assert rec.voice_option.supports_tone("Confident") is True
    assert rec.voice_option.supports_tone("urgent") is False
    assert rec.recommended_tone == "confident"
    assert rec.confidence_score == 1.0


def test_malformed_voice_recommendation_is_dropped() -> None:
    result = parse_feedback({**OK_BODY, "voiceRecommendation": {"recommendedTone": "calm"}})

    assert result.voice_recommendation is None
    assert result.positive_feedback == "Clear opening."


@pytest.mark.parametrize("score", [float("nan"), float("inf"), float("-inf")])
def test_non_finite_score_is_malformed(score: float) -> None:
    with pytest.raises(MalformedResponseError):
        parse_feedback({**OK_BODY, "score": score})


def test_nan_score_on_the_wire_is_malformed() -> None:
    body = b'{"score": NaN, "positiveFeedback": "a", "improvementPoints": "b"}'

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, content=body, headers={"content-type": "application/json"})

    with pytest.raises(MalformedResponseError):
        _client(handler).submit("script", TranscriptPayload("hi")).result(timeout=5)


def test_non_finite_confidence_drops_recommendation() -> None:
    recommendation = {
        "voiceOption": {"voiceId": "en-US-natalie"},
        "recommendedTone": "calm",
        "confidenceScore": float("nan"),
    }
    result = parse_feedback({**OK_BODY, "voiceRecommendation": recommendation})

    assert result.voice_recommendation is None
    assert result.score == 7
