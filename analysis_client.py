"""Single-flight HTTP client for the remote analysis service."""

from __future__ import annotations

import logging
import math
import threading
from concurrent.futures import Executor, Future, ThreadPoolExecutor
from numbers import Real
from typing import Any, Optional

import httpx

from config import DEFAULT_API_BASE_URL
from errors import (
    EmptyScriptError,
    MalformedResponseError,
    NetworkError,
    RequestInFlightError,
    ServerError,
)
from models import (
    AnalysisPayload,
    AudioPayload,
    FeedbackResult,
    TranscriptPayload,
    VoiceOption,
    VoiceRecommendation,
)

logger = logging.getLogger("delivery_coach")

AUDIO_ANALYZE_PATH = "/api/v1/analyze"
TRANSCRIPT_ANALYZE_PATH = "/api/analyze"

SCORE_MIN = 0
SCORE_MAX = 10


def _is_number(value: Any) -> bool:
    return isinstance(value, Real) and not isinstance(value, bool) and math.isfinite(value)


def _clamp(value: float, low: float, high: float, label: str) -> float:
    if value < low or value > high:
        logger.warning("%s %r outside [%s, %s], clamping", label, value, low, high)
        return min(max(value, low), high)
    return value


def _parse_voice_recommendation(data: Any) -> Optional[VoiceRecommendation]:
    if data is None:
        return None
    try:
        option = data["voiceOption"]
        tones = option.get("supportedTones") or []
        voice = VoiceOption(
            voice_id=str(option["voiceId"]),
            name=str(option.get("name", "")),
            gender=str(option.get("gender", "")),
            accent=str(option.get("accent", "")),
            description=str(option.get("description", "")),
            supported_tones=[str(t) for t in tones],
        )
        confidence = data.get("confidenceScore", 0.0)
        if not _is_number(confidence):
            raise TypeError(f"confidenceScore is not numeric: {confidence!r}")
        return VoiceRecommendation(
            voice_option=voice,
            recommended_tone=str(data.get("recommendedTone", "")),
            recommendation_reason=str(data.get("recommendationReason", "")),
            confidence_score=_clamp(float(confidence), 0.0, 1.0, "confidenceScore"),
        )
    except (KeyError, TypeError, AttributeError) as exc:
        logger.warning("Ignoring malformed voiceRecommendation: %s", exc)
        return None


def parse_feedback(data: Any) -> FeedbackResult:
    """Validate a success body and build a FeedbackResult.

    Raises MalformedResponseError instead of returning partial data.
    """
    if not isinstance(data, dict):
        raise MalformedResponseError("Analysis response is not a JSON object.")
    score = data.get("score")
    if not _is_number(score):
        raise MalformedResponseError("Analysis response has no finite numeric score.")
    positive = data.get("positiveFeedback")
    improvement = data.get("improvementPoints")
    if not isinstance(positive, str) or not isinstance(improvement, str):
        raise MalformedResponseError("Analysis response is missing feedback text.")
    audio_url = data.get("audioUrl") or ""
    transcript = data.get("spokenTranscript")
    return FeedbackResult(
        score=_clamp(score, SCORE_MIN, SCORE_MAX, "score"),
        positive_feedback=positive,
        improvement_points=improvement,
        audio_url=str(audio_url),
        spoken_transcript=transcript if isinstance(transcript, str) else None,
        voice_recommendation=_parse_voice_recommendation(data.get("voiceRecommendation")),
    )


def _server_message(response: httpx.Response) -> Optional[str]:
    try:
        body = response.json()
    except ValueError:
        return None
    if isinstance(body, dict):
        message = body.get("message")
        if isinstance(message, str) and message.strip():
            return message
    return None


class AnalysisClient:
    """Submits one capture plus its script at a time.

    ``submit`` returns a future; a second call while the first is unsettled
    raises ``RequestInFlightError`` without touching the network.
    """

    def __init__(
        self,
        base_url: str = DEFAULT_API_BASE_URL,
        transport: Optional[httpx.BaseTransport] = None,
        executor: Optional[Executor] = None,
    ) -> None:
        self._client = httpx.Client(
            base_url=base_url.rstrip("/"),
            timeout=None,
            transport=transport,
        )
        self._executor = executor or ThreadPoolExecutor(max_workers=1, thread_name_prefix="analysis")
        self._slot = threading.Lock()

    @property
    def in_flight(self) -> bool:
        return self._slot.locked()

    def submit(self, script: str, payload: AnalysisPayload) -> Future[FeedbackResult]:
        if not script.strip():
            raise EmptyScriptError()
        if not self._slot.acquire(blocking=False):
            raise RequestInFlightError()
        try:
            return self._executor.submit(self._run, script, payload)
        except Exception:
            self._slot.release()
            raise

    def close(self) -> None:
        self._executor.shutdown(wait=False)
        self._client.close()

    def _run(self, script: str, payload: AnalysisPayload) -> FeedbackResult:
        try:
            return self._send(script, payload)
        finally:
            self._slot.release()

    def _send(self, script: str, payload: AnalysisPayload) -> FeedbackResult:
        try:
            if isinstance(payload, AudioPayload):
                logger.info("Submitting %d bytes of audio for analysis", len(payload.wav_bytes))
                response = self._client.post(
                    AUDIO_ANALYZE_PATH,
                    files={"audioFile": (payload.filename, payload.wav_bytes, payload.content_type)},
                    data={"originalScript": script},
                )
            elif isinstance(payload, TranscriptPayload):
                logger.info("Submitting %d chars of transcript for analysis", len(payload.text))
                response = self._client.post(
                    TRANSCRIPT_ANALYZE_PATH,
                    json={"originalScript": script, "spokenTranscript": payload.text},
                )
            else:
                raise TypeError(f"unsupported payload: {type(payload).__name__}")
        except httpx.RequestError as exc:
            logger.warning("Analysis request failed: %s", exc)
            raise NetworkError() from exc

        if not response.is_success:
            message = _server_message(response)
            logger.warning("Analysis failed with HTTP %d: %s", response.status_code, message)
            raise ServerError(message, status_code=response.status_code)

        try:
            data = response.json()
        except ValueError as exc:
            raise MalformedResponseError("Analysis response is not valid JSON.") from exc
        return parse_feedback(data)
