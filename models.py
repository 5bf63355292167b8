"""Core data models for the app."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import List, Optional, Union


class SessionState(str, Enum):
    IDLE = "IDLE"
    LOCKED_READY = "LOCKED_READY"
    RECORDING = "RECORDING"
    STOPPED = "STOPPED"
    SUBMITTING = "SUBMITTING"
    COMPLETE = "COMPLETE"
    ERROR = "ERROR"


class CaptureStrategy(str, Enum):
    BLOB = "blob"
    LIVE = "live"


class RecognitionKind(str, Enum):
    PARTIAL = "partial"
    FINAL = "final"
    ERROR = "error"
    CLOSED = "closed"


class ExportStatus(str, Enum):
    SUCCEEDED = "succeeded"
    CANCELLED = "cancelled"
    FAILED = "failed"


@dataclass
class AudioFrame:
    pcm16_bytes: bytes
    sample_rate: int = 16000
    channels: int = 1
    timestamp_ms: int = 0


@dataclass
class RecognitionEvent:
    kind: str
    text: str = ""
    code: str = ""
    message: str = ""
    retryable: bool = False


@dataclass
class RecordingSession:
    id: int
    # LOCKED_READY until the controller handles DeviceReady.
    state: SessionState = SessionState.LOCKED_READY
    audio_chunks: List[bytes] = field(default_factory=list)
    transcript: Optional[str] = None
    started_at: float = 0.0
    stopped_at: Optional[float] = None
    sample_rate: int = 16000
    channels: int = 1

    @property
    def duration_s(self) -> float:
        if self.stopped_at is None:
            return 0.0
        return max(0.0, self.stopped_at - self.started_at)


@dataclass
class AudioPayload:
    wav_bytes: bytes
    filename: str = "recording.wav"
    content_type: str = "audio/wav"


@dataclass
class TranscriptPayload:
    text: str


AnalysisPayload = Union[AudioPayload, TranscriptPayload]


@dataclass
class VoiceOption:
    voice_id: str
    name: str = ""
    gender: str = ""
    accent: str = ""
    description: str = ""
    supported_tones: List[str] = field(default_factory=list)

    def supports_tone(self, tone: str) -> bool:
        return tone.lower() in (t.lower() for t in self.supported_tones)


@dataclass
class VoiceRecommendation:
    voice_option: VoiceOption
    recommended_tone: str = ""
    recommendation_reason: str = ""
    confidence_score: float = 0.0


@dataclass
class FeedbackResult:
    score: float
    positive_feedback: str
    improvement_points: str
    audio_url: str = ""
    spoken_transcript: Optional[str] = None
    voice_recommendation: Optional[VoiceRecommendation] = None


@dataclass
class ExportJob:
    channel: str
    source: str = ""
    target_path: Optional[Path] = None
    status: ExportStatus = ExportStatus.CANCELLED
    error: str = ""


# ----------------------------------------------------------------------
# Controller events
# ----------------------------------------------------------------------


@dataclass
class DeviceReady:
    session_id: int


@dataclass
class PartialResult:
    session_id: int
    text: str


@dataclass
class FinalResult:
    session_id: int
    text: str


@dataclass
class DeviceError:
    session_id: int
    error: Exception


@dataclass
class StopRequested:
    session_id: int


@dataclass
class CaptureClosed:
    session_id: int


ControllerEvent = Union[
    DeviceReady, PartialResult, FinalResult, DeviceError, StopRequested, CaptureClosed
]
