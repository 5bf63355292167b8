"""Capture backend selection."""

from __future__ import annotations

import logging
from typing import Optional, Tuple

from errors import CaptureUnavailableError
from interfaces import TranscriptionAdapter
from models import CaptureStrategy
from recognizer import DashscopeTranscriptionAdapter, live_transcription_available
from recorder import SoundDeviceRecorder, capture_available

logger = logging.getLogger("delivery_coach")


def select_capture_strategy(preferred: str, api_key: str = "") -> CaptureStrategy:
    """Pick exactly one capture backend for this deployment.

    Both strategies need the microphone; live transcription additionally
    needs the realtime recognizer and an API key.
    """
    if not capture_available():
        raise CaptureUnavailableError("No audio input device is available.")
    if preferred == CaptureStrategy.LIVE.value:
        if live_transcription_available(api_key):
            return CaptureStrategy.LIVE
        logger.warning("Live transcription unavailable, falling back to audio upload")
    return CaptureStrategy.BLOB


def build_capture_backend(
    strategy: CaptureStrategy,
    api_key: str = "",
    sample_rate: int = 16000,
    device: Optional[str] = None,
) -> Tuple[SoundDeviceRecorder, Optional[TranscriptionAdapter]]:
    recorder = SoundDeviceRecorder(sample_rate=sample_rate, device=device)
    if strategy is CaptureStrategy.LIVE:
        return recorder, DashscopeTranscriptionAdapter(api_key=api_key, sample_rate=sample_rate)
    return recorder, None
