"""Microphone recorder adapter."""

from __future__ import annotations

import io
import logging
import threading
import time
import wave
from queue import Full, Queue
from typing import Any, Callable, Optional

from errors import CaptureUnavailableError
from models import AudioFrame

try:
    import numpy as np
except Exception:  # pragma: no cover
    np = None  # type: ignore

try:
    import sounddevice as sd
except Exception:  # pragma: no cover
    sd = None  # type: ignore

logger = logging.getLogger("delivery_coach")

DeviceLostCallback = Callable[[str], None]


def pcm_to_wav(
    pcm: bytes,
    sample_rate: int = 16000,
    channels: int = 1,
    sample_width: int = 2,
) -> bytes:
    """Wrap raw PCM bytes in a WAV container."""
    buf = io.BytesIO()
    with wave.open(buf, "wb") as wf:
        wf.setnchannels(channels)
        wf.setsampwidth(sample_width)
        wf.setframerate(sample_rate)
        wf.writeframes(pcm)
    return buf.getvalue()


def capture_available() -> bool:
    if sd is None or np is None:
        return False
    try:
        return any(d.get("max_input_channels", 0) > 0 for d in sd.query_devices())
    except Exception as exc:
        logger.warning("Input device query failed: %s", exc)
        return False


class SoundDeviceRecorder:
    """Pushes int16 PCM chunks from the microphone into a session queue.

    ``stop`` always emits a ``None`` sentinel so consumers can finish.  If the
    stream ends on its own (device unplugged, driver reset) ``on_device_lost``
    is called from the audio thread.
    """

    def __init__(
        self,
        sample_rate: int = 16000,
        channels: int = 1,
        chunk_ms: int = 100,
        device: Optional[str] = None,
    ) -> None:
        self.sample_rate = sample_rate
        self.channels = channels
        self.chunk_ms = chunk_ms
        self.device = device
        self.dropped_chunks = 0
        self.overflows = 0
        self._stream: Any = None
        self._running = False
        self._guard = threading.Lock()
        self._sink: Queue[AudioFrame | None] | None = None
        self._on_device_lost: Optional[DeviceLostCallback] = None

    def start(
        self,
        audio_queue: Queue[AudioFrame | None],
        on_device_lost: Optional[DeviceLostCallback] = None,
    ) -> None:
        with self._guard:
            if self._running:
                return
            if sd is None or np is None:
                raise CaptureUnavailableError("Audio capture is not supported: sounddevice is not installed.")
            self._sink = audio_queue
            self._on_device_lost = on_device_lost
            self.dropped_chunks = 0
            self.overflows = 0
            try:
                self._stream = sd.InputStream(
                    samplerate=self.sample_rate,
                    channels=self.channels,
                    dtype="int16",
                    blocksize=self.sample_rate * self.chunk_ms // 1000,
                    device=self.device,
                    callback=self._on_audio,
                    finished_callback=self._on_finished,
                )
                self._running = True
                self._stream.start()
            except Exception as exc:
                self._running = False
                self._close_stream()
                raise CaptureUnavailableError(f"Could not open the microphone: {exc}") from exc
            logger.info("Microphone stream opened (%d Hz, %d ch)", self.sample_rate, self.channels)

    def stop(self) -> None:
        with self._guard:
            was_running, self._running = self._running, False
            try:
                if was_running:
                    self._close_stream()
            finally:
                self._put_sentinel()
            if self.dropped_chunks or self.overflows:
                logger.warning(
                    "Capture lost data: %d chunks dropped, %d input overflows",
                    self.dropped_chunks,
                    self.overflows,
                )

    def _close_stream(self) -> None:
        stream, self._stream = self._stream, None
        if stream is None:
            return
        try:
            stream.stop()
        finally:
            stream.close()

    def _on_audio(self, indata: Any, frames: int, time_info: Any, status: Any) -> None:
        if not self._running or self._sink is None or np is None:
            return
        if status and getattr(status, "input_overflow", False):
            self.overflows += 1
        chunk = AudioFrame(
            pcm16_bytes=np.asarray(indata, dtype=np.int16).tobytes(),
            sample_rate=self.sample_rate,
            channels=self.channels,
            timestamp_ms=int(time.time() * 1000),
        )
        try:
            self._sink.put_nowait(chunk)
        except Full:
            self.dropped_chunks += 1

    def _on_finished(self) -> None:
        # Runs after our own stop() too; only an unrequested end is a fault.
        if not self._running:
            return
        self._running = False
        logger.error("Microphone stream ended unexpectedly")
        if self._on_device_lost is not None:
            self._on_device_lost("The microphone stopped unexpectedly.")

    def _put_sentinel(self) -> None:
        if self._sink is None:
            return
        try:
            self._sink.put_nowait(None)
        except Full:
            pass
