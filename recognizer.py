"""Live transcription adapter using the DashScope realtime recognizer.

Audio frames are pulled from the session queue on a worker thread and pushed
into ``dashscope.audio.asr.Recognition``.  The recognizer calls back from its
own thread with sentence updates; interim sentences become ``PARTIAL`` events
and completed sentences become ``FINAL`` events.  When the recorder emits its
sentinel the recognizer is stopped, which flushes the remaining finals, and the
worker reports ``CLOSED`` as its last event.  ``stop`` never waits for this.
"""

from __future__ import annotations

import logging
import os
import threading
from queue import Empty, Queue
from typing import Any, Callable, Optional

from errors import AUTH_FAILED, NETWORK_ERROR, RECOGNITION_ERROR
from models import AudioFrame, RecognitionEvent, RecognitionKind

try:
    import dashscope
    from dashscope.audio.asr import Recognition, RecognitionCallback, RecognitionResult
except Exception:  # pragma: no cover
    dashscope = None  # type: ignore
    Recognition = None  # type: ignore
    RecognitionCallback = object  # type: ignore
    RecognitionResult = None  # type: ignore

logger = logging.getLogger("delivery_coach")

RecognitionFactory = Callable[[Any], Any]
EventSink = Callable[[RecognitionEvent], None]


def live_transcription_available(api_key: str = "") -> bool:
    if Recognition is None:
        return False
    return bool(api_key or os.getenv("DASHSCOPE_API_KEY", ""))


class _Stream:
    """One recognizer run, bound to a single session's queue and callback."""

    def __init__(self, audio_queue: Queue[AudioFrame | None], on_event: EventSink) -> None:
        self.audio_queue = audio_queue
        self.stopping = threading.Event()
        self._on_event = on_event
        self._closed = False
        self._lock = threading.Lock()

    def emit(self, event: RecognitionEvent) -> None:
        # Nothing is delivered after CLOSED.
        with self._lock:
            if self._closed:
                return
            if event.kind == RecognitionKind.CLOSED.value:
                self._closed = True
            self._on_event(event)


class _RecognitionListener(RecognitionCallback):
    def __init__(self, adapter: "DashscopeTranscriptionAdapter", stream: _Stream) -> None:
        super().__init__()
        self._adapter = adapter
        self._stream = stream

    def on_open(self) -> None:
        logger.debug("Recognizer connection opened")

    def on_close(self) -> None:
        logger.debug("Recognizer connection closed")

    def on_complete(self) -> None:
        logger.debug("Recognizer completed")

    def on_event(self, result: Any) -> None:
        self._adapter._handle_result(result, self._stream.emit)

    def on_error(self, result: Any) -> None:
        message = str(getattr(result, "message", "") or result)
        self._stream.emit(self._adapter._to_error_event(message))


class DashscopeTranscriptionAdapter:
    def __init__(
        self,
        api_key: str = "",
        model: str = "paraformer-realtime-v2",
        sample_rate: int = 16000,
        recognition_factory: Optional[RecognitionFactory] = None,
    ) -> None:
        self._api_key = api_key
        self._model = model
        self._sample_rate = sample_rate
        self._factory = recognition_factory or self._default_factory
        self._thread: Optional[threading.Thread] = None
        self._stream: Optional[_Stream] = None

    def start(self, audio_queue: Queue[AudioFrame | None], on_event: EventSink) -> None:
        stream = self._stream
        if stream is not None and not stream.stopping.is_set() and self._thread and self._thread.is_alive():
            return
        stream = _Stream(audio_queue, on_event)
        self._stream = stream
        self._thread = threading.Thread(target=self._worker, args=(stream,), daemon=True)
        self._thread.start()

    def stop(self) -> None:
        """Ask the worker to finish; its last event is ``CLOSED``."""
        if self._stream is not None:
            self._stream.stopping.set()

    def join(self, timeout: Optional[float] = None) -> bool:
        """Wait for the current worker. Returns True if it has exited."""
        thread = self._thread
        if thread is None:
            return True
        thread.join(timeout)
        return not thread.is_alive()

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _default_factory(self, callback: Any) -> Any:
        if dashscope is None or Recognition is None:
            raise RuntimeError("dashscope is not installed")
        api_key = self._api_key or os.getenv("DASHSCOPE_API_KEY", "")
        if not api_key:
            raise PermissionError("No API key configured")
        dashscope.api_key = api_key
        return Recognition(
            model=self._model,
            format="pcm",
            sample_rate=self._sample_rate,
            callback=callback,
        )

    def _worker(self, stream: _Stream) -> None:
        try:
            try:
                recognition = self._factory(_RecognitionListener(self, stream))
                recognition.start()
            except Exception as exc:
                stream.emit(self._to_error_event(str(exc)))
                return
            try:
                self._pump(stream, recognition)
            except Exception as exc:
                stream.emit(self._to_error_event(str(exc)))
            finally:
                try:
                    recognition.stop()
                except Exception as exc:
                    logger.warning("Recognizer stop failed: %s", exc)
        finally:
            stream.emit(RecognitionEvent(kind=RecognitionKind.CLOSED.value))

    @staticmethod
    def _pump(stream: _Stream, recognition: Any) -> None:
        while True:
            try:
                frame = stream.audio_queue.get(timeout=0.2)
            except Empty:
                if stream.stopping.is_set():
                    return
                continue
            if frame is None:  # Sentinel
                return
            recognition.send_audio_frame(frame.pcm16_bytes)

    def _handle_result(self, result: Any, emit: EventSink) -> None:
        sentence = result.get_sentence()
        sentences = sentence if isinstance(sentence, list) else [sentence]
        for item in sentences:
            if not isinstance(item, dict) or "text" not in item:
                continue
            text = str(item["text"])
            if RecognitionResult is not None and RecognitionResult.is_sentence_end(item):
                emit(RecognitionEvent(kind=RecognitionKind.FINAL.value, text=text))
            else:
                emit(RecognitionEvent(kind=RecognitionKind.PARTIAL.value, text=text))

    def _to_error_event(self, message: str) -> RecognitionEvent:
        """Map an SDK/network failure to a standard error event."""
        low = message.lower()
        if "401" in low or "auth" in low or "api key" in low:
            code = AUTH_FAILED
            retryable = False
        elif "timeout" in low or "network" in low or "connection" in low:
            code = NETWORK_ERROR
            retryable = True
        else:
            code = RECOGNITION_ERROR
            retryable = True
        return RecognitionEvent(
            kind=RecognitionKind.ERROR.value,
            code=code,
            message=message,
            retryable=retryable,
        )
