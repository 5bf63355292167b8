"""State-machine based recording session orchestration.

The controller is a single-threaded actor.  Device and recognizer threads only
enqueue typed events; ``process_events`` drains them in arrival order on the
owning thread (the Qt shell pumps it from a timer) and polls the pending
analysis request.  User commands run on that same thread.
"""

from __future__ import annotations

import logging
import time
from concurrent.futures import Future
from concurrent.futures import wait as wait_futures
from queue import Empty, Full, Queue
from typing import Callable, Optional

from errors import (
    AnalysisError,
    CaptureUnavailableError,
    CoachError,
    EmptyScriptError,
    InvalidStateError,
    RecognitionError,
    RequestInFlightError,
)
from feedback_store import FeedbackStore
from interfaces import AnalysisService, Recorder, TranscriptionAdapter
from models import (
    AnalysisPayload,
    AudioFrame,
    AudioPayload,
    CaptureClosed,
    CaptureStrategy,
    ControllerEvent,
    DeviceError,
    DeviceReady,
    FeedbackResult,
    FinalResult,
    PartialResult,
    RecognitionEvent,
    RecognitionKind,
    RecordingSession,
    SessionState,
    StopRequested,
    TranscriptPayload,
)
from recorder import pcm_to_wav
from script_store import ScriptStore

logger = logging.getLogger("delivery_coach")

StateCallback = Callable[[SessionState, SessionState], None]
PartialCallback = Callable[[str], None]
NoticeCallback = Callable[[str, str, bool], None]

_STARTABLE = {
    SessionState.LOCKED_READY,
    SessionState.STOPPED,
    SessionState.COMPLETE,
    SessionState.ERROR,
}

# Session states in which capture may still be open.
_OPEN_SESSION = (SessionState.LOCKED_READY, SessionState.RECORDING)


def append_final_segment(transcript: str, segment: str) -> str:
    """Append a final recognition segment followed by a single space."""
    if segment.endswith(" "):
        return transcript + segment
    return transcript + segment + " "


class RecordingController:
    def __init__(
        self,
        script_store: ScriptStore,
        feedback_store: FeedbackStore,
        analysis_client: AnalysisService,
        recorder: Recorder,
        transcriber: Optional[TranscriptionAdapter] = None,
        event_queue_maxsize: int = 256,
        post_timeout_s: float = 1.0,
        finalize_timeout_s: float = 3.0,
        on_state_change: Optional[StateCallback] = None,
        on_partial: Optional[PartialCallback] = None,
        on_notice: Optional[NoticeCallback] = None,
        clock: Callable[[], float] = time.time,
        timer: Callable[[], float] = time.monotonic,
    ) -> None:
        self._script_store = script_store
        self._feedback_store = feedback_store
        self._analysis_client = analysis_client
        self._recorder = recorder
        self._transcriber = transcriber
        self._post_timeout_s = post_timeout_s
        self._finalize_timeout_s = finalize_timeout_s
        self._on_state_change = on_state_change
        self._on_partial = on_partial
        self._on_notice = on_notice
        self._clock = clock
        self._timer = timer

        self._state = SessionState.LOCKED_READY if script_store.locked else SessionState.IDLE
        self._events: Queue[ControllerEvent] = Queue(maxsize=event_queue_maxsize)
        self._audio_queue: Queue[AudioFrame | None] = Queue()
        self._session: Optional[RecordingSession] = None
        self._session_id = 0
        self._capture_open = False
        self._awaiting_close = False
        self._close_deadline: Optional[float] = None
        self._pending: Optional[Future[FeedbackResult]] = None
        self._draining = False

        script_store.subscribe(self._on_lock_changed)

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def session(self) -> Optional[RecordingSession]:
        return self._session

    @property
    def strategy(self) -> CaptureStrategy:
        return CaptureStrategy.LIVE if self._transcriber is not None else CaptureStrategy.BLOB

    @property
    def analysis_pending(self) -> bool:
        return self._pending is not None

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    def start_recording(self) -> RecordingSession:
        if self._state not in _STARTABLE:
            raise InvalidStateError(f"Cannot start recording while {self._state.value}.")
        if self._pending is not None:
            raise InvalidStateError("Analysis is still in progress.")

        self._feedback_store.clear()
        self._session_id += 1
        session = RecordingSession(
            id=self._session_id,
            started_at=self._clock(),
            sample_rate=getattr(self._recorder, "sample_rate", 16000),
            channels=getattr(self._recorder, "channels", 1),
        )
        if self._transcriber is not None:
            session.transcript = ""
        self._audio_queue = Queue()
        self._capture_open = True
        self._awaiting_close = False
        self._close_deadline = None
        try:
            if self._transcriber is not None:
                self._transcriber.start(self._audio_queue, self._recognition_listener(session.id))
            self._recorder.start(self._audio_queue, self._device_lost_listener(session.id))
        except Exception as exc:
            self._release_capture()
            error = exc if isinstance(exc, CaptureUnavailableError) else CaptureUnavailableError(
                f"Could not start capture: {exc}"
            )
            logger.warning("Capture unavailable: %s", error.message)
            self._return_to_ready()
            self._notify("Microphone Error", error.message, True)
            if error is exc:
                raise
            raise error from exc

        self._session = session
        self._post(DeviceReady(session.id))
        self.process_events()
        return session

    def stop_recording(self) -> None:
        session = self._session
        if self._state != SessionState.RECORDING or session is None:
            raise InvalidStateError("No recording in progress.")
        self._post(StopRequested(session.id))
        self.process_events()

    def cancel(self, reason: str) -> None:
        if self._capture_open:
            logger.info("Cancelling capture: %s", reason)
            self._release_capture()
        self._awaiting_close = False
        self._close_deadline = None
        if self._session is not None and self._session.state in _OPEN_SESSION:
            self._session.state = SessionState.ERROR
            self._session.stopped_at = self._clock()
        self._session = None
        if self._state in (SessionState.RECORDING, SessionState.STOPPED):
            self._return_to_ready()

    def process_events(self) -> int:
        """Drain queued events in order, then settle a finished analysis."""
        if self._draining:
            return 0
        self._draining = True
        handled = 0
        try:
            while True:
                try:
                    event = self._events.get_nowait()
                except Empty:
                    break
                self._dispatch(event)
                handled += 1
            self._check_close_deadline()
            self._poll_analysis()
        finally:
            self._draining = False
        return handled

    def wait_for_analysis(self, timeout: Optional[float] = None) -> None:
        pending = self._pending
        if pending is not None:
            wait_futures([pending], timeout=timeout)
        self.process_events()

    # ------------------------------------------------------------------
    # Event handling
    # ------------------------------------------------------------------

    def _post(self, event: ControllerEvent) -> None:
        try:
            self._events.put(event, timeout=self._post_timeout_s)
        except Full:
            logger.error("Controller event queue full, dropping %s", type(event).__name__)

    def _recognition_listener(self, session_id: int) -> Callable[[RecognitionEvent], None]:
        def on_event(event: RecognitionEvent) -> None:
            if event.kind == RecognitionKind.PARTIAL.value:
                self._post(PartialResult(session_id, event.text))
            elif event.kind == RecognitionKind.FINAL.value:
                self._post(FinalResult(session_id, event.text))
            elif event.kind == RecognitionKind.ERROR.value:
                self._post(DeviceError(session_id, RecognitionError(event.message or None)))
            elif event.kind == RecognitionKind.CLOSED.value:
                self._post(CaptureClosed(session_id))

        return on_event

    def _device_lost_listener(self, session_id: int) -> Callable[[str], None]:
        def on_lost(message: str) -> None:
            self._post(DeviceError(session_id, CaptureUnavailableError(message)))

        return on_lost

    def _dispatch(self, event: ControllerEvent) -> None:
        session = self._session
        if session is None or event.session_id != session.id:
            logger.debug("Dropping stale %s for session %s", type(event).__name__, event.session_id)
            return
        if isinstance(event, DeviceReady):
            self._handle_device_ready(session)
        elif isinstance(event, PartialResult):
            if session.state == SessionState.RECORDING and self._on_partial:
                self._on_partial(event.text)
        elif isinstance(event, FinalResult):
            if session.state in (SessionState.RECORDING, SessionState.STOPPED):
                session.transcript = append_final_segment(session.transcript or "", event.text)
        elif isinstance(event, DeviceError):
            self._handle_device_error(session, event.error)
        elif isinstance(event, StopRequested):
            self._handle_stop(session)
        elif isinstance(event, CaptureClosed):
            self._handle_capture_closed(session)

    def _handle_device_ready(self, session: RecordingSession) -> None:
        # A device error may already have failed this session.
        if session.state != SessionState.LOCKED_READY or self._state not in _STARTABLE:
            return
        session.state = SessionState.RECORDING
        self._transition(SessionState.RECORDING)
        self._notify("Recording Started", "Start speaking your presentation now.", False)

    def _handle_device_error(self, session: RecordingSession, error: Exception) -> None:
        if session.state not in _OPEN_SESSION and session.state != SessionState.STOPPED:
            logger.debug("Ignoring device error after capture ended: %s", error)
            return
        self._release_capture()
        self._awaiting_close = False
        self._close_deadline = None
        session.state = SessionState.ERROR
        session.stopped_at = session.stopped_at or self._clock()
        self._fail(error)

    def _handle_stop(self, session: RecordingSession) -> None:
        if session.state != SessionState.RECORDING:
            return
        try:
            self._release_capture()
            session.stopped_at = self._clock()
            if self._transcriber is None:
                self._flush_audio(session)
        except Exception as exc:
            self._release_capture()
            session.state = SessionState.ERROR
            logger.exception("Failed to finalize recording")
            self._fail(CaptureUnavailableError(f"Could not finalize the recording: {exc}"))
            return
        session.state = SessionState.STOPPED
        self._transition(SessionState.STOPPED)
        self._notify("Recording Complete", "Analysis will begin shortly.", False)
        self._awaiting_close = True
        if self._transcriber is None:
            self._post(CaptureClosed(session.id))
        else:
            self._close_deadline = self._timer() + self._finalize_timeout_s

    def _handle_capture_closed(self, session: RecordingSession) -> None:
        if not self._awaiting_close:
            return
        self._awaiting_close = False
        self._close_deadline = None
        if session.state != SessionState.STOPPED or self._state != SessionState.STOPPED:
            return
        script = self._script_store.text
        try:
            if self._script_store.is_empty:
                raise EmptyScriptError()
            self._pending = self._analysis_client.submit(script, self._build_payload(session))
        except (EmptyScriptError, RequestInFlightError) as exc:
            self._feedback_store.set_error(exc.message)
            self._notify("Analysis Failed", exc.message, True)
            return
        self._transition(SessionState.SUBMITTING)

    def _check_close_deadline(self) -> None:
        session = self._session
        if self._close_deadline is None or session is None or self._timer() < self._close_deadline:
            return
        logger.warning(
            "Recognizer did not close within %.1fs, submitting the transcript so far",
            self._finalize_timeout_s,
        )
        self._handle_capture_closed(session)

    def _poll_analysis(self) -> None:
        pending = self._pending
        if pending is None or not pending.done():
            return
        self._pending = None
        try:
            result = pending.result()
        except AnalysisError as exc:
            self._analysis_failed(exc.message)
            return
        except Exception as exc:
            logger.exception("Unexpected analysis failure")
            self._analysis_failed(str(exc) or AnalysisError().message)
            return
        logger.info("Analysis complete, score %s", result.score)
        self._feedback_store.set_result(result)
        self._notify("Analysis Complete", "Your presentation feedback is ready!", False)
        if self._state == SessionState.SUBMITTING:
            self._transition(SessionState.COMPLETE)

    def _analysis_failed(self, message: str) -> None:
        self._feedback_store.set_error(message)
        self._notify("Analysis Failed", message, True)
        if self._state == SessionState.SUBMITTING:
            self._transition(SessionState.ERROR)
            self._return_to_ready()

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _flush_audio(self, session: RecordingSession) -> None:
        while True:
            try:
                frame = self._audio_queue.get_nowait()
            except Empty:
                return
            if frame is None:  # Sentinel
                continue
            session.audio_chunks.append(frame.pcm16_bytes)
            session.sample_rate = frame.sample_rate
            session.channels = frame.channels

    def _build_payload(self, session: RecordingSession) -> AnalysisPayload:
        if self._transcriber is not None:
            return TranscriptPayload(text=session.transcript or "")
        pcm = b"".join(session.audio_chunks)
        return AudioPayload(wav_bytes=pcm_to_wav(pcm, session.sample_rate, session.channels))

    def _release_capture(self) -> None:
        """Stop the microphone and recognizer, once per session."""
        if not self._capture_open:
            return
        self._capture_open = False
        try:
            self._recorder.stop()
        except Exception:
            logger.exception("Recorder stop failed")
        if self._transcriber is not None:
            try:
                self._transcriber.stop()
            except Exception:
                logger.exception("Recognizer stop failed")

    def _on_lock_changed(self, locked: bool) -> None:
        if locked:
            if self._state == SessionState.IDLE:
                self._transition(SessionState.LOCKED_READY)
            return
        if self._capture_open or self._state in (SessionState.RECORDING, SessionState.STOPPED):
            self.cancel("script unlocked")
        self._transition(SessionState.IDLE)

    def _fail(self, error: Exception) -> None:
        message = error.message if isinstance(error, CoachError) else str(error)
        title = "Recognition Error" if isinstance(error, RecognitionError) else "Microphone Error"
        logger.warning("%s: %s", title, message)
        self._transition(SessionState.ERROR)
        self._notify(title, message, True)
        self._return_to_ready()

    def _return_to_ready(self) -> None:
        if self._script_store.locked:
            self._transition(SessionState.LOCKED_READY)
        else:
            self._transition(SessionState.IDLE)

    def _notify(self, title: str, message: str, is_error: bool) -> None:
        if self._on_notice:
            self._on_notice(title, message, is_error)

    def _transition(self, to_state: SessionState) -> None:
        from_state = self._state
        if from_state == to_state:
            return
        self._state = to_state
        logger.debug("Session state %s -> %s", from_state.value, to_state.value)
        if self._on_state_change:
            self._on_state_change(from_state, to_state)
