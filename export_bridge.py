"""Privileged export bridge.

The UI never touches the filesystem.  It holds an ``ExportClient`` whose only
capability is sending ``BridgeRequest`` messages on three fixed channels; the
trusted side answers with plain values (text, ``None`` or a bool).  Failures
are logged here and collapsed to ``None``/``False``, so nothing raises across
the boundary.
"""

from __future__ import annotations

import logging
import os
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import IO, Any, Callable, Dict, Optional, Tuple

import httpx

from errors import DownloadError, ExportError, FileSystemError
from interfaces import FilePicker
from models import ExportJob, ExportStatus

logger = logging.getLogger("delivery_coach")

CHANNEL_OPEN_FILE = "dialog:openFile"
CHANNEL_SAVE_FEEDBACK = "dialog:saveFeedback"
CHANNEL_SAVE_AUDIO = "dialog:saveAudio"

TEXT_FILTERS = [("Text Files", ("txt", "md"))]
FEEDBACK_FILTERS = [("Text Files", ("txt",))]
AUDIO_FILTERS = [("MP3 Audio", ("mp3",))]

DEFAULT_FEEDBACK_NAME = "presentation-feedback.txt"
DEFAULT_AUDIO_NAME = "ideal-delivery.mp3"

PART_SUFFIX = ".part"


@dataclass(frozen=True)
class BridgeRequest:
    channel: str
    args: Tuple[Any, ...] = ()


@dataclass(frozen=True)
class BridgeResponse:
    value: Any = None
    error: str = ""

    @property
    def ok(self) -> bool:
        return not self.error


def _open_part(target: Path, text: bool = False) -> IO[Any]:
    """Create a uniquely named hidden sibling of ``target`` for this call only."""
    options: Dict[str, Any] = {
        "dir": target.parent,
        "prefix": f".{target.name}.",
        "suffix": PART_SUFFIX,
        "delete": False,
    }
    if text:
        return tempfile.NamedTemporaryFile("w", encoding="utf-8", newline="", **options)
    return tempfile.NamedTemporaryFile("wb", **options)


def _discard(path: Path) -> None:
    try:
        path.unlink()
    except FileNotFoundError:
        pass
    except OSError as exc:
        logger.warning("Could not remove partial file %s: %s", path, exc)


def _write_text_atomic(path: Path, content: str) -> None:
    part: Optional[Path] = None
    try:
        with _open_part(path, text=True) as fh:
            part = Path(fh.name)
            fh.write(content)
        os.replace(part, path)
        part = None
    except OSError as exc:
        raise FileSystemError(f"Failed to write {path}: {exc}") from exc
    finally:
        if part is not None:
            _discard(part)


class ExportBridge:
    def __init__(
        self,
        picker: FilePicker,
        http_client: Optional[httpx.Client] = None,
        chunk_size: int = 64 * 1024,
    ) -> None:
        self._picker = picker
        self._http = http_client or httpx.Client(follow_redirects=True)
        self._chunk_size = chunk_size
        # channel -> (handler, number of str arguments, value on failure)
        self._handlers: Dict[str, Tuple[Callable[..., Any], int, Any]] = {
            CHANNEL_OPEN_FILE: (self.open_text_file, 0, None),
            CHANNEL_SAVE_FEEDBACK: (self.save_feedback, 1, False),
            CHANNEL_SAVE_AUDIO: (self.save_audio, 1, False),
        }

    @property
    def channels(self) -> Tuple[str, ...]:
        return tuple(self._handlers)

    def handle(self, request: BridgeRequest) -> BridgeResponse:
        entry = self._handlers.get(request.channel)
        if entry is None:
            logger.error("Rejected request on unknown channel %r", request.channel)
            return BridgeResponse(error=f"unknown channel: {request.channel}")
        handler, arity, fallback = entry
        args = tuple(request.args)
        if len(args) != arity or not all(isinstance(a, str) for a in args):
            logger.error("Rejected malformed arguments for %s", request.channel)
            return BridgeResponse(value=fallback, error="invalid arguments")
        try:
            return BridgeResponse(value=handler(*args))
        except Exception as exc:
            logger.exception("Export handler %s failed", request.channel)
            return BridgeResponse(value=fallback, error=str(exc))

    def close(self) -> None:
        self._http.close()

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    def open_text_file(self) -> Optional[str]:
        path = self._picker.choose_open_path("Open Script", TEXT_FILTERS)
        if path is None:
            return None
        try:
            return Path(path).read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as exc:
            logger.error("Failed to open file %s: %s", path, exc)
            return None

    def save_feedback(self, content: str) -> bool:
        job = ExportJob(channel=CHANNEL_SAVE_FEEDBACK)
        path = self._picker.choose_save_path("Save Feedback", DEFAULT_FEEDBACK_NAME, FEEDBACK_FILTERS)
        if path is not None:
            job.target_path = Path(path)
            try:
                _write_text_atomic(job.target_path, content)
                job.status = ExportStatus.SUCCEEDED
            except ExportError as exc:
                job.status = ExportStatus.FAILED
                job.error = exc.message
        return self._finish(job)

    def save_audio(self, audio_url: str) -> bool:
        job = ExportJob(channel=CHANNEL_SAVE_AUDIO, source=audio_url)
        path = self._picker.choose_save_path(
            "Save Ideal Delivery Audio", DEFAULT_AUDIO_NAME, AUDIO_FILTERS
        )
        if path is not None:
            job.target_path = Path(path)
            try:
                self._download(audio_url, job.target_path)
                job.status = ExportStatus.SUCCEEDED
            except ExportError as exc:
                job.status = ExportStatus.FAILED
                job.error = exc.message
        return self._finish(job)

    def _download(self, url: str, target: Path) -> None:
        """Stream ``url`` into ``target``; nothing is left behind on failure."""
        part: Optional[Path] = None
        try:
            with self._http.stream("GET", url) as response:
                if not response.is_success:
                    raise DownloadError(
                        f"Failed to download audio. Status code: {response.status_code}"
                    )
                with _open_part(target) as fh:
                    part = Path(fh.name)
                    for chunk in response.iter_bytes(chunk_size=self._chunk_size):
                        fh.write(chunk)
            os.replace(part, target)
            part = None
        except (httpx.HTTPError, httpx.InvalidURL) as exc:
            raise DownloadError(f"Failed to download audio: {exc}") from exc
        except OSError as exc:
            raise FileSystemError(f"Failed to write {target}: {exc}") from exc
        finally:
            if part is not None:
                _discard(part)

    def _finish(self, job: ExportJob) -> bool:
        if job.status is ExportStatus.SUCCEEDED:
            logger.info("%s saved to %s", job.channel, job.target_path)
        elif job.status is ExportStatus.CANCELLED:
            logger.info("%s dialog was cancelled", job.channel)
        else:
            logger.error("%s failed for %s: %s", job.channel, job.target_path, job.error)
        return job.status is ExportStatus.SUCCEEDED


class ExportClient:
    """The export capability handed to the UI layer."""

    __slots__ = ("_send",)

    def __init__(self, send: Callable[[BridgeRequest], BridgeResponse]) -> None:
        self._send = send

    def open_text_file(self) -> Optional[str]:
        response = self._send(BridgeRequest(CHANNEL_OPEN_FILE))
        return response.value if isinstance(response.value, str) else None

    def save_feedback(self, content: str) -> bool:
        response = self._send(BridgeRequest(CHANNEL_SAVE_FEEDBACK, (content,)))
        return response.value is True

    def save_audio(self, audio_url: str) -> bool:
        response = self._send(BridgeRequest(CHANNEL_SAVE_AUDIO, (audio_url,)))
        return response.value is True
