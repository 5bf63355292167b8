"""Protocol interfaces used by the controller and the export bridge."""

from __future__ import annotations

from concurrent.futures import Future
from pathlib import Path
from queue import Queue
from typing import Callable, Optional, Protocol, Sequence, Tuple

from models import AnalysisPayload, AudioFrame, FeedbackResult, RecognitionEvent

# (label, extensions) pairs, e.g. ("Text Files", ("txt", "md"))
FileFilter = Tuple[str, Sequence[str]]


class Recorder(Protocol):
    def start(
        self,
        audio_queue: Queue[AudioFrame | None],
        on_device_lost: Optional[Callable[[str], None]] = None,
    ) -> None: ...

    def stop(self) -> None: ...


class TranscriptionAdapter(Protocol):
    """``stop`` returns at once; the adapter reports CLOSED once it has flushed."""

    def start(
        self,
        audio_queue: Queue[AudioFrame | None],
        on_event: Callable[[RecognitionEvent], None],
    ) -> None: ...

    def stop(self) -> None: ...


class AnalysisService(Protocol):
    @property
    def in_flight(self) -> bool: ...

    def submit(self, script: str, payload: AnalysisPayload) -> Future[FeedbackResult]: ...


class FilePicker(Protocol):
    def choose_open_path(self, title: str, filters: Sequence[FileFilter]) -> Optional[Path]: ...

    def choose_save_path(
        self, title: str, default_name: str, filters: Sequence[FileFilter]
    ) -> Optional[Path]: ...


class ConfigStore(Protocol):
    def get_api_base_url(self) -> str: ...

    def set_api_base_url(self, url: str) -> None: ...

    def get_capture_strategy(self) -> str: ...

    def set_capture_strategy(self, strategy: str) -> None: ...

    def get_api_key(self) -> str: ...

    def set_api_key(self, key: str) -> None: ...
