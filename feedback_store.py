"""Last analysis result or error, read-only to presentation."""

from __future__ import annotations

from typing import Callable, List, Optional

from models import FeedbackResult

ChangeListener = Callable[[], None]


class FeedbackStore:
    def __init__(self) -> None:
        self._result: Optional[FeedbackResult] = None
        self._error: Optional[str] = None
        self._listeners: List[ChangeListener] = []

    @property
    def result(self) -> Optional[FeedbackResult]:
        return self._result

    @property
    def error(self) -> Optional[str]:
        return self._error

    def subscribe(self, listener: ChangeListener) -> None:
        self._listeners.append(listener)

    def set_result(self, result: FeedbackResult) -> None:
        self._result = result
        self._error = None
        self._notify()

    def set_error(self, message: str) -> None:
        self._error = message
        self._result = None
        self._notify()

    def clear(self) -> None:
        if self._result is None and self._error is None:
            return
        self._result = None
        self._error = None
        self._notify()

    def _notify(self) -> None:
        for listener in list(self._listeners):
            listener()
