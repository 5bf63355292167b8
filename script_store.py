"""Script text and its lock flag."""

from __future__ import annotations

import logging
from typing import Callable, List

from errors import InvalidStateError

logger = logging.getLogger("delivery_coach")

LockListener = Callable[[bool], None]


class ScriptStore:
    def __init__(self, text: str = "") -> None:
        self._text = text
        self._locked = False
        self._listeners: List[LockListener] = []

    @property
    def text(self) -> str:
        return self._text

    @property
    def locked(self) -> bool:
        return self._locked

    @property
    def is_empty(self) -> bool:
        return not self._text.strip()

    def subscribe(self, listener: LockListener) -> None:
        self._listeners.append(listener)

    def set_text(self, text: str) -> None:
        if self._locked:
            raise InvalidStateError("Script is locked; unlock it to edit.")
        self._text = text

    def lock(self) -> None:
        if self._locked:
            raise InvalidStateError("Script is already locked.")
        if self.is_empty:
            raise InvalidStateError("Cannot lock an empty script.")
        self._locked = True
        logger.info("Script locked (%d chars)", len(self._text))
        self._notify()

    def unlock(self) -> None:
        if not self._locked:
            return
        self._locked = False
        logger.info("Script unlocked")
        self._notify()

    def _notify(self) -> None:
        for listener in list(self._listeners):
            listener(self._locked)
