"""In-app playback of the recommended ideal-delivery audio."""

from __future__ import annotations

import logging
from typing import Any, Callable, Optional

try:
    from PySide6.QtCore import QUrl
    from PySide6.QtMultimedia import QAudioOutput, QMediaPlayer
except Exception:  # pragma: no cover
    QUrl = None  # type: ignore
    QAudioOutput = None  # type: ignore
    QMediaPlayer = None  # type: ignore

logger = logging.getLogger("delivery_coach")

PLAYING_STATE: Any = QMediaPlayer.PlaybackState.PlayingState if QMediaPlayer is not None else "playing"


class IdealDeliveryPlayer:
    """Play/pause control over one audio URL at a time.

    Audio streams straight from the URL; saving it is the export bridge's job.
    ``on_change`` receives True while audio is playing.
    """

    def __init__(
        self,
        on_change: Optional[Callable[[bool], None]] = None,
        on_error: Optional[Callable[[str], None]] = None,
        player: Any = None,
    ) -> None:
        self._output = None
        if player is None:
            if QMediaPlayer is None:
                raise RuntimeError("PySide6 QtMultimedia is not installed")
            player = QMediaPlayer()
            self._output = QAudioOutput()
            player.setAudioOutput(self._output)
        self._player = player
        self._on_change = on_change
        self._on_error = on_error
        self._source = ""
        self._playing = False
        player.playbackStateChanged.connect(self._on_state)
        player.errorOccurred.connect(self._on_player_error)

    @property
    def source(self) -> str:
        return self._source

    @property
    def playing(self) -> bool:
        return self._playing

    def load(self, url: str) -> None:
        if url == self._source:
            return
        self._player.stop()
        self._source = url
        self._player.setSource(QUrl(url) if QUrl is not None else url)

    def toggle(self) -> bool:
        """Start or pause playback. Returns False when nothing is loaded."""
        if not self._source:
            return False
        if self._playing:
            self._player.pause()
        else:
            self._player.play()
        return True

    def stop(self) -> None:
        self._player.stop()

    def _on_state(self, state: Any) -> None:
        playing = state == PLAYING_STATE
        if playing == self._playing:
            return
        self._playing = playing
        if self._on_change:
            self._on_change(playing)

    def _on_player_error(self, error: Any, message: str = "") -> None:
        logger.warning("Ideal delivery playback failed for %s: %s", self._source, message or error)
        self._on_state(None)
        if self._on_error:
            self._on_error(message or "The audio could not be played.")
