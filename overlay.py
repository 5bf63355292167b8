"""Transient toast window for controller notices."""

from __future__ import annotations

try:
    from PySide6.QtCore import Qt, QTimer
    from PySide6.QtWidgets import QApplication, QFrame, QLabel, QVBoxLayout, QWidget
except Exception:  # pragma: no cover
    Qt = None  # type: ignore
    QTimer = None  # type: ignore
    QApplication = None  # type: ignore
    QFrame = object  # type: ignore
    QLabel = object  # type: ignore
    QVBoxLayout = object  # type: ignore
    QWidget = object  # type: ignore

TOAST_WIDTH = 360
SCREEN_MARGIN = 24

_PANEL_STYLE = "QFrame#toast {{ background: rgba(0,0,0,{alpha}); border-radius: 10px; }}"
_TITLE_COLORS = {False: "#7CD992", True: "#FF6B6B"}


class ToastOverlay(QWidget):
    """Bottom-right notice that hides itself; a click dismisses it early."""

    def __init__(self) -> None:
        if Qt is None:
            raise RuntimeError("PySide6 is not installed")
        super().__init__()
        self.setWindowFlags(Qt.WindowStaysOnTopHint | Qt.FramelessWindowHint | Qt.Tool)
        self.setAttribute(Qt.WA_TranslucentBackground, True)
        self.setAttribute(Qt.WA_ShowWithoutActivating, True)
        self.setFixedWidth(TOAST_WIDTH)

        self._panel = QFrame(self)
        self._panel.setObjectName("toast")
        self._title = QLabel("")
        self._body = QLabel("")
        self._body.setWordWrap(True)
        self._body.setStyleSheet("color: white; font-size: 14px;")

        inner = QVBoxLayout(self._panel)
        inner.setContentsMargins(14, 10, 14, 12)
        inner.setSpacing(4)
        inner.addWidget(self._title)
        inner.addWidget(self._body)

        outer = QVBoxLayout(self)
        outer.setContentsMargins(0, 0, 0, 0)
        outer.addWidget(self._panel)

        self._dismiss = QTimer(self)
        self._dismiss.setSingleShot(True)
        self._dismiss.timeout.connect(self.hide)

    def show_notice(self, title: str, message: str, is_error: bool = False, hide_after_ms: int = 3000) -> None:
        self._dismiss.stop()
        self._panel.setStyleSheet(_PANEL_STYLE.format(alpha=215 if is_error else 190))
        self._title.setStyleSheet(f"color: {_TITLE_COLORS[is_error]}; font-size: 15px; font-weight: bold;")
        self._title.setText(title)
        self._body.setText(message)
        self._place()
        self.show()
        self._dismiss.start(hide_after_ms)

    def mousePressEvent(self, event) -> None:  # noqa: N802, ANN001
        self._dismiss.stop()
        self.hide()
        event.accept()

    def _place(self) -> None:
        screen = QApplication.primaryScreen()
        if screen is None:
            return
        area = screen.availableGeometry()
        self.adjustSize()
        self.move(
            area.right() - self.width() - SCREEN_MARGIN,
            area.bottom() - self.height() - SCREEN_MARGIN,
        )
