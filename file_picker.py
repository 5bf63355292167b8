"""Native file dialogs backed by PySide6."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Optional, Sequence

from interfaces import FileFilter

try:
    from PySide6.QtWidgets import QFileDialog
except Exception:  # pragma: no cover
    QFileDialog = None  # type: ignore


def qt_filter_string(filters: Sequence[FileFilter]) -> str:
    """``[("Text Files", ("txt", "md"))]`` -> ``"Text Files (*.txt *.md)"``."""
    parts = []
    for label, extensions in filters:
        patterns = " ".join(f"*.{ext}" for ext in extensions)
        parts.append(f"{label} ({patterns})")
    return ";;".join(parts)


class QtFilePicker:
    def __init__(self, parent: Any = None) -> None:
        if QFileDialog is None:
            raise RuntimeError("PySide6 is not installed")
        self._parent = parent

    def choose_open_path(self, title: str, filters: Sequence[FileFilter]) -> Optional[Path]:
        path, _ = QFileDialog.getOpenFileName(self._parent, title, "", qt_filter_string(filters))
        return Path(path) if path else None

    def choose_save_path(
        self, title: str, default_name: str, filters: Sequence[FileFilter]
    ) -> Optional[Path]:
        path, _ = QFileDialog.getSaveFileName(
            self._parent, title, default_name, qt_filter_string(filters)
        )
        return Path(path) if path else None
