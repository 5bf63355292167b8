"""Simple JSON-based config store."""

from __future__ import annotations

import json
import os
from pathlib import Path

from models import CaptureStrategy

DEFAULT_API_BASE_URL = "http://localhost:8080"


class JsonConfigStore:
    def __init__(self, path: Path | None = None) -> None:
        self._path = path or Path.home() / ".config" / "delivery_coach" / "config.json"
        self._path.parent.mkdir(parents=True, exist_ok=True)

    def get_api_base_url(self) -> str:
        data = self._read_all()
        return str(data.get("api_base_url", DEFAULT_API_BASE_URL))

    def set_api_base_url(self, url: str) -> None:
        data = self._read_all()
        data["api_base_url"] = url.rstrip("/")
        self._write_all(data)

    def get_capture_strategy(self) -> str:
        data = self._read_all()
        value = str(data.get("capture_strategy", CaptureStrategy.BLOB.value))
        if value not in {s.value for s in CaptureStrategy}:
            return CaptureStrategy.BLOB.value
        return value

    def set_capture_strategy(self, strategy: str) -> None:
        data = self._read_all()
        data["capture_strategy"] = CaptureStrategy(strategy).value
        self._write_all(data)

    def get_api_key(self) -> str:
        data = self._read_all()
        return str(data.get("api_key", "")) or os.getenv("DASHSCOPE_API_KEY", "")

    def set_api_key(self, key: str) -> None:
        data = self._read_all()
        data["api_key"] = key
        self._write_all(data)

    def get_input_device(self) -> str | None:
        data = self._read_all()
        return data.get("input_device") or None

    def set_input_device(self, device: str | None) -> None:
        data = self._read_all()
        data["input_device"] = device or ""
        self._write_all(data)

    def get_log_dir(self) -> str:
        data = self._read_all()
        return str(data.get("log_dir", self._path.parent / "logs"))

    def _read_all(self) -> dict:
        if not self._path.exists():
            return {}
        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
        except (json.JSONDecodeError, OSError):
            return {}
        return data if isinstance(data, dict) else {}

    def _write_all(self, data: dict) -> None:
        self._path.write_text(json.dumps(data, ensure_ascii=False, indent=2), encoding="utf-8")
