"""Simple JSON-based config store."""

from __future__ import annotations

import json
import os
from pathlib import Path

from models import MicPermission

DEFAULT_HOTKEY = "Key.f9"
DEFAULT_API_BASE_URL = "http://localhost:3000"


class JsonConfigStore:
    def __init__(self, path: Path | None = None) -> None:
        self._path = path or Path.home() / ".config" / "live_copilot" / "config.json"
        self._path.parent.mkdir(parents=True, exist_ok=True)

    def get_api_key(self) -> str:
        data = self._read_all()
        return str(data.get("api_key", "")) or os.getenv("DASHSCOPE_API_KEY", "")

    def set_api_key(self, key: str) -> None:
        self._update(api_key=key)

    def get_hotkey(self) -> str:
        data = self._read_all()
        return str(data.get("hotkey", DEFAULT_HOTKEY))

    def set_hotkey(self, hotkey: str) -> None:
        self._update(hotkey=hotkey)

    def get_api_base_url(self) -> str:
        data = self._read_all()
        value = str(data.get("api_base_url", "")) or os.getenv("LIVE_COPILOT_API_BASE", "")
        return (value or DEFAULT_API_BASE_URL).rstrip("/")

    def set_api_base_url(self, url: str) -> None:
        self._update(api_base_url=url)

    def get_mic_permission(self) -> MicPermission:
        data = self._read_all()
        try:
            return MicPermission(data.get("mic_permission", MicPermission.PROMPT.value))
        except ValueError:
            return MicPermission.PROMPT

    def set_mic_permission(self, permission: MicPermission) -> None:
        self._update(mic_permission=MicPermission(permission).value)

    def get_demo_seconds_used(self) -> int:
        data = self._read_all()
        try:
            return max(0, int(data.get("demo_seconds_used", 0)))
        except (TypeError, ValueError):
            return 0

    def set_demo_seconds_used(self, seconds: int) -> None:
        self._update(demo_seconds_used=int(seconds))

    def _update(self, **values: object) -> None:
        data = self._read_all()
        data.update(values)
        self._write_all(data)

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
