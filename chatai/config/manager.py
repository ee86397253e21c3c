from __future__ import annotations

import json
import os
from dataclasses import dataclass, replace
from typing import Any, Dict, Optional

from rich.console import Console

from .paths import ChataiPaths

DEFAULT_BASE_URL = "https://api.groq.com/openai/v1"
DEFAULT_MAX_FILE_SIZE = 1024


@dataclass(frozen=True)
class ChataiSettings:
    api_key: Optional[str] = None
    max_file_size: int = DEFAULT_MAX_FILE_SIZE
    base_url: str = DEFAULT_BASE_URL
    model: Optional[str] = None
    debug: Any = None

    def __post_init__(self) -> None:
        if not isinstance(self.max_file_size, int) or isinstance(self.max_file_size, bool):
            object.__setattr__(self, "max_file_size", DEFAULT_MAX_FILE_SIZE)
        elif self.max_file_size <= 0:
            object.__setattr__(self, "max_file_size", DEFAULT_MAX_FILE_SIZE)
        base_url = (self.base_url or "").strip() or DEFAULT_BASE_URL
        object.__setattr__(self, "base_url", base_url.rstrip("/"))

    def without_api_key(self) -> "ChataiSettings":
        return replace(self, api_key=None)

    def with_api_key(self, api_key: str) -> "ChataiSettings":
        return replace(self, api_key=api_key)


class ConfigManager:
    """Loads and persists ~/.chatai/settings.json."""

    def __init__(self, paths: ChataiPaths, console: Optional[Console] = None) -> None:
        self.paths = paths
        self.console = console or Console()

    def load_settings(self) -> ChataiSettings:
        """Build settings from the settings file, falling back to env vars."""
        data = self._read_json()
        api_key = _clean_str(data.get("apiKey")) or _clean_str(os.getenv("GROQ_API_KEY"))
        base_url = _clean_str(data.get("baseUrl")) or _clean_str(os.getenv("CHATAI_BASE_URL"))
        model = _clean_str(data.get("model")) or _clean_str(os.getenv("CHATAI_MODEL"))
        return ChataiSettings(
            api_key=api_key,
            max_file_size=_as_int(data.get("maxFileSize")),
            base_url=base_url or DEFAULT_BASE_URL,
            model=model,
            debug=data.get("debug"),
        )

    def save_api_key(self, api_key: str) -> ChataiSettings:
        """Persist a validated API key, keeping any other stored keys."""
        data = self._read_json()
        data["apiKey"] = api_key
        if "maxFileSize" not in data:
            data["maxFileSize"] = DEFAULT_MAX_FILE_SIZE
        self.paths.global_dir.mkdir(parents=True, exist_ok=True)
        self.paths.settings_file.write_text(
            json.dumps(data, indent=2, ensure_ascii=False) + "\n",
            encoding="utf-8",
        )
        return self.load_settings()

    def _read_json(self) -> Dict[str, Any]:
        path = self.paths.settings_file
        if not path.exists():
            return {}
        try:
            loaded = json.loads(path.read_text(encoding="utf-8") or "{}")
        except (OSError, json.JSONDecodeError) as exc:
            self.console.print(f"[yellow]Ignoring unreadable settings file {path}: {exc}[/yellow]")
            return {}
        if not isinstance(loaded, dict):
            self.console.print(f"[yellow]Ignoring {path}: expected a JSON object.[/yellow]")
            return {}
        return loaded


def _clean_str(value: Any) -> Optional[str]:
    if not isinstance(value, str):
        return None
    cleaned = value.strip()
    return cleaned or None


def _as_int(value: Any) -> int:
    if isinstance(value, bool):
        return DEFAULT_MAX_FILE_SIZE
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        try:
            return int(value)
        except ValueError:
            return DEFAULT_MAX_FILE_SIZE
    return DEFAULT_MAX_FILE_SIZE
