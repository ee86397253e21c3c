"""Configuration package."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from .manager import ChataiSettings, ConfigManager
    from .paths import ChataiPaths

__all__ = ["ConfigManager", "ChataiSettings", "ChataiPaths"]


def __getattr__(name: str) -> Any:
    if name in {"ConfigManager", "ChataiSettings"}:
        from .manager import ChataiSettings, ConfigManager

        return {"ConfigManager": ConfigManager, "ChataiSettings": ChataiSettings}[name]
    if name == "ChataiPaths":
        from .paths import ChataiPaths

        return ChataiPaths
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
