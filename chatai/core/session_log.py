from __future__ import annotations

import json
import traceback
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from ..config.paths import ChataiPaths

LOG_LEVELS = ("error", "warn", "info", "debug")
LOG_LEVEL_PRIORITY = {level: idx for idx, level in enumerate(LOG_LEVELS)}
LOG_TYPE_SESSION = "session"

_FALSY_TOKENS = {"", "none", "null", "off", "false", "0", "no", "n"}
_TRUTHY_TOKENS = {"true", "1", "yes", "y", "on"}


@dataclass(frozen=True)
class LogSelection:
    enabled_types: frozenset[str]
    enabled_levels: frozenset[str]

    @property
    def enabled(self) -> bool:
        return bool(self.enabled_types or self.enabled_levels)


def resolve_debug_config(raw: Any) -> LogSelection:
    """Map the ``debug`` setting to the log types and levels it turns on.

    ``true``/``"all"`` enable everything, ``"session"`` enables the
    conversation transcript, and a level name enables that level plus every
    more severe one. Lists combine tokens.
    """
    types: set[str] = set()
    levels: set[str] = set()

    if raw is True:
        tokens = ["all"]
    elif isinstance(raw, str):
        tokens = [raw]
    elif isinstance(raw, (list, tuple, set)):
        tokens = [item for item in raw if isinstance(item, str)]
    else:
        tokens = []

    for token in (item.strip().lower() for item in tokens):
        if token in _FALSY_TOKENS:
            continue
        if token == "all" or token in _TRUTHY_TOKENS:
            types.add(LOG_TYPE_SESSION)
            levels.update(LOG_LEVELS)
        elif token == LOG_TYPE_SESSION:
            types.add(LOG_TYPE_SESSION)
        elif token in LOG_LEVEL_PRIORITY:
            levels.update(LOG_LEVELS[: LOG_LEVEL_PRIORITY[token] + 1])
    return LogSelection(frozenset(types), frozenset(levels))


class SessionLogger:
    """Markdown transcript of one chat session, newest entry first.

    Nothing is written unless the ``debug`` setting enables a log type or
    level; the file is created on the first entry.
    """

    def __init__(self, paths: ChataiPaths, debug_config: Any) -> None:
        self.paths = paths
        self.selection = resolve_debug_config(debug_config)
        self.enabled = self.selection.enabled
        self._session_id = datetime.now().strftime("%Y%m%d_%H%M%S")
        self._started_at = datetime.now(timezone.utc)
        self._path: Path | None = None
        self._header = ""
        self._last_system_prompt: str | None = None
        self._turn = 0
        self._active_turn: int | None = None

    def close(self) -> None:
        self.enabled = False

    # transcript entries

    def start_interaction(self, source: str, *, summary: str | None = None) -> int | None:
        if not self._session_enabled():
            return None
        self._turn += 1
        self._active_turn = self._turn
        self._session_entry("system", source, "session.interaction.start", {"summary": summary})
        return self._active_turn

    def end_interaction(self, source: str, *, status: str | None = None) -> None:
        if self._session_enabled() and self._active_turn is not None:
            self._session_entry("system", source, "session.interaction.end", {"status": status})
        self._active_turn = None

    def log_system_prompt(self, source: str, prompt: str) -> None:
        if not prompt or prompt == self._last_system_prompt:
            return
        if self._session_entry("system", source, "prompt.system", prompt):
            self._last_system_prompt = prompt

    def log_user_prompt(self, source: str, prompt: str) -> None:
        if prompt:
            self._session_entry("user", source, "prompt.user", prompt)

    def log_assistant_text(self, source: str, text: str) -> None:
        if text:
            self._session_entry("assistant", source, "assistant.text", text)

    def log_command(
        self,
        source: str,
        *,
        command: str,
        stdout: str,
        stderr: str,
        returncode: int | None,
        exception: str | None,
    ) -> None:
        self._session_entry(
            "tool",
            source,
            "command.run",
            {
                "command": command,
                "stdout": stdout,
                "stderr": stderr,
                "returncode": returncode,
                "exception": exception,
            },
        )

    # level entries

    def log_level(self, source: str, level: str, event: str, content: Any | None = None) -> None:
        if self.enabled and level in self.selection.enabled_levels:
            self._write(f"{level}/{source}", event, content)

    def log_exception(self, source: str, exc: BaseException) -> None:
        frames = traceback.extract_tb(exc.__traceback__) if exc.__traceback__ else []
        location = f"{frames[-1].filename}:{frames[-1].lineno} in {frames[-1].name}" if frames else None
        self.log_level(
            source,
            "error",
            "exception",
            {
                "type": type(exc).__name__,
                "message": str(exc),
                "location": location,
                "traceback": "".join(traceback.format_exception(type(exc), exc, exc.__traceback__)),
            },
        )

    # file handling

    def _session_enabled(self) -> bool:
        return self.enabled and LOG_TYPE_SESSION in self.selection.enabled_types

    def _session_entry(self, role: str, source: str, event: str, content: Any) -> bool:
        if not self._session_enabled():
            return False
        self._write(f"{LOG_TYPE_SESSION}/{source}", f"{event} ({role})", content)
        return True

    def _write(self, kind: str, event: str, content: Any) -> None:
        try:
            path = self._ensure_path()
            header = f"## {datetime.now(timezone.utc).isoformat()} · {kind} · {event}"
            if self._active_turn is not None:
                header = f"{header} · turn {self._active_turn}"
            entry = f"{header}\n{_fenced(content)}\n\n"
            existing = path.read_text(encoding="utf-8")
            body = existing[len(self._header):] if existing.startswith(self._header) else existing
            path.write_text(f"{self._header}{entry}{body}", encoding="utf-8")
        except OSError:
            # an unwritable log directory turns logging off for the session
            self.close()

    def _ensure_path(self) -> Path:
        if self._path is None:
            logs_dir = self.paths.logs_dir
            logs_dir.mkdir(parents=True, exist_ok=True)
            self._path = logs_dir / f"chatai_session_{self._session_id}.md"
            self._header = (
                "# Chatai Session Log\n\n"
                f"- Session: {self._session_id}\n"
                f"- Started: {self._started_at.isoformat()}\n"
                f"- Working directory: {self.paths.root}\n\n"
                "---\n\n"
            )
            if not self._path.exists():
                self._path.write_text(self._header, encoding="utf-8")
        return self._path


def _fenced(content: Any) -> str:
    # four backticks so fenced replies stay inside the entry
    if isinstance(content, (dict, list)):
        return f"````json\n{json.dumps(content, indent=2, ensure_ascii=False, default=str)}\n````"
    body = "" if content is None else str(content)
    return f"````markdown\n{body.rstrip()}\n````"


_ACTIVE_LOGGER: SessionLogger | None = None


def set_active_logger(logger: SessionLogger | None) -> None:
    global _ACTIVE_LOGGER
    _ACTIVE_LOGGER = logger


def log_command(source: str, **fields: Any) -> None:
    if _ACTIVE_LOGGER is not None:
        _ACTIVE_LOGGER.log_command(source, **fields)


def log_exception(source: str, exc: BaseException) -> None:
    if _ACTIVE_LOGGER is not None:
        _ACTIVE_LOGGER.log_exception(source, exc)


def _log_at(level: str, source: str, event: str, content: Any | None) -> None:
    if _ACTIVE_LOGGER is not None:
        _ACTIVE_LOGGER.log_level(source, level, event, content)


def log_error(source: str, event: str, content: Any | None = None) -> None:
    _log_at("error", source, event, content)


def log_warn(source: str, event: str, content: Any | None = None) -> None:
    _log_at("warn", source, event, content)


def log_info(source: str, event: str, content: Any | None = None) -> None:
    _log_at("info", source, event, content)


def log_debug(source: str, event: str, content: Any | None = None) -> None:
    _log_at("debug", source, event, content)
