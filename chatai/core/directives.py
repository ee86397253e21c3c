"""Resolve ``>command`` and ``@file`` directives at the start of user input."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Protocol

from rich.console import Console
from rich.markup import escape

from ..config.paths import ChataiPaths
from .executor import ExecutionResult
from .session_log import log_debug, log_error, log_warn

COMMAND_SIGIL = ">"
FILE_SIGIL = "@"
FENCE = "```"


@dataclass(frozen=True)
class ParsedCommand:
    head: str
    remainder: str = ""


def parse_command(body: str) -> ParsedCommand:
    """Split a directive body into its head token and the trailing text.

    A body starting with ``"`` takes everything up to the next ``"`` as the
    head; an unterminated quote takes the rest of the body. Otherwise only
    the first space-delimited word is the head, so ``ls -la`` runs ``ls``
    and leaves ``-la`` as plain text.
    """
    if not body:
        return ParsedCommand("", "")
    if body[0] == '"':
        content = body[1:]
        end = content.find('"')
        if end == -1:
            return ParsedCommand(content, "")
        return ParsedCommand(content[:end], content[end + 1 :].strip())
    space = body.find(" ")
    if space == -1:
        return ParsedCommand(body, "")
    return ParsedCommand(body[:space], body[space + 1 :].strip())


@dataclass(frozen=True)
class ContextBlock:
    label: str
    body: str

    def render(self) -> str:
        body = self.body if self.body.endswith("\n") else f"{self.body}\n"
        return f"{self.label}\n{FENCE}\n{body}{FENCE}\n"


@dataclass
class ResolvedInput:
    text: str
    blocks: List[ContextBlock] = field(default_factory=list)
    remainder: str = ""


class CommandRunner(Protocol):
    async def run(self, command: str) -> ExecutionResult: ...


class DirectiveResolver:
    """Chains leading directives into context blocks appended to the message."""

    def __init__(
        self,
        executor: CommandRunner,
        *,
        paths: ChataiPaths | None = None,
        console: Console | None = None,
    ) -> None:
        self.executor = executor
        self.paths = paths or ChataiPaths(Path.cwd())
        self.console = console or Console()

    async def resolve(self, line: str, max_file_bytes: int) -> ResolvedInput:
        current = line
        blocks: List[ContextBlock] = []
        while True:
            current = current.lstrip()
            if not current:
                break
            sigil = current[0]
            if sigil == COMMAND_SIGIL:
                parsed = parse_command(current[1:].strip())
                block = await self._resolve_command(parsed.head)
            elif sigil == FILE_SIGIL:
                parsed = parse_command(current[1:].strip())
                block = await self._resolve_file(parsed.head, max_file_bytes)
            else:
                break
            if block is not None:
                blocks.append(block)
            current = parsed.remainder

        if not blocks:
            return ResolvedInput(text=line, blocks=[], remainder=current)
        rendered = "".join(block.render() for block in blocks)
        return ResolvedInput(text=f"{current}\n\n{rendered}", blocks=blocks, remainder=current)

    async def _resolve_command(self, command: str) -> ContextBlock:
        log_debug("directives", "directive.command", {"command": command})
        result = await self.executor.run(command)
        return ContextBlock(label=f"Command: {command}", body=result.render())

    async def _resolve_file(self, raw_path: str, max_file_bytes: int) -> ContextBlock | None:
        try:
            path = self.paths.resolve(raw_path)
            if not path.is_file():
                log_debug("directives", "directive.file_missing", {"path": raw_path})
                return None
            data = path.read_bytes()
            if len(data) > max_file_bytes:
                self.console.print(
                    f"[yellow]File {escape(raw_path)} is larger than {max_file_bytes} bytes "
                    "and was not attached.[/yellow]"
                )
                log_warn(
                    "directives",
                    "directive.file_too_large",
                    {"path": raw_path, "bytes": len(data), "limit": max_file_bytes},
                )
                return None
            content = data.decode("utf-8")
        except (OSError, UnicodeDecodeError) as exc:
            self.console.print(f"[red]Failed to read {escape(raw_path)}: {escape(str(exc))}[/red]")
            log_error("directives", "directive.file_read_failed", {"path": raw_path, "error": str(exc)})
            return None
        return ContextBlock(label=f"File: {raw_path}", body=content)
