"""Run shell commands for directives and confirmed code blocks."""

from __future__ import annotations

import asyncio
import sys
from contextlib import suppress
from dataclasses import dataclass

from rich.console import Console
from rich.markup import escape

from .session_log import log_command, log_exception

POWERSHELL_UTF8_PREAMBLE = "[Console]::OutputEncoding = [System.Text.Encoding]::UTF8; "


def is_windows(platform: str | None = None) -> bool:
    return (platform or sys.platform) == "win32"


def build_shell_argv(command: str, windows: bool) -> list[str]:
    """Return the argv that hands ``command`` to the platform shell.

    PowerShell gets a single ``-Command`` script with newlines flattened to
    ``; `` and UTF-8 output forced. Quoting of embedded double quotes is left
    to the argv layer: ``subprocess.list2cmdline`` escapes them as ``\\"`` on
    Windows and POSIX exec passes them through untouched.
    """
    if windows:
        flat = command.replace("\r\n", "; ").replace("\n", "; ")
        return ["powershell", "-NoProfile", "-Command", f"{POWERSHELL_UTF8_PREAMBLE}{flat}"]
    return ["bash", "-c", command]


@dataclass(frozen=True)
class ExecutionResult:
    command: str
    stdout: str = ""
    stderr: str = ""
    returncode: int | None = None
    exception_message: str | None = None

    @property
    def failed(self) -> bool:
        return self.exception_message is not None

    def render(self) -> str:
        """Text embedded in a context block for this run."""
        lines: list[str] = []
        if self.stdout.strip():
            lines.append(self.stdout)
        if self.stderr.strip():
            lines.append(f"Error: {self.stderr}")
        if self.exception_message is not None:
            lines.append(f"Exception: {self.exception_message}")
        return "".join(line if line.endswith("\n") else f"{line}\n" for line in lines)


class CommandExecutor:
    """Spawns the platform shell and captures stdout and stderr."""

    def __init__(
        self,
        console: Console | None = None,
        *,
        windows: bool | None = None,
        cwd: str | None = None,
    ) -> None:
        self.console = console or Console()
        self.windows = is_windows() if windows is None else windows
        self.cwd = cwd

    async def run(self, command: str) -> ExecutionResult:
        argv = build_shell_argv(command, self.windows)
        proc: asyncio.subprocess.Process | None = None
        try:
            proc = await asyncio.create_subprocess_exec(
                *argv,
                cwd=self.cwd,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
            stdout_raw, stderr_raw = await proc.communicate()
        except Exception as exc:  # noqa: BLE001
            log_exception("executor", exc)
            self.console.print(f"[red]Command raised an exception: {escape(str(exc))}[/red]")
            result = ExecutionResult(command=command, exception_message=str(exc) or type(exc).__name__)
            self._log(result)
            return result
        finally:
            if proc is not None and proc.returncode is None:
                with suppress(ProcessLookupError):
                    proc.kill()
                with suppress(Exception):
                    await proc.wait()

        stdout = (stdout_raw or b"").decode("utf-8", errors="replace")
        stderr = (stderr_raw or b"").decode("utf-8", errors="replace")
        if stdout.strip():
            self.console.print(stdout.rstrip("\n"), markup=False, highlight=False)
        if stderr.strip():
            self.console.print(
                f"[red]Error output:[/red] {escape(stderr.rstrip())}", highlight=False
            )
        result = ExecutionResult(
            command=command,
            stdout=stdout,
            stderr=stderr,
            returncode=proc.returncode,
        )
        self._log(result)
        return result

    def _log(self, result: ExecutionResult) -> None:
        log_command(
            "executor",
            command=result.command,
            stdout=result.stdout,
            stderr=result.stderr,
            returncode=result.returncode,
            exception=result.exception_message,
        )
