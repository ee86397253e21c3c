from __future__ import annotations

import argparse
import asyncio
import errno
import sys
import webbrowser
from contextlib import suppress
from pathlib import Path

from prompt_toolkit import PromptSession
from prompt_toolkit.history import FileHistory
from rich.align import Align
from rich.console import Console, Group
from rich.markup import escape
from rich.panel import Panel
from rich.prompt import Prompt

from ..agent import ChatApiError, ChatClient, CompletionWaitIndicator, select_model
from ..config import ChataiPaths, ChataiSettings, ConfigManager
from ..core.code_blocks import extract_code_blocks, shell_tag_for_platform
from ..core.confirmation import ConfirmationOutcome, ExecutionConfirmer
from ..core.directives import CommandRunner, DirectiveResolver
from ..core.executor import CommandExecutor, is_windows
from ..core.session_log import (
    SessionLogger,
    log_debug,
    log_error,
    log_exception,
    log_warn,
    set_active_logger,
)
from ..prompts import build_system_prompt
from .input import DirectiveCompleter

API_KEY_PAGE = "https://console.groq.com/keys"


class ChataiCLI:
    """Interactive chat loop that resolves directives and confirms commands."""

    def __init__(
        self,
        root: Path | None = None,
        console: Console | None = None,
        *,
        settings: ChataiSettings | None = None,
        client: ChatClient | None = None,
        executor: CommandRunner | None = None,
        platform: str | None = None,
        interactive_prompts: bool = True,
    ) -> None:
        self.console = console or Console()
        self.root = root or Path.cwd()
        self.paths = ChataiPaths(self.root)
        self.config_manager = ConfigManager(self.paths, console=self.console)
        self.settings = settings or self.config_manager.load_settings()
        self.session_logger = SessionLogger(self.paths, self.settings.debug)
        set_active_logger(self.session_logger)
        windows = is_windows(platform)
        self.shell_tag = shell_tag_for_platform(platform)
        self.system_prompt = build_system_prompt(self.shell_tag)
        self.executor: CommandRunner = executor or CommandExecutor(
            self.console, windows=windows, cwd=str(self.root)
        )
        self.resolver = DirectiveResolver(self.executor, paths=self.paths, console=self.console)
        self.confirmer = ExecutionConfirmer(
            self.executor,
            self._ask_confirmation,
            console=self.console,
            shell_tag=self.shell_tag,
        )
        self.client = client or ChatClient(self.settings.base_url, self.settings.api_key)
        self.model: str | None = None
        self._shutting_down = False
        self.session: PromptSession | None = None
        if interactive_prompts and sys.stdin.isatty() and sys.stdout.isatty():
            self.paths.global_dir.mkdir(parents=True, exist_ok=True)
            self.session = PromptSession(
                completer=DirectiveCompleter(self.root),
                history=FileHistory(str(self.paths.history_file)),
                complete_while_typing=False,
            )

    async def run(self) -> None:
        try:
            if not await self._ensure_api_key():
                return
            if not await self._select_model():
                return
            self._print_banner()
            while True:
                try:
                    raw = await self._read_input("You: ")
                except (EOFError, KeyboardInterrupt):
                    break
                if not raw or not raw.strip():
                    break
                await self.handle_turn(raw)
        except Exception as exc:  # noqa: BLE001
            log_exception("cli", exc)
            raise
        finally:
            await self._graceful_exit()

    async def handle_turn(self, line: str) -> ConfirmationOutcome | None:
        """Resolve directives, ask the model, then offer its commands."""
        self.session_logger.start_interaction("cli", summary=line)
        resolved = await self.resolver.resolve(line, self.settings.max_file_size)
        self.session_logger.log_system_prompt("cli", self.system_prompt)
        self.session_logger.log_user_prompt("cli", resolved.text)
        indicator = CompletionWaitIndicator(self.console, self.model or "", self.client.base_url)
        try:
            async with indicator:
                reply = await self.client.complete(self.model or "", self.system_prompt + resolved.text)
        except ChatApiError as exc:
            log_error("cli", "api.error", {"status": exc.status, "detail": exc.detail})
            status = exc.status if exc.status is not None else "-"
            self.console.print(
                Panel(
                    f"Status: {status}\nDetails: {escape(exc.detail)}",
                    title="API error",
                    border_style="red",
                )
            )
            self.session_logger.end_interaction("cli", status="error")
            return None

        log_debug(
            "cli",
            "api.completed",
            {"model": self.model, "seconds": round(indicator.elapsed or 0.0, 2)},
        )
        self.session_logger.log_assistant_text("cli", reply)
        self.console.print(f"[bold green]AI:[/bold green] {escape(reply)}")
        outcome = None
        if reply:
            blocks = extract_code_blocks(reply, self.shell_tag)
            outcome = await self.confirmer.process(blocks)
        self.session_logger.end_interaction("cli", status="completed")
        return outcome

    async def _ensure_api_key(self) -> bool:
        settings = self.settings
        if settings.api_key:
            self.console.print("Validating the saved API key...")
            try:
                valid = await self.client.validate_key(settings.api_key)
            except ChatApiError as exc:
                self.console.print(f"[red]Could not reach the API: {escape(exc.detail)}[/red]")
                valid = False
            if not valid:
                log_warn("cli", "api_key.invalid")
                self.console.print("[yellow]The saved API key is not valid.[/yellow]")
                settings = settings.without_api_key()
        if not settings.api_key:
            configured = await self._setup_api_key()
            if configured is None:
                return False
            settings = configured
        self.settings = settings
        self.client.api_key = settings.api_key
        return True

    async def _setup_api_key(self) -> ChataiSettings | None:
        self.console.print("No API key is configured. Opening the key page in your browser...")
        self.console.print(f"If no browser opens, get a key from:\n{API_KEY_PAGE}")
        with suppress(webbrowser.Error):
            webbrowser.open(API_KEY_PAGE)
        while True:
            try:
                api_key = (await self._read_input("Enter your API key: ")).strip()
            except (EOFError, KeyboardInterrupt):
                api_key = ""
            if not api_key:
                self.console.print("No API key entered. Exiting.")
                return None
            self.console.print("Validating the API key...")
            try:
                valid = await self.client.validate_key(api_key)
            except ChatApiError as exc:
                self.console.print(f"[red]Could not reach the API: {escape(exc.detail)}[/red]")
                continue
            if not valid:
                self.console.print("[yellow]That API key does not seem to be valid.[/yellow]")
                continue
            return self.config_manager.save_api_key(api_key)

    async def _select_model(self) -> bool:
        self.console.print("Fetching the model list...")
        try:
            model_ids = await self.client.list_models()
        except ChatApiError as exc:
            log_error("cli", "models.error", {"status": exc.status, "detail": exc.detail})
            self.console.print(f"[red]Failed to list models: {escape(str(exc))}[/red]")
            return False
        self.model = select_model(model_ids, self.settings.model)
        if self.model is None:
            self.console.print("[red]The API did not offer any usable model.[/red]")
            return False
        return True

    def _print_banner(self) -> None:
        from chatai import __version__

        helper_lines = [
            f"Chatai v{__version__}",
            f"Model: {self.model}",
            f"Shell: {self.shell_tag}",
            f"Working directory: {self.root}",
            'Directives: >"command" adds command output • @path adds a file',
            "Enter an empty line to exit",
        ]
        self.console.print(
            Panel(
                Group(Align.left("\n".join(helper_lines))),
                title="Chatai",
                expand=True,
                padding=(1, 2),
            )
        )

    async def _ask_confirmation(self, prompt: str) -> str:
        return await self._read_input(prompt)

    async def _read_input(self, prompt: str = "You: ") -> str:
        if self.session:
            return await self.session.prompt_async(prompt)
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(
            None, lambda: Prompt.ask(escape(prompt.rstrip().rstrip(":")), console=self.console)
        )

    async def _graceful_exit(self) -> None:
        if self._shutting_down:
            return
        self._shutting_down = True
        with suppress(Exception):
            self.session_logger.close()
        set_active_logger(None)
        try:
            self.console.print("[cyan]Bye[/cyan]")
        except BrokenPipeError:
            return
        except OSError as exc:
            if exc.errno == errno.EPIPE:
                return
            raise


def main() -> None:
    parser = argparse.ArgumentParser(
        description="Chatai - terminal chat that runs the shell commands it suggests"
    )
    parser.add_argument("-v", "--version", action="store_true", help="Show version and exit")
    args, _ = parser.parse_known_args()
    if args.version:
        from chatai import __version__

        print(f"chatai {__version__}")
        return
    try:
        asyncio.run(ChataiCLI().run())
    except BrokenPipeError:
        return
    except KeyboardInterrupt:
        return
    except OSError as exc:
        if exc.errno == errno.EPIPE:
            return
        raise


if __name__ == "__main__":
    main()
