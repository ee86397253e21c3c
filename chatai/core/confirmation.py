"""Per-block confirmation before running commands suggested by the model."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Iterable, List

from rich.console import Console
from rich.panel import Panel
from rich.syntax import Syntax

from .code_blocks import BASH_TAG, CodeBlock
from .directives import CommandRunner
from .executor import ExecutionResult
from .session_log import log_info

CONFIRM_PROMPT = "Run this command? (y/n, Y: run all, N: skip all): "

AskLine = Callable[[str], Awaitable[str]]


class ConfirmationState(enum.Enum):
    ASK_EACH = "ask_each"
    ALWAYS_RUN = "always_run"
    HALTED = "halted"


@dataclass
class ConfirmationOutcome:
    state: ConfirmationState = ConfirmationState.ASK_EACH
    results: List[ExecutionResult] = field(default_factory=list)
    skipped: List[CodeBlock] = field(default_factory=list)
    prompts: int = 0


class ExecutionConfirmer:
    """Walks code blocks in order, asking before each run.

    ``y`` runs the block, ``n`` skips it, ``Y`` runs it and every later block
    without asking, ``N`` stops processing the response. Any other answer
    prints the skip notice but asks again for the same block.
    """

    def __init__(
        self,
        executor: CommandRunner,
        ask: AskLine,
        *,
        console: Console | None = None,
        shell_tag: str = BASH_TAG,
    ) -> None:
        self.executor = executor
        self.ask = ask
        self.console = console or Console()
        self.shell_tag = shell_tag

    async def process(self, blocks: Iterable[CodeBlock]) -> ConfirmationOutcome:
        outcome = ConfirmationOutcome()
        for block in blocks:
            if outcome.state is ConfirmationState.HALTED:
                break
            if outcome.state is ConfirmationState.ALWAYS_RUN:
                outcome.results.append(await self.executor.run(block.body))
                continue
            self._show(block)
            await self._confirm(block, outcome)
        return outcome

    async def _confirm(self, block: CodeBlock, outcome: ConfirmationOutcome) -> None:
        while True:
            outcome.prompts += 1
            try:
                answer = (await self.ask(CONFIRM_PROMPT)).strip()
            except (EOFError, KeyboardInterrupt):
                answer = "N"
            if answer == "y":
                log_info("confirm", "confirm.run", {"command": block.body})
                outcome.results.append(await self.executor.run(block.body))
                return
            if answer == "n":
                log_info("confirm", "confirm.skip", {"command": block.body})
                self.console.print("[yellow]Skipped the command.[/yellow]")
                outcome.skipped.append(block)
                return
            if answer == "Y":
                log_info("confirm", "confirm.run_all", {"command": block.body})
                outcome.state = ConfirmationState.ALWAYS_RUN
                outcome.results.append(await self.executor.run(block.body))
                return
            if answer == "N":
                log_info("confirm", "confirm.skip_all", {"command": block.body})
                self.console.print("[yellow]Skipped all remaining commands.[/yellow]")
                outcome.state = ConfirmationState.HALTED
                return
            # Invalid input re-prompts for the same block although the notice
            # says "skipped"; the wording is kept as users know it.
            log_info("confirm", "confirm.invalid", {"answer": answer})
            self.console.print("[yellow]Invalid input. Skipped the command.[/yellow]")

    def _show(self, block: CodeBlock) -> None:
        self.console.print(
            Panel(
                Syntax(block.body, self.shell_tag, word_wrap=True),
                title="Detected command",
                border_style="cyan",
            )
        )
