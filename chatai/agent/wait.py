from __future__ import annotations

import asyncio
import time
from contextlib import suppress
from urllib.parse import urlparse

from rich.console import Console
from rich.markup import escape


class CompletionWaitIndicator:
    """Spinner shown while a chat completion request is in flight.

    The status line names the model and the API host so a slow turn can be
    told apart from a dead endpoint. ``elapsed`` holds the request duration
    once the block exits.
    """

    TICK_SECONDS = 0.5

    def __init__(self, console: Console, model: str, base_url: str = "") -> None:
        self.console = console
        self.model = model or "model"
        self.host = urlparse(base_url).netloc or base_url
        self.elapsed: float | None = None
        self._started: float | None = None
        self._done = asyncio.Event()
        self._ticker: asyncio.Task | None = None

    def status_text(self, seconds: float) -> str:
        target = f"{self.model} at {self.host}" if self.host else self.model
        return f"Asking {escape(target)} · {seconds:.1f}s"

    async def __aenter__(self) -> "CompletionWaitIndicator":
        self._started = time.monotonic()
        self._done.clear()
        self._ticker = asyncio.create_task(self._tick())
        return self

    async def __aexit__(self, *_exc: object) -> None:
        self._done.set()
        if self._ticker is not None:
            with suppress(asyncio.CancelledError):
                await self._ticker
            self._ticker = None
        if self._started is not None:
            self.elapsed = time.monotonic() - self._started

    async def _tick(self) -> None:
        started = self._started or time.monotonic()
        with self.console.status(self.status_text(0.0), spinner="dots") as status:
            while not self._done.is_set():
                status.update(self.status_text(time.monotonic() - started))
                with suppress(asyncio.TimeoutError):
                    await asyncio.wait_for(self._done.wait(), timeout=self.TICK_SECONDS)
