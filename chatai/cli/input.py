from __future__ import annotations

from pathlib import Path
from typing import Iterable

from prompt_toolkit.completion import Completer, Completion
from prompt_toolkit.document import Document

MAX_FILE_COMPLETIONS = 30


class DirectiveCompleter(Completer):
    """Suggests workspace paths after an ``@`` directive."""

    def __init__(self, root: Path) -> None:
        self.root = root

    def get_completions(self, document: Document, complete_event):  # type: ignore[override]
        text = document.text_before_cursor
        if "@" not in text:
            return
        for comp in self._match_files(text):
            yield comp

    def _match_files(self, text: str) -> Iterable[Completion]:
        partial = text[text.rfind("@") + 1 :]
        if " " in partial or partial.startswith('"'):
            return []
        base = self.root
        prefix = partial
        if "/" in partial:
            parts = partial.split("/")
            prefix = parts[-1]
            base = self.root.joinpath(*parts[:-1])
        if not base.exists() or not base.is_dir():
            return []

        results = []
        for path in sorted(base.iterdir()):
            if path.name.startswith(".") and not prefix.startswith("."):
                continue
            candidate = path.name + "/" if path.is_dir() else path.name
            if not candidate.startswith(prefix):
                continue
            rel = path.relative_to(self.root)
            display = f"{rel}/" if path.is_dir() else str(rel)
            results.append(Completion(display, start_position=-len(partial), display=display))
            if len(results) >= MAX_FILE_COMPLETIONS:
                break
        return results
