from __future__ import annotations

import re
from dataclasses import dataclass
from typing import List

from .executor import is_windows

BASH_TAG = "bash"
POWERSHELL_TAG = "powershell"


@dataclass(frozen=True)
class CodeBlock:
    body: str


def shell_tag_for_platform(platform: str | None = None) -> str:
    return POWERSHELL_TAG if is_windows(platform) else BASH_TAG


def _fence_pattern(shell_tag: str) -> re.Pattern[str]:
    # exact tag, then the body up to the nearest closing fence
    return re.compile(rf"```{re.escape(shell_tag)}(?=\s)(.*?)```", re.DOTALL)


def extract_code_blocks(response_text: str, shell_tag: str) -> List[CodeBlock]:
    """Return fenced blocks tagged ``shell_tag`` in document order.

    Empty blocks are dropped; there is nothing to offer for them.
    """
    if not response_text:
        return []
    blocks: List[CodeBlock] = []
    for match in _fence_pattern(shell_tag).finditer(response_text):
        body = match.group(1).strip()
        if body:
            blocks.append(CodeBlock(body=body))
    return blocks
