from __future__ import annotations


def build_system_prompt(shell_tag: str) -> str:
    """Instructions prepended to every message sent to the model."""
    return (
        "You are an excellent AI assistant. Think step by step and answer accurately "
        "and in detail.\n"
        f"Whenever your answer proposes {shell_tag} commands, wrap them in "
        f"```{shell_tag} ``` so they can be copied and run as-is.\n\n"
    )
