"""Directive resolution, command execution and confirmation."""

from .code_blocks import CodeBlock, extract_code_blocks, shell_tag_for_platform
from .confirmation import ConfirmationOutcome, ConfirmationState, ExecutionConfirmer
from .directives import (
    ContextBlock,
    DirectiveResolver,
    ParsedCommand,
    ResolvedInput,
    parse_command,
)
from .executor import CommandExecutor, ExecutionResult, build_shell_argv
from .session_log import SessionLogger

__all__ = [
    "CodeBlock",
    "CommandExecutor",
    "ConfirmationOutcome",
    "ConfirmationState",
    "ContextBlock",
    "DirectiveResolver",
    "ExecutionConfirmer",
    "ExecutionResult",
    "ParsedCommand",
    "ResolvedInput",
    "SessionLogger",
    "build_shell_argv",
    "extract_code_blocks",
    "parse_command",
    "shell_tag_for_platform",
]
