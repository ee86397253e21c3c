"""CLI package."""

from .app import ChataiCLI, main
from .input import DirectiveCompleter

__all__ = ["ChataiCLI", "DirectiveCompleter", "main"]
