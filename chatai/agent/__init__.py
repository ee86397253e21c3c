"""Completion service client and helpers."""

from .client import ChatApiError, ChatClient
from .models import select_model
from .wait import CompletionWaitIndicator

__all__ = ["ChatApiError", "ChatClient", "CompletionWaitIndicator", "select_model"]
