from __future__ import annotations

import asyncio
import json
import urllib.error
import urllib.request
from dataclasses import dataclass
from typing import Any, Optional

from .. import __version__

DEFAULT_TIMEOUT_S = 120.0


class ChatApiError(Exception):
    """Raised when the completion service rejects or fails a request."""

    def __init__(self, status: Optional[int], detail: str) -> None:
        self.status = status
        self.detail = detail
        label = f"HTTP {status}" if status is not None else "connection error"
        super().__init__(f"{label}: {detail}")


@dataclass(frozen=True)
class HttpResponse:
    status: int
    body: bytes

    def json(self) -> Any:
        return json.loads(self.body.decode("utf-8") or "null")


def _http_request(
    url: str,
    *,
    api_key: str,
    payload: dict[str, Any] | None = None,
    timeout_s: float = DEFAULT_TIMEOUT_S,
) -> HttpResponse:
    headers = {
        "Authorization": f"Bearer {api_key}",
        "Accept": "application/json",
        "User-Agent": f"chatai/{__version__}",
    }
    data = None
    if payload is not None:
        data = json.dumps(payload).encode("utf-8")
        headers["Content-Type"] = "application/json"
    req = urllib.request.Request(url, data=data, headers=headers, method="POST" if data else "GET")
    try:
        with urllib.request.urlopen(req, timeout=timeout_s) as resp:  # noqa: S310
            status = getattr(resp, "status", None)
            if status is None:
                status = int(resp.getcode())
            return HttpResponse(status=status, body=resp.read())
    except urllib.error.HTTPError as exc:
        body = exc.read() if exc.fp is not None else b""
        raise ChatApiError(exc.code, body.decode("utf-8", errors="replace")) from exc
    except urllib.error.URLError as exc:
        raise ChatApiError(None, str(exc.reason)) from exc
    except (TimeoutError, OSError) as exc:
        raise ChatApiError(None, str(exc)) from exc


class ChatClient:
    """Minimal client for an OpenAI compatible chat completion API."""

    def __init__(
        self,
        base_url: str,
        api_key: Optional[str] = None,
        *,
        timeout_s: float = DEFAULT_TIMEOUT_S,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.timeout_s = timeout_s

    async def validate_key(self, api_key: str) -> bool:
        try:
            await self._call("/models", api_key=api_key)
        except ChatApiError as exc:
            if exc.status is None:
                raise
            return False
        return True

    async def list_models(self) -> list[str]:
        data = (await self._call("/models")).json()
        entries = data.get("data") if isinstance(data, dict) else None
        if not isinstance(entries, list):
            return []
        ids: list[str] = []
        for entry in entries:
            if isinstance(entry, dict) and isinstance(entry.get("id"), str) and entry["id"]:
                ids.append(entry["id"])
        return ids

    async def complete(self, model: str, content: str) -> str:
        payload = {"model": model, "messages": [{"role": "user", "content": content}]}
        data = (await self._call("/chat/completions", payload=payload)).json()
        try:
            text = data["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError):
            return ""
        return text if isinstance(text, str) else ""

    async def _call(
        self,
        endpoint: str,
        *,
        payload: dict[str, Any] | None = None,
        api_key: Optional[str] = None,
    ) -> HttpResponse:
        key = api_key or self.api_key
        if not key:
            raise ChatApiError(401, "API key is not set")
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(
            None,
            lambda: _http_request(
                f"{self.base_url}{endpoint}",
                api_key=key,
                payload=payload,
                timeout_s=self.timeout_s,
            ),
        )
