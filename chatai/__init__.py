"""Chatai package."""

from importlib.metadata import PackageNotFoundError, version as pkg_version
from pathlib import Path
import re

__all__ = [
    "agent",
    "cli",
    "config",
    "core",
    "prompts",
]


def _load_version() -> str:
    try:
        return pkg_version("chatai")
    except PackageNotFoundError:
        pyproject = Path(__file__).resolve().parents[1] / "pyproject.toml"
        if pyproject.exists():
            match = re.search(
                r'^version\s*=\s*"(?P<version>[^"]+)"',
                pyproject.read_text(),
                re.MULTILINE,
            )
            if match:
                return match.group("version")
        return "0.0.0"


__version__: str = _load_version()
