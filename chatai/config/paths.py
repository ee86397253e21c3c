from dataclasses import dataclass
from pathlib import Path


@dataclass
class ChataiPaths:
    """Centralizes filesystem paths for a Chatai session."""

    root: Path

    @property
    def global_dir(self) -> Path:
        return Path.home() / ".chatai"

    @property
    def settings_file(self) -> Path:
        return self.global_dir / "settings.json"

    @property
    def history_file(self) -> Path:
        return self.global_dir / "history"

    @property
    def logs_dir(self) -> Path:
        return self.global_dir / "logs"

    def resolve(self, raw: str) -> Path:
        """Resolve a user supplied path against the working directory."""
        path = Path(raw)
        try:
            path = path.expanduser()
        except RuntimeError:
            # unknown ~user: keep the literal path
            pass
        if path.is_absolute():
            return path
        return self.root / path
