"""
Saved CLI login.

The CLI keeps `{id, username, api_key}` in a JSON file so later
commands can pass the user id into the pipeline explicitly.
"""

import json
import os
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Optional
from uuid import UUID

from src.core.config import settings


@dataclass
class SavedUser:
    id: str
    username: str
    api_key: str


class CredentialStore:
    """Reads and writes the saved login file."""

    def __init__(self, path: Optional[str] = None):
        self.path = Path(os.path.expanduser(path or settings.CLI_CREDENTIALS_PATH))

    def load(self) -> Optional[SavedUser]:
        """Saved user, or None if the file is missing or malformed."""
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
            UUID(data["id"])
            return SavedUser(id=data["id"], username=data["username"], api_key=data["api_key"])
        except (OSError, ValueError, KeyError, TypeError):
            return None

    def save(self, user: SavedUser) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(json.dumps(asdict(user), indent=2), encoding="utf-8")
        self.path.chmod(0o600)

    def clear(self) -> None:
        self.path.unlink(missing_ok=True)
