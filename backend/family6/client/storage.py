"""File-backed storage for client-side state (session blob, chat session id)."""

import json
import logging
from pathlib import Path
from typing import Any

from family6.core.storage import MemoryStorage

logger = logging.getLogger(__name__)


class JsonFileStorage(MemoryStorage):
    """MemoryStorage persisted to a JSON file after every write."""

    def __init__(self, path):
        super().__init__()
        self.path = Path(path)
        if self.path.exists():
            try:
                self._data = json.loads(self.path.read_text(encoding="utf-8")) or {}
            except (OSError, ValueError) as e:
                # unreadable state is treated as empty, like a cleared browser store
                logger.warning("Ignoring unreadable client state %s: %s", self.path, e)
                self._data = {}

    def _flush(self) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(json.dumps(self._data, indent=2), encoding="utf-8")

    def set(self, key: str, value: Any) -> None:
        super().set(key, value)
        self._flush()

    def remove(self, key: str) -> None:
        super().remove(key)
        self._flush()
