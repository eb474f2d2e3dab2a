"""In-process key/value blob storage.

Holds the chat session id for the relay and backs the client's stored
session. Values are stored as-is with no integrity protection.
"""

from typing import Any, Optional


class MemoryStorage:
    def __init__(self):
        self._data: dict[str, Any] = {}

    def get(self, key: str) -> Optional[Any]:
        return self._data.get(key)

    def set(self, key: str, value: Any) -> None:
        self._data[key] = value

    def remove(self, key: str) -> None:
        self._data.pop(key, None)
