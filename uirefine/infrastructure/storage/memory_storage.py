from typing import Dict, Optional

from ...application.ports.local_storage import KeyValueStorage


class InMemoryKeyValueStorage(KeyValueStorage):
    def __init__(self) -> None:
        self._store: Dict[str, str] = {}

    def get_item(self, key: str) -> Optional[str]:
        return self._store.get(key)

    def set_item(self, key: str, value: str) -> None:
        self._store[key] = value

    def remove_item(self, key: str) -> None:
        self._store.pop(key, None)

    def __contains__(self, key: str) -> bool:
        return key in self._store
