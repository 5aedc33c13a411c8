import logging
import os
import re
from typing import Optional

from ...core.config import settings
from ...application.ports.local_storage import KeyValueStorage

logger = logging.getLogger(__name__)

_KEY_PATTERN = re.compile(r"^[A-Za-z0-9_.-]+$")


class FileKeyValueStorage(KeyValueStorage):
    """Durable named entries, one JSON file per key under settings.STORAGE_DIR."""

    def __init__(self, storage_dir: Optional[str] = None) -> None:
        self.storage_dir = storage_dir or settings.STORAGE_DIR

    def _path(self, key: str) -> str:
        if not _KEY_PATTERN.match(key):
            raise ValueError(f"Invalid storage key: {key!r}")
        return os.path.join(self.storage_dir, f"{key}.json")

    def get_item(self, key: str) -> Optional[str]:
        path = self._path(key)
        if not os.path.exists(path):
            return None
        with open(path, "rb") as f:
            raw = f.read()
        # Undecodable bytes surface as ValueError, same as unparseable JSON
        return raw.decode("utf-8")

    def set_item(self, key: str, value: str) -> None:
        path = self._path(key)
        os.makedirs(self.storage_dir, exist_ok=True)
        tmp_path = f"{path}.tmp"
        with open(tmp_path, "w", encoding="utf-8") as f:
            f.write(value)
        os.replace(tmp_path, path)

    def remove_item(self, key: str) -> None:
        path = self._path(key)
        if os.path.exists(path):
            os.remove(path)
            logger.debug(f"Removed storage entry {key}")
