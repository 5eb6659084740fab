"""Key-value store implementations."""

import logging
from pathlib import Path

logger = logging.getLogger(__name__)


class InMemoryKeyValueStore:
    """In-memory implementation of KeyValueStore."""

    def __init__(self, initial: dict[str, bytes] | None = None) -> None:
        self._blobs: dict[str, bytes] = dict(initial or {})

    def load(self, key: str) -> bytes | None:
        return self._blobs.get(key)

    def save(self, key: str, data: bytes) -> None:
        self._blobs[key] = data

    def keys(self) -> list[str]:
        return list(self._blobs)


class FileKeyValueStore:
    """Directory-backed KeyValueStore, one ``<key>.json`` file per key."""

    def __init__(self, root: Path | str) -> None:
        self._root = Path(root)

    def _path(self, key: str) -> Path:
        safe = "".join(ch if ch.isalnum() or ch in "-_." else "_" for ch in key)
        return self._root / f"{safe}.json"

    def load(self, key: str) -> bytes | None:
        path = self._path(key)
        try:
            return path.read_bytes()
        except FileNotFoundError:
            return None
        except OSError as e:
            logger.warning(f"Failed to read {path}: {e}")
            return None

    def save(self, key: str, data: bytes) -> None:
        self._root.mkdir(parents=True, exist_ok=True)
        path = self._path(key)
        tmp = path.with_suffix(".tmp")
        tmp.write_bytes(data)
        tmp.replace(path)
