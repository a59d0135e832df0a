"""Local JSON file key-value storage."""

import json
import logging
import re
from dataclasses import dataclass
from pathlib import Path

from calorie_tracker.services.storage import KeyValueStore

_UNSAFE_KEY_CHARS = re.compile(r"[^A-Za-z0-9._-]")

_logger = logging.getLogger(__name__)


@dataclass
class JsonFileStorage(KeyValueStore):
    """Stores each key as ``<data_dir>/<key>.json``."""

    data_dir: Path

    @classmethod
    def create(cls, data_dir: str | Path) -> "JsonFileStorage":
        """Create storage rooted at a directory, creating it if needed."""
        path = Path(data_dir).expanduser()
        path.mkdir(parents=True, exist_ok=True)
        return cls(data_dir=path)

    def get(self, key: str) -> object | None:
        """Return the decoded value, discarding corrupted files."""
        path = self._path_for(key)
        if not path.exists():
            return None
        try:
            return json.loads(path.read_text(encoding="utf-8"))
        except (json.JSONDecodeError, UnicodeDecodeError):
            _logger.warning("Removing corrupted storage file %s", path.name)
            path.unlink(missing_ok=True)
            return None

    def set(self, key: str, value: object) -> None:
        """Write the value atomically."""
        path = self._path_for(key)
        tmp_path = path.with_suffix(".json.tmp")
        tmp_path.write_text(json.dumps(value, ensure_ascii=False), encoding="utf-8")
        tmp_path.replace(path)

    def _path_for(self, key: str) -> Path:
        return self.data_dir / f"{_UNSAFE_KEY_CHARS.sub('_', key)}.json"
