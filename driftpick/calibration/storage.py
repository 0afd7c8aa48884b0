"""
Key-value persistence for calibration data

Both backends expose get(key, default) / set(key, value) with overwrite
semantics, so the calibration store never knows where data lives.
"""

import json
import logging
from pathlib import Path
from typing import Any, Dict, Optional


class MemoryStorage:
    """In-process storage (tests, or running without persistence)"""

    def __init__(self, initial: Optional[Dict[str, Any]] = None):
        self._data: Dict[str, Any] = dict(initial or {})
        self.write_count = 0

    def get(self, key: str, default: Any = None) -> Any:
        return self._data.get(key, default)

    def set(self, key: str, value: Any) -> None:
        self._data[key] = value
        self.write_count += 1


class JsonFileStorage:
    """
    A JSON object on disk holding named slots

    Each set() rewrites the whole file; other slots are preserved.
    """

    def __init__(self, path: str):
        self.path = Path(path)
        self.logger = logging.getLogger(__name__)

    def _read_all(self) -> Dict[str, Any]:
        if not self.path.exists():
            return {}
        try:
            data = json.loads(self.path.read_text(encoding='utf-8'))
        except (OSError, json.JSONDecodeError) as e:
            self.logger.error(f"Error reading storage file {self.path}: {e}")
            return {}
        if not isinstance(data, dict):
            self.logger.error(f"Storage file {self.path} does not contain a JSON object")
            return {}
        return data

    def get(self, key: str, default: Any = None) -> Any:
        return self._read_all().get(key, default)

    def set(self, key: str, value: Any) -> None:
        data = self._read_all()
        data[key] = value
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.path.with_suffix(self.path.suffix + '.tmp')
        tmp_path.write_text(json.dumps(data, indent=2), encoding='utf-8')
        tmp_path.replace(self.path)
        self.logger.debug(f"Stored '{key}' in {self.path}")
