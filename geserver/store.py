"""
JSON file backed key-value store.

The whole mapping lives in memory and is written back to a single JSON file
on every mutation. A file that is present but cannot be parsed is treated as
empty so a damaged database never blocks startup.
"""
import copy
import json
import logging
import os
import threading

from geserver.exceptions import StoreWriteError
from geserver.utils import safe_write_json

logger = logging.getLogger("main")


class JsonStore:
    """Process wide key-value mapping persisted to one JSON document."""

    def __init__(self, path):
        self.path = path
        self._data = {}
        self._lock = threading.RLock()
        os.makedirs(os.path.dirname(os.path.abspath(path)), exist_ok=True)
        self._load()

    def _load(self):
        with self._lock:
            if not os.path.exists(self.path):
                logger.info(f"Creating empty store at {self.path}")
                self._data = {}
                self._save()
                return

            try:
                with open(self.path, "r", encoding="utf-8") as f:
                    raw = f.read().strip()
                data = json.loads(raw) if raw else {}
                if not isinstance(data, dict):
                    raise ValueError(f"expected a JSON object, got {type(data).__name__}")
                self._data = data
            except ValueError as e:
                logger.warning(f"Store file {self.path} is invalid, resetting to empty object: {e}")
                self._data = {}

    def _save(self, data=None):
        try:
            safe_write_json(self.path, self._data if data is None else data)
        except (OSError, TypeError, ValueError) as e:
            raise StoreWriteError(f"Failed to write {self.path}: {e}") from e

    def _commit(self, data):
        # In-memory state only changes once the file write succeeded
        self._save(data)
        self._data = data

    def get(self, key, default=None):
        with self._lock:
            if key not in self._data:
                return default
            return copy.deepcopy(self._data[key])

    def set(self, key, value):
        """Overwrite ``key`` and persist the entire store."""
        with self._lock:
            self._commit({**self._data, key: copy.deepcopy(value)})

    def remove(self, key):
        with self._lock:
            if key in self._data:
                self._commit({k: v for k, v in self._data.items() if k != key})

    def update(self, key, fn, default=None):
        """
        Read-modify-write ``key`` atomically with respect to other store calls.

        ``fn`` receives a private copy of the current value (or ``default``)
        and returns the value to store. The stored value is returned.
        """
        with self._lock:
            current = self._data.get(key)
            if current is None:
                current = default
            new_value = fn(copy.deepcopy(current))
            self._commit({**self._data, key: copy.deepcopy(new_value)})
            return new_value

    def reload(self):
        """Discard in-memory state and re-read the file."""
        with self._lock:
            self._load()
            return copy.deepcopy(self._data)

    def snapshot(self):
        with self._lock:
            return copy.deepcopy(self._data)

    def replace(self, data):
        if not isinstance(data, dict):
            raise ValueError("Store contents must be a JSON object")
        with self._lock:
            self._commit(copy.deepcopy(data))

    def ensure_defaults(self, defaults):
        """Seed any missing top-level keys, writing once if something changed."""
        with self._lock:
            missing = [k for k in defaults if self._data.get(k) is None]
            if not missing:
                return []
            data = dict(self._data)
            for key in missing:
                data[key] = copy.deepcopy(defaults[key])
            self._commit(data)
            logger.info(f"Initialized store keys: {', '.join(missing)}")
            return missing
