import json
import os
import tempfile
from pathlib import Path
from typing import Any, Callable, List

from gradecalc.app_logger import get_logger
from gradecalc.errors import MalformedPersistedDataError

logger = get_logger("storage")

# Logical keys of the persisted state
THEME_KEY = "theme"
HISTORY_KEY = "grade_history"
SUBJECTS_KEY = "gwaSubjects"
GOAL_KEY = "gwaGoal"
HISTORY_LAYOUT_KEY = "historyLayout"


class JsonStore:
    """
    Keyed JSON storage in a directory, one ``<key>.json`` file per key.

    Writes replace the whole file. Subscribers are called with the key after
    every write or removal, which is how sibling views learn about changes.
    """

    def __init__(self, data_dir):
        self.data_dir = Path(data_dir)
        self.data_dir.mkdir(parents=True, exist_ok=True)
        self._subscribers: List[Callable[[str], None]] = []

    def _path(self, key: str) -> Path:
        return self.data_dir / f"{key}.json"

    def read(self, key: str, default: Any = None) -> Any:
        path = self._path(key)
        if not path.exists():
            return default
        try:
            return json.loads(path.read_text(encoding="utf-8"))
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise MalformedPersistedDataError(key, str(e)) from e

    def write(self, key: str, value: Any) -> None:
        payload = json.dumps(value, indent=2)
        fd, tmp = tempfile.mkstemp(dir=self.data_dir, prefix=f".{key}.", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                fh.write(payload)
            os.replace(tmp, self._path(key))
        except BaseException:
            if os.path.exists(tmp):
                os.unlink(tmp)
            raise
        logger.debug("wrote %s", key)
        self._notify(key)

    def remove(self, key: str) -> None:
        path = self._path(key)
        if path.exists():
            path.unlink()
            logger.debug("removed %s", key)
        self._notify(key)

    def subscribe(self, callback: Callable[[str], None]) -> Callable[[], None]:
        """Register ``callback(key)``; returns a function that unsubscribes it."""
        self._subscribers.append(callback)

        def unsubscribe():
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    def _notify(self, key: str) -> None:
        for callback in list(self._subscribers):
            callback(key)
