"""
Snapshot stores — infrastructure adapters for per-user progress.

Implements SnapshotStore with one JSON file per user, or a process-local dict.
"""

import json
import logging
import os
import tempfile
import threading
from pathlib import Path
from urllib.parse import quote

from learnloop.domain.errors import PersistenceError, ValidationError
from learnloop.domain.models import ReviewState
from learnloop.domain.ports import SnapshotStore

logger = logging.getLogger(__name__)


def snapshot_file_name(user_id: str) -> str:
    """
    Map a user id to a file name that cannot escape the progress directory.

    Percent-encoded, so distinct ids never share a file.
    """
    name = quote(user_id, safe="@")
    if not name or set(name) <= {"."}:
        raise ValidationError(f"User id {user_id!r} cannot be used as a snapshot name")
    return f"{name}.json"


class JsonSnapshotStore(SnapshotStore):
    """
    Stores each user's snapshot in <progress_dir>/<user>.json.

    Layout: {"cards": [{cardId, interval, easeFactor, repetitions, lastReview, nextReview}, ...]}
    Writes go to a temp file in the same directory and are renamed into place.
    """

    def __init__(self, progress_dir: Path):
        self.progress_dir = Path(progress_dir)

    def path_for(self, user_id: str) -> Path:
        return self.progress_dir / snapshot_file_name(user_id)

    def load(self, user_id: str) -> dict[str, ReviewState]:
        path = self.path_for(user_id)
        if not path.exists():
            logger.info(f"No existing progress found for {user_id}")
            return {}

        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, UnicodeDecodeError, json.JSONDecodeError) as e:
            raise PersistenceError(f"Could not read {path}: {e}") from e

        if not isinstance(data, dict):
            raise PersistenceError(f"Malformed snapshot {path}: expected an object")

        states: dict[str, ReviewState] = {}
        cards = data.get("cards", [])
        if not isinstance(cards, list):
            raise PersistenceError(f"Malformed snapshot {path}: 'cards' is not a list")

        for entry in cards:
            try:
                state = ReviewState.from_dict(entry)
            except (ValidationError, TypeError, ValueError) as e:
                logger.warning(f"Skipping unreadable review state in {path.name}: {e}")
                continue
            states[state.card_id] = state
        return states

    def save(self, user_id: str, states: dict[str, ReviewState]) -> None:
        path = self.path_for(user_id)
        payload = {"cards": [s.to_dict() for s in states.values()]}
        try:
            self.progress_dir.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(dir=self.progress_dir, prefix=f".{path.stem}.", suffix=".tmp")
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    json.dump(payload, f, indent=2)
                os.replace(tmp_name, path)
            except BaseException:
                Path(tmp_name).unlink(missing_ok=True)
                raise
        except OSError as e:
            raise PersistenceError(f"Could not write {path}: {e}") from e


class InMemorySnapshotStore(SnapshotStore):
    """Keeps snapshots in a dict. Useful for tests and hosts without a disk."""

    def __init__(self):
        self._data: dict[str, dict[str, ReviewState]] = {}
        self._lock = threading.Lock()
        self.save_count = 0

    def load(self, user_id: str) -> dict[str, ReviewState]:
        with self._lock:
            return dict(self._data.get(user_id, {}))

    def save(self, user_id: str, states: dict[str, ReviewState]) -> None:
        with self._lock:
            self._data[user_id] = dict(states)
            self.save_count += 1
