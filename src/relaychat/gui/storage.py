"""Best-effort JSON key-value store for GUI settings and transcript snapshots."""

from __future__ import annotations

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Any, Callable, Dict

from .transcript import TranscriptState

logger = logging.getLogger(__name__)


class JsonFileStore:
    """Key-value store kept in a single JSON file.

    Reads and writes never raise: a missing or corrupt file reads as empty and
    a failed write is logged and dropped. Concurrent writers are not
    coordinated; the last write wins.
    """

    def __init__(self, path: Path):
        self.path = Path(path)

    def _load(self) -> Dict[str, Any]:
        if not self.path.exists():
            return {}
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, ValueError) as exc:
            logger.debug("Ignoring unreadable store %s: %s", self.path, exc)
            return {}
        return data if isinstance(data, dict) else {}

    def get(self, key: str, default: Any = None) -> Any:
        return self._load().get(key, default)

    def set(self, key: str, value: Any) -> None:
        data = self._load()
        data[key] = value
        tmp_path = None
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(
                prefix=".chat_state_", suffix=".json", dir=self.path.parent
            )
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                json.dump(data, handle, indent=2, ensure_ascii=False)
            Path(tmp_path).replace(self.path)
            tmp_path = None
        except (OSError, TypeError, ValueError) as exc:
            logger.debug("Failed to persist %s to %s: %s", key, self.path, exc)
        finally:
            if tmp_path is not None:
                try:
                    os.unlink(tmp_path)
                except OSError:
                    pass


def bind_transcript(
    store: JsonFileStore, transcript: TranscriptState, key: str
) -> Callable[[], None]:
    """Snapshot ``transcript`` into ``store`` after every change.

    Returns the unsubscribe function.
    """

    def _persist(state: TranscriptState) -> None:
        store.set(key, state.to_records())

    return transcript.subscribe(_persist)
