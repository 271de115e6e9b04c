from __future__ import annotations

import json
import logging
import time
from pathlib import Path
from typing import Any, Mapping

logger = logging.getLogger(__name__)


class JsonlLogger:
    """One JSON object per relayed request, appended to ``path``.

    Once the file grows past ``max_bytes`` it is renamed with a timestamp
    suffix and a fresh file is started. Failures are logged at debug level
    and never reach the request being served.
    """

    def __init__(self, path: str | Path, max_bytes: int = 25_000_000):
        self.path = Path(path)
        self.max_bytes = max_bytes
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            logger.debug("Cannot create request log directory %s: %s", self.path.parent, exc)

    def _rollover(self) -> None:
        try:
            if self.path.is_file() and self.path.stat().st_size > self.max_bytes:
                stamp = time.strftime("%Y%m%d-%H%M%S")
                self.path.rename(self.path.with_name(f"{self.path.name}.{stamp}"))
        except OSError as exc:
            logger.debug("Request log rotation failed: %s", exc)

    def log(self, record: Mapping[str, Any]) -> None:
        self._rollover()
        try:
            line = json.dumps(dict(record), ensure_ascii=False)
            with self.path.open("a", encoding="utf-8") as fh:
                fh.write(line + "\n")
        except (OSError, TypeError, ValueError) as exc:
            logger.debug("Request log write failed: %s", exc)
