from __future__ import annotations

import time
from collections import Counter, deque
from dataclasses import dataclass
from typing import Any, Deque, Dict, Iterable, Optional

SCHEMA_VERSION = 1


@dataclass
class StreamSample:
    """Timing of one relayed stream, recorded when the stream closes."""

    ts: float
    model: str
    upstream: str
    ttff_ms: Optional[float]
    fragments: int
    duration_ms: float
    fragments_per_second: float
    completed: bool


def _mean(values: Iterable[float]) -> Optional[float]:
    values = list(values)
    return sum(values) / len(values) if values else None


class MetricsAggregator:
    """Keeps the last ``capacity`` stream samples plus lifetime per-upstream totals."""

    def __init__(self, capacity: int = 500):
        self.samples: Deque[StreamSample] = deque(maxlen=capacity)
        self.started = time.time()
        self.total_streams: Counter[str] = Counter()
        self.incomplete_streams: Counter[str] = Counter()

    def add(self, sample: StreamSample) -> None:
        self.samples.append(sample)
        self.total_streams[sample.upstream] += 1
        if not sample.completed:
            self.incomplete_streams[sample.upstream] += 1

    def _rolling(self) -> Dict[str, Any]:
        ttffs = sorted(s.ttff_ms for s in self.samples if s.ttff_ms is not None)
        return {
            "count": len(self.samples),
            "avg_ttff_ms": _mean(ttffs),
            # Nearest-rank on the sorted window.
            "p95_ttff_ms": ttffs[int(0.95 * (len(ttffs) - 1))] if ttffs else None,
            "avg_fragments_per_second": _mean(
                s.fragments_per_second
                for s in self.samples
                if s.fragments_per_second > 0
            ),
        }

    def summary(self) -> Dict[str, Any]:
        return {
            "uptime_seconds": time.time() - self.started,
            "rolling": self._rolling(),
            "streams_by_upstream": {
                upstream: {
                    "total_streams": total,
                    "incomplete_streams": self.incomplete_streams[upstream],
                }
                for upstream, total in self.total_streams.items()
            },
            "schema_version": SCHEMA_VERSION,
        }
