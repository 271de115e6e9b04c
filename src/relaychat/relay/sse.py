"""Line framing and event interpretation for the upstream SSE dialect.

Upstream bodies arrive as arbitrary byte chunks. :class:`FrameDecoder` turns
them into complete lines and :class:`EventInterpreter` turns each ``data:``
line into an :class:`UpstreamEvent`.
"""

from __future__ import annotations

import codecs
import json
import logging
import re
from dataclasses import dataclass
from typing import Callable, Optional

logger = logging.getLogger(__name__)

DATA_PREFIX = "data:"
DONE_SENTINEL = "[DONE]"

_LINE_SPLIT = re.compile(r"\r?\n")


@dataclass(frozen=True)
class UpstreamEvent:
    delta: str = ""
    done: bool = False


DONE = UpstreamEvent(done=True)


class FrameDecoder:
    """Incremental byte-to-line decoder with a carry-over buffer.

    Multi-byte characters split across chunks are resumed by a stateful
    decoder. At end of stream an unterminated trailing fragment is dropped
    unless ``keep_partial_tail`` is set.
    """

    def __init__(self, encoding: str = "utf-8", keep_partial_tail: bool = False):
        self._decoder = codecs.getincrementaldecoder(encoding)(errors="replace")
        self._buffer = ""
        self._finished = False
        self.keep_partial_tail = keep_partial_tail

    @property
    def pending(self) -> str:
        return self._buffer

    def feed(self, chunk: bytes) -> list[str]:
        if self._finished:
            raise RuntimeError("FrameDecoder.feed() called after finish()")
        if chunk:
            self._buffer += self._decoder.decode(chunk)
        return self._split()

    def finish(self) -> list[str]:
        if self._finished:
            return []
        self._finished = True
        self._buffer += self._decoder.decode(b"", final=True)
        lines = self._split()
        tail, self._buffer = self._buffer, ""
        if tail:
            if self.keep_partial_tail:
                lines.append(tail)
            else:
                logger.debug("Dropping unterminated trailing frame: %r", tail[:200])
        return lines

    def _split(self) -> list[str]:
        parts = _LINE_SPLIT.split(self._buffer)
        self._buffer = parts.pop()
        return parts


class EventInterpreter:
    """Maps one SSE line to an upstream event.

    Malformed payloads are dropped so that a single corrupt event does not end
    the stream. ``on_malformed`` receives the raw payload and the exception.
    """

    def __init__(
        self, on_malformed: Optional[Callable[[str, Exception], None]] = None
    ):
        self.on_malformed = on_malformed
        self.malformed_count = 0

    def interpret(self, line: str) -> UpstreamEvent | None:
        line = line.strip()
        if not line.startswith(DATA_PREFIX):
            return None
        data = line[len(DATA_PREFIX) :].strip()
        if data == DONE_SENTINEL:
            return DONE
        try:
            obj = json.loads(data)
        except ValueError as exc:
            self._malformed(data, exc)
            return None
        content = _delta_content(obj)
        if not content:
            return None
        return UpstreamEvent(delta=content)

    def _malformed(self, data: str, exc: Exception) -> None:
        self.malformed_count += 1
        logger.debug("Ignoring malformed upstream event %r: %s", data[:200], exc)
        if self.on_malformed is not None:
            self.on_malformed(data, exc)


def _delta_content(obj: object) -> str | None:
    """Return ``choices[0].delta.content`` when every step has the right shape."""
    if not isinstance(obj, dict):
        return None
    choices = obj.get("choices")
    if not isinstance(choices, list) or not choices:
        return None
    first = choices[0]
    delta = first.get("delta") if isinstance(first, dict) else None
    if not isinstance(delta, dict):
        return None
    content = delta.get("content")
    return content if isinstance(content, str) else None
