"""Observable conversation transcript.

The transcript is the only owner of :class:`Message` objects. It is changed
through a small set of operations, and every change notifies subscribers with
the new state. At most one assistant draft is active at a time; only that
draft's content may change.
"""

from __future__ import annotations

import logging
import time
import uuid
from dataclasses import asdict, dataclass, field, replace
from typing import Any, Callable, Iterable, Literal

logger = logging.getLogger(__name__)

Role = Literal["system", "user", "assistant"]
ROLES = ("system", "user", "assistant")

Subscriber = Callable[["TranscriptState"], None]


class TranscriptError(RuntimeError):
    """Raised when an operation would break the single-draft invariant."""


def _new_id() -> str:
    return uuid.uuid4().hex


def _now_ms() -> int:
    return int(time.time() * 1000)


@dataclass(frozen=True)
class Message:
    role: Role
    content: str
    id: str = field(default_factory=_new_id)
    created_at: int = field(default_factory=_now_ms)

    def to_record(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_record(cls, record: dict[str, Any]) -> "Message":
        role = record.get("role")
        if role not in ROLES:
            raise ValueError(f"Unknown message role: {role!r}")
        return cls(
            role=role,
            content=str(record.get("content") or ""),
            id=str(record.get("id") or _new_id()),
            created_at=int(record.get("created_at") or _now_ms()),
        )


class TranscriptState:
    def __init__(self, messages: Iterable[Message] | None = None):
        self._messages: list[Message] = list(messages or [])
        self._active_id: str | None = None
        self._subscribers: list[Subscriber] = []

    @property
    def messages(self) -> tuple[Message, ...]:
        return tuple(self._messages)

    @property
    def active_id(self) -> str | None:
        return self._active_id

    @property
    def is_streaming(self) -> bool:
        return self._active_id is not None

    def get(self, message_id: str) -> Message | None:
        for message in self._messages:
            if message.id == message_id:
                return message
        return None

    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        self._subscribers.append(callback)

        def unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    def _notify(self) -> None:
        for callback in list(self._subscribers):
            callback(self)

    def append(self, *messages: Message, draft_id: str | None = None) -> None:
        """Append ``messages`` as one change.

        ``draft_id`` names the appended message that becomes the active draft.
        """
        if draft_id is not None:
            if self._active_id is not None:
                raise TranscriptError("A draft is already streaming")
            if draft_id not in {m.id for m in messages}:
                raise TranscriptError(f"Draft {draft_id} is not among the appended messages")
        self._messages.extend(messages)
        if draft_id is not None:
            self._active_id = draft_id
        self._notify()

    def update_draft(self, message_id: str, content: str) -> None:
        if message_id != self._active_id:
            raise TranscriptError(f"Message {message_id} is not the active draft")
        for index, message in enumerate(self._messages):
            if message.id == message_id:
                self._messages[index] = replace(message, content=content)
                break
        self._notify()

    def finish_draft(self) -> None:
        if self._active_id is None:
            return
        self._active_id = None
        self._notify()

    def clear(self) -> None:
        if self.is_streaming:
            raise TranscriptError("Cannot clear the transcript while streaming")
        self._messages.clear()
        self._notify()

    def to_records(self) -> list[dict[str, Any]]:
        return [m.to_record() for m in self._messages]

    @classmethod
    def from_records(cls, records: Any) -> "TranscriptState":
        """Rebuild a transcript, skipping records that do not parse."""
        messages: list[Message] = []
        if isinstance(records, list):
            for record in records:
                if not isinstance(record, dict):
                    continue
                try:
                    messages.append(Message.from_record(record))
                except (TypeError, ValueError) as exc:
                    logger.debug("Skipping stored message %r: %s", record, exc)
        return cls(messages)
