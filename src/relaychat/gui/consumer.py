from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict

import httpx

from .config import (
    DEFAULT_BASE_URL,
    DEFAULT_MODEL,
    DEFAULT_SYSTEM_PROMPT,
    DEFAULT_TEMPERATURE,
    RELAY_CHAT_PATH,
    RELAY_PREFIX,
)
from .transcript import Message, TranscriptError, TranscriptState

logger = logging.getLogger(__name__)


@dataclass
class ChatSettings:
    system_prompt: str = DEFAULT_SYSTEM_PROMPT
    api_key: str = ""
    model: str = DEFAULT_MODEL
    temperature: float = DEFAULT_TEMPERATURE
    base_url: str = DEFAULT_BASE_URL

    def uses_relay_default(self) -> bool:
        return self.base_url.startswith(RELAY_PREFIX)


class StreamConsumer:
    """Runs one chat turn against the relay and streams it into the transcript.

    ``client`` is a configured :class:`httpx.Client` whose base URL points at
    the relay.
    """

    def __init__(
        self,
        transcript: TranscriptState,
        settings: ChatSettings,
        client: httpx.Client,
        relay_path: str = RELAY_CHAT_PATH,
    ):
        self.transcript = transcript
        self.settings = settings
        self.client = client
        self.relay_path = relay_path

    def can_send(self, text: str) -> bool:
        if not text.strip() or self.transcript.is_streaming:
            return False
        return bool(self.settings.api_key) or self.settings.uses_relay_default()

    def build_request(self, user_message: Message) -> Dict[str, Any]:
        """Relay body for ``user_message`` on top of the current transcript.

        The system prompt is synthesized per request and never stored.
        """
        history = [
            {"role": "system", "content": self.settings.system_prompt},
            *(
                {"role": m.role, "content": m.content}
                for m in self.transcript.messages
            ),
            {"role": user_message.role, "content": user_message.content},
        ]
        body: Dict[str, Any] = {
            "model": self.settings.model,
            "temperature": self.settings.temperature,
            "messages": history,
        }
        if self.settings.api_key:
            body["apiKey"] = self.settings.api_key
        if self.settings.base_url:
            body["baseUrl"] = self.settings.base_url
        return body

    def send(self, text: str) -> Message:
        """Send ``text`` as a user turn and return the finished assistant message."""
        if self.transcript.is_streaming:
            raise TranscriptError("A response is already streaming")

        user_message = Message(role="user", content=text.strip())
        body = self.build_request(user_message)
        draft = Message(role="assistant", content="")
        self.transcript.append(user_message, draft, draft_id=draft.id)

        try:
            self._stream_into(draft.id, body)
        except httpx.HTTPError as exc:
            logger.warning("Chat request failed: %s", exc)
            self.transcript.update_draft(draft.id, f"Error: {exc}")
        except Exception as exc:  # noqa: BLE001
            logger.exception("Chat request failed unexpectedly")
            self.transcript.update_draft(draft.id, f"Error: {exc}")
        finally:
            self.transcript.finish_draft()

        return self.transcript.get(draft.id) or draft

    def _stream_into(self, draft_id: str, body: Dict[str, Any]) -> None:
        acc = ""
        with self.client.stream("POST", self.relay_path, json=body) as resp:
            if not resp.is_success:
                resp.read()
                logger.info(
                    "Relay answered %s: %s", resp.status_code, resp.text[:200]
                )
                message = f"Error: HTTP {resp.status_code} {resp.text}".rstrip()
                self.transcript.update_draft(draft_id, message)
                return
            # iter_text decodes incrementally; split characters are resumed.
            for fragment in resp.iter_text():
                acc += fragment
                self.transcript.update_draft(draft_id, acc)
