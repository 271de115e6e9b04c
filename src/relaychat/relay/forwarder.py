from __future__ import annotations

import contextlib
import logging
import time
from typing import AsyncIterator
from urllib.parse import urlsplit

import httpx

from .config import RelayConfig
from .errors import (
    err_missing_credential,
    err_upstream_status,
    err_upstream_transport,
)
from .logging_utils import JsonlLogger
from .metrics import MetricsAggregator, StreamSample
from .models import RelayChatRequest
from .sse import EventInterpreter, FrameDecoder
from .transform import relay_text_stream

logger = logging.getLogger(__name__)

CHAT_COMPLETIONS_PATH = "/chat/completions"


class RelayForwarder:
    def __init__(
        self,
        cfg: RelayConfig,
        metrics: MetricsAggregator,
        request_log: JsonlLogger,
        client: httpx.AsyncClient | None = None,
    ):
        self.cfg = cfg
        self.metrics = metrics
        self.request_log = request_log
        self._owns_client = client is None
        self.client = client or httpx.AsyncClient(
            timeout=cfg.upstream_timeout_ms / 1000
        )

    async def aclose(self) -> None:
        if self._owns_client:
            await self.client.aclose()

    def resolve_endpoint(self, base_url: str | None) -> str:
        """Return the upstream chat-completions URL for a request.

        A ``baseUrl`` under the relay's own mount prefix (e.g. ``/api/openai``)
        means "use the relay default"; anything else is an external endpoint.
        """
        if base_url and not base_url.startswith(self.cfg.mount_prefix):
            root = base_url
        else:
            root = self.cfg.default_base_url
        if root.endswith("/"):
            root = root[:-1]
        return root + CHAT_COMPLETIONS_PATH

    def resolve_credential(self, api_key: str | None) -> str:
        key = api_key or self.cfg.default_api_key
        if not key:
            raise err_missing_credential()
        return key

    async def open_stream(self, chat: RelayChatRequest) -> AsyncIterator[bytes]:
        """Start the upstream call and return the relayed text stream.

        Raises :class:`RelayError` before any byte is relayed when the
        credential is missing or the upstream refuses the request.
        """
        key = self.resolve_credential(chat.api_key)
        url = self.resolve_endpoint(chat.base_url)
        started_at = time.time()
        record = {
            "ts": time.strftime("%Y-%m-%dT%H:%M:%S", time.gmtime()),
            "model": chat.model,
            "upstream": urlsplit(url).netloc,
            "default_credential": not chat.api_key,
            "messages": len(chat.messages),
        }
        request = self.client.build_request(
            "POST",
            url,
            json=chat.upstream_payload(self.cfg.default_temperature),
            headers={"Authorization": f"Bearer {key}"},
        )
        try:
            resp = await self.client.send(request, stream=True)
        except httpx.TransportError as exc:
            logger.warning("[relay] Upstream %s unreachable: %s", record["upstream"], exc)
            self.request_log.log({**record, "status": None, "error": str(exc)})
            raise err_upstream_transport(exc) from exc

        if not resp.is_success:
            try:
                await resp.aread()
            except httpx.TransportError as exc:
                logger.warning(
                    "[relay] Upstream %s failed while sending its %s body: %s",
                    record["upstream"],
                    resp.status_code,
                    exc,
                )
                self.request_log.log(
                    {**record, "status": resp.status_code, "error": str(exc)}
                )
                raise err_upstream_transport(exc) from exc
            finally:
                await resp.aclose()
            logger.warning(
                "[relay] Upstream %s answered %s", record["upstream"], resp.status_code
            )
            self.request_log.log({**record, "status": resp.status_code})
            raise err_upstream_status(resp.status_code, resp.text)

        return self._relay(resp, record, started_at)

    async def _relay(
        self, resp: httpx.Response, record: dict, started_at: float
    ) -> AsyncIterator[bytes]:
        decoder = FrameDecoder(keep_partial_tail=self.cfg.keep_partial_tail)
        interpreter = EventInterpreter()
        fragments = 0
        first_at: float | None = None
        completed = False
        try:
            async with contextlib.aclosing(
                relay_text_stream(
                    resp.aiter_bytes(), decoder=decoder, interpreter=interpreter
                )
            ) as stream:
                async for fragment in stream:
                    if first_at is None:
                        first_at = time.time()
                    fragments += 1
                    yield fragment
            completed = True
        except httpx.HTTPError as exc:
            logger.warning("[relay] Upstream stream failed mid-response: %s", exc)
            raise
        finally:
            await resp.aclose()
            self._record(
                record,
                status=resp.status_code,
                started_at=started_at,
                first_at=first_at,
                fragments=fragments,
                completed=completed,
                malformed=interpreter.malformed_count,
            )

    def _record(
        self,
        record: dict,
        *,
        status: int,
        started_at: float,
        first_at: float | None,
        fragments: int,
        completed: bool,
        malformed: int,
    ) -> None:
        duration = time.time() - started_at
        self.metrics.add(
            StreamSample(
                ts=time.time(),
                model=record["model"],
                upstream=record["upstream"],
                ttff_ms=(first_at - started_at) * 1000 if first_at else None,
                fragments=fragments,
                duration_ms=duration * 1000,
                fragments_per_second=fragments / duration if duration > 0 else 0.0,
                completed=completed,
            )
        )
        self.request_log.log(
            {
                **record,
                "status": status,
                "fragments": fragments,
                "completed": completed,
                "malformed_events": malformed,
            }
        )
