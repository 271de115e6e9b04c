from __future__ import annotations

import logging
from contextlib import asynccontextmanager

import httpx
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse, PlainTextResponse, StreamingResponse

from .config import RelayConfig
from .config_loader import list_env_overrides
from .errors import RelayError, err_bad_request
from .forwarder import RelayForwarder
from .logging_utils import JsonlLogger
from .metrics import MetricsAggregator
from .models import RelayChatRequest

logger = logging.getLogger(__name__)

STREAM_HEADERS = {"Cache-Control": "no-cache"}
STREAM_MEDIA_TYPE = "text/plain; charset=utf-8"


def create_app(
    cfg: RelayConfig, client: httpx.AsyncClient | None = None
) -> FastAPI:
    """Build the relay application around an explicit configuration.

    ``client`` replaces the upstream HTTP client, which keeps tests hermetic.
    """
    metrics = MetricsAggregator()
    request_log = JsonlLogger(cfg.log_path, cfg.max_log_bytes)
    forwarder = RelayForwarder(cfg, metrics, request_log, client)
    prefix = cfg.mount_prefix

    @asynccontextmanager
    async def lifespan(_app: FastAPI):  # pragma: no cover
        logger.info("[app] Relay config: %s", cfg.redacted())
        overrides = list_env_overrides()
        if overrides:
            logger.info("[app] Environment overrides: %s", overrides)
        yield
        await forwarder.aclose()

    app = FastAPI(title="relaychat relay", version="0.1", lifespan=lifespan)
    app.state.cfg = cfg
    app.state.forwarder = forwarder
    app.state.metrics = metrics

    @app.post(f"{prefix}/chat")
    async def relay_chat(req: Request):
        try:
            payload = await req.json()
            chat = RelayChatRequest.model_validate(payload)
            stream = await forwarder.open_stream(chat)
        except RelayError as exc:
            return PlainTextResponse(exc.message, status_code=exc.status_code)
        except Exception as exc:  # noqa: BLE001
            logger.info("[app] Rejected relay request: %s", exc)
            error = err_bad_request(exc)
            return PlainTextResponse(error.message, status_code=error.status_code)
        return StreamingResponse(
            stream, media_type=STREAM_MEDIA_TYPE, headers=STREAM_HEADERS
        )

    @app.get(f"{prefix}/metrics")
    async def metrics_api():
        if not cfg.enable_metrics:
            return JSONResponse(
                status_code=404,
                content={
                    "error": {
                        "type": "disabled",
                        "code": 404,
                        "message": "Metrics disabled",
                    }
                },
            )
        return metrics.summary()

    @app.get(f"{prefix}/health")
    async def health():
        return {"status": "ok", "uptime_seconds": metrics.summary()["uptime_seconds"]}

    return app


def app_factory() -> FastAPI:  # pragma: no cover
    """Entry for ``uvicorn --factory relaychat.relay.app:app_factory``."""
    return create_app(RelayConfig.load())


def main():  # pragma: no cover
    import uvicorn

    from ..logging_utils import configure_logging

    configure_logging("relay")
    cfg = RelayConfig.load()
    uvicorn.run(create_app(cfg), host=cfg.host, port=cfg.port)


if __name__ == "__main__":  # pragma: no cover
    main()
