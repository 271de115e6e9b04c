import sys
from pathlib import Path

import httpx
import pytest

ROOT = Path(__file__).resolve().parent.parent
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

from relaychat.relay.config import RelayConfig  # noqa: E402


@pytest.fixture
def relay_config(tmp_path):
    """Relay config with no ambient credential and a throwaway request log."""
    return RelayConfig(
        default_base_url="https://upstream.test/v1",
        default_api_key=None,
        log_path=str(tmp_path / "logs" / "relay.jsonl"),
    )


@pytest.fixture
def sse_body():
    """Factory for an async byte stream yielding the given chunks one by one."""

    def make(*chunks):
        async def gen():
            for chunk in chunks:
                yield chunk.encode("utf-8") if isinstance(chunk, str) else chunk

        return gen()

    return make


@pytest.fixture
def mock_upstream():
    """Factory for an AsyncClient whose transport is served by ``handler``."""

    def make(handler):
        return httpx.AsyncClient(transport=httpx.MockTransport(handler))

    return make
