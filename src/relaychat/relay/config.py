from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Optional


@dataclass
class RelayConfig:
    host: str = "127.0.0.1"
    port: int = 8100
    mount_prefix: str = "/api"
    default_base_url: str = "https://api.openai.com/v1"
    default_api_key: Optional[str] = None
    default_temperature: float = 0.7
    upstream_timeout_ms: int = 120_000
    # Emit an unterminated trailing frame at end of stream instead of dropping it.
    keep_partial_tail: bool = False
    enable_metrics: bool = False
    log_path: str = "logs/relay_requests.jsonl"
    max_log_bytes: int = 25_000_000
    config_file_path: Optional[str] = None

    @classmethod
    def load(cls) -> "RelayConfig":
        from .config_loader import load_relay_config

        return load_relay_config()

    def redacted(self) -> dict:
        """Return the config as a dict safe to log or display."""
        data = asdict(self)
        if data.get("default_api_key"):
            data["default_api_key"] = "***"
        return data
