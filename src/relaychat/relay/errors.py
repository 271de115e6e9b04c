from __future__ import annotations

from fastapi import HTTPException


class RelayError(HTTPException):
    """Error surfaced to the relay caller as a plain-text response."""

    def __init__(self, status_code: int, message: str):
        super().__init__(status_code=status_code, detail=message)
        self.message = message


def err_bad_request(reason: object) -> RelayError:
    return RelayError(400, f"Bad request: {reason}")


def err_missing_credential() -> RelayError:
    return RelayError(400, "Missing API key")


def err_upstream_status(status_code: int, text: str) -> RelayError:
    return RelayError(500, f"Upstream error: {status_code} {text}")


def err_upstream_transport(reason: object) -> RelayError:
    return RelayError(500, f"Upstream error: {reason}")
