"""Shared error types.

The store raises `ValidationError` / `UnknownVehicle`. The MQTT service
turns them into an `ErrorResponse` envelope so every workstation sees the
same error shape, and nothing crashes the service loop.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any


class ValidationError(ValueError):
    """A registration field was empty after trimming."""


class UnknownVehicle(KeyError):
    """A call/finish referenced a vehicle id the store has never seen."""


@dataclass(frozen=True)
class ErrorResponse:
    code: str
    message: str

    def to_message(self, *, corr_id: str | None = None) -> dict[str, Any]:
        msg: dict[str, Any] = {"type": "error", "code": self.code, "message": self.message}
        if corr_id is not None:
            msg["corr_id"] = corr_id
        return msg

    @classmethod
    def from_message(cls, msg: dict[str, Any]) -> "ErrorResponse":
        return cls(code=str(msg.get("code") or "error"), message=str(msg.get("message") or ""))


class RequestFailed(RuntimeError):
    """The store answered a request with an error envelope."""

    def __init__(self, error: ErrorResponse) -> None:
        super().__init__(f"{error.code}: {error.message}")
        self.error = error
