"""Structured error taxonomy for cloudenvelope.

Every error carries a machine-readable code, a severity and a retryability
flag so that the collaborator translating it into a protocol response can
decide without inspecting the message.

Error code format: CE_<ISSUE>
"""

from __future__ import annotations

from enum import StrEnum
from typing import Any


class Severity(StrEnum):
    ERROR = "error"  # operation failed
    WARN = "warn"  # caller mistake, envelope unchanged


# ── Base exception ─────────────────────────────────────────────────────────


class CloudEventError(Exception):
    """Base exception for all cloudenvelope errors."""

    code: str = "CE_UNKNOWN"
    severity: Severity = Severity.ERROR
    is_retryable: bool = False

    def __init__(
        self,
        message: str = "",
        *,
        context: dict[str, Any] | None = None,
    ) -> None:
        self.message = message or self.code
        self.context: dict[str, Any] = context or {}
        super().__init__(self.message)

    def to_dict(self) -> dict[str, Any]:
        return {
            "code": self.code,
            "severity": self.severity.value,
            "message": self.message,
            "is_retryable": self.is_retryable,
            "context": self.context,
        }


# ── Envelope errors ────────────────────────────────────────────────────────


class InvalidArgumentError(CloudEventError, ValueError):
    """A required attribute is missing or empty, or a value has the wrong type."""

    code = "CE_INVALID_ARGUMENT"
    severity = Severity.ERROR


class IllegalStateError(CloudEventError, RuntimeError):
    """The envelope is not in a state that permits the requested change."""

    code = "CE_ILLEGAL_STATE"
    severity = Severity.WARN
