"""In-memory CloudEvents v0.1 envelope."""

from cloudenvelope.errors import CloudEventError, IllegalStateError, InvalidArgumentError
from cloudenvelope.models.envelope import SPEC_VERSION, CloudEvent
from cloudenvelope.runtime.logging_config import event_context, setup_logging

__all__ = [
    "SPEC_VERSION",
    "CloudEvent",
    "CloudEventError",
    "IllegalStateError",
    "InvalidArgumentError",
    "event_context",
    "setup_logging",
]
