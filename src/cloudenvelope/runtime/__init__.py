from cloudenvelope.runtime.logging_config import event_context, setup_logging

__all__ = ["event_context", "setup_logging"]
