from cloudenvelope.models.envelope import CloudEvent

__all__ = ["CloudEvent"]
