import pytest


@pytest.fixture
def widget_fields():
    """Required attributes of a minimal valid event, keyed by python name."""
    return {
        "spec_version": "0.1",
        "event_type": "com.example.widget.created",
        "source": "/widgets/42",
        "event_id": "1234",
    }
