import pytest

from bufferui import _tracking, renderer
from bufferui.registry import registry
from bufferui.renderer import ComponentResolver, set_buffer_sink, set_component_resolver


@pytest.fixture(autouse=True)
def _fresh_state():
    """Process-wide state (pending effects, line cache, sink, registry) starts empty."""
    _tracking.reset()
    renderer.reset()
    set_buffer_sink(None)
    set_component_resolver(ComponentResolver())
    registry.clear()
    yield
    _tracking.reset()
    renderer.reset()
    set_buffer_sink(None)


class RecordingSink:
    """Buffer sink that records every patch and returns a fixed outcome."""

    def __init__(self, outcome=True):
        self.calls = []
        self.outcome = outcome

    def update_content(self, destination_id, patch):
        self.calls.append((destination_id, list(patch)))
        return self.outcome


@pytest.fixture
def sink():
    s = RecordingSink()
    set_buffer_sink(s)
    return s
