"""Event bridge — inbound host events in, outbound action messages out.

Inbound events arrive pre-parsed from the host as
(component_id, event_name, payload) triples. They are published on an
EventStream (for taps such as logging or replay) and routed into the
registry's trigger_event(). Outbound messages are opaque to the core and
go straight to the injected transport; transport failures propagate.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Generic, Mapping, NamedTuple, TypeVar

from bufferui.registry import ComponentRegistry, registry as default_registry

logger = logging.getLogger("bufferui.bridge")

T = TypeVar("T")
U = TypeVar("U")

Disposer = Callable[[], None]
Transport = Callable[[Any], Any]


class TransportNotConfiguredError(RuntimeError):
    """send() was called on a bridge without a transport."""


def _remover(items: list, item) -> Disposer:
    def _remove() -> None:
        if item in items:
            items.remove(item)

    return _remove


class EventStream(Generic[T]):
    """Synchronous push stream. map()/filter() derive child streams that
    are disposed together with their source."""

    def __init__(self) -> None:
        self._subscribers: list[Callable[[T], None]] = []
        self._children: list[EventStream] = []
        self._detach: Disposer | None = None
        self._disposed = False

    def emit(self, value: T) -> None:
        if self._disposed:
            return
        # Subscribers may unsubscribe while being called.
        for callback in tuple(self._subscribers):
            callback(value)

    def subscribe(self, callback: Callable[[T], None]) -> Disposer:
        """Add a callback; the returned function removes it (idempotent)."""
        self._subscribers.append(callback)
        return _remover(self._subscribers, callback)

    def _derive(self, forward: Callable[[EventStream, T], None]) -> EventStream:
        child: EventStream = EventStream()
        self._children.append(child)
        child._detach = _remover(self._children, child)
        self.subscribe(lambda value: forward(child, value))
        return child

    def map(self, fn: Callable[[T], U]) -> EventStream[U]:
        return self._derive(lambda child, value: child.emit(fn(value)))

    def filter(self, predicate: Callable[[T], bool]) -> EventStream[T]:
        def forward(child: EventStream, value: T) -> None:
            if predicate(value):
                child.emit(value)

        return self._derive(forward)

    def dispose(self) -> None:
        """Stop this stream and every stream derived from it."""
        self._disposed = True
        self._subscribers.clear()
        for child in tuple(self._children):
            child.dispose()
        if self._detach is not None:
            self._detach()
            self._detach = None


class InboundEvent(NamedTuple):
    component_id: str
    event_name: str
    payload: Any = None


class EventBridge:
    """Routes host events to component handlers and actions to the host."""

    def __init__(
        self,
        registry: ComponentRegistry | None = None,
        transport: Transport | None = None,
    ) -> None:
        self._registry = registry or default_registry
        self._transport = transport
        self.inbound: EventStream[InboundEvent] = EventStream()

    def receive(self, component_id: str, event_name: str, payload: Any = None) -> bool:
        """Deliver one inbound event. Returns whether a handler ran cleanly."""
        self.inbound.emit(InboundEvent(component_id, event_name, payload))
        return self._registry.trigger_event(component_id, event_name, payload)

    def receive_message(self, message: Mapping[str, Any]) -> bool:
        """Deliver a host message of the form {"id", "type", "payload"}.

        Messages without a string id and type are dropped (False).
        """
        component_id = message.get("id") if isinstance(message, Mapping) else None
        event_name = message.get("type") if isinstance(message, Mapping) else None
        if not isinstance(component_id, str) or not isinstance(event_name, str):
            logger.warning("Dropping malformed bridge message: %r", message)
            return False
        return self.receive(component_id, event_name, message.get("payload"))

    def send(self, message: Any) -> Any:
        """Forward an outbound message to the transport and return its outcome."""
        if self._transport is None:
            raise TransportNotConfiguredError("EventBridge has no transport")
        return self._transport(message)

    def dispose(self) -> None:
        self.inbound.dispose()
