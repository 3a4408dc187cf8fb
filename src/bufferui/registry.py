"""Component registry — lifecycle state machine and component bookkeeping.

Two tables keyed by caller-assigned component id:

- the lifecycle arena: one LifecycleEntry per id, holding mount state, the
  last rendered VNode, the mount/update/unmount hooks and event handlers;
- the generic component table, which raises COMPONENT_ADDED /
  COMPONENT_UPDATED / COMPONENT_REMOVED notifications.

Every hook, handler and listener call runs inside its own failure boundary:
exceptions are logged with the phase (or event name) and component id and
never reach the caller, so one failing component cannot block another.

Hooks may be coroutine functions. Their awaitables are chained per component
id on the running loop, so completions for one component happen in order.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable, Iterable

logger = logging.getLogger("bufferui.registry")

OnMountHook = Callable[[], Any]
OnUpdateHook = Callable[[Any, Any], Any]
OnUnmountHook = Callable[[], Any]
EventHandler = Callable[[Any], Any]
Listener = Callable[..., None]


class Phase(str, Enum):
    MOUNT = "mount"
    UPDATE = "update"
    UNMOUNT = "unmount"


class RegistryEventType(str, Enum):
    COMPONENT_ADDED = "componentAdded"
    COMPONENT_REMOVED = "componentRemoved"
    COMPONENT_UPDATED = "componentUpdated"
    REGISTRY_CLEARED = "registryCleared"


@dataclass
class Component:
    id: str
    type: str
    props: dict = field(default_factory=dict)
    children: list = field(default_factory=list)


@dataclass
class LifecycleEntry:
    id: str
    on_mount: OnMountHook | None = None
    on_update: OnUpdateHook | None = None
    on_unmount: OnUnmountHook | None = None
    events: dict[str, EventHandler] = field(default_factory=dict)
    is_mounted: bool = False
    last_vnode: Any = None


class ComponentRegistry:
    """Registry for component lifecycles and component records."""

    def __init__(self) -> None:
        self._lifecycles: dict[str, LifecycleEntry] = {}
        self._components: dict[str, Component] = {}
        self._listeners: dict[RegistryEventType, list[Listener]] = {}
        self._tasks: dict[str, asyncio.Task] = {}

    # --- Lifecycle ---

    def register_lifecycle(
        self,
        id: str,
        *,
        on_mount: OnMountHook | None = None,
        on_update: OnUpdateHook | None = None,
        on_unmount: OnUnmountHook | None = None,
        events: dict[str, EventHandler] | None = None,
    ) -> LifecycleEntry:
        """Store or replace the hooks for `id`.

        Mount state and the last rendered VNode survive re-registration.
        """
        previous = self._lifecycles.get(id)
        entry = LifecycleEntry(
            id=id,
            on_mount=on_mount,
            on_update=on_update,
            on_unmount=on_unmount,
            events=dict(events or {}),
        )
        if previous is not None:
            entry.is_mounted = previous.is_mounted
            entry.last_vnode = previous.last_vnode
        self._lifecycles[id] = entry
        return entry

    def bind_events(self, id: str, events: dict[str, EventHandler]) -> None:
        """Merge event handlers into the entry for `id`, creating it if needed."""
        entry = self._lifecycles.get(id)
        if entry is None:
            entry = self.register_lifecycle(id)
        entry.events.update(events)

    def unbind_events(self, id: str, names: Iterable[str]) -> None:
        """Drop the named handlers from the entry for `id`; unknown names are ignored."""
        entry = self._lifecycles.get(id)
        if entry is None:
            return
        for name in names:
            entry.events.pop(name, None)

    def get_lifecycle(self, id: str) -> LifecycleEntry | None:
        return self._lifecycles.get(id)

    def trigger_lifecycle(self, phase: Phase | str, id: str, *args: Any) -> bool:
        """Run one lifecycle transition for `id`.

        - mount: no-op if already mounted; else marks mounted and calls
          on_mount(). An optional VNode argument seeds last_vnode.
        - update: no-op unless mounted and a VNode is given; calls
          on_update(new, last) and records new as last.
        - unmount: calls on_unmount() whatever the mount state, then marks
          the entry unmounted.

        Returns False for unknown ids and phases and for guarded no-ops.
        """
        try:
            phase = Phase(phase)
        except ValueError:
            logger.warning("Unknown lifecycle phase %r for component %s", phase, id)
            return False
        entry = self._lifecycles.get(id)
        if entry is None:
            return False

        if phase is Phase.MOUNT:
            if entry.is_mounted:
                return False
            entry.is_mounted = True
            if args:
                entry.last_vnode = args[0]
            if entry.on_mount is not None:
                self._invoke(id, phase.value, "on_mount", entry.on_mount)
            return True

        if phase is Phase.UPDATE:
            if not entry.is_mounted or not args:
                return False
            new_vnode = args[0]
            if entry.on_update is not None:
                self._invoke(id, phase.value, "on_update", entry.on_update, new_vnode, entry.last_vnode)
            entry.last_vnode = new_vnode
            return True

        if entry.on_unmount is not None:
            self._invoke(id, phase.value, "on_unmount", entry.on_unmount)
        entry.is_mounted = False
        return True

    def trigger_event(self, id: str, name: str, payload: Any = None) -> bool:
        """Dispatch an event to the handler registered for (id, name).

        Missing entries or handlers are a silent no-op. Returns True only
        when a handler ran without raising.
        """
        entry = self._lifecycles.get(id)
        if entry is None:
            return False
        handler = entry.events.get(name)
        if handler is None:
            return False
        return self._invoke(id, name, "event handler", handler, payload)

    def get_lifecycle_components(self) -> list[str]:
        return list(self._lifecycles)

    def _invoke(self, id: str, phase: str, kind: str, fn: Callable, *args: Any) -> bool:
        try:
            result = fn(*args)
        except Exception:
            logger.exception("Error in %s %s for component %s", phase, kind, id)
            return False
        if inspect.isawaitable(result):
            self._defer(id, phase, kind, result)
        return True

    def _defer(self, id: str, phase: str, kind: str, awaitable: Awaitable) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            asyncio.run(self._settle(None, awaitable, id, phase, kind))
            return
        task = loop.create_task(self._settle(self._tasks.get(id), awaitable, id, phase, kind))
        self._tasks[id] = task

        def _done(finished: asyncio.Task, id: str = id) -> None:
            if self._tasks.get(id) is finished:
                del self._tasks[id]

        task.add_done_callback(_done)

    @staticmethod
    async def _settle(previous, awaitable, id: str, phase: str, kind: str) -> None:
        if previous is not None:
            await asyncio.wait({previous})
        try:
            await awaitable
        except Exception:
            logger.exception("Error in %s %s for component %s", phase, kind, id)

    async def drain(self, id: str | None = None) -> None:
        """Wait until pending async hook work (for one id, or all) completes."""
        while True:
            if id is None:
                tasks = set(self._tasks.values())
            else:
                task = self._tasks.get(id)
                tasks = {task} if task is not None else set()
            pending = {task for task in tasks if not task.done()}
            if not pending:
                return
            await asyncio.wait(pending)

    # --- Generic component table ---

    def add(self, component: Component) -> None:
        self._components[component.id] = component
        self._emit(RegistryEventType.COMPONENT_ADDED, component)

    def get(self, id: str) -> Component | None:
        return self._components.get(id)

    def update(self, component: Component) -> None:
        """Replace a component; unknown ids are added instead."""
        existing = self._components.get(component.id)
        if existing is None:
            self.add(component)
            return
        self._components[component.id] = component
        self.trigger_lifecycle(Phase.UPDATE, component.id, component)
        self._emit(RegistryEventType.COMPONENT_UPDATED, component, existing)

    def remove(self, id: str) -> bool:
        if id not in self._components:
            return False
        self.trigger_lifecycle(Phase.UNMOUNT, id)
        del self._components[id]
        self._emit(RegistryEventType.COMPONENT_REMOVED, id)
        return True

    def get_by_type(self, type: str) -> list[Component]:
        return [c for c in self._components.values() if c.type == type]

    def clear(self) -> None:
        """Unmount every mounted entry, then empty both tables."""
        for entry in list(self._lifecycles.values()):
            if entry.is_mounted:
                self.trigger_lifecycle(Phase.UNMOUNT, entry.id)
        self._lifecycles.clear()
        self._components.clear()
        self._emit(RegistryEventType.REGISTRY_CLEARED)

    # --- Notifications ---

    def on(self, event: RegistryEventType, listener: Listener) -> Callable[[], None]:
        """Register a listener. Returns a function that removes it."""
        listeners = self._listeners.setdefault(RegistryEventType(event), [])
        listeners.append(listener)

        def _unsubscribe() -> None:
            try:
                listeners.remove(listener)
            except ValueError:
                pass  # already removed

        return _unsubscribe

    def _emit(self, event: RegistryEventType, *args: Any) -> None:
        for listener in list(self._listeners.get(event, ())):
            try:
                listener(*args)
            except Exception:
                logger.exception("Error in %s listener", event.value)


# Process-wide registry used by the module-level helpers and mount().
registry = ComponentRegistry()


def register_lifecycle(id: str, **hooks) -> LifecycleEntry:
    return registry.register_lifecycle(id, **hooks)


def trigger_lifecycle(phase: Phase | str, id: str, *args: Any) -> bool:
    return registry.trigger_lifecycle(phase, id, *args)


def trigger_event(id: str, name: str, payload: Any = None) -> bool:
    return registry.trigger_event(id, name, payload)


def get_lifecycle_components() -> list[str]:
    return registry.get_lifecycle_components()
