"""Mount runtime — one component rendered into one destination.

mount() runs an effect that renders the component, diffs the lines into
the destination and then fires the lifecycle: mount on the first pass,
update(vnode) on every later one. Whatever state the render function
reads becomes a dependency, so writing that state re-renders.
"""

from __future__ import annotations

import logging
from typing import Any, Callable

from bufferui._tracking import detached
from bufferui.effect import Effect, run_effect
from bufferui.registry import ComponentRegistry, Phase, registry as default_registry
from bufferui.renderer import ComponentResolver, apply_diff, render
from bufferui.vnode import ElementNode, VNode

logger = logging.getLogger("bufferui.mount")


class MountHandle:
    """A mounted component. Call .unmount() to tear it down."""

    __slots__ = ("component_id", "destination_id", "_effect", "_registry")

    def __init__(self, component_id: str, destination_id: Any, registry: ComponentRegistry) -> None:
        self.component_id = component_id
        self.destination_id = destination_id
        self._registry = registry
        self._effect: Effect | None = None

    @property
    def mounted(self) -> bool:
        return self._effect is not None and self._effect.active

    def unmount(self, *, clear: bool = False) -> bool:
        """Stop re-rendering and fire the unmount hook.

        With clear=True the destination is emptied as well. Returns False
        if the handle was already unmounted.
        """
        if not self.mounted:
            return False
        self._effect.stop()
        self._registry.trigger_lifecycle(Phase.UNMOUNT, self.component_id)
        if clear:
            apply_diff(self.destination_id, [])
        logger.debug("Unmounted %s from %r", self.component_id, self.destination_id)
        return True

    def __repr__(self) -> str:
        state = "mounted" if self.mounted else "unmounted"
        return f"MountHandle({self.component_id!r}, {self.destination_id!r}, {state})"


def mount(
    component_id: str,
    destination_id: Any,
    render_fn: Callable[[], VNode],
    *,
    registry: ComponentRegistry | None = None,
    resolver: ComponentResolver | None = None,
) -> MountHandle:
    """Render `render_fn()` into `destination_id` and keep it up to date.

    Hooks registered for `component_id` (register_lifecycle) fire around
    each render pass. Events declared on the root node ("@click" props)
    are bound to the component and unbound once a later render stops
    declaring them.

    Usage:
        state = observe({"count": 0})
        handle = mount("counter", "pane-1",
                       lambda: h("container", None, f"Count: {state.count}"))
        state.count += 1   # pane-1 now shows "Count: 1"
        handle.unmount()
    """
    reg = registry or default_registry
    if reg.get_lifecycle(component_id) is None:
        reg.register_lifecycle(component_id)
    handle = MountHandle(component_id, destination_id, reg)
    first = True
    # Event names the root node declared on the previous pass.
    bound: set[str] = set()

    def _render_pass() -> None:
        nonlocal first, bound
        vnode = render_fn()
        apply_diff(destination_id, render(vnode, resolver))
        events = {}
        if isinstance(vnode, ElementNode):
            events = dict(vnode.props.get("events") or {})
        # Hook writes must be able to schedule another pass.
        with detached():
            reg.unbind_events(component_id, bound - events.keys())
            if events:
                reg.bind_events(component_id, events)
            bound = set(events)
            if first:
                first = False
                reg.trigger_lifecycle(Phase.MOUNT, component_id, vnode)
            else:
                reg.trigger_lifecycle(Phase.UPDATE, component_id, vnode)

    handle._effect = run_effect(_render_pass, lazy=True)
    try:
        handle._effect.run()
    except Exception:
        handle._effect.stop()
        raise
    return handle
