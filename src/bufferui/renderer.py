"""Renderer — VNode trees to text lines, and text lines to buffer patches.

render() flattens a tree into lines. Built-in tags are handled here;
every other tag goes to the component resolver, and a resolver failure
becomes a single placeholder line so the rest of the tree still renders.

apply_diff() compares new lines with the lines last emitted for a
destination, sends the patch to the buffer sink exactly once, and only
then replaces the cached lines.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from typing import Any, Callable, Iterable, Protocol

from bufferui.diff import Patch, compute_patch
from bufferui.vnode import ElementNode, TextNode, VNode

logger = logging.getLogger("bufferui.renderer")

PLACEHOLDER = "[{tag}: render failed]"


class SinkNotConfiguredError(RuntimeError):
    """apply_diff() was called before set_buffer_sink()."""


class BufferUpdateError(RuntimeError):
    """The buffer sink reported that a patch was not applied."""


class UnknownComponentError(LookupError):
    """No component is registered for an element tag."""


class BufferSink(Protocol):
    def update_content(self, destination_id: Any, patch: Patch) -> Any: ...


Component = Callable[[Any, tuple], Any]


class ComponentResolver:
    """Maps custom element tags to component functions.

    A component is called as component(props, children) and returns a
    VNode, a string, or an iterable of strings.
    """

    def __init__(self) -> None:
        self._components: dict[str, Component] = {}

    def register(self, tag: str, component: Component) -> None:
        self._components[tag] = component

    def unregister(self, tag: str) -> None:
        self._components.pop(tag, None)

    def __contains__(self, tag: str) -> bool:
        return tag in self._components

    def resolve(self, node: ElementNode) -> list[str]:
        component = self._components.get(node.tag)
        if component is None:
            raise UnknownComponentError(node.tag)
        output = component(node.props, node.children)
        if isinstance(output, (TextNode, ElementNode)):
            return render(output, self)
        if isinstance(output, str):
            return [output]
        return [str(line) for line in output]


def _text_transform(props) -> Callable[[str], str]:
    def transform(line: str) -> str:
        if props.get("code"):
            line = f"`{line}`"
        if props.get("italic"):
            line = f"_{line}_"
        if props.get("bold"):
            line = f"**{line}**"
        return line

    return transform


_BUILTINS: dict[str, Callable[[Any], Callable[[str], str] | None]] = {
    "container": lambda props: None,
    "fragment": lambda props: None,
    "text": _text_transform,
    "bold": lambda props: lambda line: f"**{line}**",
    "italic": lambda props: lambda line: f"_{line}_",
    "code": lambda props: lambda line: f"`{line}`",
}

_resolver = ComponentResolver()
_sink: BufferSink | None = None

# destination -> lines last emitted successfully
_line_cache: dict[Any, list[str]] = {}
_locks: dict[Any, asyncio.Lock] = {}


def set_component_resolver(resolver: ComponentResolver) -> None:
    """Replace the resolver used when render() is called without one."""
    global _resolver
    _resolver = resolver


def get_component_resolver() -> ComponentResolver:
    return _resolver


def set_buffer_sink(sink: BufferSink | None) -> None:
    """Set the collaborator that applies patches to destinations.

    Call once from the host integration:
        bufferui.set_buffer_sink(MemoryBuffer())
    """
    global _sink
    _sink = sink


def render(vnode: VNode, resolver: ComponentResolver | None = None) -> list[str]:
    """Render a VNode tree to an ordered list of lines."""
    if isinstance(vnode, TextNode):
        return [vnode.content]

    resolver = resolver or _resolver
    builtin = _BUILTINS.get(vnode.tag)
    if builtin is None:
        try:
            return resolver.resolve(vnode)
        except Exception:
            logger.exception("Error rendering component %s", vnode.tag)
            return [PLACEHOLDER.format(tag=vnode.tag)]

    lines: list[str] = []
    for child in vnode.children:
        lines.extend(render(child, resolver))
    transform = builtin(vnode.props)
    if transform is None:
        return lines
    return [transform(line) for line in lines]


def _prepare(destination_id: Any, new_lines: Iterable[str]) -> tuple[BufferSink, list[str], Patch]:
    if _sink is None:
        raise SinkNotConfiguredError("no buffer sink configured; call set_buffer_sink() first")
    lines = list(new_lines)
    patch = compute_patch(_line_cache.get(destination_id, []), lines)
    return _sink, lines, patch


def _commit(destination_id: Any, lines: list[str], outcome: Any) -> None:
    if outcome is False:
        raise BufferUpdateError(f"buffer sink rejected patch for destination {destination_id!r}")
    _line_cache[destination_id] = lines


def apply_diff(destination_id: Any, new_lines: Iterable[str]) -> None:
    """Send the minimal patch from the cached lines to `new_lines`.

    The sink is called exactly once. Its failures propagate and leave the
    cache untouched; on success the cache becomes a copy of `new_lines`.
    """
    sink, lines, patch = _prepare(destination_id, new_lines)
    outcome = sink.update_content(destination_id, patch)
    if inspect.isawaitable(outcome):
        close = getattr(outcome, "close", None)
        if close is not None:
            close()
        raise TypeError("buffer sink returned an awaitable; use apply_diff_async()")
    _commit(destination_id, lines, outcome)


async def apply_diff_async(destination_id: Any, new_lines: Iterable[str]) -> None:
    """apply_diff() for sinks that await the host.

    Calls for one destination are serialized, and each diff is computed
    against the lines the previous call committed.
    """
    lock = _locks.get(destination_id)
    if lock is None:
        lock = _locks[destination_id] = asyncio.Lock()
    async with lock:
        sink, lines, patch = _prepare(destination_id, new_lines)
        outcome = sink.update_content(destination_id, patch)
        if inspect.isawaitable(outcome):
            outcome = await outcome
        _commit(destination_id, lines, outcome)


def cached_lines(destination_id: Any) -> list[str]:
    """Copy of the lines last emitted to a destination."""
    return list(_line_cache.get(destination_id, []))


def forget(destination_id: Any) -> None:
    """Drop the cached lines for a destination; the next diff starts from empty."""
    _line_cache.pop(destination_id, None)
    # A held lock keeps serializing in-flight and queued async diffs.
    lock = _locks.get(destination_id)
    if lock is not None and not lock.locked():
        del _locks[destination_id]


def reset() -> None:
    _line_cache.clear()
    _locks.clear()
