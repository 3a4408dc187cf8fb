"""Virtual nodes — immutable descriptions of rendered output.

A VNode is either literal text (one line) or a tagged element with props
and ordered children. Trees are rebuilt on every render.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Mapping, Union


@dataclass(frozen=True)
class TextNode:
    content: str = ""


@dataclass(frozen=True)
class ElementNode:
    tag: str
    props: Mapping[str, Any] = field(default_factory=lambda: MappingProxyType({}))
    children: tuple[VNode, ...] = ()

    def __post_init__(self) -> None:
        if not isinstance(self.props, MappingProxyType):
            object.__setattr__(self, "props", MappingProxyType(dict(self.props)))
        if not isinstance(self.children, tuple):
            object.__setattr__(self, "children", tuple(self.children))


VNode = Union[TextNode, ElementNode]


def _flatten(children, out: list[VNode]) -> list[VNode]:
    for child in children:
        if child is None or child is False:
            continue
        if isinstance(child, (TextNode, ElementNode)):
            out.append(child)
        elif isinstance(child, (list, tuple)):
            _flatten(child, out)
        else:
            out.append(TextNode(str(child)))
    return out


def _split_events(props: Mapping[str, Any]) -> dict[str, Any]:
    """Move `@name` props into props["events"]["name"]."""
    result: dict[str, Any] = {}
    events: dict[str, Any] = dict(props.get("events") or {})
    for key, value in props.items():
        if key == "events":
            continue
        if key.startswith("@") and len(key) > 1:
            events[key[1:]] = value
        else:
            result[key] = value
    if events:
        result["events"] = MappingProxyType(events)
    return result


def h(tag: str, props: Mapping[str, Any] | None = None, *children) -> ElementNode:
    """Build an element node.

    Children are flattened; None and False are dropped and any other
    non-node value becomes a TextNode. Props spelled "@click" are collected
    into props["events"]["click"].

    Usage:
        h("container", None,
          h("bold", None, "Title"),
          "plain line",
          h("button", {"@click": on_click}, "[ OK ]"))
    """
    return ElementNode(tag, _split_events(props or {}), tuple(_flatten(children, [])))


def text(content: Any = "") -> TextNode:
    return TextNode(str(content))
