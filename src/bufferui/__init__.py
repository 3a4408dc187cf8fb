"""bufferui: reactive component trees rendered into plain-text buffers."""

from importlib.metadata import version as _version

__version__ = _version("bufferui")

from bufferui._tracking import ReactiveLoopError, get_pending_count, untracked
from bufferui.observable import (
    Observable,
    ObservableList,
    ObservableRecord,
    observe,
    ref,
    unwrap,
)
from bufferui.computed import Computed, computed
from bufferui.effect import Effect, Watcher, on_cleanup, run_effect, watch
from bufferui.action import action, transaction
from bufferui.registry import (
    Component,
    ComponentRegistry,
    LifecycleEntry,
    Phase,
    RegistryEventType,
    get_lifecycle_components,
    register_lifecycle,
    registry,
    trigger_event,
    trigger_lifecycle,
)
from bufferui.vnode import ElementNode, TextNode, VNode, h, text
from bufferui.diff import DELETE, KEEP, apply_patch, compute_patch
from bufferui.renderer import (
    BufferUpdateError,
    ComponentResolver,
    SinkNotConfiguredError,
    UnknownComponentError,
    apply_diff,
    apply_diff_async,
    render,
    set_buffer_sink,
    set_component_resolver,
)
from bufferui.buffer import MemoryBuffer
from bufferui.mount import MountHandle, mount
from bufferui.bridge import EventBridge, EventStream, InboundEvent
# textual is not auto-imported (opt-in)

__all__ = [
    "Observable",
    "ObservableList",
    "ObservableRecord",
    "observe",
    "ref",
    "unwrap",
    "Computed",
    "computed",
    "Effect",
    "Watcher",
    "run_effect",
    "watch",
    "on_cleanup",
    "action",
    "transaction",
    "untracked",
    "get_pending_count",
    "ReactiveLoopError",
    "Component",
    "ComponentRegistry",
    "LifecycleEntry",
    "Phase",
    "RegistryEventType",
    "registry",
    "register_lifecycle",
    "trigger_lifecycle",
    "trigger_event",
    "get_lifecycle_components",
    "TextNode",
    "ElementNode",
    "VNode",
    "h",
    "text",
    "KEEP",
    "DELETE",
    "compute_patch",
    "apply_patch",
    "ComponentResolver",
    "render",
    "apply_diff",
    "apply_diff_async",
    "set_buffer_sink",
    "set_component_resolver",
    "SinkNotConfiguredError",
    "BufferUpdateError",
    "UnknownComponentError",
    "MemoryBuffer",
    "mount",
    "MountHandle",
    "EventBridge",
    "EventStream",
    "InboundEvent",
]
