"""Derived values shared between render passes.

A Computed caches fn()'s result together with the (container, key) edges
fn read. A write to one of those edges only marks the cache stale and
forwards the notification to whoever read the Computed; the function
itself runs again on the next read. Render functions use this to share
expensive derivations (filtered rows, formatted headers) without every
reader recomputing them.
"""

from __future__ import annotations

from typing import Callable, Generic, TypeVar

from bufferui import _anchor
from bufferui._tracking import track, tracking, trigger, untrack_all

T = TypeVar("T")

_STALE = object()


class Computed(Generic[T]):
    """Lazily evaluated, cached function of observable state."""

    __slots__ = ("_id",)

    def __init__(self, fn: Callable[[], T]) -> None:
        self._id = _anchor.new_id()
        _anchor.derivation_fns[self._id] = fn
        _anchor.dependencies[self._id] = set()
        self._invalidate_cache()

    @property
    def _dependencies(self) -> set:
        return _anchor.dependencies[self._id]

    @property
    def stale(self) -> bool:
        return _anchor.dirty_flags[self._id]

    def _invalidate_cache(self) -> None:
        _anchor.cached_values[self._id] = _STALE
        _anchor.dirty_flags[self._id] = True

    def get(self) -> T:
        """Current value; the caller (if tracking) now depends on it."""
        track(self._id, "value")
        return self.peek()

    def peek(self) -> T:
        """Current value without registering a dependency."""
        if _anchor.dirty_flags[self._id]:
            untrack_all(self)
            with tracking(self):
                result = _anchor.derivation_fns[self._id]()
            _anchor.cached_values[self._id] = result
            _anchor.dirty_flags[self._id] = False
        return _anchor.cached_values[self._id]

    value = property(get)

    def _run(self) -> None:
        # Scheduler entry point: a dependency changed.
        if _anchor.dirty_flags[self._id]:
            return
        _anchor.dirty_flags[self._id] = True
        trigger(self._id, "value")

    def dispose(self) -> None:
        """Forget dependencies, readers and the cached value."""
        untrack_all(self)
        _anchor.observers.pop((self._id, "value"), None)
        self._invalidate_cache()

    def __repr__(self) -> str:
        fn = _anchor.derivation_fns[self._id]
        if _anchor.dirty_flags[self._id]:
            return f"Computed({fn.__name__}, stale)"
        return f"Computed({fn.__name__}, {_anchor.cached_values[self._id]!r})"


def computed(fn: Callable[[], T]) -> Computed[T]:
    """Decorator form of Computed.

    Usage:
        rows = observe({"items": ["b", "a"], "query": ""})

        @computed
        def visible():
            return sorted(i for i in rows["items"] if rows.query in i)

        h("container", None, visible.get())
    """
    return Computed(fn)
