"""Observable state — containers that track their readers.

When a container key is read inside an effect, watcher or computed
evaluation, the (container, key) edge is registered. When the key is
written with a different value, every dependent is scheduled.

Three shapes:
- Observable: a single value cell (get/set, or .value).
- ObservableRecord: a dict-backed record with item and attribute access.
- ObservableList: a list; any read tracks the whole list.

Nested dicts and lists are wrapped on first read, and one raw object
always maps to one wrapper, so edges are shared between reads.

All state lives in _anchor; instances are thin handles holding an _id.
"""

from __future__ import annotations

from typing import Generic, Iterator, TypeVar

from bufferui import _anchor
from bufferui._tracking import begin_batch, end_batch, track, trigger

T = TypeVar("T")

# Edge key for reads that depend on the set of keys / the whole list.
ITERATE = "__iterate__"

_MISSING = object()


def _same(old: object, new: object) -> bool:
    return old is new or old == new


def _wrap(value):
    """Wrap nested dicts/lists, reusing the wrapper already made for them."""
    if isinstance(value, dict):
        wrapper = _anchor.wrappers.get(id(value))
        return wrapper if wrapper is not None else ObservableRecord(value)
    if isinstance(value, list):
        wrapper = _anchor.wrappers.get(id(value))
        return wrapper if wrapper is not None else ObservableList(value)
    return value


def unwrap(value):
    """Return the raw object behind a wrapper (or the value itself)."""
    if isinstance(value, (ObservableRecord, ObservableList)):
        return _anchor.values[value._id]
    return value


class Observable(Generic[T]):
    """A single observable value with automatic dependency tracking."""

    __slots__ = ("_id",)

    def __init__(self, value: T) -> None:
        self._id = _anchor.new_id()
        _anchor.values[self._id] = value

    def get(self) -> T:
        """Read the value. If inside a derivation, registers the dependency."""
        track(self._id, "value")
        return _anchor.values[self._id]

    def set(self, value: T) -> None:
        """Write a new value. Equal values are ignored."""
        old = _anchor.values[self._id]
        if not _same(old, value):
            _anchor.values[self._id] = value
            trigger(self._id, "value")

    @property
    def value(self) -> T:
        return self.get()

    @value.setter
    def value(self, value: T) -> None:
        self.set(value)

    def __repr__(self) -> str:
        return f"Observable({_anchor.values[self._id]!r})"


class ObservableRecord:
    """A record whose per-key reads and writes are tracked.

    Keys are reachable both as items and as attributes:

        state = observe({"count": 0})
        state.count += 1
        state["count"]  # 1

    Keys that collide with method names (get, keys, update, ...) are only
    reachable through item access.
    """

    __slots__ = ("_id",)

    def __init__(self, data: dict | None = None) -> None:
        raw = data if data is not None else {}
        object.__setattr__(self, "_id", _anchor.new_id())
        _anchor.values[self._id] = raw
        _anchor.wrappers[id(raw)] = self

    @property
    def _data(self) -> dict:
        return _anchor.values[self._id]

    # --- Read operations (track) ---

    def __getitem__(self, key):
        track(self._id, key)
        return _wrap(self._data[key])

    def get(self, key, default=None):
        track(self._id, key)
        value = self._data.get(key, _MISSING)
        return default if value is _MISSING else _wrap(value)

    def __contains__(self, key) -> bool:
        track(self._id, key)
        return key in self._data

    def __len__(self) -> int:
        track(self._id, ITERATE)
        return len(self._data)

    def __iter__(self) -> Iterator:
        track(self._id, ITERATE)
        return iter(list(self._data))

    def keys(self) -> list:
        track(self._id, ITERATE)
        return list(self._data)

    def values(self) -> list:
        return [self[key] for key in self.keys()]

    def items(self) -> list:
        return [(key, self[key]) for key in self.keys()]

    def __bool__(self) -> bool:
        track(self._id, ITERATE)
        return bool(self._data)

    def __getattr__(self, name: str):
        if name.startswith("_"):
            raise AttributeError(name)
        try:
            return self[name]
        except KeyError:
            raise AttributeError(name) from None

    # --- Write operations (notify) ---

    def __setitem__(self, key, value) -> None:
        data = self._data
        raw = unwrap(value)
        old = data.get(key, _MISSING)
        if old is not _MISSING and _same(old, raw):
            return
        data[key] = raw
        begin_batch()
        try:
            trigger(self._id, key)
            if old is _MISSING:
                trigger(self._id, ITERATE)
        finally:
            end_batch()

    def __delitem__(self, key) -> None:
        del self._data[key]
        begin_batch()
        try:
            trigger(self._id, key)
            trigger(self._id, ITERATE)
        finally:
            end_batch()

    def __setattr__(self, name: str, value) -> None:
        if name.startswith("_"):
            object.__setattr__(self, name, value)
        else:
            self[name] = value

    def __delattr__(self, name: str) -> None:
        try:
            del self[name]
        except KeyError:
            raise AttributeError(name) from None

    def update(self, other=None, **kwargs) -> None:
        """Write several keys as one batch."""
        begin_batch()
        try:
            for key, value in dict(other or {}, **kwargs).items():
                self[key] = value
        finally:
            end_batch()

    def __repr__(self) -> str:
        return f"ObservableRecord({self._data!r})"


class ObservableList(Generic[T]):
    """An observable list that tracks reads and notifies on mutation.

    Any read operation (iteration, indexing, len) registers a dependency.
    Any mutation (append, extend, __setitem__, etc.) notifies observers.
    """

    __slots__ = ("_id",)

    def __init__(self, items: list[T] | None = None) -> None:
        raw = items if items is not None else []
        self._id = _anchor.new_id()
        _anchor.values[self._id] = raw
        _anchor.wrappers[id(raw)] = self

    @property
    def _items(self) -> list[T]:
        return _anchor.values[self._id]

    def _track(self) -> None:
        track(self._id, ITERATE)

    def _notify(self) -> None:
        trigger(self._id, ITERATE)

    # --- Read operations (track) ---

    def __getitem__(self, index):
        self._track()
        if isinstance(index, slice):
            return [_wrap(item) for item in self._items[index]]
        return _wrap(self._items[index])

    def __len__(self) -> int:
        self._track()
        return len(self._items)

    def __iter__(self) -> Iterator[T]:
        self._track()
        return iter([_wrap(item) for item in self._items])

    def __contains__(self, item: T) -> bool:
        self._track()
        return unwrap(item) in self._items

    def __bool__(self) -> bool:
        self._track()
        return bool(self._items)

    # --- Write operations (notify) ---

    def append(self, item: T) -> None:
        self._items.append(unwrap(item))
        self._notify()

    def extend(self, items) -> None:
        self._items.extend(unwrap(item) for item in items)
        self._notify()

    def insert(self, index: int, item: T) -> None:
        self._items.insert(index, unwrap(item))
        self._notify()

    def pop(self, index: int = -1) -> T:
        result = self._items.pop(index)
        self._notify()
        return result

    def remove(self, item: T) -> None:
        self._items.remove(unwrap(item))
        self._notify()

    def clear(self) -> None:
        if self._items:
            self._items.clear()
            self._notify()

    def __setitem__(self, index: int, value: T) -> None:
        raw = unwrap(value)
        if _same(self._items[index], raw):
            return
        self._items[index] = raw
        self._notify()

    def __delitem__(self, index: int) -> None:
        del self._items[index]
        self._notify()

    def __repr__(self) -> str:
        return f"ObservableList({self._items!r})"


def observe(record: dict | list | ObservableRecord | ObservableList | None = None, **fields):
    """Wrap a record so reads are tracked and writes notify dependents.

    Usage:
        state = observe({"count": 0})
        run_effect(lambda: print(state.count))  # prints 0
        state.count = 1                          # prints 1
    """
    if isinstance(record, (ObservableRecord, ObservableList)):
        return record
    if record is None:
        return _wrap(dict(fields))
    if isinstance(record, (dict, list)):
        if fields:
            raise TypeError("observe() takes either a record or keyword fields, not both")
        return _wrap(record)
    raise TypeError(f"observe() expects a dict or list, got {type(record).__name__}")


def ref(value: T) -> Observable[T]:
    """Create an observable cell for a single value."""
    return Observable(value)
