"""Effects — side effects triggered by observable state changes.

Unlike Computed (which is lazy and only evaluates on read), an Effect
eagerly re-runs whenever its tracked dependencies change.

Two flavors:
- run_effect(fn): runs fn immediately, re-runs when any key it read changes.
- watch(getter, callback): tracks getter, calls callback(new, old) only
  when the getter's result changes.

on_cleanup(fn) registers teardown work for the effect or watcher that is
running.

All state lives in _anchor; instances are thin handles holding an _id.
"""

from __future__ import annotations

from typing import Callable, TypeVar

from bufferui import _anchor
from bufferui._tracking import (
    executing,
    running_derivation,
    tracking,
    unschedule,
    untrack_all,
    untracked,
)

T = TypeVar("T")


def _run_cleanups(derivation_id: int) -> None:
    callbacks = _anchor.cleanups.pop(derivation_id, None)
    if callbacks:
        with untracked():
            for callback in callbacks:
                callback()


class Effect:
    """A reactive side effect that re-runs when its dependencies change.

    The effect is its own stop handle: call .stop() and it never runs again.
    """

    __slots__ = ("_id", "_on_stop")

    def __init__(self, fn: Callable[[], object], on_stop: Callable[[], None] | None = None) -> None:
        self._id = _anchor.new_id()
        _anchor.derivation_fns[self._id] = fn
        _anchor.dependencies[self._id] = set()
        _anchor.disposed[self._id] = False
        self._on_stop = on_stop

    @property
    def _fn(self) -> Callable[[], object]:
        return _anchor.derivation_fns[self._id]

    @property
    def _dependencies(self) -> set:
        return _anchor.dependencies[self._id]

    @property
    def active(self) -> bool:
        return not _anchor.disposed[self._id]

    def _run(self):
        """Re-evaluate the effect function, re-tracking dependencies."""
        if _anchor.disposed[self._id]:
            return None
        untrack_all(self)
        _run_cleanups(self._id)
        with executing(self), tracking(self):
            return self._fn()

    def run(self):
        """Run the effect now. Returns the function's result, or None once stopped."""
        return self._run()

    def stop(self) -> None:
        """Stop this effect. Disconnects from all dependencies."""
        if _anchor.disposed[self._id]:
            return
        _anchor.disposed[self._id] = True
        untrack_all(self)
        unschedule(self)
        _run_cleanups(self._id)
        if self._on_stop is not None:
            self._on_stop()

    def __repr__(self) -> str:
        state = "stopped" if _anchor.disposed[self._id] else "active"
        name = getattr(self._fn, "__name__", "effect")
        return f"Effect({name}, {state})"


class Watcher:
    """Internal: watch(getter, callback) implementation.

    Tracks the getter's dependencies. When they change, re-runs the getter.
    If the result differs from last time, calls callback(new, old).
    """

    __slots__ = ("_id", "_callback", "_last_value", "_initialized")

    def __init__(self, getter: Callable[[], T], callback: Callable[[T, T | None], None]) -> None:
        self._id = _anchor.new_id()
        _anchor.derivation_fns[self._id] = getter
        _anchor.dependencies[self._id] = set()
        _anchor.disposed[self._id] = False
        self._callback = callback
        self._last_value = None
        self._initialized = False

    @property
    def _getter(self) -> Callable[[], T]:
        return _anchor.derivation_fns[self._id]

    @property
    def _dependencies(self) -> set:
        return _anchor.dependencies[self._id]

    @property
    def active(self) -> bool:
        return not _anchor.disposed[self._id]

    def _evaluate(self):
        untrack_all(self)
        with tracking(self):
            return self._getter()

    def _run(self) -> None:
        if _anchor.disposed[self._id]:
            return
        with executing(self):
            new_value = self._evaluate()
            if not self._initialized or new_value != self._last_value:
                old_value = self._last_value
                self._last_value = new_value
                self._initialized = True
                _run_cleanups(self._id)
                with untracked():
                    self._callback(new_value, old_value)

    def _prime(self) -> None:
        """Establish dependencies and the baseline without calling back."""
        with executing(self):
            self._last_value = self._evaluate()
            self._initialized = True

    def stop(self) -> None:
        if _anchor.disposed[self._id]:
            return
        _anchor.disposed[self._id] = True
        untrack_all(self)
        unschedule(self)
        _run_cleanups(self._id)

    def __repr__(self) -> str:
        state = "stopped" if _anchor.disposed[self._id] else "active"
        name = getattr(self._getter, "__name__", "getter")
        return f"Watcher({name}, {state})"


def run_effect(
    fn: Callable[[], object],
    *,
    lazy: bool = False,
    on_stop: Callable[[], None] | None = None,
) -> Effect:
    """Run fn immediately, then re-run whenever any observable it reads changes.

    Returns the Effect (call .stop() to end it). With lazy=True the first
    run is left to the caller (effect.run()).

    Usage:
        state = observe({"count": 0})
        log = []

        handle = run_effect(lambda: log.append(state.count))
        # log == [0]: ran immediately

        state.count = 1
        # log == [0, 1]: re-ran because count changed

        handle.stop()
        state.count = 2
        # log == [0, 1]: stopped
    """
    effect = Effect(fn, on_stop=on_stop)
    if not lazy:
        effect._run()
    return effect


def watch(
    getter: Callable[[], T],
    callback: Callable[[T, T | None], None],
    *,
    immediate: bool = False,
) -> Watcher:
    """Track getter's observables; call callback(new, old) when the result changes.

    Unlike run_effect, callback only fires when the getter's *return value*
    changes, not on every dependency notification. The callback itself is
    not tracked.

    Usage:
        user = observe({"first": "Alice", "last": "Smith"})

        seen = []
        w = watch(
            lambda: f"{user.first} {user.last}",
            lambda new, old: seen.append((new, old)),
        )
        # seen == []: getter ran to establish deps, callback didn't fire

        user.first = "Bob"
        # seen == [("Bob Smith", "Alice Smith")]

        w.stop()
    """
    w = Watcher(getter, callback)
    if immediate:
        w._run()
    else:
        w._prime()
    return w


def on_cleanup(fn: Callable[[], None]) -> None:
    """Register fn against the running effect or watch callback.

    For an effect, fn runs right before the next run and when the effect
    stops. Inside a watch() callback it runs before the next callback and
    on stop. Cleanups run once, in registration order, untracked.

    Usage:
        def poll():
            timer = start_timer(state.interval)
            on_cleanup(timer.cancel)

        run_effect(poll)  # changing state.interval cancels the old timer first
    """
    owner = running_derivation()
    if not isinstance(owner, (Effect, Watcher)):
        raise RuntimeError("on_cleanup() called outside a running effect or watch callback")
    _anchor.cleanups.setdefault(owner._id, []).append(fn)
