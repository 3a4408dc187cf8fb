"""Dependency tracking engine — the heart of bufferui's reactivity.

A single stack of active derivations records which (container, key) edges
are read during an effect/computed evaluation. The top of the stack is the
"currently active effect"; nested evaluations push and pop their own frame
so they never corrupt the outer one's tracking.

Batching: writes inside a batch (an @action, `with transaction()`, or a
running effect) accumulate invalidations and flush them once when the
outermost batch closes. Each derivation runs at most once per batch.
"""

from __future__ import annotations

from contextlib import contextmanager
from typing import TYPE_CHECKING, Iterator

from bufferui import _anchor

if TYPE_CHECKING:
    from bufferui.computed import Computed
    from bufferui.effect import Effect, Watcher

    Derivation = Computed | Effect | Watcher

# A flush that keeps rescheduling work past this many rounds is a loop.
MAX_FLUSH_ROUNDS = 100


class ReactiveLoopError(RuntimeError):
    """Raised when effects keep retriggering each other without settling."""


# Active derivation frames. None marks an untracked frame.
_stack: list[Derivation | None] = []

# Derivations whose _run is on the call stack, innermost last.
_executing: list[Derivation | None] = []

# Batch depth counter. When > 0, invalidations are deferred.
_batch_depth: int = 0

# Derivations invalidated during a batch, in first-scheduled order.
_pending: dict[Derivation, None] = {}


def current_derivation() -> Derivation | None:
    """The derivation whose reads are currently being tracked."""
    return _stack[-1] if _stack else None


def running_derivation() -> Derivation | None:
    """The innermost derivation whose _run is executing (None when detached)."""
    return _executing[-1] if _executing else None


@contextmanager
def tracking(derivation: Derivation | None) -> Iterator[None]:
    """Make `derivation` the active one for the duration of the block."""
    _stack.append(derivation)
    try:
        yield
    finally:
        _stack.pop()


@contextmanager
def executing(derivation: Derivation) -> Iterator[None]:
    """Mark `derivation` as running and batch the writes it makes."""
    _executing.append(derivation)
    begin_batch()
    try:
        yield
    finally:
        _executing.pop()
        end_batch()


@contextmanager
def detached() -> Iterator[None]:
    """Step outside the running derivation: reads are untracked and writes
    notify every dependent, including the derivation that was running."""
    _stack.append(None)
    _executing.append(None)
    try:
        yield
    finally:
        _executing.pop()
        _stack.pop()


def untracked():
    """Read observables without registering dependencies.

    Usage:
        with untracked():
            snapshot = state.count  # no edge recorded
    """
    return tracking(None)


def track(container_id: int, key: object) -> None:
    """Record the edge (container_id, key) for the active derivation."""
    derivation = current_derivation()
    if derivation is None or _anchor.disposed.get(derivation._id, False):
        return
    edge = (container_id, key)
    edge_observers = _anchor.observers.get(edge)
    if edge_observers is None:
        edge_observers = _anchor.observers[edge] = set()
    if derivation not in edge_observers:
        edge_observers.add(derivation)
        derivation._dependencies.add(edge)


def trigger(container_id: int, key: object) -> None:
    """Schedule every derivation depending on (container_id, key).

    The currently running derivation is skipped so an effect's own writes
    never retrigger it.
    """
    edge_observers = _anchor.observers.get((container_id, key))
    if not edge_observers:
        return
    running = running_derivation()
    begin_batch()
    try:
        for observer in list(edge_observers):
            if observer is not running:
                schedule(observer)
    finally:
        end_batch()


def untrack_all(derivation: Derivation) -> None:
    """Remove every edge the derivation recorded."""
    for edge in derivation._dependencies:
        edge_observers = _anchor.observers.get(edge)
        if edge_observers is not None:
            edge_observers.discard(derivation)
    derivation._dependencies.clear()


def begin_batch() -> None:
    """Enter a batching scope. Nested batches are supported."""
    global _batch_depth
    _batch_depth += 1


def end_batch() -> None:
    """Exit a batching scope. When the outermost scope exits, flush pending derivations."""
    global _batch_depth
    _batch_depth -= 1
    if _batch_depth == 0 and _pending:
        _flush_pending()


def schedule(derivation: Derivation) -> None:
    """Schedule a derivation for re-evaluation.

    If inside a batch, defers. Otherwise, runs immediately.
    """
    _pending[derivation] = None
    if _batch_depth == 0:
        _flush_pending()


def unschedule(derivation: Derivation) -> None:
    _pending.pop(derivation, None)


def _flush_pending() -> None:
    """Run all pending derivations. Handles derivations scheduled during flush."""
    global _batch_depth
    _batch_depth += 1
    try:
        rounds = 0
        while _pending:
            rounds += 1
            if rounds > MAX_FLUSH_ROUNDS:
                stuck = list(_pending)
                _pending.clear()
                raise ReactiveLoopError(
                    f"effects still scheduling after {MAX_FLUSH_ROUNDS} rounds: {stuck!r}"
                )
            # Derivations may schedule new ones while this batch runs.
            batch = list(_pending)
            _pending.clear()
            for index, derivation in enumerate(batch):
                try:
                    derivation._run()
                except BaseException:
                    # Not-yet-run work stays pending for the next flush.
                    for rest in batch[index + 1:]:
                        _pending.setdefault(rest, None)
                    raise
    finally:
        _batch_depth -= 1


def get_pending_count() -> int:
    """Number of derivations waiting to run. Useful for testing."""
    return len(_pending)


def reset() -> None:
    """Forget pending work and tracking frames. Used between tests."""
    global _batch_depth
    _stack.clear()
    _executing.clear()
    _pending.clear()
    _batch_depth = 0
    _anchor.reset()
