"""Explicit write batches.

Inside `with transaction():` (or a function decorated with @action) writes
only queue their dependents. The queue runs when the outermost batch
closes, so a mounted component re-renders once for a group of writes and
never renders a half-applied state.
"""

from __future__ import annotations

import functools
from contextlib import contextmanager
from typing import Callable, Iterator, ParamSpec, TypeVar

from bufferui._tracking import begin_batch, end_batch

P = ParamSpec("P")
R = TypeVar("R")


@contextmanager
def transaction() -> Iterator[None]:
    """Group writes into one batch. Batches nest; only the outermost flushes.

    Usage:
        with transaction():
            form.name = "Ada"
            form.errors = []
        # the form component renders once, here
    """
    begin_batch()
    try:
        yield
    finally:
        end_batch()


def action(fn: Callable[P, R]) -> Callable[P, R]:
    """Run every call of fn inside its own transaction()."""

    @functools.wraps(fn)
    def batched(*args: P.args, **kwargs: P.kwargs) -> R:
        with transaction():
            return fn(*args, **kwargs)

    return batched
