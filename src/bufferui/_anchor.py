"""Data anchor — plain Python structures that hold all reactive state.

Containers and derivations are thin handles holding an _id; the raw data
lives here. A dependency edge is the pair (container_id, key).
"""

import itertools

# Container state
values: dict[int, object] = {}  # container_id -> raw record / list / value
wrappers: dict[int, object] = {}  # id(raw) -> wrapper, so one raw object has one wrapper
observers: dict[tuple[int, object], set] = {}  # edge -> set of derivations

# Derivation state (Effect, Watcher, Computed)
dependencies: dict[int, set] = {}  # deriv_id -> set of edges
dirty_flags: dict[int, bool] = {}
cached_values: dict[int, object] = {}
derivation_fns: dict[int, object] = {}  # deriv_id -> callable
disposed: dict[int, bool] = {}
cleanups: dict[int, list] = {}  # deriv_id -> on_cleanup callbacks, in registration order

_id_counter = itertools.count(1)


def new_id() -> int:
    return next(_id_counter)


def reset() -> None:
    """Drop every dependency edge and registered cleanup. Existing handles stay usable."""
    for edge_observers in observers.values():
        edge_observers.clear()
    for deps in dependencies.values():
        deps.clear()
    cleanups.clear()
