"""Line-level patches between two renders of a destination.

A patch has one entry per old line, followed by one entry per appended line:

- KEEP: leave old line i as it is
- DELETE: remove old line i
- a string: replace old line i (or, past the old length, append it)

compute_patch() picks the patch with the fewest non-KEEP entries. Lines
that survive a deletion keep their KEEP marker even though their absolute
position moves up; insertions in the middle are expressed as replacements
followed by appends, since the patch has no insert operation.
"""

from __future__ import annotations

from bisect import bisect_left
from typing import Sequence, Union


class _Marker:
    __slots__ = ("_name",)

    def __init__(self, name: str) -> None:
        self._name = name

    def __repr__(self) -> str:
        return self._name

    def __reduce__(self):
        return self._name


KEEP = _Marker("KEEP")
DELETE = _Marker("DELETE")

PatchEntry = Union[str, _Marker]
Patch = list[PatchEntry]


def _keep_chain(old: Sequence[str], new: Sequence[str], limit: int) -> list[tuple[int, int]]:
    """Pairs (old index, new index) of equal lines to keep.

    Kept pairs must have increasing new indices and a shift (old - new)
    that never decreases, since a patch can move lines up but not down.
    Between two kept pairs the new lines replace old ones and the surplus
    old lines are deleted; after the last pair, with shift d, up to
    len(old) - d new lines still fit in place and the rest are appended.

    Every patch costs at least its largest shift in deletions, so pairs
    shifted further than `limit` (the cost of a positional patch) are
    never worth keeping. A Fenwick tree over the shift holds the longest
    chain ending at or below each shift.
    """
    n, m = len(old), len(new)
    positions: dict[str, list[int]] = {}
    for i, line in enumerate(old):
        positions.setdefault(line, []).append(i)

    size = limit + 1
    tree_length = [0] * (size + 1)
    tree_pair = [-1] * (size + 1)
    pair_old: list[int] = []
    pair_new: list[int] = []
    pair_prev: list[int] = []
    # No kept pairs: min(n, m) lines replaced in place.
    best_score, best_pair = min(n, m), -1

    for j, line in enumerate(new):
        found = positions.get(line)
        if not found:
            continue
        # Pairs for the same new line never chain with each other.
        batch = []
        for index in range(bisect_left(found, j), len(found)):
            i = found[index]
            shift = i - j
            if shift > limit:
                break
            k, length, prev = shift + 1, 0, -1
            while k > 0:
                if tree_length[k] > length:
                    length, prev = tree_length[k], tree_pair[k]
                k -= k & -k
            batch.append((i, shift, length + 1, prev))
        for i, shift, length, prev in batch:
            pair = len(pair_old)
            pair_old.append(i)
            pair_new.append(j)
            pair_prev.append(prev)
            k = shift + 1
            while k <= size:
                if length > tree_length[k]:
                    tree_length[k], tree_pair[k] = length, pair
                k += k & -k
            score = length + min(m, n - shift)
            if score > best_score:
                best_score, best_pair = score, pair

    chain = []
    while best_pair != -1:
        chain.append((pair_old[best_pair], pair_new[best_pair]))
        best_pair = pair_prev[best_pair]
    chain.reverse()
    return chain


def _fill(
    patch: Patch,
    old: Sequence[str],
    new: Sequence[str],
    old_range: range,
    new_start: int,
    new_stop: int,
) -> None:
    # new[new_start:new_stop] replaces the first old lines of the range.
    for offset, i in enumerate(old_range):
        j = new_start + offset
        if j < new_stop:
            patch.append(KEEP if old[i] == new[j] else new[j])
        else:
            patch.append(DELETE)


def compute_patch(old: Sequence[str], new: Sequence[str]) -> Patch:
    """Minimal patch turning `old` into `new`.

    The common prefix is kept, then the best chain of equal lines (see
    _keep_chain) decides which of the remaining old lines stay. Runs in
    about O(n log n) for renders whose lines are mostly unique.
    """
    prefix = 0
    common = min(len(old), len(new))
    while prefix < common and old[prefix] == new[prefix]:
        prefix += 1
    patch: Patch = [KEEP] * prefix
    old_rest = old[prefix:]
    new_rest = new[prefix:]
    n, m = len(old_rest), len(new_rest)

    if n == 0:
        patch.extend(new_rest)
        return patch
    if m == 0:
        patch.extend([DELETE] * n)
        return patch

    positional = sum(1 for a, b in zip(old_rest, new_rest) if a != b) + abs(n - m)
    last_old = last_new = -1
    for i, j in _keep_chain(old_rest, new_rest, positional):
        _fill(patch, old_rest, new_rest, range(last_old + 1, i), last_new + 1, j)
        patch.append(KEEP)
        last_old, last_new = i, j
    in_place = min(m, n - (last_old - last_new))
    _fill(patch, old_rest, new_rest, range(last_old + 1, n), last_new + 1, in_place)
    patch.extend(new_rest[in_place:])
    return patch


def apply_patch(old: Sequence[str], patch: Sequence[PatchEntry]) -> list[str]:
    """Reference interpretation of a patch against the lines it was computed from."""
    if len(patch) < len(old):
        raise ValueError(f"patch has {len(patch)} entries for {len(old)} lines")
    result: list[str] = []
    for index, entry in enumerate(patch):
        if index < len(old):
            if entry is KEEP:
                result.append(old[index])
            elif entry is DELETE:
                continue
            else:
                result.append(entry)
        elif isinstance(entry, str):
            result.append(entry)
        else:
            raise ValueError(f"{entry!r} past the end of the old lines (index {index})")
    return result


def is_noop(patch: Sequence[PatchEntry]) -> bool:
    return all(entry is KEEP for entry in patch)
