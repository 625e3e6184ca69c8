"""Fuzzy matching for typo-tolerant search.

Edit distance here is the optimal string alignment variant of
Damerau-Levenshtein: insertions, deletions, substitutions and swaps of two
adjacent characters each cost one edit, so "flie" is one edit from "file".

Matching a query term against the vocabulary is a linear scan, i.e.
``O(query_terms x vocabulary)``. That is fine for the corpus sizes this
engine targets but does not scale; an n-gram index or BK-tree would be the
next step.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
import threading
import time


class SearchCancelled(Exception):
    """Raised when a cancellation token fires mid-scan.

    ``partial`` carries whatever the interrupted scan had gathered.
    """

    def __init__(self, message: str = "search cancelled", partial: list[tuple[str, int]] | None = None) -> None:
        super().__init__(message)
        self.partial = list(partial or [])


@dataclass
class CancellationToken:
    """Cooperative cancellation signal with an optional deadline.

    ``deadline`` is a :func:`time.monotonic` timestamp. Long-running loops
    call :meth:`is_cancelled` periodically and stop early when it flips.
    """

    deadline: float | None = None
    _event: threading.Event = field(default_factory=threading.Event, repr=False)

    @classmethod
    def with_timeout(cls, seconds: float) -> CancellationToken:
        return cls(deadline=time.monotonic() + seconds)

    def cancel(self) -> None:
        self._event.set()

    def is_cancelled(self) -> bool:
        if self._event.is_set():
            return True
        return self.deadline is not None and time.monotonic() >= self.deadline

    def raise_if_cancelled(self) -> None:
        if self.is_cancelled():
            raise SearchCancelled("search cancelled")


def edit_distance(s1: str, s2: str, max_distance: int | None = None) -> int:
    """Return the optimal string alignment distance between two strings.

    Args:
        s1: First string.
        s2: Second string.
        max_distance: If provided, return ``max_distance + 1`` as soon as
            the distance is guaranteed to exceed this threshold.

    Examples:
        >>> edit_distance("kitten", "sitting")
        3
        >>> edit_distance("flie", "file")
        1
        >>> edit_distance("", "abc")
        3
    """
    if s1 == s2:
        return 0
    if not s1:
        return len(s2)
    if not s2:
        return len(s1)

    m, n = len(s1), len(s2)
    if max_distance is not None and abs(m - n) > max_distance:
        return max_distance + 1

    # Three rows: transpositions look two rows back
    before_prev: list[int] = []
    prev_row = list(range(m + 1))

    for j in range(1, n + 1):
        curr_row = [j] + [0] * m
        row_min = j
        for i in range(1, m + 1):
            cost = 0 if s1[i - 1] == s2[j - 1] else 1
            value = min(
                prev_row[i] + 1,  # deletion
                curr_row[i - 1] + 1,  # insertion
                prev_row[i - 1] + cost,  # substitution
            )
            if i > 1 and j > 1 and s1[i - 1] == s2[j - 2] and s1[i - 2] == s2[j - 1]:
                value = min(value, before_prev[i - 2] + 1)  # transposition
            curr_row[i] = value
            row_min = min(row_min, value)

        # A transposition can lower the next row by at most one relative to before_prev,
        # so only bail out when both trailing rows already exceed the limit.
        if max_distance is not None and row_min > max_distance and min(prev_row) > max_distance:
            return max_distance + 1

        before_prev, prev_row = prev_row, curr_row

    distance = prev_row[m]
    if max_distance is not None and distance > max_distance:
        return max_distance + 1
    return distance


def find_fuzzy_matches(
    query_term: str,
    vocabulary: Iterable[str],
    max_distance: int,
    *,
    cancellation: CancellationToken | None = None,
    check_interval: int = 256,
) -> list[tuple[str, int]]:
    """Find vocabulary terms within ``max_distance`` edits of ``query_term``.

    Returns ``(term, distance)`` pairs sorted by distance then term. When the
    cancellation token fires the scan stops and :class:`SearchCancelled` is
    raised with the matches gathered so far in ``exc.partial``.
    """
    if max_distance < 0:
        raise ValueError(f"max_distance must be non-negative, got {max_distance}")
    if not query_term:
        return []

    matches: list[tuple[str, int]] = []
    query_length = len(query_term)
    interval = max(1, check_interval)

    for scanned, term in enumerate(vocabulary):
        if cancellation is not None and scanned % interval == 0 and cancellation.is_cancelled():
            matches.sort(key=lambda item: (item[1], item[0]))
            raise SearchCancelled("fuzzy scan cancelled", matches)

        # Quick check: if length difference exceeds max_distance, skip
        if abs(query_length - len(term)) > max_distance:
            continue

        distance = edit_distance(query_term, term, max_distance)
        if distance <= max_distance:
            matches.append((term, distance))

    matches.sort(key=lambda item: (item[1], item[0]))
    return matches


def fuzzy_weight(distance: int, max_distance: int) -> float:
    """Return the score multiplier ``1 - distance / max_distance``.

    With ``max_distance == 0`` only exact matches qualify and weigh 1.0.
    """
    if max_distance <= 0:
        return 1.0 if distance == 0 else 0.0
    return max(0.0, 1.0 - distance / max_distance)
