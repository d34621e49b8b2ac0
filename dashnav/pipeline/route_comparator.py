"""Decide whether alternative routes are worth showing.

A provider will happily return "alternatives" that differ from the current
route by a few hundred meters. Those are noise to a driver, so candidates are
filtered with a relative distance/duration threshold before the user ever
sees them.
"""

from typing import Iterable, Optional, Sequence

from dashnav.models import Route


DISTANCE_THRESHOLD = 0.10
DURATION_THRESHOLD = 0.15


def _relative_change(reference: float, other: float) -> Optional[float]:
    """Relative change of ``other`` against ``reference``; None when reference is 0."""
    if reference == 0:
        return None
    return abs(reference - other) / reference


class RouteComparator:
    """
    Compare routes against relative distance and duration thresholds.

    Comparison is asymmetric: the first route is the reference and supplies
    the denominator, so callers should keep the reference fixed for a pass.
    """

    def __init__(
        self,
        distance_threshold: float = DISTANCE_THRESHOLD,
        duration_threshold: float = DURATION_THRESHOLD,
    ):
        self.distance_threshold = distance_threshold
        self.duration_threshold = duration_threshold

    def is_significantly_different(self, a: Route, b: Route) -> bool:
        """True if ``b`` differs from reference ``a`` beyond either threshold."""
        # A zero-length reference is degenerate: only another zero-length route matches it
        if a.distance == 0:
            return b.distance != 0

        distance_change = _relative_change(a.distance, b.distance)
        if distance_change > self.distance_threshold:
            return True

        duration_change = _relative_change(a.duration, b.duration)
        if duration_change is None:
            return b.duration != 0
        return duration_change > self.duration_threshold

    def deduplicate(
        self,
        candidates: Iterable[Route],
        reference: Optional[Route] = None,
    ) -> list[Route]:
        """
        Drop candidates that are not meaningfully different.

        Greedy streaming filter: candidates are scanned in order and kept only
        if they differ from every route kept so far and from the reference.
        The reference, when given, is always element 0 of the result.
        """
        kept: list[Route] = []

        for candidate in candidates:
            if reference is not None and not self.is_significantly_different(reference, candidate):
                continue
            if all(self.is_significantly_different(route, candidate) for route in kept):
                kept.append(candidate)

        if reference is not None:
            kept.insert(0, reference)
        return kept

    @staticmethod
    def has_alternatives(routes: Sequence[Route]) -> bool:
        """A deduplicated list is only worth comparing with at least two entries."""
        return len(routes) >= 2


_default = RouteComparator()


def is_significantly_different(a: Route, b: Route) -> bool:
    """Compare two routes with the default thresholds."""
    return _default.is_significantly_different(a, b)


def deduplicate(candidates: Iterable[Route], reference: Optional[Route] = None) -> list[Route]:
    """Deduplicate candidates with the default thresholds."""
    return _default.deduplicate(candidates, reference)
