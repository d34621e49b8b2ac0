"""Tests for route comparison and deduplication."""

from dashnav.pipeline.route_comparator import (
    RouteComparator,
    deduplicate,
    is_significantly_different,
)

from fakes import make_route


class TestIsSignificantlyDifferent:
    """Test the relative distance/duration thresholds."""

    def test_route_is_not_different_from_itself(self):
        route = make_route(10000, 1200)
        assert is_significantly_different(route, route) is False

    def test_small_changes_are_not_different(self):
        """5% longer and 4% slower stays under both thresholds."""
        reference = make_route(10000, 1200)
        candidate = make_route(10500, 1250)
        assert is_significantly_different(reference, candidate) is False

    def test_distance_over_threshold_is_different(self):
        reference = make_route(10000, 1200)
        candidate = make_route(12000, 1200)
        assert is_significantly_different(reference, candidate) is True

    def test_duration_over_threshold_is_different(self):
        reference = make_route(10000, 1200)
        candidate = make_route(10000, 1400)
        assert is_significantly_different(reference, candidate) is True

    def test_exact_threshold_is_not_different(self):
        reference = make_route(10000, 1200)
        candidate = make_route(11000, 1200)
        assert is_significantly_different(reference, candidate) is False

    def test_reference_supplies_the_denominator(self):
        """11% longer than the short route, but under 10% shorter than the long one."""
        short = make_route(10000, 1200)
        long = make_route(11100, 1200)
        assert is_significantly_different(short, long) is True
        assert is_significantly_different(long, short) is False

    def test_deterministic(self):
        a = make_route(10000, 1200)
        b = make_route(10900, 1370)
        assert is_significantly_different(a, b) == is_significantly_different(a, b)

    def test_zero_length_reference(self):
        empty = make_route(0, 0)
        assert is_significantly_different(empty, make_route(0, 0)) is False
        assert is_significantly_different(empty, make_route(500, 60)) is True

    def test_zero_duration_reference(self):
        instant = make_route(100, 0)
        assert is_significantly_different(instant, make_route(100, 0)) is False
        assert is_significantly_different(instant, make_route(100, 30)) is True

    def test_custom_thresholds(self):
        strict = RouteComparator(distance_threshold=0.01, duration_threshold=0.01)
        assert strict.is_significantly_different(make_route(10000, 1200), make_route(10500, 1200))


class TestDeduplicate:
    """Test the greedy streaming filter."""

    def test_near_duplicates_collapse_to_reference(self):
        reference = make_route(10000, 1200)
        candidates = [make_route(10100, 1210), make_route(9900, 1190), make_route(10500, 1250)]

        result = deduplicate(candidates, reference)

        assert result == [reference]

    def test_keeps_significantly_different_candidate(self):
        reference = make_route(10000, 1200)
        dropped = make_route(10500, 1250)
        kept = make_route(12000, 1200)

        result = deduplicate([dropped, kept], reference)

        assert result == [reference, kept]
        assert result[0] is reference

    def test_first_seen_wins(self):
        reference = make_route(10000, 1200)
        first = make_route(12000, 1500)
        similar = make_route(12100, 1510)

        result = deduplicate([first, similar], reference)

        assert result == [reference, first]
        assert result[1] is first

    def test_candidates_compared_against_each_other(self):
        reference = make_route(10000, 1200)
        longer = make_route(13000, 1600)
        shorter = make_route(8000, 900)

        result = deduplicate([longer, shorter], reference)

        assert result == [reference, longer, shorter]

    def test_without_reference_keeps_first_candidate(self):
        first = make_route(10000, 1200)
        result = deduplicate([first, make_route(10050, 1205)])
        assert result == [first]

    def test_empty_input(self):
        assert deduplicate([]) == []
        reference = make_route(10000, 1200)
        assert deduplicate([], reference) == [reference]

    def test_has_alternatives(self):
        reference = make_route(10000, 1200)
        assert RouteComparator.has_alternatives([reference]) is False
        assert RouteComparator.has_alternatives([reference, make_route(15000, 1800)]) is True
