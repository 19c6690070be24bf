"""
Tests for content balancing: domain targets and coverage tracking.
"""

from types import SimpleNamespace

import pytest

from iqcat.core.cat.content_balancing import (
    build_domain_targets,
    is_content_balanced,
    remaining_quota,
    track_domain_coverage,
)
from iqcat.domain_types import QuestionCategory

PATTERN = QuestionCategory.PATTERN_RECOGNITION
SPATIAL = QuestionCategory.SPATIAL_REASONING
LOGIC = QuestionCategory.LOGICAL_DEDUCTION
MEMORY = QuestionCategory.SHORT_TERM_MEMORY
NUMERIC = QuestionCategory.NUMERICAL_REASONING

ALL_CATEGORIES = [PATTERN, SPATIAL, LOGIC, MEMORY, NUMERIC]


class TestBuildDomainTargets:
    """Tests for largest-remainder apportionment."""

    @pytest.mark.parametrize("total", [0, 1, 2, 7, 15, 30, 33, 100])
    def test_targets_sum_to_total(self, total):
        targets = build_domain_targets(total, ALL_CATEGORIES)
        assert sum(targets.values()) == total
        assert set(targets) == set(ALL_CATEGORIES)

    def test_even_split(self):
        assert build_domain_targets(10, [PATTERN, SPATIAL]) == {PATTERN: 5, SPATIAL: 5}

    def test_leftover_goes_to_first_seen_categories(self):
        """Equal remainders: earlier categories in pool order get the extra items."""
        targets = build_domain_targets(7, ALL_CATEGORIES)
        assert targets == {PATTERN: 2, SPATIAL: 2, LOGIC: 1, MEMORY: 1, NUMERIC: 1}

    def test_order_of_categories_decides_ties(self):
        targets = build_domain_targets(7, list(reversed(ALL_CATEGORIES)))
        assert targets[NUMERIC] == 2
        assert targets[MEMORY] == 2
        assert targets[PATTERN] == 1

    def test_duplicates_ignored(self):
        targets = build_domain_targets(4, [PATTERN, PATTERN, SPATIAL, PATTERN])
        assert targets == {PATTERN: 2, SPATIAL: 2}

    def test_weighted_targets(self):
        weights = {PATTERN: 0.5, SPATIAL: 0.3, LOGIC: 0.2}
        targets = build_domain_targets(10, [PATTERN, SPATIAL, LOGIC], weights)
        assert targets == {PATTERN: 5, SPATIAL: 3, LOGIC: 2}

    def test_weighted_largest_remainder(self):
        """raw = 3.5, 2.1, 1.4: the 0.5 remainder receives the leftover item."""
        weights = {PATTERN: 0.5, SPATIAL: 0.3, LOGIC: 0.2}
        targets = build_domain_targets(7, [PATTERN, SPATIAL, LOGIC], weights)
        assert targets == {PATTERN: 4, SPATIAL: 2, LOGIC: 1}

    def test_weights_renormalized_over_present_categories(self):
        weights = {PATTERN: 0.25, SPATIAL: 0.25, MEMORY: 0.5}
        targets = build_domain_targets(10, [PATTERN, SPATIAL], weights)
        assert targets == {PATTERN: 5, SPATIAL: 5}

    def test_category_without_weight_gets_nothing(self):
        targets = build_domain_targets(6, [PATTERN, SPATIAL], {PATTERN: 1.0})
        assert targets == {PATTERN: 6, SPATIAL: 0}

    def test_weights_missing_every_category_fall_back_to_equal(self):
        targets = build_domain_targets(4, [PATTERN, SPATIAL], {MEMORY: 1.0})
        assert targets == {PATTERN: 2, SPATIAL: 2}

    def test_no_categories(self):
        assert build_domain_targets(10, []) == {}

    def test_rejects_negative_total(self):
        with pytest.raises(ValueError):
            build_domain_targets(-1, ALL_CATEGORIES)

    def test_rejects_negative_weight(self):
        with pytest.raises(ValueError):
            build_domain_targets(5, [PATTERN], {PATTERN: -0.5})


class TestCoverage:
    """Tests for coverage counting and remaining quota."""

    def test_track_domain_coverage(self):
        answered = [
            SimpleNamespace(category=PATTERN),
            SimpleNamespace(category=SPATIAL),
            SimpleNamespace(category=PATTERN),
        ]
        assert track_domain_coverage(answered) == {PATTERN: 2, SPATIAL: 1}

    def test_track_empty(self):
        assert track_domain_coverage([]) == {}

    def test_remaining_quota(self):
        target = {PATTERN: 3, SPATIAL: 2}
        assert remaining_quota(target, {PATTERN: 1}) == {PATTERN: 2, SPATIAL: 2}

    def test_remaining_quota_never_negative(self):
        """Fallback selections can overshoot a category's target."""
        target = {PATTERN: 1, SPATIAL: 2}
        assert remaining_quota(target, {PATTERN: 3, SPATIAL: 1}) == {PATTERN: 0, SPATIAL: 1}

    def test_is_content_balanced(self):
        target = {PATTERN: 2, SPATIAL: 1}
        assert is_content_balanced({PATTERN: 2, SPATIAL: 1}, target)
        assert is_content_balanced({PATTERN: 3, SPATIAL: 1}, target)
        assert not is_content_balanced({PATTERN: 2}, target)

    def test_empty_target_is_balanced(self):
        assert is_content_balanced({}, {})
