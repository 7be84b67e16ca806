"""
Unit tests for multi-factor scoring.
"""

import math

import pytest

from skill_discovery.config import ScoringConfig, ScoringWeights
from skill_discovery.pattern_aggregator import PatternOccurrence
from skill_discovery.scorer import (
    SECONDS_PER_DAY,
    breadth_factor,
    frequency_factor,
    recency_factor,
    score_pattern,
    specificity_factor,
)

NOW = 1_700_000_000.0


def occurrence(key="tool-sequence:Read,Edit", count=5, projects=("p1", "p2"), last_seen=NOW):
    return PatternOccurrence(
        pattern_key=key,
        occurrences=count,
        first_seen=last_seen - SECONDS_PER_DAY,
        last_seen=last_seen,
        projects_seen=set(projects),
        sessions_seen={f"{p}:s" for p in projects},
    )


class TestFactors:
    """Tests for the individual scoring factors."""

    def test_frequency_is_monotonic_and_saturates(self):
        values = [frequency_factor(n, 100, 20) for n in range(0, 40)]

        assert values[0] == 0.0
        assert all(a <= b for a, b in zip(values, values[1:]))
        assert values[20] == pytest.approx(1.0)
        assert values[39] == 1.0

    def test_frequency_saturates_at_corpus_size(self):
        assert frequency_factor(5, 5, 20) == pytest.approx(1.0)
        assert frequency_factor(1, 1, 20) == pytest.approx(math.log(2) / math.log(3))

    def test_breadth(self):
        assert breadth_factor(3, 4) == 0.75
        assert breadth_factor(1, 0) == 0.0

    def test_recency_half_life(self):
        assert recency_factor(NOW, NOW, 14) == 1.0
        assert recency_factor(NOW - 14 * SECONDS_PER_DAY, NOW, 14) == pytest.approx(0.5)
        assert recency_factor(NOW + 100, NOW, 14) == 1.0
        assert recency_factor(0, NOW, 14) == 0.0

    @pytest.mark.parametrize(
        "key, expected",
        [
            ("tool-sequence:Read,Edit", 0.5),
            ("tool-sequence:Read,Edit,Bash", 0.75),
            ("tool-sequence:Bash,Bash", 0.3),
            ("tool-sequence:Read,Edit,Bash,Grep", 0.9),
            ("bash:other:echo", 0.3),
            ("bash:version-control:git", 0.6),
            ("bash:version-control:git commit", 0.75),
            ("bash:package-manager:npm run build", 0.9),
            ("mystery", 0.0),
        ],
    )
    def test_specificity(self, key, expected):
        assert specificity_factor(key) == pytest.approx(expected)


class TestScorePattern:
    """Tests for score_pattern()."""

    def test_score_in_unit_interval(self):
        scored = score_pattern(occurrence(), 4, 10, {}, now=NOW)

        assert 0.0 <= scored.score <= 1.0
        assert scored.pattern_key == "tool-sequence:Read,Edit"
        assert scored.evidence.occurrences == 5

    def test_weighted_sum_of_breakdown(self):
        weights = ScoringWeights()
        scored = score_pattern(occurrence(), 4, 10, {}, now=NOW)
        b = scored.breakdown

        expected = (
            weights.frequency * b.frequency
            + weights.recency * b.recency
            + weights.breadth * b.breadth
            + weights.specificity * b.specificity
        )
        assert scored.score == pytest.approx(expected)
        assert b.breadth == 0.5
        assert b.recency == 1.0

    def test_more_occurrences_never_score_lower(self):
        low = score_pattern(occurrence(count=2), 4, 50, {}, now=NOW)
        high = score_pattern(occurrence(count=9), 4, 50, {}, now=NOW)

        assert high.score >= low.score

    def test_custom_weights(self):
        only_breadth = ScoringWeights(frequency=0, recency=0, breadth=1, specificity=0)

        scored = score_pattern(occurrence(), 4, 10, {}, weights=only_breadth, now=NOW)

        assert scored.score == pytest.approx(0.5)

    def test_session_timestamps_refine_recency(self):
        stale = occurrence(last_seen=NOW - 28 * SECONDS_PER_DAY)

        without = score_pattern(stale, 2, 10, {}, now=NOW)
        with_stamps = score_pattern(stale, 2, 10, {"p1:s": NOW}, now=NOW)

        assert without.breakdown.recency == pytest.approx(0.25)
        assert with_stamps.breakdown.recency == 1.0

    def test_half_life_from_config(self):
        config = ScoringConfig(recency_half_life_days=7)
        stale = occurrence(last_seen=NOW - 7 * SECONDS_PER_DAY)

        scored = score_pattern(stale, 2, 10, {}, config=config, now=NOW)

        assert scored.breakdown.recency == pytest.approx(0.5)
