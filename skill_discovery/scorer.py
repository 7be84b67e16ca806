"""
Multi-factor pattern scoring.

Each factor is normalized to [0, 1] before weighting:
- frequency:   saturating occurrence count (diminishing returns)
- breadth:     distinct projects / total projects
- recency:     exponential decay since the pattern was last seen
- specificity: how workflow-specific (vs generic) the key looks
"""

from __future__ import annotations

import math
import time
from collections.abc import Mapping
from dataclasses import dataclass

from .config import ScoringConfig, ScoringWeights
from .extractors import BASH_PREFIX, OTHER_CATEGORY, TOOL_SEQUENCE_PREFIX, parse_pattern_key
from .pattern_aggregator import PatternOccurrence

SECONDS_PER_DAY = 86_400.0

# Specificity by tool-sequence length; longer chains are more workflow-like
NGRAM_SPECIFICITY = {1: 0.2, 2: 0.5, 3: 0.75}
# Multiplier when every step of a sequence is the same tool
REPEATED_TOOL_PENALTY = 0.6
BASH_OTHER_SPECIFICITY = 0.3
BASH_BASE_SPECIFICITY = 0.6
BASH_SUBCOMMAND_BONUS = 0.15


@dataclass(frozen=True)
class ScoreBreakdown:
    """Normalized factor values, before weighting."""

    frequency: float
    recency: float
    breadth: float
    specificity: float


@dataclass(frozen=True)
class ScoredCandidate:
    """A pattern with its score and evidence."""

    pattern_key: str
    score: float
    breakdown: ScoreBreakdown
    evidence: PatternOccurrence


def _clamp(value: float) -> float:
    return max(0.0, min(1.0, value))


def frequency_factor(occurrences: int, total_sessions: int, saturation: int) -> float:
    """
    Log-saturating frequency.

    Saturates at the smaller of the configured threshold and the corpus size,
    so one hyperactive project cannot dominate by volume alone.
    """
    if occurrences <= 0:
        return 0.0
    scale = max(2, min(saturation, total_sessions)) if total_sessions > 0 else max(2, saturation)
    return _clamp(math.log1p(occurrences) / math.log1p(scale))


def breadth_factor(projects_seen: int, total_projects: int) -> float:
    if total_projects <= 0:
        return 0.0
    return _clamp(projects_seen / total_projects)


def recency_factor(last_seen: float, now: float, half_life_days: float) -> float:
    """Exponential decay with the given half-life; future timestamps count as now."""
    if last_seen <= 0:
        return 0.0
    age_days = max(0.0, now - last_seen) / SECONDS_PER_DAY
    if half_life_days <= 0:
        return 1.0 if age_days == 0 else 0.0
    return _clamp(math.exp(-math.log(2) * age_days / half_life_days))


def specificity_factor(pattern_key: str) -> float:
    """Inverse genericness of a pattern key."""
    kind, payload = parse_pattern_key(pattern_key)

    if kind == TOOL_SEQUENCE_PREFIX:
        length = len(payload)
        if length == 0:
            return 0.0
        value = NGRAM_SPECIFICITY.get(length, 0.9)
        if len(set(payload)) == 1:
            value *= REPEATED_TOOL_PENALTY
        return _clamp(value)

    if kind == BASH_PREFIX:
        category, signature = payload
        if category == OTHER_CATEGORY:
            return BASH_OTHER_SPECIFICITY
        words = signature.split()
        extra = max(0, len(words) - 1)
        return _clamp(BASH_BASE_SPECIFICITY + BASH_SUBCOMMAND_BONUS * extra)

    return 0.0


def _last_seen(occurrence: PatternOccurrence, session_timestamps: Mapping[str, float]) -> float:
    latest = occurrence.last_seen
    for session_id in occurrence.sessions_seen:
        stamp = session_timestamps.get(session_id)
        if stamp is not None and stamp > latest:
            latest = stamp
    return latest


def score_pattern(
    occurrence: PatternOccurrence,
    total_projects: int,
    total_sessions: int,
    session_timestamps: Mapping[str, float],
    weights: ScoringWeights | None = None,
    config: ScoringConfig | None = None,
    now: float | None = None,
) -> ScoredCandidate:
    """
    Score one aggregated pattern.

    Args:
        occurrence: Aggregated evidence
        total_projects: Projects tracked in the run
        total_sessions: Sessions in the corpus
        session_timestamps: Session key -> timestamp, refines last-seen
        weights: Factor weights (default: config weights)
        config: Scoring settings
        now: Reference time in epoch seconds (default: current time)

    Returns:
        ScoredCandidate with the weighted sum and its breakdown
    """
    config = config or ScoringConfig()
    weights = weights or config.weights
    now = time.time() if now is None else now

    breakdown = ScoreBreakdown(
        frequency=frequency_factor(occurrence.occurrences, total_sessions, config.frequency_saturation),
        recency=recency_factor(_last_seen(occurrence, session_timestamps), now, config.recency_half_life_days),
        breadth=breadth_factor(len(occurrence.projects_seen), total_projects),
        specificity=specificity_factor(occurrence.pattern_key),
    )
    score = (
        weights.frequency * breakdown.frequency
        + weights.recency * breakdown.recency
        + weights.breadth * breakdown.breadth
        + weights.specificity * breakdown.specificity
    )
    return ScoredCandidate(
        pattern_key=occurrence.pattern_key,
        score=score,
        breakdown=breakdown,
        evidence=occurrence,
    )


__all__ = [
    "ScoreBreakdown",
    "ScoredCandidate",
    "breadth_factor",
    "frequency_factor",
    "recency_factor",
    "score_pattern",
    "specificity_factor",
]
