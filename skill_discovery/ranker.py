"""
Candidate ranking.

Scores every surviving pattern, collapses each semantic cluster to its
best-scoring member, sorts deterministically and drops candidates that
duplicate an existing artifact.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, replace
from difflib import SequenceMatcher

from .clustering import Cluster, ClusteringResult, cluster_patterns
from .config import ClusteringConfig, RankingConfig, ScoringConfig
from .draft_generator import MAX_NAME_LENGTH, describe_pattern, normalize_skill_name, suggest_name
from .embeddings import EmbeddingProvider, Ok, cosine_similarity, embed_texts
from .pattern_aggregator import PatternOccurrence
from .scorer import ScoreBreakdown, ScoredCandidate, score_pattern

logger = logging.getLogger(__name__)

_WORD = re.compile(r"[a-z0-9]+")


@dataclass(frozen=True)
class ExistingArtifact:
    """An artifact that already exists (used only for deduplication)."""

    name: str
    description: str = ""


@dataclass(frozen=True)
class RankedCandidate:
    """A scored, cluster-collapsed pattern eligible to become a skill."""

    pattern_key: str
    final_score: float
    suggested_name: str
    description: str
    breakdown: ScoreBreakdown
    evidence: PatternOccurrence
    cluster: Cluster | None = None

    @property
    def occurrences(self) -> int:
        return self.evidence.occurrences


def _sort_key(pattern_key: str, score: float, occurrences: int) -> tuple[float, int, str]:
    """Descending score, then descending occurrences, then key."""
    return (-score, -occurrences, pattern_key)


def _scored_sort_key(candidate: ScoredCandidate) -> tuple[float, int, str]:
    return _sort_key(candidate.pattern_key, candidate.score, candidate.evidence.occurrences)


def _ranked_sort_key(candidate: RankedCandidate) -> tuple[float, int, str]:
    return _sort_key(candidate.pattern_key, candidate.final_score, candidate.occurrences)


def _word_set(text: str) -> set[str]:
    return set(_WORD.findall(text.lower()))


def name_similarity(a: str, b: str) -> float:
    """Word-set Jaccard of two artifact names; hyphens and spaces separate words."""
    words_a, words_b = _word_set(a), _word_set(b)
    union = words_a | words_b
    return len(words_a & words_b) / len(union) if union else 0.0


def _unique_names(candidates: list[RankedCandidate]) -> list[RankedCandidate]:
    """Suffix repeated suggested names (-2, -3, ...) in rank order."""
    taken: set[str] = set()
    unique = []
    for candidate in candidates:
        name = candidate.suggested_name
        suffix = 2
        while name in taken:
            name = normalize_skill_name(f"{candidate.suggested_name[:MAX_NAME_LENGTH - 4]}-{suffix}")
            suffix += 1
        taken.add(name)
        unique.append(candidate if name == candidate.suggested_name else replace(candidate, suggested_name=name))
    return unique


def text_similarity(a: str, b: str) -> float:
    """Cheap similarity: the larger of sequence ratio and word-set Jaccard."""
    if not a or not b:
        return 0.0
    ratio = SequenceMatcher(None, a.lower(), b.lower()).ratio()
    words_a, words_b = _word_set(a), _word_set(b)
    union = words_a | words_b
    jaccard = len(words_a & words_b) / len(union) if union else 0.0
    return max(ratio, jaccard)


class CandidateRanker:
    """
    Ranks aggregated patterns into skill candidates.

    The embedder is optional; without one, clustering is skipped and
    deduplication uses text similarity only.
    """

    def __init__(
        self,
        config: RankingConfig | None = None,
        scoring: ScoringConfig | None = None,
        clustering: ClusteringConfig | None = None,
        embedder: EmbeddingProvider | None = None,
    ):
        self.config = config or RankingConfig()
        self.scoring = scoring or ScoringConfig()
        self.clustering = clustering or ClusteringConfig()
        self.embedder = embedder
        self.last_clustering: ClusteringResult | None = None

    async def rank(
        self,
        occurrences: Mapping[str, PatternOccurrence],
        total_projects: int,
        total_sessions: int,
        session_timestamps: Mapping[str, float],
        existing_artifacts: Iterable[ExistingArtifact] = (),
        now: float | None = None,
    ) -> list[RankedCandidate]:
        """
        Rank candidates.

        Args:
            occurrences: Post-noise-filter occurrence table
            total_projects: Projects tracked in the run
            total_sessions: Sessions in the corpus
            session_timestamps: Session key -> timestamp
            existing_artifacts: Artifacts to deduplicate against
            now: Reference time for recency (default: current time)

        Returns:
            Candidates sorted by descending score (empty if none survive)
        """
        if not occurrences:
            self.last_clustering = ClusteringResult(min_points=self.clustering.min_points)
            return []

        scored = sorted(
            (
                score_pattern(
                    occurrence,
                    total_projects,
                    total_sessions,
                    session_timestamps,
                    config=self.scoring,
                    now=now,
                )
                for occurrence in occurrences.values()
            ),
            key=_scored_sort_key,
        )

        keys = [s.pattern_key for s in scored]
        clustering = await cluster_patterns(
            keys,
            [describe_pattern(key) for key in keys],
            self.embedder,
            self.clustering,
        )
        self.last_clustering = clustering

        candidates = self._collapse(scored, clustering)
        candidates.sort(key=_ranked_sort_key)

        artifacts = list(existing_artifacts)
        if artifacts:
            candidates = await self._deduplicate(candidates, artifacts)

        if self.config.max_candidates > 0:
            candidates = candidates[:self.config.max_candidates]
        return _unique_names(candidates)

    @staticmethod
    def _collapse(scored: Sequence[ScoredCandidate], clustering: ClusteringResult) -> list[RankedCandidate]:
        """Keep the best-ranked member of each cluster; singletons pass through."""
        position = {s.pattern_key: i for i, s in enumerate(scored)}
        by_key = {s.pattern_key: s for s in scored}

        candidates = []
        for cluster in clustering.clusters:
            members = [key for key in cluster.members if key in by_key]
            if not members:
                continue
            best = by_key[min(members, key=position.__getitem__)]
            candidates.append(
                RankedCandidate(
                    pattern_key=best.pattern_key,
                    final_score=best.score,
                    suggested_name=suggest_name(best.pattern_key),
                    description=describe_pattern(best.pattern_key),
                    breakdown=best.breakdown,
                    evidence=best.evidence,
                    cluster=cluster if len(cluster.members) > 1 else None,
                )
            )
        return candidates

    async def _deduplicate(
        self,
        candidates: list[RankedCandidate],
        artifacts: list[ExistingArtifact],
    ) -> list[RankedCandidate]:
        """Drop candidates too similar to an existing artifact."""
        artifact_names = {normalize_skill_name(a.name) for a in artifacts}

        candidate_texts = [f"{c.suggested_name}: {c.description}" for c in candidates]
        artifact_texts = [f"{a.name}: {a.description}" for a in artifacts]

        result = await embed_texts(self.embedder, candidate_texts + artifact_texts)
        vectors = result.value if isinstance(result, Ok) else None

        kept = []
        for index, candidate in enumerate(candidates):
            if candidate.suggested_name in artifact_names:
                logger.debug(f"Dropping {candidate.pattern_key}: name exists")
                continue

            if vectors is not None:
                own = vectors[index]
                duplicate = any(
                    cosine_similarity(own, vectors[len(candidates) + j]) >= self.config.dedup_similarity
                    for j in range(len(artifacts))
                )
            else:
                duplicate = any(
                    name_similarity(candidate.suggested_name, artifact.name) >= self.config.text_dedup_similarity
                    or text_similarity(candidate.description, artifact.description) >= self.config.text_dedup_similarity
                    for artifact in artifacts
                )

            if duplicate:
                logger.debug(f"Dropping {candidate.pattern_key}: similar to an existing artifact")
                continue
            kept.append(candidate)
        return kept


async def rank_candidates(
    occurrences: Mapping[str, PatternOccurrence],
    total_projects: int,
    total_sessions: int,
    session_timestamps: Mapping[str, float],
    existing_artifacts: Iterable[ExistingArtifact] = (),
    *,
    embedder: EmbeddingProvider | None = None,
    config: RankingConfig | None = None,
    scoring: ScoringConfig | None = None,
    clustering: ClusteringConfig | None = None,
    now: float | None = None,
) -> list[RankedCandidate]:
    """Rank candidates with a one-off CandidateRanker."""
    ranker = CandidateRanker(config=config, scoring=scoring, clustering=clustering, embedder=embedder)
    return await ranker.rank(
        occurrences,
        total_projects,
        total_sessions,
        session_timestamps,
        existing_artifacts,
        now=now,
    )


def format_candidate_table(candidates: Sequence[RankedCandidate]) -> str:
    """Plain-text table of ranked candidates."""
    if not candidates:
        return "No candidates."

    header = f"{'#':>3}  {'Name':<40}  {'Score':>5}  {'Occ':>4}  {'Proj':>4}  Pattern"
    lines = [header, "-" * len(header)]
    for rank, candidate in enumerate(candidates, 1):
        name = candidate.suggested_name
        if len(name) > 40:
            name = name[:37] + "..."
        lines.append(
            f"{rank:>3}  {name:<40}  {candidate.final_score:>5.2f}  "
            f"{candidate.occurrences:>4}  {len(candidate.evidence.projects_seen):>4}  "
            f"{candidate.pattern_key}"
        )
    return "\n".join(lines)


__all__ = [
    "CandidateRanker",
    "ExistingArtifact",
    "RankedCandidate",
    "format_candidate_table",
    "name_similarity",
    "rank_candidates",
    "text_similarity",
]
