"""
End-to-end discovery pipeline.

scan -> extract -> aggregate -> filter noise -> score -> cluster -> rank -> draft
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field

from .config import DiscoveryConfig
from .corpus_scanner import CorpusScanner, ScanResult
from .draft_generator import Draft, generate_skill_draft
from .embeddings import EmbeddingProvider
from .pattern_aggregator import PatternAggregator, create_pattern_session_processor
from .ranker import CandidateRanker, ExistingArtifact, RankedCandidate
from .scan_state import ScanStateStore

logger = logging.getLogger(__name__)


@dataclass
class DiscoveryReport:
    """Outcome of one discovery run, reported even when partially degraded."""

    scan: ScanResult
    patterns_found: int = 0
    noise_removed: int = 0
    candidates: list[RankedCandidate] = field(default_factory=list)
    epsilon: float | None = None
    warnings: list[str] = field(default_factory=list)

    @property
    def sessions_processed(self) -> int:
        return self.scan.new_sessions + self.scan.modified_sessions

    def summary(self) -> str:
        return (
            f"{self.scan.total_projects} projects, {self.sessions_processed} sessions processed "
            f"({self.scan.new_sessions} new, {self.scan.modified_sessions} modified, "
            f"{self.scan.skipped_sessions} unchanged, {self.scan.excluded_sessions} excluded), "
            f"{self.patterns_found} patterns found, {len(self.candidates)} candidates ranked"
        )


class DiscoveryPipeline:
    """
    Runs the whole discovery pipeline against a transcript corpus.

    One pipeline value may be run repeatedly; each run builds a fresh
    aggregator, so derived data never leaks between runs.
    """

    def __init__(
        self,
        config: DiscoveryConfig | None = None,
        embedder: EmbeddingProvider | None = None,
    ):
        self.config = config or DiscoveryConfig()
        self.embedder = embedder

    async def run(
        self,
        exclude_projects: Iterable[str] = (),
        force_rescan: bool = False,
        existing_artifacts: Iterable[ExistingArtifact] = (),
        now: float | None = None,
    ) -> DiscoveryReport:
        """
        Scan the corpus and rank skill candidates.

        Args:
            exclude_projects: Projects to skip this run
            force_rescan: Ignore watermarks
            existing_artifacts: Artifacts to deduplicate against
            now: Reference time for recency scoring

        Returns:
            DiscoveryReport

        Raises:
            SessionProcessingError: A session failed (progress up to it was saved)
            ScanStateWriteError: The scan state could not be saved
        """
        aggregator = PatternAggregator(self.config.noise)
        session_timestamps: dict[str, float] = {}
        processor = create_pattern_session_processor(
            aggregator, self.config.extraction, session_timestamps
        )

        scanner = CorpusScanner(
            projects_dir=self.config.projects_dir,
            state_store=ScanStateStore(self.config.resolved_state_path),
            exclude_projects=exclude_projects,
            force_rescan=force_rescan,
        )
        scan_result = await scanner.scan(processor)

        total_projects = aggregator.total_projects_tracked
        noise_removed = aggregator.filter_noise(total_projects)
        patterns = aggregator.get_results()

        report = DiscoveryReport(
            scan=scan_result,
            patterns_found=len(patterns),
            noise_removed=noise_removed,
        )
        if not patterns:
            logger.info("No patterns found after noise filtering")
            return report

        ranker = CandidateRanker(
            config=self.config.ranking,
            scoring=self.config.scoring,
            clustering=self.config.clustering,
            embedder=self.embedder,
        )
        report.candidates = await ranker.rank(
            patterns,
            total_projects,
            scan_result.total_sessions,
            session_timestamps,
            existing_artifacts,
            now=now,
        )

        clustering = ranker.last_clustering
        if clustering is not None:
            report.epsilon = clustering.epsilon
            if clustering.warning and self.embedder is not None:
                report.warnings.append(clustering.warning)

        logger.info(f"Discovery: {report.summary()}")
        return report

    @staticmethod
    def drafts(candidates: Sequence[RankedCandidate], top: int | None = None) -> list[Draft]:
        """Render drafts for the top candidates."""
        selected = candidates if top is None else candidates[:top]
        return [generate_skill_draft(candidate) for candidate in selected]


__all__ = ["DiscoveryPipeline", "DiscoveryReport"]
