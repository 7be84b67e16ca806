"""
Pattern aggregation across sessions and projects.

The aggregator owns one in-memory occurrence table for the lifetime of a scan
run. Sessions are ingested sequentially; noise filtering runs once, after the
whole corpus for the run has been ingested.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator, Iterable, Mapping, MutableMapping
from dataclasses import dataclass, field
from types import MappingProxyType

from .config import ExtractionConfig, NoiseFilterConfig
from .corpus_scanner import SessionProcessor
from .extractors import extract_bash_patterns, extract_co_occurring_files, extract_tool_sequences
from .types import ParsedEntry, SessionDescriptor

logger = logging.getLogger(__name__)


@dataclass
class PatternOccurrence:
    """Evidence accumulated for one pattern key."""

    pattern_key: str
    occurrences: int = 0
    first_seen: float = 0.0
    last_seen: float = 0.0
    projects_seen: set[str] = field(default_factory=set)
    sessions_seen: set[str] = field(default_factory=set)
    co_occurring_files: set[str] = field(default_factory=set)


class PatternAggregator:
    """
    Accumulates pattern occurrences into evidence records.

    Invariants:
    - occurrences equals the number of ingest calls that carried the key
    - len(projects_seen) <= total_projects_tracked
    """

    def __init__(self, noise_config: NoiseFilterConfig | None = None):
        self.noise_config = noise_config or NoiseFilterConfig()
        self._patterns: dict[str, PatternOccurrence] = {}
        self._projects: set[str] = set()

    @property
    def total_projects_tracked(self) -> int:
        """Distinct projects ingested in this run."""
        return len(self._projects)

    def get_total_projects_tracked(self) -> int:
        return self.total_projects_tracked

    def ingest(
        self,
        session_id: str,
        project_id: str,
        timestamp: float,
        pattern_keys: Iterable[str],
        co_occurring_files: Iterable[str] = (),
    ) -> None:
        """
        Record one session's patterns.

        Args:
            session_id: Session identity
            project_id: Project the session belongs to
            timestamp: Session time (epoch seconds)
            pattern_keys: Keys observed in the session
            co_occurring_files: Files touched in the session
        """
        self._projects.add(project_id)
        files = set(co_occurring_files)

        for key in pattern_keys:
            occurrence = self._patterns.get(key)
            if occurrence is None:
                occurrence = PatternOccurrence(
                    pattern_key=key,
                    first_seen=timestamp,
                    last_seen=timestamp,
                )
                self._patterns[key] = occurrence

            occurrence.occurrences += 1
            occurrence.projects_seen.add(project_id)
            occurrence.sessions_seen.add(session_id)
            occurrence.first_seen = min(occurrence.first_seen, timestamp)
            occurrence.last_seen = max(occurrence.last_seen, timestamp)
            occurrence.co_occurring_files |= files

    def filter_noise(self, total_projects_tracked: int | None = None) -> int:
        """
        Remove patterns present in nearly every project.

        A pattern seen in at least ``threshold`` of the tracked projects is
        generic tooling rather than a project-specific workflow. Must run after
        the whole corpus is ingested. No-op below ``min_projects``.

        Args:
            total_projects_tracked: Breadth denominator (default: projects ingested)

        Returns:
            Number of patterns removed
        """
        total = self.total_projects_tracked if total_projects_tracked is None else total_projects_tracked
        if total < max(1, self.noise_config.min_projects):
            return 0

        noisy = [
            key for key, occurrence in self._patterns.items()
            if len(occurrence.projects_seen) / total >= self.noise_config.threshold
        ]
        for key in noisy:
            del self._patterns[key]

        if noisy:
            logger.debug(f"Noise filter removed {len(noisy)} of {len(noisy) + len(self._patterns)} patterns")
        return len(noisy)

    def get_results(self) -> Mapping[str, PatternOccurrence]:
        """Read-only view of the (filtered) occurrence table."""
        return MappingProxyType(self._patterns)

    def __len__(self) -> int:
        return len(self._patterns)

    def __contains__(self, pattern_key: str) -> bool:
        return pattern_key in self._patterns


def create_pattern_session_processor(
    aggregator: PatternAggregator,
    config: ExtractionConfig | None = None,
    session_timestamps: MutableMapping[str, float] | None = None,
) -> SessionProcessor:
    """
    Build the standard session processor.

    Drains the entry stream, runs both extractors and ingests each distinct
    key once per session, so ``occurrences`` counts sessions.

    Args:
        aggregator: Target aggregator
        config: Extraction settings
        session_timestamps: Optional map filled with session key -> file mtime

    Returns:
        A SessionProcessor for CorpusScanner.scan()
    """
    config = config or ExtractionConfig()

    async def process(session: SessionDescriptor, entries: AsyncIterator[ParsedEntry]) -> None:
        collected = [entry async for entry in entries]

        keys = extract_tool_sequences(collected, config.ngram_sizes)
        keys.extend(extract_bash_patterns(collected, config.shell_tools))
        files = extract_co_occurring_files(collected, config.max_files_per_session)

        if session_timestamps is not None:
            session_timestamps[session.key] = session.file_mtime

        aggregator.ingest(
            session_id=session.key,
            project_id=session.project_id,
            timestamp=session.file_mtime,
            pattern_keys=sorted(set(keys)),
            co_occurring_files=files,
        )

    return process


__all__ = [
    "PatternAggregator",
    "PatternOccurrence",
    "create_pattern_session_processor",
]
