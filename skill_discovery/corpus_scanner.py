"""
Corpus scanner: incremental session scanning with watermark-based change detection.

On each scan the current session inventory is diffed against the stored
watermarks. Only new or modified sessions are handed to the caller's
processor; the state is saved exactly once at the end of the run.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator, Awaitable, Callable, Iterable
from datetime import datetime, timezone
from pathlib import Path

from .scan_state import ScanState, ScanStateStore, ScanStateWriteError, ScanStats, SessionWatermark
from .session_enumerator import enumerate_sessions
from .session_parser import parse_session_file
from .types import ParsedEntry, SessionDescriptor

logger = logging.getLogger(__name__)

# Callback invoked for each new or modified session. It receives the session
# and a fresh entry stream, and decides whether to consume it.
SessionProcessor = Callable[[SessionDescriptor, AsyncIterator[ParsedEntry]], Awaitable[None]]

# Statistics from a scan run (same counters that are persisted)
ScanResult = ScanStats


class SessionProcessingError(Exception):
    """
    A session processor raised during a scan.

    The state (including watermarks of sessions processed before the failure)
    is saved before this is raised; if that save also failed, save_error holds
    the ScanStateWriteError. The failing session's watermark is not advanced,
    so it is retried on the next scan.

    stats are partial: sessions after the failing one were never classified,
    so they are missing from the new/modified/skipped/excluded counts.
    """

    def __init__(
        self,
        session: SessionDescriptor,
        stats: ScanStats,
        save_error: ScanStateWriteError | None = None,
    ):
        message = f"Processing failed for session {session.key}"
        if save_error is not None:
            message += f" (scan state not saved: {save_error})"
        super().__init__(message)
        self.session = session
        self.stats = stats
        self.save_error = save_error


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class CorpusScanner:
    """
    Incremental corpus scanner.

    Pipeline per scan:
    1. Load scan state (watermarks + exclude list)
    2. Enumerate all sessions
    3. Filter out excluded projects
    4. Diff against watermarks: new / modified / unchanged
    5. Process new/modified sessions via the callback, sequentially
    6. Update watermarks and save state once
    """

    def __init__(
        self,
        projects_dir: Path | str | None = None,
        state_path: Path | str | None = None,
        exclude_projects: Iterable[str] = (),
        force_rescan: bool = False,
        state_store: ScanStateStore | None = None,
    ):
        """
        Initialize scanner.

        Args:
            projects_dir: Root of per-project transcript folders (default: ~/.claude/projects)
            state_path: Scan state file (ignored when state_store is given)
            exclude_projects: Extra projects to skip this run (merged with persisted excludes)
            force_rescan: Treat every non-excluded session as new
            state_store: Pre-built state store
        """
        self.projects_dir = Path(projects_dir) if projects_dir else Path.home() / ".claude" / "projects"
        self.state_store = state_store or ScanStateStore(state_path)
        self.additional_excludes = list(exclude_projects)
        self.force_rescan = force_rescan

    async def scan(self, processor: SessionProcessor) -> ScanResult:
        """
        Run an incremental scan.

        Args:
            processor: Callback invoked for each new/modified session

        Returns:
            Statistics about what was processed, skipped and excluded

        Raises:
            SessionProcessingError: If the processor raised (state saved first, or save_error set)
            ScanStateWriteError: If the state could not be saved after a clean run
        """
        state = await self.state_store.load()
        sessions = await enumerate_sessions(self.projects_dir)

        exclude_set = set(state.exclude_projects) | set(self.additional_excludes)

        stats = ScanStats(
            total_projects=len({s.project_id for s in sessions}),
            total_sessions=len(sessions),
        )
        processed_projects: set[str] = set()
        failure: tuple[SessionDescriptor, BaseException] | None = None

        for session in sorted(sessions, key=lambda s: s.key):
            if session.project_id in exclude_set:
                stats.excluded_sessions += 1
                continue

            existing = state.sessions.get(session.key)
            if not self.force_rescan and existing is not None:
                if existing.file_mtime == session.file_mtime:
                    stats.skipped_sessions += 1
                    continue
                stats.modified_sessions += 1
            else:
                stats.new_sessions += 1

            entries = parse_session_file(session.file_path)
            try:
                await processor(session, entries)
            except Exception as e:
                logger.error(f"Session processor failed for {session.key}: {e}")
                failure = (session, e)
                break
            finally:
                await entries.aclose()

            state.sessions[session.key] = SessionWatermark(
                file_mtime=session.file_mtime,
                scanned_at=_now_iso(),
                project_id=session.project_id,
            )
            processed_projects.add(session.project_id)

        stats.projects_processed = len(processed_projects)
        self._record_run(state, stats)
        try:
            await self.state_store.save(state)
        except ScanStateWriteError as save_error:
            if failure is None:
                raise
            session, error = failure
            raise SessionProcessingError(session, stats, save_error) from error

        logger.info(
            f"Scan complete: {stats.total_sessions} sessions in {stats.total_projects} projects "
            f"({stats.new_sessions} new, {stats.modified_sessions} modified, "
            f"{stats.skipped_sessions} unchanged, {stats.excluded_sessions} excluded)"
        )

        if failure is not None:
            session, error = failure
            raise SessionProcessingError(session, stats) from error

        return stats

    @staticmethod
    def _record_run(state: ScanState, stats: ScanStats) -> None:
        state.last_scan_at = _now_iso()
        state.last_scan_stats = stats.model_copy()


__all__ = [
    "CorpusScanner",
    "ScanResult",
    "SessionProcessingError",
    "SessionProcessor",
]
