"""
Scan state persistence.

Holds the versioned watermark table (project:session -> last-seen mtime) and
the persistent project exclude list. The whole state is one JSON document,
read once and written once per scan.
"""

from __future__ import annotations

import asyncio
import logging
import os
import tempfile
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field, ValidationError
from pydantic.alias_generators import to_camel

logger = logging.getLogger(__name__)

SCAN_STATE_VERSION = 1


class ScanStateWriteError(Exception):
    """Raised when the scan state cannot be persisted."""


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class SessionWatermark(_CamelModel):
    """Last observed state of one session file."""

    file_mtime: float
    scanned_at: str
    project_id: str


class ScanStats(_CamelModel):
    """Counters from one scan run."""

    total_projects: int = 0
    total_sessions: int = 0
    new_sessions: int = 0
    modified_sessions: int = 0
    skipped_sessions: int = 0
    excluded_sessions: int = 0
    projects_processed: int = 0


class ScanState(_CamelModel):
    """Persisted scan state document."""

    version: int = SCAN_STATE_VERSION
    sessions: dict[str, SessionWatermark] = Field(default_factory=dict)
    exclude_projects: list[str] = Field(default_factory=list)
    last_scan_at: str | None = None
    last_scan_stats: ScanStats | None = None


class ScanStateStore:
    """
    Loads and atomically saves the scan state file.

    load() never raises for a missing, corrupt or outdated file; it returns
    an empty state, which makes the next scan a full rescan.
    """

    def __init__(self, path: Path | str | None = None):
        """
        Initialize the store.

        Args:
            path: State file path (default: ~/.claude/skill-discovery/scan-state.json)
        """
        self.path = Path(path) if path else Path.home() / ".claude" / "skill-discovery" / "scan-state.json"

    async def load(self) -> ScanState:
        """Load state from disk, falling back to an empty state."""
        try:
            raw = await asyncio.to_thread(self.path.read_text, encoding="utf-8")
        except FileNotFoundError:
            return ScanState()
        except (OSError, UnicodeDecodeError) as e:
            logger.warning(f"Cannot read scan state {self.path}: {e}")
            return ScanState()

        try:
            state = ScanState.model_validate_json(raw)
        except ValidationError as e:
            logger.warning(f"Ignoring unreadable scan state {self.path}: {e.error_count()} error(s)")
            return ScanState()

        if state.version != SCAN_STATE_VERSION:
            logger.info(
                f"Scan state version {state.version} != {SCAN_STATE_VERSION}, starting from empty state"
            )
            return ScanState()

        return state

    async def save(self, state: ScanState) -> None:
        """
        Atomically write the state.

        Raises:
            ScanStateWriteError: If the state could not be written
        """
        payload = state.model_dump_json(by_alias=True, indent=2)
        try:
            await asyncio.to_thread(self._write_atomic, payload)
        except OSError as e:
            raise ScanStateWriteError(f"Failed to save scan state to {self.path}: {e}") from e

    def _write_atomic(self, payload: str) -> None:
        """
        Write to a temp file in the same directory, then rename over the target.

        A crash mid-write leaves the previous state intact.
        """
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, temp_path = tempfile.mkstemp(
            suffix=".tmp",
            prefix="scan-state_",
            dir=self.path.parent,
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(payload)
                f.flush()
                os.fsync(f.fileno())
            os.replace(temp_path, self.path)
        except Exception:
            # Clean up temp file on error
            try:
                os.unlink(temp_path)
            except OSError:
                pass
            raise

    async def exclude_project(self, project_id: str) -> ScanState:
        """Add a project to the persistent exclude list."""
        state = await self.load()
        if project_id not in state.exclude_projects:
            state.exclude_projects.append(project_id)
            state.exclude_projects.sort()
            await self.save(state)
        return state

    async def include_project(self, project_id: str) -> ScanState:
        """Remove a project from the persistent exclude list."""
        state = await self.load()
        if project_id in state.exclude_projects:
            state.exclude_projects.remove(project_id)
            await self.save(state)
        return state


__all__ = [
    "SCAN_STATE_VERSION",
    "ScanState",
    "ScanStateStore",
    "ScanStateWriteError",
    "ScanStats",
    "SessionWatermark",
]
