"""Session enumeration over the per-project transcript folders."""

from __future__ import annotations

import asyncio
import logging
import stat
from pathlib import Path

from .types import SessionDescriptor

logger = logging.getLogger(__name__)

TRANSCRIPT_SUFFIX = ".jsonl"


def _list_project_sessions(project_dir: Path) -> list[SessionDescriptor]:
    """Stat every transcript in one project folder."""
    sessions = []
    try:
        children = list(project_dir.iterdir())
    except OSError as e:
        logger.warning(f"Cannot list project directory {project_dir}: {e}")
        return sessions

    for child in children:
        if child.suffix != TRANSCRIPT_SUFFIX:
            continue
        try:
            st = child.stat()
        except OSError:
            # Removed between listing and stat
            continue
        if not stat.S_ISREG(st.st_mode):
            continue
        sessions.append(
            SessionDescriptor(
                project_id=project_dir.name,
                session_id=child.stem,
                file_path=str(child),
                file_mtime=st.st_mtime,
            )
        )
    return sessions


async def enumerate_sessions(projects_dir: Path | str) -> list[SessionDescriptor]:
    """
    Find all session transcripts under per-project subdirectories.

    Only stats files, never reads them. A missing root yields an empty list.
    Ordering is unspecified.

    Args:
        projects_dir: Directory containing one folder per project

    Returns:
        List of SessionDescriptor
    """
    root = Path(projects_dir)
    if not await asyncio.to_thread(root.is_dir):
        logger.debug(f"Projects directory not found: {root}")
        return []

    project_dirs = await asyncio.to_thread(
        lambda: [p for p in root.iterdir() if p.is_dir()]
    )

    sessions: list[SessionDescriptor] = []
    for project_dir in project_dirs:
        sessions.extend(await asyncio.to_thread(_list_project_sessions, project_dir))

    logger.debug(f"Enumerated {len(sessions)} sessions across {len(project_dirs)} projects")
    return sessions


__all__ = ["enumerate_sessions"]
