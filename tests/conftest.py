"""
Shared test configuration.

Provides fixtures for building transcript corpora on disk:

    projects_dir/
        {project}/
            {session}.jsonl
"""

import json
import os
import sys
from pathlib import Path
from typing import Any

import pytest

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))


class Transcript:
    """Builders for JSONL transcript records."""

    def __init__(self) -> None:
        self._counter = 0

    def _base(self, kind: str, **extra: Any) -> dict[str, Any]:
        self._counter += 1
        record = {
            "type": kind,
            "uuid": f"uuid-{self._counter}",
            "sessionId": "session",
            "timestamp": f"2025-01-01T00:00:{self._counter % 60:02d}Z",
        }
        record.update(extra)
        return record

    def user(self, text: str, **extra: Any) -> dict[str, Any]:
        return self._base("user", message={"role": "user", "content": text}, **extra)

    def tool_result(self, tool_use_id: str = "toolu_1", **extra: Any) -> dict[str, Any]:
        return self._base(
            "user",
            message={
                "role": "user",
                "content": [{"type": "tool_result", "tool_use_id": tool_use_id, "content": "ok"}],
            },
            **extra,
        )

    def assistant(self, text: str, **extra: Any) -> dict[str, Any]:
        return self._base(
            "assistant",
            message={"role": "assistant", "content": [{"type": "text", "text": text}]},
            **extra,
        )

    def tool(self, name: str, text: str | None = None, **tool_input: Any) -> dict[str, Any]:
        content: list[dict[str, Any]] = []
        if text:
            content.append({"type": "text", "text": text})
        content.append({"type": "tool_use", "id": f"toolu_{self._counter}", "name": name, "input": tool_input})
        return self._base("assistant", message={"role": "assistant", "content": content})

    def bash(self, command: str) -> dict[str, Any]:
        return self.tool("Bash", command=command)


def write_jsonl(path: Path, records: list[dict[str, Any] | str]) -> Path:
    """Write records (dicts or raw lines) as JSONL."""
    path.parent.mkdir(parents=True, exist_ok=True)
    lines = [r if isinstance(r, str) else json.dumps(r) for r in records]
    path.write_text("\n".join(lines) + "\n", encoding="utf-8")
    return path


@pytest.fixture
def transcript() -> Transcript:
    """Record builder."""
    return Transcript()


@pytest.fixture
def projects_dir(tmp_path: Path) -> Path:
    """Empty projects root."""
    root = tmp_path / "projects"
    root.mkdir()
    return root


@pytest.fixture
def state_path(tmp_path: Path) -> Path:
    return tmp_path / "state" / "scan-state.json"


@pytest.fixture
def write_session(projects_dir: Path):
    """
    Factory writing one session transcript.

    Usage: write_session("proj", "sess", [records...], mtime=1_700_000_000)
    """

    def _write(
        project: str,
        session: str,
        records: list[dict[str, Any] | str],
        mtime: float | None = None,
    ) -> Path:
        path = write_jsonl(projects_dir / project / f"{session}.jsonl", records)
        if mtime is not None:
            os.utime(path, (mtime, mtime))
        return path

    return _write
