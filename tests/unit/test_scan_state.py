"""
Unit tests for scan state persistence.
"""

import json
import os

import pytest

from skill_discovery.scan_state import (
    SCAN_STATE_VERSION,
    ScanState,
    ScanStateStore,
    ScanStateWriteError,
    ScanStats,
    SessionWatermark,
)


def make_state() -> ScanState:
    return ScanState(
        sessions={
            "proj:s1": SessionWatermark(
                file_mtime=1_700_000_000.5,
                scanned_at="2025-01-01T00:00:00+00:00",
                project_id="proj",
            )
        },
        exclude_projects=["secret"],
        last_scan_stats=ScanStats(total_sessions=1, new_sessions=1),
    )


class TestLoad:
    """Tests for ScanStateStore.load()."""

    @pytest.mark.asyncio
    async def test_missing_file_is_empty(self, state_path):
        state = await ScanStateStore(state_path).load()

        assert state == ScanState()
        assert state.version == SCAN_STATE_VERSION

    @pytest.mark.asyncio
    async def test_corrupt_file_is_empty(self, state_path):
        state_path.parent.mkdir(parents=True)
        state_path.write_text("{{{{")

        assert await ScanStateStore(state_path).load() == ScanState()

    @pytest.mark.asyncio
    async def test_invalid_utf8_is_empty(self, state_path):
        """A torn write with non-UTF-8 bytes falls back to an empty state."""
        state_path.parent.mkdir(parents=True)
        state_path.write_bytes(b'{"version": 1, "sessions": {}\xff\xfe garbage')

        assert await ScanStateStore(state_path).load() == ScanState()

    @pytest.mark.asyncio
    async def test_wrong_shape_is_empty(self, state_path):
        state_path.parent.mkdir(parents=True)
        state_path.write_text(json.dumps({"version": 1, "sessions": {"k": {"fileMtime": "soon"}}}))

        assert await ScanStateStore(state_path).load() == ScanState()

    @pytest.mark.asyncio
    async def test_old_version_is_empty(self, state_path):
        """A version mismatch discards the watermarks, forcing a full rescan."""
        state = make_state()
        state.version = SCAN_STATE_VERSION + 1
        state_path.parent.mkdir(parents=True)
        state_path.write_text(state.model_dump_json(by_alias=True))

        loaded = await ScanStateStore(state_path).load()

        assert loaded.sessions == {}
        assert loaded.exclude_projects == []


class TestSave:
    """Tests for ScanStateStore.save()."""

    @pytest.mark.asyncio
    async def test_round_trip(self, state_path):
        store = ScanStateStore(state_path)
        state = make_state()

        await store.save(state)

        assert await store.load() == state

    @pytest.mark.asyncio
    async def test_camel_case_keys(self, state_path):
        await ScanStateStore(state_path).save(make_state())

        data = json.loads(state_path.read_text())

        assert data["version"] == SCAN_STATE_VERSION
        assert data["excludeProjects"] == ["secret"]
        assert data["sessions"]["proj:s1"] == {
            "fileMtime": 1_700_000_000.5,
            "scannedAt": "2025-01-01T00:00:00+00:00",
            "projectId": "proj",
        }
        assert data["lastScanStats"]["newSessions"] == 1

    @pytest.mark.asyncio
    async def test_no_temp_files_left(self, state_path):
        store = ScanStateStore(state_path)
        await store.save(make_state())
        await store.save(ScanState())

        assert [p.name for p in state_path.parent.iterdir()] == [state_path.name]

    @pytest.mark.asyncio
    async def test_failed_write_keeps_previous_state(self, state_path, monkeypatch):
        store = ScanStateStore(state_path)
        await store.save(make_state())

        def broken_replace(src, dst):
            raise OSError("disk full")

        monkeypatch.setattr(os, "replace", broken_replace)

        with pytest.raises(ScanStateWriteError, match="disk full"):
            await store.save(ScanState())

        monkeypatch.undo()
        assert await store.load() == make_state()
        assert [p.name for p in state_path.parent.iterdir()] == [state_path.name]

    @pytest.mark.asyncio
    async def test_unwritable_location(self, tmp_path):
        blocker = tmp_path / "file"
        blocker.write_text("x")
        store = ScanStateStore(blocker / "state.json")

        with pytest.raises(ScanStateWriteError):
            await store.save(ScanState())


class TestExcludeList:
    """Tests for the persistent project exclude list."""

    @pytest.mark.asyncio
    async def test_exclude_and_include(self, state_path):
        store = ScanStateStore(state_path)

        await store.exclude_project("b")
        await store.exclude_project("a")
        await store.exclude_project("a")
        assert (await store.load()).exclude_projects == ["a", "b"]

        await store.include_project("a")
        await store.include_project("missing")
        assert (await store.load()).exclude_projects == ["b"]

    @pytest.mark.asyncio
    async def test_exclude_keeps_watermarks(self, state_path):
        store = ScanStateStore(state_path)
        await store.save(make_state())

        await store.exclude_project("other")

        assert "proj:s1" in (await store.load()).sessions
