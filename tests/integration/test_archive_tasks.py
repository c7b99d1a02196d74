"""Integration tests for the archive reclamation Celery task (run eagerly)."""

import asyncio
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from paycrypt.config import Settings
from paycrypt.domain.ports.archive_port import ReclaimReport
from paycrypt.main import run_reclaim_loop
from paycrypt.workers.archive_tasks import archive_reclaim_task


def fill(store, count: int, size: int = 100):
    async def _fill():
        for i in range(count):
            await store.save(f"msg{i}", b"x" * size, {"from": "alice@example.com"})
    asyncio.run(_fill())


class TestArchiveReclaimTask:

    def _run(self, settings):
        with patch("paycrypt.workers.archive_tasks.get_settings", return_value=settings):
            return archive_reclaim_task.apply().get()

    def test_over_capacity_deletes_oldest(self, tmp_path, archive_factory):
        store = archive_factory(capacity_bytes=1000)
        fill(store, 10)

        result = self._run(Settings(
            _env_file=None,
            ARCHIVE_PATH=str(tmp_path / "archive"),
            ARCHIVE_CAPACITY_BYTES=1000,
        ))

        assert result["status"] == "completed"
        assert result["deleted"] == 1
        assert result["deleted_ids"] == ["msg0"]
        assert result["usage_before"] == 1.0
        assert result["usage_after"] == 0.9

        remaining = asyncio.run(store.list())
        assert len(remaining) == 9

    def test_under_threshold_is_noop(self, tmp_path, archive_factory):
        fill(archive_factory(capacity_bytes=10_000), 3)

        result = self._run(Settings(
            _env_file=None,
            ARCHIVE_PATH=str(tmp_path / "archive"),
            ARCHIVE_CAPACITY_BYTES=10_000,
        ))

        assert result["status"] == "completed"
        assert result["deleted"] == 0
        assert result["deleted_ids"] == []

    def test_unusable_archive_reports_failure(self, tmp_path):
        blocker = tmp_path / "not-a-dir"
        blocker.write_text("x")

        result = self._run(Settings(_env_file=None, ARCHIVE_PATH=str(blocker / "archive")))

        assert result["status"] == "failed"
        assert result["deleted"] == 0
        assert "archive" in result["error"].lower()


class TestInProcessReclaimLoop:

    @pytest.mark.asyncio
    async def test_loop_survives_unexpected_errors(self):
        archive = MagicMock()
        archive.reclaim = AsyncMock(side_effect=[
            ValueError("unexpected file"),
            ReclaimReport(usage_before=0.5, usage_after=0.5),
            asyncio.CancelledError(),
        ])

        with pytest.raises(asyncio.CancelledError):
            await run_reclaim_loop(archive, 0)

        assert archive.reclaim.await_count == 3

    @pytest.mark.asyncio
    async def test_loop_keeps_running_with_foreign_file(self, archive_factory):
        store = archive_factory(capacity_bytes=1000)
        await store.save("msg1", b"x" * 950)
        (store.root / "notes.eml").write_bytes(b"operator notes")

        task = asyncio.create_task(run_reclaim_loop(store, 0.01))
        await asyncio.sleep(0.2)

        assert not task.done()
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

        assert await store.list() == []
        assert (store.root / "notes.eml").exists()
