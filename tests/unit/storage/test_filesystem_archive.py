"""Unit tests for the filesystem archive store.

Tests cover save/get/metadata/delete, listing with filters, statistics, export
and capacity-based reclamation. Every store uses tmp_path and a stepping clock
so filenames sort in save order.
"""

import asyncio
import json
from datetime import datetime, timezone
from pathlib import Path
from unittest.mock import patch

import pytest

from paycrypt.domain.exceptions import ArchiveEntryNotFound, StorageError
from paycrypt.domain.ports.archive_port import ArchiveFilter

RAW = b"From: alice@example.com\r\nTo: pay@paycrypt.example\r\n\r\nhello\r\n"
META = {"from": "alice@example.com", "to": ["pay@paycrypt.example"], "cc": [], "bcc": []}


class TestSaveAndRead:

    @pytest.mark.asyncio
    async def test_save_writes_raw_and_sidecar(self, archive):
        entry = await archive.save("msg1", RAW, META)

        assert entry.filename == "2025-01-31T09-00-00-000000Z_msg1.eml"
        assert Path(entry.file_path).read_bytes() == RAW
        assert entry.size == len(RAW)

        sidecar = json.loads(Path(entry.metadata_path).read_text())
        assert sidecar["emailId"] == "msg1"
        assert sidecar["filename"] == entry.filename
        assert sidecar["size"] == len(RAW)
        assert sidecar["savedAt"] == "2025-01-31T09:00:00+00:00"
        assert sidecar["from"] == "alice@example.com"

    @pytest.mark.asyncio
    async def test_get_and_metadata(self, archive):
        await archive.save("msg1", RAW, META)

        assert await archive.get("msg1") == RAW

        entry = await archive.metadata("msg1")
        assert entry.email_id == "msg1"
        assert entry.sender == "alice@example.com"
        assert entry.recipients == ["pay@paycrypt.example"]
        assert entry.metadata == META
        assert entry.saved_at == datetime(2025, 1, 31, 9, 0, 0, tzinfo=timezone.utc)

    @pytest.mark.asyncio
    async def test_missing_entry(self, archive):
        with pytest.raises(ArchiveEntryNotFound):
            await archive.get("nope")
        with pytest.raises(ArchiveEntryNotFound):
            await archive.metadata("nope")

    @pytest.mark.asyncio
    @pytest.mark.parametrize("email_id", ["", "../etc", "a/b", "has_underscore", "*"])
    async def test_invalid_ids(self, archive, email_id):
        with pytest.raises(StorageError):
            await archive.save(email_id, RAW)
        with pytest.raises(ArchiveEntryNotFound):
            await archive.get(email_id)

    @pytest.mark.asyncio
    async def test_missing_sidecar_falls_back_to_filename(self, archive):
        entry = await archive.save("msg1", RAW, META)
        Path(entry.metadata_path).unlink()

        loaded = await archive.metadata("msg1")
        assert loaded.saved_at == datetime(2025, 1, 31, 9, 0, 0, tzinfo=timezone.utc)
        assert loaded.metadata == {}
        assert loaded.size == len(RAW)

    @pytest.mark.asyncio
    async def test_export(self, archive):
        await archive.save("msg1", RAW, META)

        exported = await archive.export("msg1")
        assert exported.content == RAW
        assert exported.content_type == "message/rfc822"
        assert exported.filename.endswith("_msg1.eml")


class TestDelete:

    @pytest.mark.asyncio
    async def test_delete_is_idempotent(self, archive):
        entry = await archive.save("msg1", RAW, META)

        assert await archive.delete("msg1") is True
        assert not Path(entry.file_path).exists()
        assert not Path(entry.metadata_path).exists()

        assert await archive.delete("msg1") is False

    @pytest.mark.asyncio
    async def test_delete_tolerates_missing_sidecar(self, archive):
        entry = await archive.save("msg1", RAW, META)
        Path(entry.metadata_path).unlink()

        assert await archive.delete("msg1") is True
        assert not Path(entry.file_path).exists()

    @pytest.mark.asyncio
    async def test_delete_only_touches_its_entry(self, archive):
        await archive.save("msg1", RAW, META)
        await archive.save("msg12", RAW, META)

        await archive.delete("msg1")

        assert await archive.get("msg12") == RAW


class TestList:

    @pytest.mark.asyncio
    async def test_newest_first(self, archive):
        for i in range(3):
            await archive.save(f"msg{i}", RAW, META)

        entries = await archive.list()
        assert [e.email_id for e in entries] == ["msg2", "msg1", "msg0"]

    @pytest.mark.asyncio
    async def test_filters(self, archive):
        await archive.save("a1", RAW, {"from": "alice@example.com", "to": ["pay@paycrypt.example"]})
        await archive.save("b1", RAW, {"from": "bob@example.com", "to": ["pay@paycrypt.example"], "cc": ["carol@example.com"]})
        await archive.save("a2", RAW, {"from": "alice@example.com", "to": ["dave@example.com"]})

        by_sender = await archive.list(filter=ArchiveFilter(sender="ALICE@example.com"))
        assert [e.email_id for e in by_sender] == ["a2", "a1"]

        by_recipient = await archive.list(filter=ArchiveFilter(recipient="carol@example.com"))
        assert [e.email_id for e in by_recipient] == ["b1"]

        since = await archive.list(
            filter=ArchiveFilter(saved_from=datetime(2025, 1, 31, 9, 0, 1, tzinfo=timezone.utc))
        )
        assert [e.email_id for e in since] == ["a2", "b1"]

    @pytest.mark.asyncio
    async def test_offset_and_limit(self, archive):
        for i in range(5):
            await archive.save(f"msg{i}", RAW, META)

        page = await archive.list(offset=1, limit=2)
        assert [e.email_id for e in page] == ["msg3", "msg2"]


class TestStatsAndReclaim:

    @pytest.mark.asyncio
    async def test_stats(self, archive):
        empty = await archive.stats()
        assert empty.count == 0
        assert empty.oldest_entry is None

        for i in range(3):
            await archive.save(f"msg{i}", RAW, META)

        stats = await archive.stats()
        assert stats.count == 3
        assert stats.total_size == 3 * len(RAW)
        assert stats.capacity == 1_000_000
        assert stats.oldest_entry.email_id == "msg0"
        assert stats.newest_entry.email_id == "msg2"
        assert stats.usage_ratio == pytest.approx(3 * len(RAW) / 1_000_000)

    @pytest.mark.asyncio
    async def test_reclaim_under_threshold_is_noop(self, archive):
        await archive.save("msg0", RAW, META)

        report = await archive.reclaim()

        assert report.deleted == 0
        assert report.usage_before == report.usage_after
        assert await archive.get("msg0") == RAW

    @pytest.mark.asyncio
    async def test_reclaim_deletes_minimum_fraction_oldest_first(self, archive_factory):
        archive = archive_factory(capacity_bytes=1000)
        for i in range(10):
            await archive.save(f"msg{i}", b"x" * 100)

        report = await archive.reclaim()

        assert report.usage_before == pytest.approx(1.0)
        assert report.deleted_ids == ["msg0"]
        assert report.usage_after == pytest.approx(0.9)

    @pytest.mark.asyncio
    async def test_reclaim_continues_until_under_threshold(self, archive_factory):
        archive = archive_factory(capacity_bytes=500)
        for i in range(10):
            await archive.save(f"msg{i}", b"x" * 100)

        report = await archive.reclaim()

        assert report.deleted_ids == [f"msg{i}" for i in range(6)]
        assert report.usage_after < report.usage_before
        assert report.usage_after <= 0.9

        remaining = await archive.list()
        assert [e.email_id for e in remaining] == ["msg9", "msg8", "msg7", "msg6"]


class TestForeignFiles:

    @pytest.mark.asyncio
    async def test_unprefixed_file_is_ignored(self, archive):
        await archive.save("msg1", RAW, META)
        (archive.root / "notes.eml").write_bytes(b"operator notes")

        assert [e.email_id for e in await archive.list()] == ["msg1"]
        stats = await archive.stats()
        assert stats.count == 1
        assert stats.total_size == len(RAW)
        assert (await archive.reclaim()).deleted == 0
        assert (archive.root / "notes.eml").exists()

    @pytest.mark.asyncio
    async def test_impossible_timestamp_is_ignored(self, archive):
        await archive.save("msg1", RAW, META)
        (archive.root / "2025-13-45T99-00-00-000000Z_bogus.eml").write_bytes(b"x")

        assert [e.email_id for e in await archive.list()] == ["msg1"]

    @pytest.mark.asyncio
    async def test_foreign_file_with_matching_suffix_is_not_deleted(self, archive):
        await archive.save("msg1", RAW, META)
        stray = archive.root / "copy_msg1.eml"
        stray.write_bytes(b"x")

        assert await archive.delete("msg1") is True
        assert stray.exists()
        assert await archive.list() == []

    @pytest.mark.asyncio
    async def test_non_object_sidecar(self, archive):
        entry = await archive.save("msg1", RAW, META)
        Path(entry.metadata_path).write_text("[1, 2]", encoding="utf-8")

        loaded = await archive.metadata("msg1")
        assert loaded.metadata == {}
        assert loaded.saved_at == datetime(2025, 1, 31, 9, 0, 0, tzinfo=timezone.utc)


class TestWorkerThreads:

    @pytest.mark.asyncio
    async def test_file_io_runs_in_worker_threads(self, archive):
        with patch(
            "paycrypt.infrastructure.storage.filesystem_archive.asyncio.to_thread",
            wraps=asyncio.to_thread,
        ) as to_thread:
            await archive.save("msg1", RAW, META)
            await archive.list()
            await archive.get("msg1")
            await archive.stats()
            await archive.delete("msg1")

        called = [c.args[0].__name__ for c in to_thread.call_args_list]
        assert called == ["_write_entry", "_load_entries", "_read_raw", "_load_entries", "_delete_files"]
