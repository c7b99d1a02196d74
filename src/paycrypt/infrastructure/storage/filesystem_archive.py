"""Filesystem Archive Store - Implementation of ArchiveStorePort on a local directory.

Every message is stored as two files sharing a sortable UTC timestamp prefix:

    2025-01-31T09-15-02-123456Z_<email_id>.eml   raw RFC 5322 bytes
    2025-01-31T09-15-02-123456Z_<email_id>.json  metadata sidecar

Architecture: Hexagonal - Adapter implementation in infrastructure layer
"""

import asyncio
import json
import logging
import math
import re
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

from ...domain.exceptions import ArchiveEntryNotFound, StorageError
from ...domain.ports.archive_port import (
    ArchiveEntry,
    ArchiveFilter,
    ArchiveStats,
    ArchiveStorePort,
    ReclaimReport,
)
from ...observability.metrics import archive_bytes, archive_entries, archive_reclaimed_total

logger = logging.getLogger(__name__)

TIMESTAMP_FORMAT = "%Y-%m-%dT%H-%M-%S-%fZ"
RAW_SUFFIX = ".eml"
SIDECAR_SUFFIX = ".json"

# Keys written by the store itself; everything else in a sidecar is caller metadata
SIDECAR_KEYS = frozenset({"emailId", "filename", "filePath", "metadataPath", "savedAt", "size"})

# No underscore: it separates the timestamp prefix from the id
_SAFE_ID_RE = re.compile(r"^[A-Za-z0-9][A-Za-z0-9.-]*$")
_ENTRY_STEM_RE = re.compile(
    r"^(?P<timestamp>\d{4}-\d{2}-\d{2}T\d{2}-\d{2}-\d{2}-\d{6}Z)_(?P<email_id>[A-Za-z0-9][A-Za-z0-9.-]*)$"
)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class FilesystemArchiveStore(ArchiveStorePort):
    """Archive of raw messages in a single directory.

    Features:
    - Chronologically sortable filenames (listing and reclamation order)
    - JSON sidecar with envelope metadata next to every raw message
    - Capacity-based reclamation: above reclaim_threshold usage the oldest
      entries are deleted, at least reclaim_fraction of them, until usage is
      back under the threshold

    Example:
        archive = FilesystemArchiveStore("./storage/emails", capacity_bytes=1 << 30)
        entry = await archive.save(email_id, raw, message.archive_metadata())
        ...
        await archive.delete(email_id)
    """

    def __init__(
        self,
        root: str,
        capacity_bytes: int,
        reclaim_threshold: float = 0.9,
        reclaim_fraction: float = 0.1,
        clock: Callable[[], datetime] = _utcnow,
    ):
        """Initialize the archive directory.

        Args:
            root: Archive directory (created if missing)
            capacity_bytes: Nominal capacity used for the usage ratio
            reclaim_threshold: Usage ratio above which reclamation deletes entries
            reclaim_fraction: Minimum share of entries deleted per reclamation
            clock: Source of save timestamps

        Raises:
            StorageError: If the directory cannot be created
        """
        self.root = Path(root)
        self.capacity_bytes = capacity_bytes
        self.reclaim_threshold = reclaim_threshold
        self.reclaim_fraction = reclaim_fraction
        self._clock = clock

        try:
            self.root.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise StorageError(f"Failed to create archive directory {self.root}: {e}")

        logger.info(f"Initialized archive store: path={self.root}, capacity={capacity_bytes} bytes")

    @classmethod
    def from_settings(cls, settings) -> "FilesystemArchiveStore":
        return cls(root=settings.ARCHIVE_PATH, capacity_bytes=settings.ARCHIVE_CAPACITY_BYTES)

    async def save(
        self,
        email_id: str,
        raw: bytes,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> ArchiveEntry:
        if not email_id or not _SAFE_ID_RE.match(email_id):
            raise StorageError(f"Invalid archive email ID: {email_id!r}")

        entry = await asyncio.to_thread(self._write_entry, email_id, raw, metadata)
        logger.info(
            f"Archived message {entry.filename} ({entry.size} bytes)",
            extra={"email_id": email_id},
        )
        return entry

    async def list(
        self,
        filter: Optional[ArchiveFilter] = None,
        offset: int = 0,
        limit: Optional[int] = None,
    ) -> List[ArchiveEntry]:
        entries = await asyncio.to_thread(self._load_entries)
        entries.sort(key=lambda e: e.filename, reverse=True)
        if filter is not None:
            entries = [entry for entry in entries if filter.matches(entry)]

        end = None if limit is None else offset + limit
        return entries[offset:end]

    async def get(self, email_id: str) -> bytes:
        return await asyncio.to_thread(self._read_raw, email_id)

    async def metadata(self, email_id: str) -> ArchiveEntry:
        raw_path = await asyncio.to_thread(self._find, email_id, RAW_SUFFIX)
        if raw_path is None:
            raise ArchiveEntryNotFound(email_id)
        return await asyncio.to_thread(self._load_entry, raw_path)

    async def delete(self, email_id: str) -> bool:
        """Delete both files of an entry.

        Idempotent: a second call returns False. A missing sidecar is not an
        error.
        """
        self._check_id(email_id)
        deleted = await asyncio.to_thread(self._delete_files, email_id)
        if deleted:
            logger.info("Deleted archived message", extra={"email_id": email_id})
        return deleted

    async def stats(self) -> ArchiveStats:
        entries = await asyncio.to_thread(self._load_entries)
        entries.sort(key=lambda e: e.filename)
        total_size = sum(entry.size for entry in entries)

        archive_entries.set(len(entries))
        archive_bytes.set(total_size)

        return ArchiveStats(
            count=len(entries),
            total_size=total_size,
            capacity=self.capacity_bytes,
            oldest_entry=entries[0] if entries else None,
            newest_entry=entries[-1] if entries else None,
        )

    async def reclaim(self) -> ReclaimReport:
        """Delete the oldest entries when usage exceeds the threshold.

        Deletes at least ceil(reclaim_fraction * count) entries, oldest first,
        and keeps going until usage is at or under the threshold.
        """
        entries = await asyncio.to_thread(self._load_entries)
        entries.sort(key=lambda e: e.filename)
        total_size = sum(entry.size for entry in entries)
        usage_before = self._usage(total_size)

        if usage_before <= self.reclaim_threshold:
            logger.info(f"Archive usage {usage_before:.1%}, no reclamation needed")
            return ReclaimReport(usage_before=usage_before, usage_after=usage_before)

        minimum = math.ceil(len(entries) * self.reclaim_fraction)
        deleted_ids: List[str] = []

        for entry in entries:
            if len(deleted_ids) >= minimum and self._usage(total_size) <= self.reclaim_threshold:
                break
            await self.delete(entry.email_id)
            deleted_ids.append(entry.email_id)
            total_size -= entry.size

        usage_after = self._usage(total_size)
        archive_reclaimed_total.inc(len(deleted_ids))
        archive_entries.set(len(entries) - len(deleted_ids))
        archive_bytes.set(total_size)

        logger.warning(
            f"Archive usage {usage_before:.1%} over {self.reclaim_threshold:.0%}: "
            f"deleted {len(deleted_ids)} oldest messages, usage now {usage_after:.1%}"
        )
        return ReclaimReport(
            usage_before=usage_before,
            usage_after=usage_after,
            deleted_ids=deleted_ids,
        )

    def _usage(self, total_size: int) -> float:
        if self.capacity_bytes <= 0:
            return 0.0
        return total_size / self.capacity_bytes

    def _check_id(self, email_id: str) -> None:
        if not email_id or not _SAFE_ID_RE.match(email_id):
            raise ArchiveEntryNotFound(email_id)

    def _write_entry(
        self,
        email_id: str,
        raw: bytes,
        metadata: Optional[Dict[str, Any]],
    ) -> ArchiveEntry:
        saved_at = self._clock()
        stem = f"{saved_at.strftime(TIMESTAMP_FORMAT)}_{email_id}"
        raw_path = self.root / f"{stem}{RAW_SUFFIX}"
        sidecar_path = self.root / f"{stem}{SIDECAR_SUFFIX}"

        entry = ArchiveEntry(
            email_id=email_id,
            filename=raw_path.name,
            file_path=str(raw_path),
            metadata_path=str(sidecar_path),
            saved_at=saved_at,
            size=len(raw),
            metadata=dict(metadata or {}),
        )

        try:
            raw_path.write_bytes(raw)
        except OSError as e:
            raise StorageError(f"Failed to write raw message {raw_path}: {e}")

        try:
            sidecar_path.write_text(
                json.dumps(entry.to_sidecar(), indent=2, default=str),
                encoding="utf-8",
            )
        except OSError as e:
            raw_path.unlink(missing_ok=True)
            raise StorageError(f"Failed to write metadata sidecar {sidecar_path}: {e}")

        return entry

    def _read_raw(self, email_id: str) -> bytes:
        raw_path = self._find(email_id, RAW_SUFFIX)
        if raw_path is None:
            raise ArchiveEntryNotFound(email_id)
        try:
            return raw_path.read_bytes()
        except FileNotFoundError:
            raise ArchiveEntryNotFound(email_id)
        except OSError as e:
            raise StorageError(f"Failed to read raw message {raw_path}: {e}")

    def _delete_files(self, email_id: str) -> bool:
        deleted = False
        for suffix in (RAW_SUFFIX, SIDECAR_SUFFIX):
            for path in self.root.glob(f"*_{email_id}{suffix}"):
                if not _ENTRY_STEM_RE.match(path.stem):
                    continue
                try:
                    path.unlink()
                    deleted = True
                except FileNotFoundError:
                    continue
                except OSError as e:
                    raise StorageError(f"Failed to delete {path}: {e}")
        return deleted

    def _find(self, email_id: str, suffix: str) -> Optional[Path]:
        self._check_id(email_id)
        matches = sorted(
            path for path in self.root.glob(f"*_{email_id}{suffix}")
            if _ENTRY_STEM_RE.match(path.stem)
        )
        return matches[-1] if matches else None

    def _load_entries(self) -> List[ArchiveEntry]:
        entries = []
        for raw_path in self.root.glob(f"*{RAW_SUFFIX}"):
            if not _ENTRY_STEM_RE.match(raw_path.stem):
                logger.warning(f"Ignoring {raw_path.name} in archive directory: not an archive entry")
                continue
            try:
                entries.append(self._load_entry(raw_path))
            except ArchiveEntryNotFound:
                # Deleted between glob and read
                continue
            except StorageError as e:
                logger.warning(f"Ignoring {raw_path.name} in archive directory: {e}")
                continue
        return entries

    def _load_entry(self, raw_path: Path) -> ArchiveEntry:
        match = _ENTRY_STEM_RE.match(raw_path.stem)
        if match is None:
            raise ArchiveEntryNotFound(raw_path.stem)
        timestamp, email_id = match.group("timestamp"), match.group("email_id")
        sidecar_path = raw_path.with_suffix(SIDECAR_SUFFIX)

        try:
            size = raw_path.stat().st_size
        except FileNotFoundError:
            raise ArchiveEntryNotFound(email_id)

        sidecar: Dict[str, Any] = {}
        try:
            loaded = json.loads(sidecar_path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            logger.warning(f"Archived message {raw_path.name} has no metadata sidecar")
        except (OSError, ValueError) as e:
            logger.warning(f"Unreadable metadata sidecar {sidecar_path.name}: {e}")
        else:
            if isinstance(loaded, dict):
                sidecar = loaded
            else:
                logger.warning(f"Metadata sidecar {sidecar_path.name} is not a JSON object")

        try:
            saved_at = datetime.fromisoformat(sidecar["savedAt"])
        except (KeyError, TypeError, ValueError):
            try:
                saved_at = datetime.strptime(timestamp, TIMESTAMP_FORMAT).replace(tzinfo=timezone.utc)
            except ValueError:
                raise StorageError(f"Unparseable timestamp in archive filename {raw_path.name}")

        return ArchiveEntry(
            email_id=email_id,
            filename=raw_path.name,
            file_path=str(raw_path),
            metadata_path=str(sidecar_path),
            saved_at=saved_at,
            size=size,
            metadata={k: v for k, v in sidecar.items() if k not in SIDECAR_KEYS},
        )
