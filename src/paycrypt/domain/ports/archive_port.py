"""Archive Port - Domain interface for raw message storage.

This port defines the contract for keeping raw inbound messages plus a metadata
sidecar until the pipeline reaches a terminal success for them. Entries left
behind after failures stay available for operators to inspect or re-drive.

Architecture: Hexagonal - Port interface in domain layer
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional


@dataclass(frozen=True)
class ArchiveEntry:
    """Metadata for one archived message.

    Attributes:
        email_id: Archive identifier
        filename: Raw message filename (sortable timestamp prefix + email_id)
        file_path: Full path of the raw message
        metadata_path: Full path of the sidecar
        saved_at: Save timestamp (UTC)
        size: Raw message size in bytes
        metadata: Caller-supplied envelope metadata
    """
    email_id: str
    filename: str
    file_path: str
    metadata_path: str
    saved_at: datetime
    size: int
    metadata: Dict[str, Any] = field(default_factory=dict)

    @property
    def sender(self) -> Optional[str]:
        return self.metadata.get("from")

    @property
    def recipients(self) -> List[str]:
        recipients: List[str] = []
        for header in ("to", "cc", "bcc"):
            recipients.extend(self.metadata.get(header) or [])
        return recipients

    def to_sidecar(self) -> Dict[str, Any]:
        """Sidecar document written next to the raw message."""
        return {
            "emailId": self.email_id,
            "filename": self.filename,
            "filePath": self.file_path,
            "metadataPath": self.metadata_path,
            "savedAt": self.saved_at.isoformat(),
            "size": self.size,
            **self.metadata,
        }


@dataclass(frozen=True)
class ArchiveFilter:
    """Filter for listing archive entries. Unset fields match everything."""
    sender: Optional[str] = None
    recipient: Optional[str] = None
    saved_from: Optional[datetime] = None
    saved_to: Optional[datetime] = None

    def matches(self, entry: ArchiveEntry) -> bool:
        if self.sender and (entry.sender or "").lower() != self.sender.lower():
            return False
        if self.recipient and self.recipient.lower() not in entry.recipients:
            return False
        if self.saved_from and entry.saved_at < self.saved_from:
            return False
        if self.saved_to and entry.saved_at > self.saved_to:
            return False
        return True


@dataclass(frozen=True)
class ArchiveStats:
    """Archive usage statistics."""
    count: int
    total_size: int
    capacity: int
    oldest_entry: Optional[ArchiveEntry] = None
    newest_entry: Optional[ArchiveEntry] = None

    @property
    def usage_ratio(self) -> float:
        if self.capacity <= 0:
            return 0.0
        return self.total_size / self.capacity


@dataclass(frozen=True)
class ReclaimReport:
    """Outcome of one reclamation pass."""
    usage_before: float
    usage_after: float
    deleted_ids: List[str] = field(default_factory=list)

    @property
    def deleted(self) -> int:
        return len(self.deleted_ids)


@dataclass(frozen=True)
class ExportedMessage:
    """Raw message packaged for download."""
    content: bytes
    filename: str
    content_type: str
    entry: ArchiveEntry


class ArchiveStorePort(ABC):
    """Port interface for the raw message archive.

    Key Design Principles:
    - One raw file plus one sidecar per email_id
    - Filenames sort chronologically by save time
    - delete() is idempotent and tolerant of a missing sidecar
    - Reclamation is advisory space management, not a correctness mechanism
    """

    @abstractmethod
    async def save(
        self,
        email_id: str,
        raw: bytes,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> ArchiveEntry:
        """Store a raw message and its metadata sidecar.

        Args:
            email_id: Archive identifier
            raw: Raw message bytes
            metadata: Envelope metadata merged into the sidecar

        Returns:
            ArchiveEntry: The stored entry

        Raises:
            StorageError: If either file cannot be written
        """
        pass

    @abstractmethod
    async def list(
        self,
        filter: Optional[ArchiveFilter] = None,
        offset: int = 0,
        limit: Optional[int] = None,
    ) -> List[ArchiveEntry]:
        """List entries, newest first.

        Args:
            filter: Optional sender / recipient / save-time filter
            offset: Number of matching entries to skip
            limit: Maximum number of entries to return (None for all)

        Returns:
            List[ArchiveEntry]: Matching entries sorted by saved_at descending
        """
        pass

    @abstractmethod
    async def get(self, email_id: str) -> bytes:
        """Read the raw message bytes.

        Raises:
            ArchiveEntryNotFound: If no entry exists for email_id
        """
        pass

    @abstractmethod
    async def metadata(self, email_id: str) -> ArchiveEntry:
        """Read the entry metadata.

        Raises:
            ArchiveEntryNotFound: If no entry exists for email_id
        """
        pass

    @abstractmethod
    async def delete(self, email_id: str) -> bool:
        """Delete the raw message and its sidecar.

        Returns:
            bool: True if anything was deleted, False if nothing existed
        """
        pass

    @abstractmethod
    async def stats(self) -> ArchiveStats:
        """Compute count, total size and oldest/newest entries."""
        pass

    @abstractmethod
    async def reclaim(self) -> ReclaimReport:
        """Delete the oldest entries when usage exceeds the threshold."""
        pass

    async def export(self, email_id: str) -> ExportedMessage:
        """Package a raw message for download.

        Raises:
            ArchiveEntryNotFound: If no entry exists for email_id
        """
        entry = await self.metadata(email_id)
        content = await self.get(email_id)
        return ExportedMessage(
            content=content,
            filename=entry.filename,
            content_type="message/rfc822",
            entry=entry,
        )
