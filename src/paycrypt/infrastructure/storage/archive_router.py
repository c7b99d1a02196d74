"""Read-only HTTP views over the raw message archive.

Operators use these to inspect messages left behind by failed or pending
workflows. Mutating operations (delete, reclaim) are only exposed through the
CLI.
"""

import logging
from datetime import datetime
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status

from ...dependencies import AppServices, get_services
from ...domain.exceptions import ArchiveEntryNotFound
from ...domain.ports.archive_port import ArchiveEntry, ArchiveFilter

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/archive", tags=["Archive"])


def entry_to_dict(entry: ArchiveEntry) -> Dict[str, Any]:
    return entry.to_sidecar()


@router.get("")
async def list_archive(
    sender: Optional[str] = Query(None, description="Filter by From address"),
    recipient: Optional[str] = Query(None, description="Filter by To/Cc/Bcc membership"),
    saved_from: Optional[datetime] = Query(None),
    saved_to: Optional[datetime] = Query(None),
    offset: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=500),
    services: AppServices = Depends(get_services),
):
    """List archived messages, newest first."""
    entries = await services.archive.list(
        filter=ArchiveFilter(
            sender=sender,
            recipient=recipient,
            saved_from=saved_from,
            saved_to=saved_to,
        ),
        offset=offset,
        limit=limit,
    )
    return {
        "items": [entry_to_dict(entry) for entry in entries],
        "offset": offset,
        "limit": limit,
    }


@router.get("/stats")
async def archive_stats(services: AppServices = Depends(get_services)):
    stats = await services.archive.stats()
    return {
        "count": stats.count,
        "total_size": stats.total_size,
        "capacity": stats.capacity,
        "usage_ratio": round(stats.usage_ratio, 4),
        "oldest": entry_to_dict(stats.oldest_entry) if stats.oldest_entry else None,
        "newest": entry_to_dict(stats.newest_entry) if stats.newest_entry else None,
    }


@router.get("/{email_id}")
async def get_archive_entry(email_id: str, services: AppServices = Depends(get_services)):
    """Sidecar metadata of one archived message.

    Raises:
        HTTPException 404: No entry for email_id
    """
    try:
        entry = await services.archive.metadata(email_id)
    except ArchiveEntryNotFound:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Archive entry {email_id} not found",
        )
    return entry_to_dict(entry)


@router.get("/{email_id}/raw")
async def download_archive_entry(email_id: str, services: AppServices = Depends(get_services)):
    """Raw message download (message/rfc822 attachment).

    Raises:
        HTTPException 404: No entry for email_id
    """
    try:
        exported = await services.archive.export(email_id)
    except ArchiveEntryNotFound:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Archive entry {email_id} not found",
        )
    return Response(
        content=exported.content,
        media_type=exported.content_type,
        headers={"Content-Disposition": f'attachment; filename="{exported.filename}"'},
    )
