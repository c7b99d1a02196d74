"""Raw message archive adapters."""

from .filesystem_archive import FilesystemArchiveStore

__all__ = ["FilesystemArchiveStore"]
