"""Local persistence."""

from .scan_store import SavedScan, ScanStorageFullError, ScanStore, StorageInfo

__all__ = ["SavedScan", "ScanStorageFullError", "ScanStore", "StorageInfo"]
