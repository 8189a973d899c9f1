"""JSON file store for saved 3D body scans."""

import logging
import uuid
from datetime import datetime
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field, computed_field

from ..models import ImageArtifact

logger = logging.getLogger(__name__)

DEFAULT_MAX_BYTES = 5 * 1024 * 1024


class ScanStorageFullError(Exception):
    """Raised when saving a scan would exceed the store's size limit."""


class SavedScan(BaseModel):
    """A body scan (set of angle photos) kept for reuse across sessions."""

    model_config = ConfigDict(ser_json_bytes="base64", val_json_bytes="base64")

    id: str = Field(default_factory=lambda: f"scan_{uuid.uuid4().hex[:12]}")
    timestamp: datetime = Field(default_factory=datetime.now)
    images: list[ImageArtifact]

    @computed_field
    @property
    def preview_id(self) -> str | None:
        """First image is used as the preview."""
        return self.images[0].id if self.images else None


class StorageInfo(BaseModel):
    used: int
    total: int

    @computed_field
    @property
    def percentage(self) -> float:
        return round(self.used / self.total * 100, 2) if self.total else 0.0


class _ScanFile(BaseModel):
    model_config = ConfigDict(ser_json_bytes="base64", val_json_bytes="base64")

    scans: list[SavedScan] = Field(default_factory=list)


class ScanStore:
    """Persists saved scans to a single JSON file."""

    def __init__(self, path: Path, max_bytes: int = DEFAULT_MAX_BYTES):
        self.path = path
        self.max_bytes = max_bytes

    def list_scans(self) -> list[SavedScan]:
        return self._load().scans

    def get_scan(self, scan_id: str) -> SavedScan | None:
        return next((scan for scan in self.list_scans() if scan.id == scan_id), None)

    def save_scan(self, images: list[ImageArtifact]) -> SavedScan:
        if not images:
            raise ValueError("A scan needs at least one image")

        archive = self._load()
        scan = SavedScan(images=list(images))
        archive.scans.append(scan)

        payload = archive.model_dump_json(indent=2)
        if len(payload.encode("utf-8")) > self.max_bytes:
            raise ScanStorageFullError(
                "Storage limit reached! Please delete some old scans to save new ones."
            )
        self._write(payload)
        logger.info("Scan saved: %s (%d images)", scan.id, len(images))
        return scan

    def delete_scan(self, scan_id: str) -> bool:
        archive = self._load()
        remaining = [scan for scan in archive.scans if scan.id != scan_id]
        if len(remaining) == len(archive.scans):
            logger.warning("Scan not found: %s", scan_id)
            return False
        self._write(_ScanFile(scans=remaining).model_dump_json(indent=2))
        logger.info("Scan deleted: %s", scan_id)
        return True

    def clear(self) -> None:
        self.path.unlink(missing_ok=True)

    def storage_info(self) -> StorageInfo:
        used = self.path.stat().st_size if self.path.exists() else 0
        return StorageInfo(used=used, total=self.max_bytes)

    def _load(self) -> _ScanFile:
        if not self.path.exists():
            return _ScanFile()
        return _ScanFile.model_validate_json(self.path.read_text(encoding="utf-8"))

    def _write(self, payload: str) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(payload, encoding="utf-8")
