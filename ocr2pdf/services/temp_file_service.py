from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, List, Optional, Union
import logging
import re
import time
import uuid

import aiofiles
import aiofiles.os

from ocr2pdf.core.config import settings

logger = logging.getLogger(__name__)

# uuid4 followed by a dash, as produced by create_temp_copy
TEMP_NAME_PATTERN = re.compile(
    r'^[0-9a-f]{8}-[0-9a-f]{4}-4[0-9a-f]{3}-[89ab][0-9a-f]{3}-[0-9a-f]{12}-',
    re.IGNORECASE
)


@dataclass(frozen=True)
class CleanupReport:
    deleted_count: int = 0
    failed_count: int = 0


class TempFileService:
    """Service for per-image temp copies and orphan sweeping"""

    def __init__(
        self,
        temp_dir: Optional[Union[str, Path]] = None,
        orphan_min_age_seconds: Optional[float] = None,
        logger: Optional[logging.Logger] = None
    ):
        self.temp_dir = Path(temp_dir) if temp_dir is not None else settings.temp_dir_path
        self.orphan_min_age_seconds = (
            settings.ORPHAN_MIN_AGE_SECONDS if orphan_min_age_seconds is None else orphan_min_age_seconds
        )
        self.logger = logger or logging.getLogger(__name__)

    async def create_temp_copy(self, content: bytes, original_name: str) -> Path:
        """
        Write image bytes to a uniquely named temp file

        Args:
            content: Image bytes
            original_name: Original filename, directory components are dropped

        Returns:
            Path to the created file
        """
        self.temp_dir.mkdir(parents=True, exist_ok=True)
        safe_name = re.split(r'[/\\]', original_name)[-1] or "upload"
        temp_path = self.temp_dir / f"{uuid.uuid4()}-{safe_name}"

        async with aiofiles.open(temp_path, 'wb') as f:
            await f.write(content)

        self.logger.debug(f"Temporary file created: {temp_path} ({len(content)} bytes)")
        return temp_path

    async def cleanup(self, paths: Iterable[Union[str, Path]]) -> CleanupReport:
        """
        Delete temp files, never raising

        Missing files are skipped and not counted as failures.
        """
        deleted = 0
        failed = 0
        paths = [Path(p) for p in paths]

        for path in paths:
            try:
                await aiofiles.os.remove(path)
                deleted += 1
                self.logger.debug(f"Temporary file deleted: {path}")
            except FileNotFoundError:
                self.logger.debug(f"Temp file does not exist, skipping: {path}")
            except OSError as e:
                failed += 1
                self.logger.error(f"Failed to delete temp file {path}: {e}")

        if paths:
            self.logger.info(
                f"Temp file cleanup complete: {len(paths)} files, {deleted} deleted, {failed} failed"
            )
        return CleanupReport(deleted_count=deleted, failed_count=failed)

    def scan_for_orphans(self) -> List[Path]:
        """
        Find files in the temp dir that carry the uuid4 prefix

        Files younger than orphan_min_age_seconds are skipped, they may belong
        to a batch that is still running.
        """
        cutoff = time.time() - self.orphan_min_age_seconds if self.orphan_min_age_seconds > 0 else None
        try:
            orphans = [
                entry for entry in self.temp_dir.iterdir()
                if TEMP_NAME_PATTERN.match(entry.name) and self._is_stale_file(entry, cutoff)
            ]
        except OSError as e:
            self.logger.error(f"Error scanning for leftover temporary files in {self.temp_dir}: {e}")
            return []

        if orphans:
            self.logger.info(f"Found {len(orphans)} potential leftover temporary files")
        return orphans

    @staticmethod
    def _is_stale_file(entry: Path, cutoff: Optional[float]) -> bool:
        try:
            return entry.is_file() and (cutoff is None or entry.stat().st_mtime <= cutoff)
        except OSError:
            # Removed between listing and stat
            return False

    async def cleanup_orphans(self) -> int:
        """
        Sweep leftover temp files from crashed or interrupted requests

        Best-effort: failures are logged and never propagate.

        Returns:
            Number of files deleted
        """
        try:
            orphans = self.scan_for_orphans()
            if not orphans:
                self.logger.debug("No leftover temporary files found")
                return 0

            report = await self.cleanup(orphans)
            self.logger.info(f"Cleaned up {report.deleted_count} leftover temporary files")
            return report.deleted_count
        except Exception as e:
            self.logger.warning(f"Non-critical error during leftover temp file cleanup: {e}")
            return 0

    def verify_cleanup(self, paths: Iterable[Union[str, Path]]) -> bool:
        """Check that none of the given temp files still exist"""
        remaining = [str(p) for p in paths if Path(p).exists()]

        if remaining:
            self.logger.warning(f"Found {len(remaining)} temporary files that still exist: {remaining}")
            return False

        self.logger.debug("Verification successful: all temporary files have been deleted")
        return True
