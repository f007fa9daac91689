import asyncio
import logging
import time
from typing import Callable, Optional, Tuple

from cvewatch.core.errors import ScanInProgressError
from cvewatch.core.model import ScanResult
from cvewatch.core.paths import validate_path
from cvewatch.core.scanner import TreeScanner
from cvewatch.core.store import LAST_PROJECTS_SCAN, MemoryStore, PROJECTS_FOLDER, SCANNED_PROJECTS

ScannedFolder = Tuple[ScanResult, float]


class ProjectsService:
    """
    Owns the selected projects folder: validation, scanning and the stored
    result. Only one scan runs at a time.
    """

    def __init__(
        self,
        store: Optional[MemoryStore] = None,
        scanner_factory: Callable[[], TreeScanner] = TreeScanner,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.store = store if store is not None else MemoryStore()
        self.scanner_factory = scanner_factory
        self.clock = clock
        self._scanning = False

    @property
    def scanning(self) -> bool:
        return self._scanning

    async def select_folder(self, folder_path: str) -> ScannedFolder:
        """Validates and scans a new folder. Raises PathRejectedError before any scanning."""
        safe_path = validate_path(folder_path)
        self.store.set(PROJECTS_FOLDER, safe_path)
        return await self._scan_and_store(safe_path)

    def get_projects_folder(self) -> Optional[ScannedFolder]:
        folder = self.store.get(PROJECTS_FOLDER)
        result = self.store.get(SCANNED_PROJECTS)
        if not folder or result is None:
            return None
        return result, self.store.get(LAST_PROJECTS_SCAN)

    async def rescan(self) -> Optional[ScannedFolder]:
        folder = self.store.get(PROJECTS_FOLDER)
        if not folder:
            return None

        try:
            return await self._scan_and_store(folder)
        except ScanInProgressError:
            raise
        except Exception:
            logging.exception("Rescan failed:")
            return None

    def clear(self) -> None:
        self.store.delete(PROJECTS_FOLDER)
        self.store.delete(SCANNED_PROJECTS)
        self.store.delete(LAST_PROJECTS_SCAN)

    async def _scan_and_store(self, folder: str) -> ScannedFolder:
        if self._scanning:
            raise ScanInProgressError("A scan is already running")

        self._scanning = True
        try:
            # A fresh scanner per run keeps the quota counters separate
            scanner = self.scanner_factory()
            result = await asyncio.to_thread(scanner.scan_root, folder)
        finally:
            self._scanning = False

        scanned_at = self.clock()
        self.store.set(SCANNED_PROJECTS, result)
        self.store.set(LAST_PROJECTS_SCAN, scanned_at)
        return result, scanned_at
