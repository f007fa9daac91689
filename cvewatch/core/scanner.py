import logging
import os
from dataclasses import dataclass
from typing import Callable, List, Optional

from cvewatch import managers
from cvewatch.core.errors import ScanCancelledError
from cvewatch.core.model import DependencyRecord, FolderNode, ManifestFile, ScanResult

MAX_DEPTH = 5
MAX_FILES_SCANNED = 10000
MAX_FOLDERS_SCANNED = 5000
MAX_FILE_SIZE = 25 * 1024 * 1024

SKIP_DIRS = frozenset([
    "node_modules", ".git", "vendor", "venv", ".venv", "env",
    "__pycache__", "target", "build", "dist", ".next", ".nuxt",
    ".cache", "coverage", ".nyc_output", "bower_components",
])


@dataclass
class ScanStats:
    files_scanned: int = 0
    folders_scanned: int = 0
    limit_reached: bool = False


class TreeScanner:
    """
    Walks a folder depth-first and builds the tree of folders that contain
    dependency manifests, under global folder/file quotas.
    """

    def __init__(
        self,
        max_files: int = MAX_FILES_SCANNED,
        max_folders: int = MAX_FOLDERS_SCANNED,
        max_file_size: int = MAX_FILE_SIZE,
        should_stop: Optional[Callable[[], bool]] = None,
    ) -> None:
        self.max_files = max_files
        self.max_folders = max_folders
        self.max_file_size = max_file_size
        self.should_stop = should_stop
        self.stats = ScanStats()

    def scan(self, root_path: str, max_depth: int = MAX_DEPTH) -> Optional[FolderNode]:
        # Counters belong to this invocation only
        stats = ScanStats()
        self.stats = stats
        logging.info(f"Scanning {root_path} (max depth {max_depth})...")

        tree = self._scan_dir(root_path, 0, max_depth, stats)

        logging.info(
            f"Scan done: {stats.folders_scanned} folders, {stats.files_scanned} entries"
            f"{' (limit reached)' if stats.limit_reached else ''}."
        )
        return tree

    def scan_root(self, root_path: str, max_depth: int = MAX_DEPTH) -> ScanResult:
        root_name = os.path.basename(os.path.normpath(root_path))

        try:
            tree = self.scan(root_path, max_depth)
        except ScanCancelledError:
            raise
        except Exception as e:
            logging.exception("Scan failed:")
            return ScanResult(root_name=root_name, root_path=root_path, error=f"Scan failed: {e}")

        if tree is None:
            return ScanResult(root_name=root_name, root_path=root_path, limit_reached=self.stats.limit_reached)

        return ScanResult(
            root_name=tree.name,
            root_path=root_path,
            tree=tree,
            total_projects=tree.total_projects,
            total_packages=tree.total_packages,
            limit_reached=self.stats.limit_reached,
        )

    def _limit(self, stats: ScanStats, message: str) -> None:
        if not stats.limit_reached:
            logging.warning(message)
            stats.limit_reached = True

    def _scan_dir(self, dir_path: str, depth: int, max_depth: int, stats: ScanStats) -> Optional[FolderNode]:
        if depth > max_depth:
            return None

        stats.folders_scanned += 1
        if stats.folders_scanned > self.max_folders:
            self._limit(stats, "Folder scan limit reached, stopping scan")
            return None

        try:
            with os.scandir(dir_path) as it:
                entries = list(it)
        except OSError as e:
            logging.error(f"Cannot read directory {dir_path}: {e}")
            return None

        stats.files_scanned += len(entries)
        if stats.files_scanned > self.max_files:
            self._limit(stats, "File scan limit reached, stopping scan")
            return None

        # Folders first, then files, alphabetically
        entries.sort(key=lambda e: (not _is_dir(e), e.name.lower()))

        dependency_files = []
        children = []

        for entry in entries:
            if self.should_stop is not None and self.should_stop():
                raise ScanCancelledError(dir_path)

            ecosystem = managers.ecosystem_for(entry.name)
            if ecosystem and _is_file(entry):
                # Recognized files are listed even when nothing could be parsed
                dependency_files.append(ManifestFile(
                    file_name=entry.name,
                    file_path=entry.path,
                    ecosystem=ecosystem,
                    packages=self._parse_file(entry),
                ))

            elif _is_dir(entry) and entry.name not in SKIP_DIRS and not entry.name.startswith("."):
                child = self._scan_dir(entry.path, depth + 1, max_depth, stats)
                if child:
                    children.append(child)

        if not dependency_files and not children:
            return None

        local_packages = sum(len(f.packages) for f in dependency_files)
        node = FolderNode(
            name=os.path.basename(os.path.normpath(dir_path)),
            path=dir_path,
            dependency_files=dependency_files,
            children=children,
        )
        node.total_packages = local_packages + sum(c.total_packages for c in children)
        node.total_projects = (1 if node.is_project else 0) + sum(c.total_projects for c in children)
        return node

    def _parse_file(self, entry: os.DirEntry) -> List[DependencyRecord]:
        try:
            size = entry.stat().st_size
            if size > self.max_file_size:
                logging.warning(f"Skipping large file {entry.path} ({round(size / 1024 / 1024)}MB)")
                return []

            with open(entry.path, "r", encoding="utf-8", errors="replace") as f:
                content = f.read()
        except OSError as e:
            logging.error(f"Cannot read {entry.path}: {e}")
            return []

        deps = managers.parse(entry.name, content)
        logging.debug(f"Parsed {len(deps)} dependencies from {entry.path}")
        return deps


def _is_dir(entry: os.DirEntry) -> bool:
    try:
        return entry.is_dir(follow_symlinks=False)
    except OSError:
        return False


def _is_file(entry: os.DirEntry) -> bool:
    try:
        return entry.is_file(follow_symlinks=False)
    except OSError:
        return False
