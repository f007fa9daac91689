import ntpath
import os
import re
from pathlib import Path

from cvewatch.core.errors import PathRejectedError

# System directories that are never scanned
FORBIDDEN_PATHS = [
    "/", "/bin", "/sbin", "/usr", "/etc", "/var", "/tmp", "/private",
    "/System", "/Library", "/Applications", "/Users",
    "C:\\", "C:\\Windows", "C:\\Program Files", "C:\\Program Files (x86)",
    "C:\\Users", "C:\\ProgramData",
]

RE_WINDOWS_USER_DIR = re.compile(r'^[A-Z]:\\Users\\', re.IGNORECASE)


def _normalize(path: str) -> str:
    if re.match(r'^[A-Za-z]:', path):
        return ntpath.normpath(path)
    return os.path.normpath(path)


def is_forbidden_path(target: str) -> bool:
    normalized = _normalize(target)

    for forbidden in FORBIDDEN_PATHS:
        if normalized == forbidden or normalized == _normalize(forbidden):
            return True

    # Projects under a user's home are fine
    if normalized.startswith("/Users/") or RE_WINDOWS_USER_DIR.match(normalized):
        return False

    # Any other top-level directory (/opt, /home, D:\) is rejected
    parts = [p for p in re.split(r'[\\/]', normalized) if p]
    return len(parts) <= 1 and any(normalized.startswith(f) for f in FORBIDDEN_PATHS)


def validate_path(target: str) -> str:
    """Resolves symlinks and returns the real path of a scannable directory."""
    try:
        real_path = Path(target).resolve(strict=True)
    except (OSError, RuntimeError) as e:
        raise PathRejectedError(f"Cannot access path: {e}") from e

    if is_forbidden_path(str(real_path)):
        raise PathRejectedError("Cannot scan system directories")

    if not real_path.is_dir():
        raise PathRejectedError("Selected path is not a directory")

    return str(real_path)
