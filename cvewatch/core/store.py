from typing import Any, Dict, Optional

PROJECTS_FOLDER = "projectsFolder"
SCANNED_PROJECTS = "scannedProjects"
LAST_PROJECTS_SCAN = "lastProjectsScan"


class MemoryStore:
    """Session-scoped key/value store for the selected folder and its last scan."""

    def __init__(self, defaults: Optional[Dict[str, Any]] = None) -> None:
        self._data: Dict[str, Any] = dict(defaults or {})

    def get(self, key: str, default: Any = None) -> Any:
        return self._data.get(key, default)

    def set(self, key: str, value: Any) -> None:
        self._data[key] = value

    def delete(self, key: str) -> None:
        self._data.pop(key, None)
