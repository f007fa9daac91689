import logging
from typing import Dict, List, Optional

from cvewatch.core.model import DependencyRecord
from .base import PackageManager
from .dart import PubManager
from .go import GoManager
from .java import JavaManager
from .javascript import NodeManager
from .php import ComposerManager
from .python import PythonManager
from .ruby import RubyManager
from .rust import RustManager
from .swift import AppleManager

MANAGERS: List[PackageManager] = [
    NodeManager(),
    PythonManager(),
    RustManager(),
    GoManager(),
    RubyManager(),
    JavaManager(),
    ComposerManager(),
    PubManager(),
    AppleManager(),
]

# Every recognized manifest filename -> ecosystem tag
MANIFEST_FILES: Dict[str, str] = {
    file_name: ecosystem
    for manager in MANAGERS
    for file_name, ecosystem in manager.manifest_files.items()
}

_BY_FILE_NAME: Dict[str, PackageManager] = {
    file_name: manager
    for manager in MANAGERS
    for file_name in manager.manifest_files
}


def manager_for(file_name: str) -> Optional[PackageManager]:
    """Returns the manager that reads this exact filename, if any."""
    return _BY_FILE_NAME.get(file_name)


def ecosystem_for(file_name: str) -> Optional[str]:
    return MANIFEST_FILES.get(file_name)


def parse(file_name: str, content: str) -> List[DependencyRecord]:
    """
    Extracts the dependency records declared in one manifest.
    Never raises: unknown files and malformed content yield an empty list.
    """
    manager = manager_for(file_name)
    if manager is None:
        return []

    try:
        return manager.parse(file_name, content)
    except Exception as e:
        logging.warning(f"{manager.name}: error parsing {file_name}: {e}")
        return []
