import re
from abc import ABC, abstractmethod
from typing import Callable, Dict, List, Optional, Tuple

from cvewatch.core.model import DependencyRecord, PROD

Handler = Callable[[str], List[DependencyRecord]]

# Leading range operators: ^1.2.3, ~1.2, >=1.0, ==2.0
RANGE_PREFIX = re.compile(r'^[\^~>=<]+')


class PackageManager(ABC):
    """Base class inherited by all ecosystem managers."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Friendly ecosystem family name (e.g., Python, JavaScript)."""
        pass

    @property
    @abstractmethod
    def manifest_files(self) -> Dict[str, str]:
        """Exact manifest filenames this manager reads, mapped to their ecosystem tag."""
        pass

    @property
    @abstractmethod
    def handlers(self) -> Dict[str, Handler]:
        """Strategy table: manifest filename -> parse function over the raw content."""
        pass

    def parse(self, file_name: str, content: str) -> List[DependencyRecord]:
        handler = self.handlers.get(file_name)
        if handler is None:
            return []
        return handler(content)

    def record(self, file_name: str, name: str, version: Optional[str], kind: str = PROD) -> DependencyRecord:
        return DependencyRecord(
            name=name,
            version=version or "latest",
            ecosystem=self.manifest_files[file_name],
            kind=kind,
        )

    @staticmethod
    def strip_range(version) -> str:
        return RANGE_PREFIX.sub("", str(version))


def section_body(content: str, header: str) -> Optional[str]:
    """Text between a `[header]` line and the next `[...]` line (or end of file)."""
    match = re.search(
        r'^\[' + re.escape(header) + r'\][ \t]*$(.*?)(?=^\[|\Z)',
        content,
        re.MULTILINE | re.DOTALL,
    )
    return match.group(1) if match else None


# name = "1.0"  |  name = { version = "1.0", features = [...] }
RE_TOML_PAIR = re.compile(r'^([a-zA-Z0-9_.\-]+)\s*=\s*(.+?)\s*$', re.MULTILINE)
RE_INLINE_VERSION = re.compile(r'version\s*=\s*["\']([^"\']+)["\']')


def toml_pairs(body: str) -> List[Tuple[str, str]]:
    """`key = "value"` pairs of a TOML section body; inline tables yield their `version` or ''."""
    pairs = []
    for key, raw in RE_TOML_PAIR.findall(body):
        if raw.startswith("{"):
            match = RE_INLINE_VERSION.search(raw)
            value = match.group(1) if match else ""
        else:
            value = raw.split("#", 1)[0].strip().strip('"\'')
        pairs.append((key, value))
    return pairs
