from dataclasses import dataclass, field
from typing import List, Optional, Tuple

PROD = "prod"
DEV = "dev"


@dataclass(frozen=True)
class DependencyRecord:
    name: str
    version: str
    ecosystem: str
    kind: str = PROD

    @property
    def id(self) -> str:
        return f"{self.name}@{self.version}"


@dataclass
class ManifestFile:
    file_name: str
    file_path: str
    ecosystem: str
    packages: List[DependencyRecord] = field(default_factory=list)


@dataclass
class FolderNode:
    name: str
    path: str
    dependency_files: List[ManifestFile] = field(default_factory=list)
    children: List['FolderNode'] = field(default_factory=list)

    # Aggregates, filled once by the scanner on the way back up
    total_packages: int = 0
    total_projects: int = 0

    @property
    def id(self) -> str:
        return self.path

    @property
    def is_project(self) -> bool:
        return len(self.dependency_files) > 0


@dataclass
class ScanResult:
    root_name: str
    root_path: str
    tree: Optional[FolderNode] = None
    total_projects: int = 0
    total_packages: int = 0
    limit_reached: bool = False
    error: Optional[str] = None


@dataclass(frozen=True)
class Product:
    id: str
    name: str
    keyword: str = ""

    @property
    def search_term(self) -> str:
        return self.keyword or self.name


@dataclass(frozen=True)
class VulnerabilityRecord:
    id: str
    description: str
    score: Optional[float]
    severity: str
    cvss_version: Optional[str]
    published: str
    last_modified: str
    affected_products: Tuple[str, ...] = ()
    references: Tuple[str, ...] = ()
    url: str = ""
    matched_product: Optional[str] = None

    @property
    def vendor(self) -> Optional[str]:
        """Vendor field of the first affected CPE (cpe:2.3:part:vendor:product:...)."""
        for cpe in self.affected_products:
            parts = cpe.split(":")
            if len(parts) > 3 and parts[3] not in ("", "*", "-"):
                return parts[3]
        return None


@dataclass(frozen=True)
class CacheEntry:
    key: str
    data: Tuple[VulnerabilityRecord, ...]
    timestamp: float


@dataclass(frozen=True)
class Alert:
    title: str
    body: str
    url: Optional[str] = None
