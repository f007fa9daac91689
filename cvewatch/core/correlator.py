from dataclasses import dataclass, field
from typing import Iterable, List, Sequence

from cvewatch.core.model import DependencyRecord, FolderNode, VulnerabilityRecord


@dataclass
class CorrelatedDependency:
    dependency: DependencyRecord
    cves: List[VulnerabilityRecord] = field(default_factory=list)

    @property
    def name(self) -> str:
        return self.dependency.name

    @property
    def version(self) -> str:
        return self.dependency.version

    @property
    def vulnerable(self) -> bool:
        return len(self.cves) > 0


def matches(dependency: DependencyRecord, cve: VulnerabilityRecord) -> bool:
    """
    Name heuristic, not a CPE-accurate mapping: the product the CVE was found
    for equals or contains the package name, or the CVE's vendor equals it.
    """
    name = dependency.name.lower()
    product = (cve.matched_product or "").lower()
    vendor = (cve.vendor or "").lower()

    if not name:
        return False
    if product and product == name:
        return True
    if vendor and vendor == name:
        return True
    return bool(product) and name in product


def find_cves(dependency: DependencyRecord, cves: Sequence[VulnerabilityRecord]) -> List[VulnerabilityRecord]:
    return [cve for cve in cves if matches(dependency, cve)]


def attach(
    dependencies: Iterable[DependencyRecord],
    cves: Sequence[VulnerabilityRecord],
) -> List[CorrelatedDependency]:
    return [CorrelatedDependency(dep, find_cves(dep, cves)) for dep in dependencies]


def tree_cve_count(node: FolderNode, cves: Sequence[VulnerabilityRecord]) -> int:
    """CVE matches over every package of the folder and its sub folders."""
    count = sum(
        len(find_cves(pkg, cves))
        for manifest in node.dependency_files
        for pkg in manifest.packages
    )
    for child in node.children:
        count += tree_cve_count(child, cves)
    return count


def iter_dependencies(node: FolderNode) -> Iterable[DependencyRecord]:
    for manifest in node.dependency_files:
        yield from manifest.packages
    for child in node.children:
        yield from iter_dependencies(child)
