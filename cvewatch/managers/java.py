import re
from typing import Dict, List

from cvewatch.core.model import DependencyRecord, DEV, PROD
from cvewatch.managers.base import Handler, PackageManager

RE_POM_DEPENDENCY = re.compile(r'<dependency>(.*?)</dependency>', re.DOTALL)
RE_GRADLE = re.compile(
    r'\b(implementation|api|compile|runtimeOnly|testImplementation)\s*\(?\s*[\'"]([^:\'"\s]+):([^:\'"\s]+):([^\'")\s]+)'
)


def _xml_tag(block: str, tag: str) -> str:
    match = re.search(rf'<{tag}>\s*([^<]+?)\s*</{tag}>', block)
    return match.group(1) if match else ""


class JavaManager(PackageManager):
    @property
    def name(self) -> str:
        return "Maven/Gradle"

    @property
    def manifest_files(self) -> Dict[str, str]:
        return {
            "pom.xml": "maven",
            "build.gradle": "gradle",
            "build.gradle.kts": "gradle",
        }

    @property
    def handlers(self) -> Dict[str, Handler]:
        return {
            "pom.xml": self._parse_pom,
            "build.gradle": lambda content: self._parse_gradle("build.gradle", content),
            "build.gradle.kts": lambda content: self._parse_gradle("build.gradle.kts", content),
        }

    def _parse_pom(self, content: str) -> List[DependencyRecord]:
        deps = []
        for block in RE_POM_DEPENDENCY.findall(content):
            group_id = _xml_tag(block, "groupId")
            artifact_id = _xml_tag(block, "artifactId")
            if not group_id or not artifact_id:
                continue

            # Without <version> the parent or a BOM pins it
            version = _xml_tag(block, "version") or "managed"
            kind = DEV if _xml_tag(block, "scope") == "test" else PROD
            deps.append(self.record("pom.xml", f"{group_id}:{artifact_id}", version, kind=kind))

        return deps

    def _parse_gradle(self, file_name: str, content: str) -> List[DependencyRecord]:
        deps = []
        for scope, group, artifact, version in RE_GRADLE.findall(content):
            kind = DEV if scope == "testImplementation" else PROD
            deps.append(self.record(file_name, f"{group}:{artifact}", version, kind=kind))

        return deps
