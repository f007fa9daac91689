import re
from typing import Dict, List

from cvewatch.core.model import DependencyRecord
from cvewatch.managers.base import Handler, PackageManager

RE_POD = re.compile(r'^\s*pod\s+[\'"]([^\'"]+)[\'"]')
RE_VERSION_ARG = re.compile(r',\s*[\'"]([^\'"]+)[\'"]')
RE_LOCK_POD = re.compile(r'^ {2}- "?([^\s("]+)\s*\(([^)]+)\)')
RE_SWIFT_PACKAGE = re.compile(
    r'\.package\([^)]*url:\s*"[^"]*/([^"/]+?)(?:\.git)?"\s*,\s*(?:from:|\.upToNextMajor\(from:)\s*"([^"]+)"'
)


class AppleManager(PackageManager):
    @property
    def name(self) -> str:
        return "CocoaPods/SwiftPM"

    @property
    def manifest_files(self) -> Dict[str, str]:
        return {
            "Podfile": "cocoapods",
            "Podfile.lock": "cocoapods",
            "Package.swift": "swift",
        }

    @property
    def handlers(self) -> Dict[str, Handler]:
        return {
            "Podfile": self._parse_podfile,
            "Podfile.lock": self._parse_podfile_lock,
            "Package.swift": self._parse_package_swift,
        }

    def _parse_podfile(self, content: str) -> List[DependencyRecord]:
        deps = []
        for line in content.splitlines():
            match = RE_POD.match(line)
            if match:
                version = RE_VERSION_ARG.search(line)
                deps.append(self.record("Podfile", match.group(1), version.group(1) if version else None))

        return deps

    def _parse_podfile_lock(self, content: str) -> List[DependencyRecord]:
        deps = []
        in_pods = False

        for line in content.splitlines():
            if line.strip() == "PODS:":
                in_pods = True
                continue
            if in_pods and line.strip() and not line.startswith(" "):
                break

            # "  - Alamofire (5.8.0)" is a pod, "    - Firebase/Core" one of its dependencies
            match = RE_LOCK_POD.match(line) if in_pods else None
            if match:
                deps.append(self.record("Podfile.lock", match.group(1), match.group(2)))

        return deps

    def _parse_package_swift(self, content: str) -> List[DependencyRecord]:
        return [
            self.record("Package.swift", name, version)
            for name, version in RE_SWIFT_PACKAGE.findall(content)
        ]
