import re
from typing import Dict, List

from cvewatch.core.model import DependencyRecord
from cvewatch.managers.base import Handler, PackageManager

RE_REQUIRE = re.compile(r'^\s*([^\s]+)\s+v?([^\s]+)')
RE_SUM = re.compile(r'^([^\s]+)\s+v([^\s/]+)')


class GoManager(PackageManager):
    @property
    def name(self) -> str:
        return "Go Modules"

    @property
    def manifest_files(self) -> Dict[str, str]:
        return {
            "go.mod": "go",
            "go.sum": "go",
        }

    @property
    def handlers(self) -> Dict[str, Handler]:
        return {
            "go.mod": self._parse_go_mod,
            "go.sum": self._parse_go_sum,
        }

    def _parse_go_mod(self, content: str) -> List[DependencyRecord]:
        deps = []
        in_require = False

        for line in content.splitlines():
            stripped = line.strip()
            if stripped.startswith("require ("):
                in_require = True
                continue
            if in_require and stripped.startswith(")"):
                in_require = False
                continue

            if stripped.startswith("require "):
                stripped = stripped[len("require "):]
            elif not in_require or stripped.startswith("//"):
                continue

            match = RE_REQUIRE.match(stripped)
            if match:
                deps.append(self.record("go.mod", match.group(1), match.group(2)))

        return deps

    def _parse_go_sum(self, content: str) -> List[DependencyRecord]:
        # Every module appears twice (h1 of the tree and of go.mod)
        deps = []
        seen = set()

        for line in content.splitlines():
            match = RE_SUM.match(line)
            if match and match.group(1) not in seen:
                seen.add(match.group(1))
                deps.append(self.record("go.sum", match.group(1), match.group(2)))

        return deps
