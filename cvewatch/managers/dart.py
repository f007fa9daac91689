import re
from typing import Dict, List

from cvewatch.core.model import DependencyRecord, DEV, PROD
from cvewatch.managers.base import Handler, PackageManager

SECTIONS = {"dependencies": PROD, "dev_dependencies": DEV}

# Exactly one indent level under the section key
RE_ENTRY = re.compile(r'^ {2}([a-zA-Z0-9_]+):\s*(.*?)\s*$')


class PubManager(PackageManager):
    @property
    def name(self) -> str:
        return "Pub (Dart)"

    @property
    def manifest_files(self) -> Dict[str, str]:
        return {"pubspec.yaml": "pub"}

    @property
    def handlers(self) -> Dict[str, Handler]:
        return {"pubspec.yaml": self._parse_pubspec}

    def _parse_pubspec(self, content: str) -> List[DependencyRecord]:
        deps = []
        kind = None

        for line in content.splitlines():
            if not line.strip() or line.lstrip().startswith("#"):
                continue

            if not line.startswith(" "):
                kind = SECTIONS.get(line.split(":", 1)[0].strip())
                continue

            if kind is None:
                continue

            match = RE_ENTRY.match(line)
            if match:
                # sdk / git / path sources span several lines and carry no version
                version = match.group(2).split("#", 1)[0].strip().strip('"\'')
                deps.append(self.record("pubspec.yaml", match.group(1), version or None, kind=kind))

        return deps
