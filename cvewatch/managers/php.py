import json
from typing import Dict, List

from cvewatch.core.model import DependencyRecord, DEV, PROD
from cvewatch.managers.base import Handler, PackageManager


class ComposerManager(PackageManager):
    @property
    def name(self) -> str:
        return "Composer (PHP)"

    @property
    def manifest_files(self) -> Dict[str, str]:
        return {"composer.json": "composer"}

    @property
    def handlers(self) -> Dict[str, Handler]:
        return {"composer.json": self._parse_composer}

    def _parse_composer(self, content: str) -> List[DependencyRecord]:
        pkg = json.loads(content)
        prod = pkg.get("require") or {}
        dev = pkg.get("require-dev") or {}

        all_deps = {}
        all_deps.update(prod)
        all_deps.update(dev)

        deps = []
        for name, version in all_deps.items():
            # Platform requirements (php, ext-json, lib-curl, composer-plugin-api) have no vendor
            if "/" not in name:
                continue
            deps.append(self.record(
                "composer.json", name, self.strip_range(version),
                kind=DEV if name in dev else PROD,
            ))

        return deps
