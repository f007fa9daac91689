import json
import logging
import re
from typing import Dict, List

from cvewatch.core.model import DependencyRecord, DEV, PROD
from cvewatch.managers.base import Handler, PackageManager

LOCK_PREFIX = "node_modules/"


class NodeManager(PackageManager):
    @property
    def name(self) -> str:
        return "NPM/Yarn"

    @property
    def manifest_files(self) -> Dict[str, str]:
        return {
            "package.json": "npm",
            "package-lock.json": "npm",
            "yarn.lock": "npm",
        }

    @property
    def handlers(self) -> Dict[str, Handler]:
        return {
            "package.json": self._parse_package_json,
            "package-lock.json": self._parse_npm_lock,
            "yarn.lock": self._parse_yarn,
        }

    def _parse_package_json(self, content: str) -> List[DependencyRecord]:
        pkg = json.loads(content)
        prod = pkg.get("dependencies") or {}
        dev = pkg.get("devDependencies") or {}

        all_deps = {}
        all_deps.update(prod)
        all_deps.update(dev)

        return [
            self.record(
                "package.json", name, self.strip_range(version),
                kind=DEV if name in dev else PROD,
            )
            for name, version in all_deps.items()
        ]

    def _parse_npm_lock(self, content: str) -> List[DependencyRecord]:
        lockfile = json.loads(content)
        deps = []

        # npm 7+ (lockfileVersion 2/3)
        if lockfile.get("packages"):
            root_pkg = lockfile["packages"].get("") or {}
            root_dev = root_pkg.get("devDependencies") or {}
            direct = set(root_pkg.get("dependencies") or {}) | set(root_dev)

            for pkg_path, info in lockfile["packages"].items():
                if not pkg_path.startswith(LOCK_PREFIX):
                    continue
                # Nested node_modules are transitive
                if pkg_path.find("/node_modules/", len(LOCK_PREFIX)) != -1:
                    continue

                name = pkg_path[len(LOCK_PREFIX):]
                version = (info or {}).get("version")
                if name in direct and version:
                    kind = DEV if name in root_dev else PROD
                    deps.append(self.record("package-lock.json", name, version, kind=kind))

        # npm 6 (lockfileVersion 1)
        elif lockfile.get("dependencies"):
            for name, info in lockfile["dependencies"].items():
                if info.get("version"):
                    kind = DEV if info.get("dev") else PROD
                    deps.append(self.record("package-lock.json", name, info["version"], kind=kind))

        logging.debug(f"package-lock.json: {len(deps)} direct dependencies.")
        return deps

    def _parse_yarn(self, content: str) -> List[DependencyRecord]:
        deps = []

        # "pkg@^1.0.0", pkg@~1.0.0:
        #   version "1.0.3"
        re_name = re.compile(r'^"?(@?[^@\n"]+)@')
        re_version = re.compile(r'\n\s+version:?\s+"?([^"\n]+)"?')

        for block in re.split(r'\n(?=\S)', content):
            if block.startswith("#"):
                continue

            name_match = re_name.match(block)
            version_match = re_version.search(block)
            if name_match and version_match:
                deps.append(self.record("yarn.lock", name_match.group(1), version_match.group(1).strip()))

        return deps
