import logging
import sys
from typing import Dict, List

from cvewatch.core.model import DependencyRecord, DEV, PROD
from cvewatch.managers.base import Handler, PackageManager, section_body, toml_pairs

if sys.version_info >= (3, 11):
    import tomllib
else:
    import tomli as tomllib


class RustManager(PackageManager):
    @property
    def name(self) -> str:
        return "Cargo (Rust)"

    @property
    def manifest_files(self) -> Dict[str, str]:
        return {
            "Cargo.toml": "cargo",
            "Cargo.lock": "cargo",
        }

    @property
    def handlers(self) -> Dict[str, Handler]:
        return {
            "Cargo.toml": self._parse_cargo_toml,
            "Cargo.lock": self._parse_cargo_lock,
        }

    def _parse_cargo_toml(self, content: str) -> List[DependencyRecord]:
        deps = []
        for header, kind in (("dependencies", PROD), ("dev-dependencies", DEV)):
            body = section_body(content, header)
            if body is None:
                continue

            # git / path dependencies carry no version
            for name, version in toml_pairs(body):
                deps.append(self.record("Cargo.toml", name, self.strip_range(version), kind=kind))

        return deps

    def _parse_cargo_lock(self, content: str) -> List[DependencyRecord]:
        data = tomllib.loads(content)

        deps = []
        for pkg in data.get("package", []):
            name = pkg.get("name")
            version = pkg.get("version")
            if name and version:
                deps.append(self.record("Cargo.lock", name, version))

        logging.debug(f"Cargo.lock: {len(deps)} locked packages.")
        return deps
