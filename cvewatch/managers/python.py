import json
import logging
import re
import sys
from typing import Dict, List, Optional, Tuple

from cvewatch.core.model import DependencyRecord, DEV, PROD
from cvewatch.managers.base import Handler, PackageManager, section_body, toml_pairs

if sys.version_info >= (3, 11):
    import tomllib
else:
    import tomli as tomllib

# Matches: package==1.0, package>=1.0, package[extra]~=1.0, package
RE_REQ = re.compile(r'^([a-zA-Z0-9\-_.]+)\s*(?:\[[^\]]*\])?\s*(?:([<>=!~]+)\s*([^;\s,#]+))?')
RE_QUOTED = re.compile(r'"([^"]+)"|\'([^\']+)\'')


def parse_requirement(line: str) -> Optional[Tuple[str, str]]:
    match = RE_REQ.match(line.strip())
    if not match:
        return None
    return match.group(1), match.group(3) or "latest"


class PythonManager(PackageManager):
    @property
    def name(self) -> str:
        return "PyPI (Pip)"

    @property
    def manifest_files(self) -> Dict[str, str]:
        return {
            "requirements.txt": "pypi",
            "Pipfile": "pypi",
            "Pipfile.lock": "pypi",
            "pyproject.toml": "pypi",
            "poetry.lock": "pypi",
            "setup.py": "pypi",
        }

    @property
    def handlers(self) -> Dict[str, Handler]:
        return {
            "requirements.txt": self._parse_requirements,
            "Pipfile": self._parse_pipfile,
            "Pipfile.lock": self._parse_pipfile_lock,
            "pyproject.toml": self._parse_pyproject,
            "poetry.lock": self._parse_poetry,
            "setup.py": self._parse_setup_py,
        }

    def _parse_requirements(self, content: str) -> List[DependencyRecord]:
        deps = []
        for line in content.splitlines():
            line = line.strip()
            # -e, -r, -c, --index-url ...
            if not line or line.startswith(("#", "-")) or "://" in line:
                continue

            parsed = parse_requirement(line)
            if parsed:
                deps.append(self.record("requirements.txt", *parsed))

        return deps

    def _parse_pipfile(self, content: str) -> List[DependencyRecord]:
        deps = []
        for header, kind in (("packages", PROD), ("dev-packages", DEV)):
            body = section_body(content, header)
            if body is None:
                continue

            for name, constraint in toml_pairs(body):
                version = "latest" if constraint in ("", "*") else self.strip_range(constraint)
                deps.append(self.record("Pipfile", name, version, kind=kind))

        return deps

    def _parse_pipfile_lock(self, content: str) -> List[DependencyRecord]:
        lockfile = json.loads(content)
        deps = []
        for section, kind in (("default", PROD), ("develop", DEV)):
            for name, info in (lockfile.get(section) or {}).items():
                version = (info or {}).get("version") or ""
                version = re.sub(r'^==', "", version) or "locked"
                deps.append(self.record("Pipfile.lock", name, version, kind=kind))

        return deps

    def _parse_pyproject(self, content: str) -> List[DependencyRecord]:
        deps = []

        # PEP 621
        project = section_body(content, "project")
        if project is not None:
            match = re.search(r'^dependencies\s*=\s*\[(.*?)\]\s*$', project, re.MULTILINE | re.DOTALL)
            if match:
                deps.extend(self._quoted_requirements("pyproject.toml", match.group(1)))

        # Poetry
        for header, kind in (("tool.poetry.dependencies", PROD), ("tool.poetry.group.dev.dependencies", DEV)):
            body = section_body(content, header)
            if body is None:
                continue

            for name, constraint in toml_pairs(body):
                if name == "python":
                    continue
                version = "latest" if constraint in ("", "*") else self.strip_range(constraint)
                deps.append(self.record("pyproject.toml", name, version, kind=kind))

        return deps

    def _parse_poetry(self, content: str) -> List[DependencyRecord]:
        data = tomllib.loads(content)

        deps = []
        for pkg in data.get("package", []):
            name = pkg.get("name")
            version = pkg.get("version")
            if name and version:
                # Only poetry < 1.5 still writes the category
                kind = DEV if pkg.get("category") == "dev" else PROD
                deps.append(self.record("poetry.lock", name, version, kind=kind))

        logging.debug(f"poetry.lock: {len(deps)} locked packages.")
        return deps

    def _parse_setup_py(self, content: str) -> List[DependencyRecord]:
        match = re.search(r'install_requires\s*=\s*\[(.*?)\]\s*[,)]', content, re.DOTALL)
        if not match:
            return []
        return self._quoted_requirements("setup.py", match.group(1))

    def _quoted_requirements(self, file_name: str, array_body: str) -> List[DependencyRecord]:
        deps = []
        for double, single in RE_QUOTED.findall(array_body):
            parsed = parse_requirement(double or single)
            if parsed:
                deps.append(self.record(file_name, *parsed))
        return deps
