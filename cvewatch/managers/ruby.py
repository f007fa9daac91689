import re
import logging
from typing import Dict, List

from cvewatch.core.model import DependencyRecord, DEV, PROD
from cvewatch.managers.base import Handler, PackageManager

RE_GEM = re.compile(r'^\s*gem\s+[\'"]([^\'"]+)[\'"]')
RE_VERSION_ARG = re.compile(r',\s*[\'"]([^\'"]+)[\'"]')
RE_DEV_GROUP = re.compile(r'^\s*group\s+.*:(development|test)\b.*\bdo\b')
RE_END = re.compile(r'^\s*end\b')


class RubyManager(PackageManager):
    @property
    def name(self) -> str:
        return "RubyGems"

    @property
    def manifest_files(self) -> Dict[str, str]:
        return {
            "Gemfile": "rubygems",
            "Gemfile.lock": "rubygems",
        }

    @property
    def handlers(self) -> Dict[str, Handler]:
        return {
            "Gemfile": self._parse_gemfile,
            "Gemfile.lock": self._parse_gemfile_lock,
        }

    def _parse_gemfile(self, content: str) -> List[DependencyRecord]:
        deps = []
        in_dev_group = False

        for line in content.splitlines():
            if RE_DEV_GROUP.match(line):
                in_dev_group = True
                continue
            if in_dev_group and RE_END.match(line):
                in_dev_group = False
                continue

            match = RE_GEM.match(line)
            if match:
                version = RE_VERSION_ARG.search(line)
                deps.append(self.record(
                    "Gemfile", match.group(1), version.group(1) if version else None,
                    kind=DEV if in_dev_group else PROD,
                ))

        return deps

    def _parse_gemfile_lock(self, content: str) -> List[DependencyRecord]:
        # Top-level gems have exactly 4 spaces, their own dependencies 6
        re_spec = re.compile(r'^ {4}([a-zA-Z0-9\-_.]+) \(([^)]+)\)')

        deps = []
        in_gem_block = False

        for line in content.splitlines():
            if line.strip() == "specs:":
                in_gem_block = True
                continue

            if in_gem_block and line.strip() and not line.startswith(" "):
                in_gem_block = False

            if in_gem_block:
                match_spec = re_spec.match(line)
                if match_spec:
                    deps.append(self.record("Gemfile.lock", match_spec.group(1), match_spec.group(2)))

        logging.debug(f"Gemfile.lock: {len(deps)} gems found.")
        return deps
