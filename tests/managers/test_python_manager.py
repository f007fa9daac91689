import unittest

from cvewatch import managers
from cvewatch.core.model import DependencyRecord
from cvewatch.managers.python import PythonManager, parse_requirement


class TestPythonManager(unittest.TestCase):

    def setUp(self):
        self.manager = PythonManager()

    def test_requirements_skips_comments_and_options(self):
        deps = managers.parse("requirements.txt", "flask==2.0.1\n# comment\n-e .\n")

        self.assertEqual(deps, [DependencyRecord("flask", "2.0.1", "pypi", "prod")])

    def test_parse_requirements_simple(self):
        mock_content = """
        requests>=2.31.0
        Django~=4.2  # LTS
        textual
        uvicorn[standard]==0.23.2
        -r requirements-dev.txt
        git+https://github.com/org/repo.git
        """

        deps = self.manager.parse("requirements.txt", mock_content)

        self.assertEqual([(d.name, d.version) for d in deps], [
            ("requests", "2.31.0"),
            ("Django", "4.2"),
            ("textual", "latest"),
            ("uvicorn", "0.23.2"),
        ])

    def test_duplicate_requirements_are_kept_in_order(self):
        deps = self.manager.parse("requirements.txt", "six==1.15\nsix==1.16\n")

        self.assertEqual([d.id for d in deps], ["six@1.15", "six@1.16"])

    def test_parse_requirement_without_version(self):
        self.assertEqual(parse_requirement("rich ; python_version >= '3.8'"), ("rich", "latest"))

    def test_pipfile_sections(self):
        content = """[[source]]
url = "https://pypi.org/simple"
verify_ssl = true

[packages]
requests = "==2.31.0"
flask = "*"
django = {version = ">=4.0", extras = ["bcrypt"]}

[dev-packages]
pytest = "*"

[requires]
python_version = "3.11"
"""
        deps = self.manager.parse("Pipfile", content)

        self.assertEqual([(d.name, d.version, d.kind) for d in deps], [
            ("requests", "2.31.0", "prod"),
            ("flask", "latest", "prod"),
            ("django", "4.0", "prod"),
            ("pytest", "latest", "dev"),
        ])

    def test_pipfile_lock(self):
        content = """{
            "default": {"requests": {"version": "==2.31.0"}},
            "develop": {"pytest": {"version": "==7.4.0"}, "black": {}}
        }"""

        deps = self.manager.parse("Pipfile.lock", content)

        self.assertEqual([(d.name, d.version, d.kind) for d in deps], [
            ("requests", "2.31.0", "prod"),
            ("pytest", "7.4.0", "dev"),
            ("black", "locked", "dev"),
        ])

    def test_pyproject_pep621(self):
        content = """[project]
name = "demo"
dependencies = [
    "httpx>=0.24",
    "rich[jupyter]>=13.0",
    "click",
]

[project.optional-dependencies]
test = ["pytest"]
"""
        deps = self.manager.parse("pyproject.toml", content)

        self.assertEqual([(d.name, d.version) for d in deps], [
            ("httpx", "0.24"),
            ("rich", "13.0"),
            ("click", "latest"),
        ])

    def test_pyproject_poetry(self):
        content = """[tool.poetry]
name = "demo"

[tool.poetry.dependencies]
python = "^3.10"
fastapi = "^0.110.0"
sqlalchemy = {version = "~2.0", extras = ["asyncio"]}

[tool.poetry.group.dev.dependencies]
pytest = "^8.0"
"""
        deps = self.manager.parse("pyproject.toml", content)

        self.assertEqual([(d.name, d.version, d.kind) for d in deps], [
            ("fastapi", "0.110.0", "prod"),
            ("sqlalchemy", "2.0", "prod"),
            ("pytest", "8.0", "dev"),
        ])

    def test_poetry_lock(self):
        content = """[[package]]
name = "certifi"
version = "2024.2.2"
description = "Python package for providing Mozilla's CA Bundle."
optional = false
python-versions = ">=3.6"

[[package]]
name = "pytest"
version = "8.0.0"
category = "dev"
optional = false
"""
        deps = self.manager.parse("poetry.lock", content)

        self.assertEqual([(d.name, d.version, d.kind) for d in deps], [
            ("certifi", "2024.2.2", "prod"),
            ("pytest", "8.0.0", "dev"),
        ])

    def test_invalid_poetry_lock_degrades_to_empty(self):
        self.assertEqual(managers.parse("poetry.lock", "[[package]\nname ="), [])

    def test_setup_py_install_requires(self):
        content = """from setuptools import setup

setup(
    name="demo",
    install_requires=[
        "requests>=2.0",
        'click',
    ],
)
"""
        deps = self.manager.parse("setup.py", content)

        self.assertEqual([(d.name, d.version) for d in deps], [("requests", "2.0"), ("click", "latest")])
