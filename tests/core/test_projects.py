import os
import tempfile
import unittest

from cvewatch.core.errors import PathRejectedError, ScanInProgressError
from cvewatch.core.projects import ProjectsService
from cvewatch.core.store import PROJECTS_FOLDER


class TestProjectsService(unittest.IsolatedAsyncioTestCase):

    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.root = os.path.realpath(self._tmp.name)
        with open(os.path.join(self.root, "requirements.txt"), "w") as f:
            f.write("flask==2.0.1\n")
        self.service = ProjectsService(clock=lambda: 1000.0)

    def tearDown(self):
        self._tmp.cleanup()

    async def test_select_folder_scans_and_stores(self):
        result, scanned_at = await self.service.select_folder(self.root)

        self.assertEqual(result.total_packages, 1)
        self.assertEqual(scanned_at, 1000.0)
        self.assertEqual(self.service.store.get(PROJECTS_FOLDER), self.root)
        self.assertEqual(self.service.get_projects_folder(), (result, 1000.0))

    async def test_rejected_folder_stores_nothing(self):
        with self.assertRaises(PathRejectedError):
            await self.service.select_folder(os.path.join(self.root, "requirements.txt"))

        self.assertIsNone(self.service.get_projects_folder())
        self.assertIsNone(self.service.store.get(PROJECTS_FOLDER))

    async def test_rescan_picks_up_changes(self):
        await self.service.select_folder(self.root)
        os.makedirs(os.path.join(self.root, "web"))
        with open(os.path.join(self.root, "web", "package.json"), "w") as f:
            f.write('{"dependencies": {"a": "1.0.0", "b": "2.0.0"}}')

        result, _ = await self.service.rescan()

        self.assertEqual(result.total_packages, 3)
        self.assertEqual(result.total_projects, 2)

    async def test_rescan_without_folder(self):
        self.assertIsNone(await self.service.rescan())

    async def test_concurrent_scan_is_rejected(self):
        await self.service.select_folder(self.root)
        self.service._scanning = True

        with self.assertRaises(ScanInProgressError):
            await self.service.rescan()

    async def test_clear(self):
        await self.service.select_folder(self.root)
        self.service.clear()

        self.assertIsNone(self.service.get_projects_folder())
        self.assertIsNone(await self.service.rescan())
