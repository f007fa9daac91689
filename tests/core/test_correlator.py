import unittest

from cvewatch.core.correlator import attach, find_cves, iter_dependencies, matches, tree_cve_count
from cvewatch.core.model import DependencyRecord, FolderNode, ManifestFile, VulnerabilityRecord


def cve(cve_id, product=None, cpes=()):
    return VulnerabilityRecord(
        id=cve_id,
        description="",
        score=None,
        severity="HIGH",
        cvss_version=None,
        published="",
        last_modified="",
        affected_products=tuple(cpes),
        matched_product=product,
    )


def dep(name, version="1.0.0"):
    return DependencyRecord(name, version, "npm")


class TestMatches(unittest.TestCase):

    def test_exact_product_case_insensitive(self):
        self.assertTrue(matches(dep("Express"), cve("CVE-2024-0001", product="express")))

    def test_vendor_match(self):
        record = cve("CVE-2024-0001", product="Struts", cpes=["cpe:2.3:a:apache:struts:2.5:*:*:*:*:*:*:*"])

        self.assertTrue(matches(dep("apache"), record))

    def test_name_contained_in_product(self):
        self.assertTrue(matches(dep("log4j"), cve("CVE-2024-0001", product="apache log4j")))

    def test_unrelated(self):
        self.assertFalse(matches(dep("react"), cve("CVE-2024-0001", product="django")))
        self.assertFalse(matches(dep("react"), cve("CVE-2024-0001")))

    def test_empty_name_never_matches(self):
        self.assertFalse(matches(dep(""), cve("CVE-2024-0001", product="django")))


class TestAttach(unittest.TestCase):

    def setUp(self):
        self.cves = [
            cve("CVE-2024-0001", product="lodash"),
            cve("CVE-2024-0002", product="lodash"),
            cve("CVE-2024-0003", product="django"),
        ]

    def test_attach_keeps_every_dependency(self):
        correlated = attach([dep("lodash"), dep("react")], self.cves)

        self.assertEqual([c.name for c in correlated], ["lodash", "react"])
        self.assertEqual([c.id for c in correlated[0].cves], ["CVE-2024-0001", "CVE-2024-0002"])
        self.assertTrue(correlated[0].vulnerable)
        self.assertFalse(correlated[1].vulnerable)
        self.assertEqual(correlated[1].version, "1.0.0")

    def test_find_cves(self):
        self.assertEqual([c.id for c in find_cves(dep("django", "4.2"), self.cves)], ["CVE-2024-0003"])

    def test_tree_count_includes_sub_folders(self):
        child = FolderNode("api", "/p/api", [ManifestFile("requirements.txt", "/p/api/requirements.txt", "pypi", [
            DependencyRecord("django", "4.2", "pypi"),
        ])])
        root = FolderNode("p", "/p", [ManifestFile("package.json", "/p/package.json", "npm", [
            dep("lodash"), dep("react"),
        ])], [child])

        self.assertEqual(tree_cve_count(root, self.cves), 3)
        self.assertEqual(tree_cve_count(child, self.cves), 1)
        self.assertEqual([d.name for d in iter_dependencies(root)], ["lodash", "react", "django"])
