import unittest

from cvewatch.core.alerts import safe_url, sanitize_for_notification, select_alerts
from cvewatch.core.model import VulnerabilityRecord


def cve(cve_id, severity="HIGH", description="Remote code execution", url=None):
    return VulnerabilityRecord(
        id=cve_id,
        description=description,
        score=None,
        severity=severity,
        cvss_version="3.1",
        published="",
        last_modified="",
        url=url if url is not None else f"https://nvd.nist.gov/vuln/detail/{cve_id}",
    )


class TestAlerts(unittest.TestCase):

    def test_only_new_high_and_critical(self):
        cves = [
            cve("CVE-2024-0001", "CRITICAL"),
            cve("CVE-2024-0002", "MEDIUM"),
            cve("CVE-2024-0003", "HIGH"),
            cve("CVE-2024-0004", "HIGH"),
        ]

        alerts = select_alerts(cves, {"CVE-2024-0003"})

        self.assertEqual([a.title for a in alerts], ["CRITICAL CVE: CVE-2024-0001", "HIGH CVE: CVE-2024-0004"])
        self.assertEqual(alerts[0].url, "https://nvd.nist.gov/vuln/detail/CVE-2024-0001")

    def test_at_most_three_alerts(self):
        cves = [cve(f"CVE-2024-000{i}", "CRITICAL") for i in range(6)]

        self.assertEqual(len(select_alerts(cves, set())), 3)

    def test_seen_ids_are_not_modified(self):
        seen = set()
        select_alerts([cve("CVE-2024-0001")], seen)

        self.assertEqual(seen, set())

    def test_body_is_plain_text(self):
        self.assertEqual(
            sanitize_for_notification("<b>Heap</b> overflow &amp; <script>x</script>crash"),
            "Heap overflow & xcrash",
        )
        self.assertEqual(sanitize_for_notification("&lt;img src=x&gt;ok"), "ok")

    def test_body_is_truncated(self):
        body = sanitize_for_notification("a" * 150)

        self.assertEqual(body, "a" * 100 + "...")

    def test_only_nvd_links(self):
        self.assertIsNone(safe_url("https://evil.example.com/CVE-2024-0001"))
        self.assertIsNone(safe_url(None))

        alerts = select_alerts([cve("CVE-2024-0001", url="http://nvd.nist.gov/x")], set())
        self.assertIsNone(alerts[0].url)
