import html
import re
from typing import AbstractSet, List, Optional, Sequence

from cvewatch.core.model import Alert, VulnerabilityRecord

ALERT_SEVERITIES = ("CRITICAL", "HIGH")
MAX_ALERTS_PER_FETCH = 3
MAX_ALERT_BODY = 100
SAFE_URL_PREFIX = "https://nvd.nist.gov/"

RE_TAG = re.compile(r'<[^>]*>')


def sanitize_for_notification(text: str, max_length: int = MAX_ALERT_BODY) -> str:
    """Plain text only: tags removed, entities decoded, truncated with '...'."""
    if not isinstance(text, str):
        return ""
    plain = RE_TAG.sub("", html.unescape(RE_TAG.sub("", text)))
    if len(plain) > max_length:
        return plain[:max_length] + "..."
    return plain


def safe_url(url: Optional[str]) -> Optional[str]:
    if url and url.startswith(SAFE_URL_PREFIX):
        return url
    return None


def is_new_alert(cve: VulnerabilityRecord, seen_ids: AbstractSet[str]) -> bool:
    return cve.severity.upper() in ALERT_SEVERITIES and cve.id not in seen_ids


def select_alerts(
    cves: Sequence[VulnerabilityRecord],
    seen_ids: AbstractSet[str],
    limit: int = MAX_ALERTS_PER_FETCH,
) -> List[Alert]:
    """Newly observed high/critical CVEs, as notifications. Pure: `seen_ids` is not updated."""
    alerts = []
    for cve in cves:
        if len(alerts) >= limit:
            break
        if is_new_alert(cve, seen_ids):
            alerts.append(Alert(
                title=f"{cve.severity} CVE: {cve.id}",
                body=sanitize_for_notification(cve.description),
                url=safe_url(cve.url),
            ))
    return alerts
