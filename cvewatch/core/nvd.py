import asyncio
import dataclasses
import logging
import re
from datetime import datetime
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence, Tuple
from urllib.parse import quote

import httpx

from cvewatch.core.cache import TtlCache
from cvewatch.core.errors import (
    ApiError,
    FetchCancelledError,
    InvalidResponseError,
    MalformedResponseError,
    RateLimitedError,
    RequestTimeoutError,
    VulnerabilityFetchError,
)
from cvewatch.core.model import Product, VulnerabilityRecord

NVD_API_BASE = "https://services.nvd.nist.gov/rest/json/cves/2.0"
NVD_DETAIL_URL = "https://nvd.nist.gov/vuln/detail/"

# Without an API key NVD allows 5 requests per rolling 30 seconds
BATCH_SIZE = 5
REQUEST_DELAY = 6.5
REQUEST_TIMEOUT = 30.0
RESULTS_PER_PRODUCT = 10

MAX_CVE_ID_LENGTH = 30
MAX_DESCRIPTION_LENGTH = 5000
MAX_CPE_LENGTH = 500
MAX_URL_LENGTH = 2048
MAX_AFFECTED_PRODUCTS = 50
MAX_REFERENCES = 5
MAX_DATE_LENGTH = 64

RE_CVE_ID = re.compile(r'CVE-\d{4}-\d{4,}')
RE_CONTROL_CHARS = re.compile(r'[\x00-\x08\x0B\x0C\x0E-\x1F\x7F]')

# Newest scoring scheme first
CVSS_METRICS = (
    ("cvssMetricV31", "3.1"),
    ("cvssMetricV30", "3.0"),
    ("cvssMetricV2", "2.0"),
)

ProgressCallback = Callable[[int, int], None]
ErrorCallback = Callable[[Product, VulnerabilityFetchError], None]


def sanitize_string(value: Any, max_length: int) -> str:
    """Drops control characters (keeping tab, LF, CR) and truncates with '...'."""
    if not isinstance(value, str):
        return ""
    sanitized = RE_CONTROL_CHARS.sub("", value)
    if len(sanitized) > max_length:
        sanitized = sanitized[:max_length] + "..."
    return sanitized


def sanitize_url(value: Any) -> str:
    if not isinstance(value, str):
        return ""
    trimmed = value.strip()
    if len(trimmed) > MAX_URL_LENGTH or not trimmed.startswith("https://"):
        return ""
    return trimmed


def v2_severity(score: float) -> str:
    if score >= 7.0:
        return "HIGH"
    if score >= 4.0:
        return "MEDIUM"
    return "LOW"


def parse_cvss(cve: Dict[str, Any]) -> Tuple[Optional[float], str, Optional[str]]:
    """Returns (score, severity, cvss version) from the newest scheme present."""
    metrics = cve.get("metrics") or {}

    for key, version in CVSS_METRICS:
        entries = metrics.get(key) or []
        if not entries:
            continue

        data = entries[0].get("cvssData") or {}
        score = data.get("baseScore")
        if version == "2.0":
            # v2 data carries no severity of its own
            return score, v2_severity(score or 0.0), version
        return score, data.get("baseSeverity") or "NONE", version

    return None, "NONE", None


def validate_response(data: Any) -> List[Dict[str, Any]]:
    """Checks the whole payload before anything is transformed; returns the items."""
    if not isinstance(data, dict):
        raise InvalidResponseError("Invalid API response: not an object")

    if "vulnerabilities" not in data:
        return []

    items = data["vulnerabilities"]
    if not isinstance(items, list):
        raise InvalidResponseError("Invalid API response: vulnerabilities is not an array")

    for item in items:
        cve = item.get("cve") if isinstance(item, dict) else None
        if not isinstance(cve, dict):
            raise InvalidResponseError("Invalid vulnerability entry: missing cve object")

        cve_id = cve.get("id")
        if not cve_id or not isinstance(cve_id, str):
            raise InvalidResponseError("Invalid vulnerability entry: missing cve.id")
        if not RE_CVE_ID.fullmatch(cve_id):
            raise InvalidResponseError(f"Invalid CVE ID format: {cve_id[:MAX_CVE_ID_LENGTH]}")
        if len(cve_id) > MAX_CVE_ID_LENGTH:
            raise InvalidResponseError(f"CVE ID too long: {cve_id[:MAX_CVE_ID_LENGTH]}...")

    return items


def parse_cve(item: Dict[str, Any]) -> VulnerabilityRecord:
    cve = item["cve"]
    score, severity, cvss_version = parse_cvss(cve)

    descriptions = [d for d in cve.get("descriptions") or [] if isinstance(d, dict)]
    english = next((d for d in descriptions if d.get("lang") == "en"), None)
    raw_description = (
        (english or {}).get("value")
        or (descriptions[0].get("value") if descriptions else None)
        or "No description available"
    )

    affected = []
    for config in cve.get("configurations") or []:
        for node in config.get("nodes") or []:
            for match in node.get("cpeMatch") or []:
                if match.get("vulnerable") and isinstance(match.get("criteria"), str):
                    affected.append(sanitize_string(match["criteria"], MAX_CPE_LENGTH))

    references = []
    for ref in (cve.get("references") or [])[:MAX_REFERENCES]:
        url = sanitize_url(ref.get("url") if isinstance(ref, dict) else None)
        if url:
            references.append(url)

    return VulnerabilityRecord(
        id=cve["id"],
        description=sanitize_string(raw_description, MAX_DESCRIPTION_LENGTH),
        score=score,
        severity=severity,
        cvss_version=cvss_version,
        published=sanitize_string(cve.get("published"), MAX_DATE_LENGTH),
        last_modified=sanitize_string(cve.get("lastModified"), MAX_DATE_LENGTH),
        affected_products=tuple(affected[:MAX_AFFECTED_PRODUCTS]),
        references=tuple(references),
        url=NVD_DETAIL_URL + quote(cve["id"], safe=""),
    )


def _published_at(record: VulnerabilityRecord) -> datetime:
    try:
        return datetime.fromisoformat(record.published.replace("Z", "+00:00")).replace(tzinfo=None)
    except (AttributeError, TypeError, ValueError):
        return datetime.min


class VulnerabilityClient:
    """
    NVD CVE API 2.0 client: one keyword search per product, cached, issued in
    small concurrent batches with a pause between batches to respect the
    public rate limit.
    """

    def __init__(
        self,
        client: Optional[httpx.AsyncClient] = None,
        cache: Optional[TtlCache] = None,
        api_base: str = NVD_API_BASE,
        api_key: Optional[str] = None,
        request_timeout: float = REQUEST_TIMEOUT,
        batch_size: int = BATCH_SIZE,
        request_delay: float = REQUEST_DELAY,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._client = client
        self.cache = cache if cache is not None else TtlCache()
        self.api_base = api_base
        self.api_key = api_key
        self.request_timeout = request_timeout
        self.batch_size = batch_size
        self.request_delay = request_delay
        self._sleep = sleep

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    def clear_cache(self) -> None:
        self.cache.clear()

    def _http(self) -> httpx.AsyncClient:
        if self._client is None:
            limits = httpx.Limits(max_keepalive_connections=self.batch_size, max_connections=self.batch_size)
            self._client = httpx.AsyncClient(timeout=self.request_timeout, limits=limits)
        return self._client

    async def fetch_for_keyword(self, keyword: str, results_per_page: int = RESULTS_PER_PRODUCT) -> List[VulnerabilityRecord]:
        cache_key = f"{keyword}-{results_per_page}"
        cached = self.cache.get(cache_key)
        if cached is not None:
            logging.debug(f"Cache hit for {keyword}")
            return cached

        params = {
            "keywordSearch": keyword,
            "resultsPerPage": str(results_per_page),
            "startIndex": "0",
        }
        headers = {"Accept": "application/json"}
        if self.api_key:
            headers["apiKey"] = self.api_key

        try:
            response = await self._http().get(
                self.api_base, params=params, headers=headers, timeout=self.request_timeout
            )
        except httpx.TimeoutException as e:
            raise RequestTimeoutError(f"Request timeout for {keyword}") from e
        except httpx.HTTPError as e:
            raise ApiError(f"NVD request failed for {keyword}: {e}") from e

        if response.status_code == 403:
            raise RateLimitedError("Rate limited by NVD. Please wait and try again.")
        if not response.is_success:
            raise ApiError(f"NVD API error: {response.status_code}", status_code=response.status_code)

        try:
            raw = response.json()
        except ValueError as e:
            raise MalformedResponseError("Invalid JSON response") from e

        items = validate_response(raw)
        try:
            records = [parse_cve(item) for item in items]
        except (AttributeError, KeyError, TypeError) as e:
            raise InvalidResponseError(f"Invalid vulnerability entry: {e}") from e

        self.cache.set(cache_key, records)

        logging.debug(f"{len(records)} CVEs for {keyword}")
        return records

    async def fetch_for_products(
        self,
        products: Sequence[Product],
        results_per_product: int = RESULTS_PER_PRODUCT,
        cancel_event: Optional[asyncio.Event] = None,
        on_progress: Optional[ProgressCallback] = None,
        on_error: Optional[ErrorCallback] = None,
    ) -> List[VulnerabilityRecord]:
        """
        Fetches every product's CVEs and returns them deduplicated by id (first
        product wins and is recorded as `matched_product`), newest first.
        Raises FetchCancelledError once `cancel_event` is observed.
        """
        if not products:
            return []

        batches = [products[i:i + self.batch_size] for i in range(0, len(products), self.batch_size)]
        logging.info(f"Fetching CVEs for {len(products)} products in {len(batches)} batches...")

        all_cves: List[VulnerabilityRecord] = []
        seen_ids = set()

        for index, batch in enumerate(batches):
            if cancel_event is not None and cancel_event.is_set():
                raise FetchCancelledError("Fetch aborted")

            if index > 0:
                await self._sleep(self.request_delay)
                if cancel_event is not None and cancel_event.is_set():
                    raise FetchCancelledError("Fetch aborted")

            results = await asyncio.gather(
                *(self._fetch_product_safe(product, results_per_product, on_error) for product in batch)
            )

            for product, cves in zip(batch, results):
                for cve in cves:
                    if cve.id not in seen_ids:
                        seen_ids.add(cve.id)
                        all_cves.append(dataclasses.replace(cve, matched_product=product.name))

            if on_progress:
                on_progress(index + 1, len(batches))

        if cancel_event is not None and cancel_event.is_set():
            raise FetchCancelledError("Fetch aborted")

        all_cves.sort(key=_published_at, reverse=True)
        return all_cves

    async def _fetch_product_safe(
        self,
        product: Product,
        results_per_product: int,
        on_error: Optional[ErrorCallback],
    ) -> List[VulnerabilityRecord]:
        try:
            return await self.fetch_for_keyword(product.search_term, results_per_product)
        except VulnerabilityFetchError as e:
            logging.error(f"Failed to fetch CVEs for {product.name}: {e}")
            if on_error:
                on_error(product, e)
            return []
