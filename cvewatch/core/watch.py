import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import Callable, List, Optional, Sequence, Set

from cvewatch.core.alerts import select_alerts
from cvewatch.core.errors import FetchCancelledError, RateLimitedError, VulnerabilityFetchError
from cvewatch.core.model import Alert, Product, VulnerabilityRecord
from cvewatch.core.nvd import RESULTS_PER_PRODUCT, VulnerabilityClient

# Minimum time between manual refreshes
MIN_REFRESH_INTERVAL = 10.0


@dataclass
class WatchResult:
    cves: List[VulnerabilityRecord] = field(default_factory=list)
    alerts: List[Alert] = field(default_factory=list)
    error: Optional[str] = None


class CveWatcher:
    """
    Drives repeated fetches for the watched products: throttles manual
    refreshes, cancels the fetch it supersedes and remembers which CVEs were
    already seen so only new high/critical ones become alerts.
    """

    def __init__(
        self,
        client: VulnerabilityClient,
        results_per_product: int = RESULTS_PER_PRODUCT,
        min_refresh_interval: float = MIN_REFRESH_INTERVAL,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.client = client
        self.results_per_product = results_per_product
        self.min_refresh_interval = min_refresh_interval
        self.clock = clock

        self.seen_ids: Set[str] = set()
        self.first_load = True
        self._last_fetch: Optional[float] = None
        self._cancel_event: Optional[asyncio.Event] = None

    def cancel(self) -> None:
        if self._cancel_event is not None:
            self._cancel_event.set()

    async def refresh(
        self,
        products: Sequence[Product],
        notifications: bool = True,
        bypass_rate_limit: bool = False,
        on_progress: Optional[Callable[[int, int], None]] = None,
    ) -> Optional[WatchResult]:
        """
        Returns None when the refresh was throttled or cancelled; a cancelled
        fetch never surfaces partial results.
        """
        now = self.clock()
        if (
            not bypass_rate_limit
            and not self.first_load
            and self._last_fetch is not None
            and now - self._last_fetch < self.min_refresh_interval
        ):
            logging.info("Refresh rate limited, please wait")
            return None
        self._last_fetch = now

        self.cancel()
        if not products:
            return WatchResult()

        event = asyncio.Event()
        self._cancel_event = event
        failures: List[VulnerabilityFetchError] = []

        try:
            cves = await self.client.fetch_for_products(
                products,
                self.results_per_product,
                cancel_event=event,
                on_progress=on_progress,
                on_error=lambda product, error: failures.append(error),
            )
        except FetchCancelledError:
            logging.info("CVE fetch cancelled.")
            return None
        finally:
            if self._cancel_event is event:
                self._cancel_event = None

        alerts = []
        if not self.first_load and notifications:
            alerts = select_alerts(cves, self.seen_ids)

        self.seen_ids.update(cve.id for cve in cves)
        self.first_load = False

        return WatchResult(cves=cves, alerts=alerts, error=self._error_message(failures, len(products)))

    @staticmethod
    def _error_message(failures: List[VulnerabilityFetchError], total: int) -> Optional[str]:
        if not failures:
            return None
        if any(isinstance(e, RateLimitedError) for e in failures):
            return "Rate limited by NVD. Please wait and try again."
        if len(failures) == total:
            return f"Failed to fetch CVEs: {failures[0]}"
        return f"Failed to fetch CVEs for {len(failures)} of {total} products."
