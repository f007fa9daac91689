from typing import Optional


class CveWatchError(Exception):
    """Base class for all cvewatch errors."""


class PathRejectedError(CveWatchError):
    """The selected folder cannot be scanned."""


class ScanInProgressError(CveWatchError):
    pass


class VulnerabilityFetchError(CveWatchError):
    """Base class for failures talking to the vulnerability database."""


class InvalidResponseError(VulnerabilityFetchError):
    pass


class MalformedResponseError(VulnerabilityFetchError):
    pass


class RateLimitedError(VulnerabilityFetchError):
    pass


class ApiError(VulnerabilityFetchError):
    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class RequestTimeoutError(VulnerabilityFetchError):
    pass


class FetchCancelledError(VulnerabilityFetchError):
    pass


class ScanCancelledError(CveWatchError):
    pass
