"""
PriceWatch error taxonomy
"""
from typing import Optional


class PriceWatchError(Exception):
    """Base class for all PriceWatch errors"""


class UnsupportedPlatformError(PriceWatchError):
    """URL does not belong to any supported platform"""

    def __init__(self, url: str):
        self.url = url
        super().__init__(f"Unsupported platform for URL: {url}")


class ScrapeError(PriceWatchError):
    """Base class for per-item scrape failures"""

    def __init__(self, platform: str, url: str, reason: str):
        self.platform = platform
        self.url = url
        self.reason = reason
        super().__init__(f"[{platform}] {url}: {reason}")


class ExtractionFailed(ScrapeError):
    """Page was fetched but no extraction strategy matched"""


class TransportError(ScrapeError):
    """Network or HTTP failure while fetching the page"""

    def __init__(self, platform: str, url: str, reason: str, status_code: Optional[int] = None):
        self.status_code = status_code
        super().__init__(platform, url, reason)


class UnknownPlatformError(PriceWatchError):
    """Stored platform value is not served by the registry"""

    def __init__(self, platform: str):
        self.platform = platform
        super().__init__(f"No scraper registered for platform: {platform!r}")


class StoreWriteFailed(PriceWatchError):
    """Price update could not be persisted"""

    def __init__(self, alert_id: str, reason: str = "update rejected"):
        self.alert_id = alert_id
        super().__init__(f"Failed to persist price for alert {alert_id}: {reason}")


class SweepInProgress(PriceWatchError):
    """A sweep was requested while another one is running"""


class SweepAborted(PriceWatchError):
    """The active item list could not be loaded"""


class RegistryConfigError(PriceWatchError):
    """Detection table, scraper table and platform enumeration disagree"""
