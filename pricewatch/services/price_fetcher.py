"""
PriceWatch Price Fetcher Service
Per-platform HTML scrapers, URL detection and the platform registry
"""
import logging
import re
from typing import Dict, List, Mapping, Optional, Sequence, Tuple

import httpx

from pricewatch.config import Settings, settings as default_settings
from pricewatch.exceptions import (
    ExtractionFailed,
    RegistryConfigError,
    TransportError,
    UnknownPlatformError,
    UnsupportedPlatformError,
)
from pricewatch.models import Platform
from pricewatch.services.extraction import (
    ExtractionStrategy,
    JsonBlobStrategy,
    JsonLdStrategy,
    MetaTagStrategy,
    SelectorStrategy,
    run_chain,
)

logger = logging.getLogger(__name__)


# ============ Platform detection ============

# Order matters: first matching fragment wins
PLATFORM_HOSTS: Tuple[Tuple[str, Platform], ...] = (
    ("myntra.com", Platform.MYNTRA),
    ("flipkart.com", Platform.FLIPKART),
    ("ajio.com", Platform.AJIO),
    ("tatacliq.com", Platform.TATA_CLIQ),
)


def detect_platform(url: str) -> Optional[Platform]:
    """Auto-detect platform from URL"""
    url_lower = url.lower()
    for fragment, platform in PLATFORM_HOSTS:
        if fragment in url_lower:
            return platform
    return None


def require_platform(url: str) -> Platform:
    platform = detect_platform(url)
    if platform is None:
        raise UnsupportedPlatformError(url)
    return platform


def host_fragment(platform: Platform) -> str:
    for fragment, candidate in PLATFORM_HOSTS:
        if candidate == platform:
            return fragment
    raise RegistryConfigError(f"No detection entry for platform {platform.value}")


# ============ HTTP client ============

def browser_headers(config: Settings) -> Dict[str, str]:
    """Conventional browser headers; the sites reject requests without them"""
    return {
        "User-Agent": config.USER_AGENT,
        "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,image/webp,*/*;q=0.8",
        "Accept-Language": config.ACCEPT_LANGUAGE,
        "Upgrade-Insecure-Requests": "1",
        "Connection": "keep-alive",
    }


def build_http_client(config: Settings = default_settings, **kwargs) -> httpx.AsyncClient:
    options = {
        "headers": browser_headers(config),
        "timeout": config.HTTP_TIMEOUT_SECONDS,
        "follow_redirects": True,
    }
    if config.HTTP_PROXY:
        options["proxy"] = config.HTTP_PROXY
    options.update(kwargs)
    return httpx.AsyncClient(**options)


# ============ Scrapers ============

class PlatformScraper:
    """
    Point-in-time price extraction for one platform.

    Holds only its HTTP client, so one instance serves every item of the
    platform. No retry happens here; the sweep decides when to try again.
    """

    def __init__(
        self,
        platform: Platform,
        strategies: Sequence[ExtractionStrategy],
        client: Optional[httpx.AsyncClient] = None,
        config: Settings = default_settings,
    ):
        if not strategies:
            raise RegistryConfigError(f"Scraper for {platform.value} has no extraction strategies")
        self.platform = platform
        self.strategies: List[ExtractionStrategy] = list(strategies)
        self.fragment = host_fragment(platform)
        self.client = client or build_http_client(config)

    def platform_name(self) -> str:
        return self.platform.value

    def can_handle(self, url: str) -> bool:
        return self.fragment in url.lower()

    def extract(self, html: str, url: str = "") -> float:
        """Run the strategy chain against fetched content"""
        price, strategy = run_chain(self.strategies, html)
        if price is None:
            raise ExtractionFailed(
                self.platform_name(), url,
                "no extraction strategy matched; site structure may have changed",
            )
        logger.info("Found %s price ₹%s via %s", self.platform_name(), price, strategy)
        return price

    async def fetch_html(self, url: str) -> str:
        try:
            response = await self.client.get(url)
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise TransportError(
                self.platform_name(), url, f"HTTP {e.response.status_code}",
                status_code=e.response.status_code,
            ) from e
        except httpx.HTTPError as e:
            raise TransportError(self.platform_name(), url, f"{type(e).__name__}: {e}") from e
        return response.text

    async def fetch_price(self, url: str) -> float:
        """Fetch the page once and extract its current price"""
        logger.info("Scraping %s URL: %s", self.platform_name(), url)
        html = await self.fetch_html(url)
        return self.extract(html, url)

    async def aclose(self) -> None:
        await self.client.aclose()

    def __repr__(self) -> str:
        return f"<PlatformScraper {self.platform_name()} strategies={len(self.strategies)}>"


def myntra_strategies() -> List[ExtractionStrategy]:
    return [
        JsonBlobStrategy(
            name="myntra pdpData",
            pattern=re.compile(r'\bpdpData"?\s*[:=]\s*(?=\{)'),
            paths=[("price", "discounted"), ("mrp",)],
        ),
        JsonBlobStrategy(
            name="myntra window.__myx (legacy)",
            pattern=re.compile(r"window\.__myx\s*=\s*(?=\{)"),
            paths=[("pdpData", "price", "discounted"), ("pdpData", "mrp")],
        ),
    ]


def flipkart_strategies() -> List[ExtractionStrategy]:
    # Flipkart rotates its obfuscated class names; newest first
    selectors = [".Nx9W0j", ".Nx9bqj", "._30jeq3", "._16Jk6d", ".CEmiEU"]
    return [SelectorStrategy(name=f"flipkart {sel}", selector=sel) for sel in selectors]


def ajio_strategies() -> List[ExtractionStrategy]:
    return [
        JsonBlobStrategy(
            name="ajio __INITIAL_STATE__",
            pattern=re.compile(r"window\.__INITIAL_STATE__\s*=\s*(?=\{)"),
            paths=[("product", "price", "value"), ("product", "offerPrice")],
        ),
        MetaTagStrategy(name="ajio meta itemprop=price", selector='meta[itemprop="price"]'),
    ]


def tata_cliq_strategies() -> List[ExtractionStrategy]:
    return [
        JsonLdStrategy(name="tata cliq json-ld"),
        MetaTagStrategy(
            name="tata cliq og price",
            selector='meta[property="product:price:amount"]',
        ),
        SelectorStrategy(
            name="tata cliq price holder (legacy)",
            selector=".ProductDescription__priceHolder h3",
        ),
    ]


STRATEGY_FACTORIES = {
    Platform.MYNTRA: myntra_strategies,
    Platform.FLIPKART: flipkart_strategies,
    Platform.AJIO: ajio_strategies,
    Platform.TATA_CLIQ: tata_cliq_strategies,
}


# ============ Registry ============

class ScraperRegistry:
    """Fixed platform -> scraper table, validated when built"""

    def __init__(self, scrapers: Mapping[Platform, PlatformScraper]):
        self.scrapers: Dict[Platform, PlatformScraper] = dict(scrapers)
        self.validate()

    @classmethod
    def build(
        cls,
        client: Optional[httpx.AsyncClient] = None,
        config: Settings = default_settings,
    ) -> "ScraperRegistry":
        """
        One scraper per platform. When ``client`` is given the scrapers share
        its connection pool, otherwise each one builds and owns its own.
        """
        return cls({
            platform: PlatformScraper(platform, factory(), client=client, config=config)
            for platform, factory in STRATEGY_FACTORIES.items()
        })

    def validate(self) -> None:
        enumerated = set(Platform)
        detectable = {platform for _, platform in PLATFORM_HOSTS}
        served = set(self.scrapers)

        if not (enumerated == detectable == served):
            raise RegistryConfigError(
                "Platform tables drifted: "
                f"enum={sorted(p.value for p in enumerated)} "
                f"detection={sorted(p.value for p in detectable)} "
                f"scrapers={sorted(p.value for p in served)}"
            )

        for platform, scraper in self.scrapers.items():
            if scraper.platform_name() != platform.value:
                raise RegistryConfigError(
                    f"Scraper registered for {platform.value} reports {scraper.platform_name()}"
                )

    def platforms(self) -> List[str]:
        return [platform.value for platform in self.scrapers]

    def get(self, platform: str) -> Optional[PlatformScraper]:
        try:
            return self.scrapers.get(Platform(platform))
        except ValueError:
            return None

    def resolve(self, platform: str) -> PlatformScraper:
        scraper = self.get(platform)
        if scraper is None:
            raise UnknownPlatformError(platform)
        return scraper

    def detect(self, url: str) -> Optional[Platform]:
        return detect_platform(url)

    async def aclose(self) -> None:
        closed = set()
        for scraper in self.scrapers.values():
            if id(scraper.client) in closed:
                continue
            closed.add(id(scraper.client))
            await scraper.aclose()
