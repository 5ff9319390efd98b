"""
PriceWatch Extraction Strategies
Small, pure techniques for pulling a price out of raw page content.

Every strategy exposes ``name`` and ``try_extract(content) -> Optional[float]``,
where content is raw text or a ``Page``. ``run_chain`` wraps the text in one
``Page`` so the strategies of a chain share a single parse, dropped with it.
Absence is a normal outcome: strategies return None instead of raising when
nothing matches or the embedded data is malformed. Scrapers hold an ordered
list of strategies and take the first price any of them yields.
"""
import json
import logging
import math
import re
from dataclasses import dataclass
from functools import cached_property
from typing import Any, Iterable, Optional, Pattern, Protocol, Sequence, Tuple, Union, runtime_checkable

from bs4 import BeautifulSoup

logger = logging.getLogger(__name__)

KeyPath = Tuple[str, ...]

_CURRENCY_RE = re.compile(r"₹|\brs\.?|\binr\b|\$", re.IGNORECASE)
_AMOUNT_RE = re.compile(r"\d+(?:\.\d+)?")


def parse_price(text: Optional[str]) -> Optional[float]:
    """
    Parse a displayed currency amount.

    "₹1,299" -> 1299.0, " ₹2,500 " -> 2500.0, "Rs. 999" -> 999.0.
    Anything that is not a positive finite amount yields None.
    """
    if not text:
        return None

    cleaned = _CURRENCY_RE.sub("", text)
    cleaned = cleaned.replace(",", "").replace("\u00a0", "").strip()

    if not _AMOUNT_RE.fullmatch(cleaned):
        return None

    value = float(cleaned)
    if not math.isfinite(value) or value <= 0:
        return None
    return value


def coerce_price(value: Any) -> Optional[float]:
    """Accept a JSON number or numeric string as a price"""
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        value = float(value)
        return value if math.isfinite(value) and value > 0 else None
    if isinstance(value, str):
        return parse_price(value)
    return None


def dig(data: Any, path: KeyPath) -> Any:
    """Follow a key path through nested dicts, None when any step is missing"""
    node = data
    for key in path:
        if not isinstance(node, dict) or key not in node:
            return None
        node = node[key]
    return node


class Page:
    """Fetched page content, parsed into a soup at most once and only on demand"""

    def __init__(self, raw: str):
        self.raw = raw

    @cached_property
    def soup(self) -> BeautifulSoup:
        return BeautifulSoup(self.raw, "html.parser")


def as_page(content: Union[str, Page]) -> Page:
    return content if isinstance(content, Page) else Page(content)


@runtime_checkable
class ExtractionStrategy(Protocol):
    name: str

    def try_extract(self, content: Union[str, Page]) -> Optional[float]: ...


@dataclass(frozen=True)
class JsonBlobStrategy:
    """
    Locate a JSON object embedded in a script via ``pattern`` and try each
    key path in order.

    The pattern must match the text right before the opening brace; the
    object itself is decoded with ``json.JSONDecoder.raw_decode`` so nested
    braces are handled properly.
    """
    name: str
    pattern: Pattern[str]
    paths: Sequence[KeyPath]

    def try_extract(self, content: Union[str, Page]) -> Optional[float]:
        raw = as_page(content).raw
        decoder = json.JSONDecoder()

        for match in self.pattern.finditer(raw):
            try:
                data, _ = decoder.raw_decode(raw, match.end())
            except ValueError:
                logger.debug("%s: embedded JSON at offset %d is malformed", self.name, match.end())
                continue

            for path in self.paths:
                price = coerce_price(dig(data, path))
                if price is not None:
                    return price
        return None


@dataclass(frozen=True)
class SelectorStrategy:
    """First element matching a CSS selector, its text parsed as currency"""
    name: str
    selector: str

    def try_extract(self, content: Union[str, Page]) -> Optional[float]:
        element = as_page(content).soup.select_one(self.selector)
        if element is None:
            return None
        return parse_price(element.get_text(strip=True))


@dataclass(frozen=True)
class MetaTagStrategy:
    """``content`` attribute of a meta tag such as ``meta[itemprop=price]``"""
    name: str
    selector: str

    def try_extract(self, content: Union[str, Page]) -> Optional[float]:
        element = as_page(content).soup.select_one(self.selector)
        if element is None:
            return None
        value = element.get("content")
        return parse_price(value) if isinstance(value, str) else None


def _iter_offers(node: Any) -> Iterable[dict]:
    if isinstance(node, list):
        for entry in node:
            yield from _iter_offers(entry)
    elif isinstance(node, dict):
        if "@graph" in node:
            yield from _iter_offers(node["@graph"])
        offers = node.get("offers")
        if isinstance(offers, (dict, list)):
            yield from _iter_offers(offers)
        if "price" in node or "lowPrice" in node:
            yield node


@dataclass(frozen=True)
class JsonLdStrategy:
    """schema.org Product/Offer data in ``application/ld+json`` scripts"""
    name: str = "json-ld offer"

    def try_extract(self, content: Union[str, Page]) -> Optional[float]:
        soup = as_page(content).soup
        for script in soup.find_all("script", attrs={"type": "application/ld+json"}):
            try:
                data = json.loads(script.string or "")
            except ValueError:
                continue

            for offer in _iter_offers(data):
                price = coerce_price(offer.get("price"))
                if price is None:
                    price = coerce_price(offer.get("lowPrice"))
                if price is not None:
                    return price
        return None


def run_chain(strategies: Sequence[ExtractionStrategy], raw: Union[str, Page]) -> Tuple[Optional[float], Optional[str]]:
    """Try strategies in order; return (price, strategy name) of the first hit"""
    page = as_page(raw)
    for strategy in strategies:
        price = strategy.try_extract(page)
        if price is not None:
            return price, strategy.name
    return None, None
