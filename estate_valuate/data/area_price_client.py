"""
Area price pages scraped from Cafeland.

A detail page mixes up to three known layouts. Each layout has its own
parser; a parser that finds none of its markup returns an empty fragment,
so an unknown or changed layout degrades to "no prices" instead of an error.
"""

import logging
from typing import Iterable, List, Protocol

import httpx
from bs4 import BeautifulSoup

from .base import AreaPriceSource, PriceTable
from ..core.config import Settings, settings as default_settings
from ..core.http import UpstreamClient

logger = logging.getLogger(__name__)


def _text(node) -> str:
    return node.get_text(strip=True) if node is not None else ""


class PriceLayoutParser(Protocol):
    layout: str

    def parse(self, soup: BeautifulSoup) -> PriceTable: ...


class PriceTableParser:
    """Street / alley rows: name in the first span, price in the bold right cell."""
    layout = "price-table"

    def parse(self, soup: BeautifulSoup) -> PriceTable:
        out: PriceTable = {}
        for row in soup.select("table.tablePriceList tbody tr"):
            name = _text(row.select_one("td span"))
            price = _text(row.select_one("td.text-right span b"))
            if name and price:
                out[name] = price
        return out


class AverageBlockParser:
    """Titled "average valuation" headline blocks."""
    layout = "average-block"

    def parse(self, soup: BeautifulSoup) -> PriceTable:
        out: PriceTable = {}
        for block in soup.select("div.check-dinhgia-tieude"):
            title = _text(block.select_one("p.tieude-omae"))
            price = _text(block.select_one("p.tieude-price"))
            if title and price:
                out[title] = price
        return out


class MinMaxBoxParser:
    """Lowest / highest / ward boxes; the value carries no unit on the page."""
    layout = "min-max-box"

    def parse(self, soup: BeautifulSoup) -> PriceTable:
        out: PriceTable = {}
        for box in soup.select("div.box-home-dinh"):
            label = _text(box.select_one("span"))
            value = _text(box.select_one("span.bot-bold-left"))
            if label and value:
                out[label] = f"{value} đ/m2"
        return out


DEFAULT_PARSERS: tuple = (PriceTableParser(), AverageBlockParser(), MinMaxBoxParser())


def extract_price_fragment(html: str, parsers: Iterable[PriceLayoutParser] = DEFAULT_PARSERS) -> PriceTable:
    soup = BeautifulSoup(html, "html.parser")
    fragment: PriceTable = {}
    for parser in parsers:
        found = parser.parse(soup)
        if found:
            logger.debug("layout %s yielded %d prices", parser.layout, len(found))
        fragment.update(found)
    return fragment


def _common_prefix_len(a: str, b: str) -> int:
    n = 0
    for x, y in zip(a, b):
        if x != y:
            break
        n += 1
    return n


def pick_hrefs(html: str, keyword: str) -> List[str]:
    """
    Choose the suggestion whose label shares the longest prefix with the
    keyword (first one wins a tie). With no prefix match at all, every
    suggestion is kept.
    """
    soup = BeautifulSoup(html, "html.parser")
    links = soup.select("div.tim-khu-vuc-dg ul li a")
    wanted = keyword.lower()

    best_href, best_len = None, 0
    for a in links:
        span = a.find("span")
        if span is None:
            continue
        score = _common_prefix_len(span.get_text().lower(), wanted)
        if score > best_len:
            best_len, best_href = score, a.get("href") or ""
    if best_href:
        return [best_href]
    return [a.get("href") for a in links if a.get("href")]


class CafelandAreaPrices(UpstreamClient, AreaPriceSource):
    service = "cafeland"

    def __init__(self, base_url: str, token: str | None, timeout: float = 15.0,
                 transport: httpx.AsyncBaseTransport | None = None,
                 parsers: Iterable[PriceLayoutParser] = DEFAULT_PARSERS):
        super().__init__(base_url, timeout=timeout, transport=transport,
                         headers={"user-agent": "estate-valuate/1.0", "referer": f"{base_url.rstrip('/')}/"})
        self.token = token
        self.parsers = tuple(parsers)

    async def suggest_hrefs(self, keyword: str) -> List[str]:
        r = await self._request(
            "POST", f"{self.base_url}/ajax/listgoiysearchdg",
            data={"keysearch": keyword, "_token": self.token or ""},
        )
        hrefs = pick_hrefs(r.text, keyword)
        logger.info("cafeland suggestions for %r: %d", keyword, len(hrefs))
        return hrefs

    async def price_fragment(self, href: str) -> PriceTable:
        url = href if href.startswith("http") else f"{self.base_url}{href}"
        r = await self._request("GET", url)
        return extract_price_fragment(r.text, self.parsers)


def area_price_client(cfg: Settings = default_settings, transport=None) -> CafelandAreaPrices:
    return CafelandAreaPrices(cfg.CAFELAND_BASE_URL, cfg.CAFELAND_TOKEN,
                              timeout=cfg.HTTP_TIMEOUT_SECONDS, transport=transport)
