"""Pull posting URLs out of a search-results page."""
from __future__ import annotations

from urllib.parse import urljoin, urlsplit, urlunsplit

from bs4 import BeautifulSoup

from gigradar.log import get_logger

log = get_logger(__name__)

SITE_ORIGIN = "https://www.upwork.com"
POSTING_PREFIX = "/jobs/"
SEARCH_PREFIXES: tuple[str, ...] = ("/nx/search", "/search")


def _is_posting_href(href: str) -> bool:
    path = urlsplit(href).path if href.startswith(("http://", "https://")) else href
    if path.startswith(SEARCH_PREFIXES):
        return False
    return path.startswith(POSTING_PREFIX)


def canonical_url(href: str, origin: str = SITE_ORIGIN) -> str:
    """Absolute URL with query string and fragment dropped."""
    parts = urlsplit(urljoin(origin + "/", href))
    return urlunsplit((parts.scheme, parts.netloc, parts.path, "", ""))


def extract_posting_urls(html: str, origin: str = SITE_ORIGIN) -> list[str]:
    """Return unique posting URLs in order of first appearance."""
    soup = BeautifulSoup(html or "", "html.parser")
    urls: list[str] = []
    seen: set[str] = set()
    site = urlsplit(origin).netloc

    for anchor in soup.find_all("a", href=True):
        href = anchor["href"].strip()
        if not href or not _is_posting_href(href):
            continue
        url = canonical_url(href, origin)
        if urlsplit(url).netloc != site:
            log.debug("Skipping off-site posting link: %s", url)
            continue
        if url not in seen:
            seen.add(url)
            urls.append(url)

    log.debug("Extracted %d unique posting URLs", len(urls))
    return urls
