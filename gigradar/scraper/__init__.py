from .bypass import BypassClient
from .crawler import Crawler, CrawlState, build_search_url, source_id_from_url
from .detail import parse_posting_html
from .listing import extract_posting_urls

__all__ = [
    "BypassClient", "Crawler", "CrawlState", "build_search_url",
    "source_id_from_url", "parse_posting_html", "extract_posting_urls",
]
