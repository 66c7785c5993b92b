"""Crawl loop: search pages → posting URLs → detail pages → raw store.

One bypass session is opened per run and reused for every request. Requests
are strictly sequential and paced; a failure on one posting is recorded and
the loop moves on.
"""
from __future__ import annotations

import enum
import hashlib
import math
import re
from urllib.parse import urlencode, urlsplit

from gigradar.errors import DuplicatePostingError, GigRadarError
from gigradar.log import get_logger
from gigradar.models import CrawlResult, RawPosting
from gigradar.pacing import Pacer
from gigradar.scraper.bypass import BypassClient
from gigradar.scraper.detail import parse_posting_html
from gigradar.scraper.listing import SITE_ORIGIN, extract_posting_urls
from gigradar.store import Store, utcnow

log = get_logger(__name__)

SEARCH_PATH = "/nx/search/jobs/"
PER_PAGE = 50
UNTITLED = "Untitled Job"
NO_DESCRIPTION = "No description available"
# Below this many postings a missing-budget ratio says nothing.
BUDGET_GAP_MIN_SAMPLE = 5

_ID_RE = re.compile(r"~(\w+)")


class CrawlState(enum.Enum):
    INIT = "init"
    SESSION_CREATED = "session_created"
    FETCHING_LISTINGS = "fetching_listings"
    COLLECTING_URLS = "collecting_urls"
    FETCHING_DETAIL = "fetching_detail"
    PERSISTING = "persisting"
    SESSION_DESTROYING = "session_destroying"
    DONE = "done"
    FAILED = "failed"


def source_id_from_url(url: str) -> str:
    """Site-native id: the ``~0123abc`` fragment, else the last path segment."""
    m = _ID_RE.search(url)
    if m:
        return m.group(1)
    segment = urlsplit(url).path.rstrip("/").rsplit("/", 1)[-1]
    if segment:
        return segment
    return hashlib.sha256(url.encode()).hexdigest()[:12]


def build_search_url(query: str, page: int, per_page: int = PER_PAGE) -> str:
    params = urlencode({"q": query, "page": page, "per_page": per_page})
    return f"{SITE_ORIGIN}{SEARCH_PATH}?{params}"


class Crawler:
    def __init__(
        self,
        client: BypassClient,
        store: Store,
        *,
        pacer: Pacer | None = None,
        timeout_ms: int | None = None,
        budget_gap_alert_ratio: float = 0.5,
    ) -> None:
        self.client = client
        self.store = store
        self.pacer = pacer or Pacer()
        self.timeout_ms = timeout_ms
        self.budget_gap_alert_ratio = budget_gap_alert_ratio
        self.state = CrawlState.INIT
        self._fetched_any = False

    def _enter(self, state: CrawlState) -> None:
        log.debug("crawl state %s → %s", self.state.value, state.value)
        self.state = state

    def _fetch(self, url: str, session_id: str, pause) -> str:
        """Fetch through the bypass session, pausing first unless this is the first request."""
        if self._fetched_any:
            pause()
        self._fetched_any = True
        return self.client.fetch(url, session_id, self.timeout_ms)

    # ── public entry points ─────────────────────────────────────────────

    def crawl(self, query: str, max_items: int = 20) -> CrawlResult:
        """Search for ``query`` and scrape up to ``max_items`` postings.

        A bypass session that cannot be created aborts the run by raising;
        everything after that is isolated per page or per posting.
        """
        log.info("Starting crawl for %r (max %d postings)", query, max_items)
        result = CrawlResult()
        return self._run(result, lambda sid: self._collect_urls(query, max_items, sid, result))

    def crawl_urls(self, urls: list[str]) -> CrawlResult:
        """Scrape a fixed list of posting URLs."""
        log.info("Starting targeted crawl of %d URLs", len(urls))
        result = CrawlResult()
        return self._run(result, lambda sid: list(dict.fromkeys(urls)))

    def backfill(self, limit: int = 10) -> CrawlResult:
        """Re-fetch postings stored without details by an earlier run."""
        stubs = self.store.postings_missing_details(limit)
        log.info("Backfilling details for %d postings", len(stubs))
        result = CrawlResult()
        return self._run(result, lambda sid: [p.url for p in stubs])

    # ── run skeleton ────────────────────────────────────────────────────

    def _run(self, result: CrawlResult, collect) -> CrawlResult:
        self.state = CrawlState.INIT
        self._fetched_any = False
        ok = False
        try:
            with self.client.session() as session_id:
                try:
                    self._enter(CrawlState.SESSION_CREATED)
                    urls = collect(session_id)
                    result.urls_found = len(urls)
                    if not urls:
                        result.errors.append("No posting URLs found")
                    for i, url in enumerate(urls, 1):
                        log.info("[%d/%d] %s", i, len(urls), url)
                        self._scrape_one(url, session_id, result)
                finally:
                    self._enter(CrawlState.SESSION_DESTROYING)
            ok = True
        finally:
            self._enter(CrawlState.DONE if ok else CrawlState.FAILED)

        self._check_budget_gap(result)
        log.info(
            "Crawl finished: %d scraped, %d already known, %d errors",
            result.scraped,
            result.known,
            len(result.errors),
        )
        return result

    def _collect_urls(self, query: str, max_items: int, session_id: str, result: CrawlResult) -> list[str]:
        urls: list[str] = []
        seen: set[str] = set()
        pages = max(1, math.ceil(max_items / PER_PAGE))

        for page in range(1, pages + 1):
            self._enter(CrawlState.FETCHING_LISTINGS)
            search_url = build_search_url(query, page)
            log.info("Listing page %d/%d: %s", page, pages, search_url)
            try:
                html = self._fetch(search_url, session_id, self.pacer.page_pause)
            except GigRadarError as exc:
                log.error("Listing page %d failed: %s", page, exc)
                result.errors.append(f"Failed to fetch page {page}: {exc}")
                break

            self._enter(CrawlState.COLLECTING_URLS)
            new = [u for u in extract_posting_urls(html) if u not in seen]
            seen.update(new)
            urls.extend(new)
            log.info("Page %d yielded %d new posting URLs", page, len(new))
            if not new or len(urls) >= max_items:
                break

        return urls[:max_items]

    def _scrape_one(self, url: str, session_id: str, result: CrawlResult) -> None:
        source_id = source_id_from_url(url)
        try:
            existing = self.store.get_raw_by_source_id(source_id)
        except Exception as exc:
            log.error("Lookup failed for %s: %s", url, exc)
            result.errors.append(f"Failed to scrape {url}: {exc}")
            return
        if existing is not None and not existing.is_stub:
            log.info("Already known: %s", source_id)
            result.known += 1
            return

        self._enter(CrawlState.FETCHING_DETAIL)
        try:
            html = self._fetch(url, session_id, self.pacer.job_pause)
        except GigRadarError as exc:
            log.error("Failed to fetch %s: %s", url, exc)
            result.errors.append(f"Failed to scrape {url}: {exc}")
            if existing is None:
                self._save_stub(source_id, url)
            return

        try:
            details = parse_posting_html(html)
        except Exception as exc:
            log.error("Failed to parse %s: %s", url, exc)
            result.errors.append(f"Failed to parse {url}: {exc}")
            if existing is None:
                self._save_stub(source_id, url)
            return

        details.title = details.title or UNTITLED
        details.description = details.description or NO_DESCRIPTION

        self._enter(CrawlState.PERSISTING)
        try:
            if existing is not None:
                self.store.update_details(existing.id, details)
            else:
                self.store.insert_raw(
                    RawPosting.from_details(source_id, url, details, posted_at=utcnow())
                )
        except DuplicatePostingError:
            log.info("Already known: %s", source_id)
            result.known += 1
            return
        except Exception as exc:
            log.error("Failed to store %s: %s", url, exc)
            result.errors.append(f"Failed to insert {url}: {exc}")
            return

        result.scraped += 1
        if details.budget is None:
            result.missing_budget += 1
        log.info("Saved %s: %s", source_id, details.title)

    def _save_stub(self, source_id: str, url: str) -> None:
        """Keep a discovered-but-unscraped row so a later backfill retries it."""
        try:
            self.store.insert_raw(RawPosting(source_id=source_id, url=url))
        except DuplicatePostingError:
            pass
        except Exception as exc:
            log.warning("Could not record stub for %s: %s", url, exc)

    def _check_budget_gap(self, result: CrawlResult) -> None:
        if result.scraped < BUDGET_GAP_MIN_SAMPLE:
            return
        if result.budget_gap_ratio > self.budget_gap_alert_ratio:
            log.warning(
                "%.0f%% of scraped postings have no budget; the budget markup may have changed",
                result.budget_gap_ratio * 100,
            )
