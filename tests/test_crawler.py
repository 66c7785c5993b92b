import logging
import sqlite3
from contextlib import contextmanager

import pytest
from conftest import load_fixture

from gigradar.errors import BypassServiceError, TransportError
from gigradar.models import RawPosting
from gigradar.scraper import crawler as crawler_module
from gigradar.scraper.crawler import (
    NO_DESCRIPTION,
    UNTITLED,
    Crawler,
    CrawlState,
    build_search_url,
    source_id_from_url,
)

REACT = "https://www.upwork.com/jobs/Senior-React-Developer_~01abc123/"
NEXT = "https://www.upwork.com/jobs/Next-js-Landing-Page_~02def456"
NODE = "https://www.upwork.com/jobs/Node-API-Integration_~03ghi789"


class FakeBypass:
    def __init__(self, pages, fail_create: bool = False) -> None:
        self.pages = pages
        self.fail_create = fail_create
        self.fetched: list[str] = []
        self.created: list[str] = []
        self.destroyed: list[str] = []

    @contextmanager
    def session(self, prefix: str = "crawl"):
        sid = f"{prefix}-1"
        try:
            if self.fail_create:
                raise BypassServiceError("no browser available")
            self.created.append(sid)
            yield sid
        finally:
            self.destroyed.append(sid)

    def fetch(self, url, session_id=None, timeout_ms=None):
        assert session_id == "crawl-1"
        self.fetched.append(url)
        reply = self.pages.get(url, "")
        if isinstance(reply, Exception):
            raise reply
        return reply


def _site(**overrides):
    pages = {
        build_search_url("react", 1): load_fixture("search_page.html"),
        REACT: load_fixture("posting_hourly.html"),
        NEXT: load_fixture("posting_fixed.html"),
        NODE: load_fixture("posting_sparse.html"),
    }
    pages.update(overrides)
    return pages


def test_source_id_from_url() -> None:
    assert source_id_from_url(REACT) == "01abc123"
    assert source_id_from_url("https://www.upwork.com/jobs/plain-slug/") == "plain-slug"
    assert len(source_id_from_url("https://www.upwork.com/")) == 12


def test_build_search_url() -> None:
    url = build_search_url("nextjs react", 2)
    assert url.startswith("https://www.upwork.com/nx/search/jobs/?")
    assert "q=nextjs+react" in url
    assert "page=2" in url


def test_crawl_scrapes_every_listed_posting(store, pacer, sleeps) -> None:
    bypass = FakeBypass(_site())
    crawler = Crawler(bypass, store, pacer=pacer)

    result = crawler.crawl("react", max_items=20)

    assert result.success
    assert result.scraped == 3
    assert result.urls_found == 3
    assert result.errors == []
    assert result.missing_budget == 1
    assert bypass.fetched == [build_search_url("react", 1), REACT, NEXT, NODE]
    assert bypass.created == bypass.destroyed == ["crawl-1"]
    assert crawler.state is CrawlState.DONE
    # No pause before the first request, one before each of the others.
    assert len(sleeps.calls) == 3

    saved = store.get_raw_by_source_id("01abc123")
    assert saved.title == "Senior React Developer for SaaS Dashboard"
    assert saved.url == REACT
    assert saved.posted_at is not None
    assert store.get_raw_by_source_id("03ghi789").budget is None


def test_second_crawl_treats_postings_as_known(store, pacer) -> None:
    Crawler(FakeBypass(_site()), store, pacer=pacer).crawl("react")
    bypass = FakeBypass(_site())

    result = Crawler(bypass, store, pacer=pacer).crawl("react")

    assert result.scraped == 0
    assert result.known == 3
    assert not result.success
    assert bypass.fetched == [build_search_url("react", 1)]


def test_one_failed_posting_does_not_stop_the_run(store, pacer) -> None:
    bypass = FakeBypass(_site(**{NEXT: TransportError("timed out")}))

    result = Crawler(bypass, store, pacer=pacer).crawl("react")

    assert result.scraped == 2
    assert len(result.errors) == 1
    assert NEXT in result.errors[0]
    assert bypass.fetched[-1] == NODE
    stub = store.get_raw_by_source_id("02def456")
    assert stub.is_stub


def test_stub_is_filled_on_a_later_crawl(store, pacer) -> None:
    Crawler(FakeBypass(_site(**{NEXT: TransportError("timed out")})), store, pacer=pacer).crawl("react")

    result = Crawler(FakeBypass(_site()), store, pacer=pacer).crawl("react")

    assert result.scraped == 1
    assert result.known == 2
    filled = store.get_raw_by_source_id("02def456")
    assert filled.title == "Build a Next.js Marketing Site"
    assert not filled.is_stub


def test_listing_failure_stops_pagination_but_keeps_session_cleanup(store, pacer) -> None:
    bypass = FakeBypass({build_search_url("react", 1): BypassServiceError("challenge failed")})
    crawler = Crawler(bypass, store, pacer=pacer)

    result = crawler.crawl("react")

    assert result.scraped == 0
    assert result.errors[0].startswith("Failed to fetch page 1")
    assert "No posting URLs found" in result.errors
    assert bypass.destroyed == ["crawl-1"]
    assert crawler.state is CrawlState.DONE


def test_listing_failure_keeps_urls_already_collected(store, pacer) -> None:
    bypass = FakeBypass(_site(**{build_search_url("react", 2): TransportError("reset")}))
    # 60 requested → two pages of 50; page 2 fails.
    result = Crawler(bypass, store, pacer=pacer).crawl("react", max_items=60)

    assert result.urls_found == 3
    assert result.scraped == 3
    assert result.errors[0].startswith("Failed to fetch page 2")


def test_pagination_stops_when_a_page_has_nothing_new(store, pacer, sleeps) -> None:
    page = load_fixture("search_page.html")
    bypass = FakeBypass(_site(**{build_search_url("react", 2): page}))

    result = Crawler(bypass, store, pacer=pacer).crawl("react", max_items=150)

    assert result.urls_found == 3
    assert bypass.fetched[:2] == [build_search_url("react", 1), build_search_url("react", 2)]
    assert build_search_url("react", 3) not in bypass.fetched
    assert sleeps.calls[0] == 0.005


def test_max_items_limits_detail_fetches(store, pacer) -> None:
    bypass = FakeBypass(_site())
    result = Crawler(bypass, store, pacer=pacer).crawl("react", max_items=2)
    assert result.scraped == 2
    assert NODE not in bypass.fetched


def test_session_failure_aborts_the_run(store, pacer) -> None:
    crawler = Crawler(FakeBypass(_site(), fail_create=True), store, pacer=pacer)
    with pytest.raises(BypassServiceError):
        crawler.crawl("react")
    assert crawler.state is CrawlState.FAILED


def test_empty_page_gets_placeholders(store, pacer) -> None:
    url = "https://www.upwork.com/jobs/Blank_~09zzz"
    result = Crawler(FakeBypass({url: "<html><body></body></html>"}), store, pacer=pacer).crawl_urls([url])

    assert result.scraped == 1
    saved = store.get_raw_by_source_id("09zzz")
    assert saved.title == UNTITLED
    assert saved.description == NO_DESCRIPTION


def test_crawl_urls_deduplicates(store, pacer) -> None:
    bypass = FakeBypass(_site())
    result = Crawler(bypass, store, pacer=pacer).crawl_urls([REACT, REACT, NODE])
    assert result.scraped == 2
    assert bypass.fetched == [REACT, NODE]


def test_backfill_fills_stubs(store, pacer) -> None:
    store.insert_raw(RawPosting(source_id="02def456", url=NEXT))

    result = Crawler(FakeBypass(_site()), store, pacer=pacer).backfill()

    assert result.scraped == 1
    assert store.get_raw_by_source_id("02def456").description.startswith("Looking for")
    assert store.postings_missing_details() == []


def test_budget_gap_warning(store, pacer, caplog) -> None:
    urls = [f"https://www.upwork.com/jobs/Gap_~0{i}gap" for i in range(5)]
    sparse = load_fixture("posting_sparse.html")
    crawler = Crawler(FakeBypass({u: sparse for u in urls}), store, pacer=pacer)

    with caplog.at_level(logging.WARNING):
        result = crawler.crawl_urls(urls)

    assert result.budget_gap_ratio == 1.0
    assert any("have no budget" in r.getMessage() for r in caplog.records)


def test_no_budget_warning_for_small_runs(store, pacer, caplog) -> None:
    url = "https://www.upwork.com/jobs/Gap_~0gap"
    crawler = Crawler(FakeBypass({url: load_fixture("posting_sparse.html")}), store, pacer=pacer)
    with caplog.at_level(logging.WARNING):
        crawler.crawl_urls([url])
    assert not any("have no budget" in r.getMessage() for r in caplog.records)


def test_store_lookup_failure_skips_only_that_posting(store, pacer, monkeypatch) -> None:
    lookup = store.get_raw_by_source_id
    calls = []

    def flaky_lookup(source_id):
        calls.append(source_id)
        if len(calls) == 1:
            raise sqlite3.OperationalError("database is locked")
        return lookup(source_id)

    monkeypatch.setattr(store, "get_raw_by_source_id", flaky_lookup)
    bypass = FakeBypass(_site())

    result = Crawler(bypass, store, pacer=pacer).crawl_urls([REACT, NEXT])

    assert result.scraped == 1
    assert result.errors == [f"Failed to scrape {REACT}: database is locked"]
    assert bypass.fetched == [NEXT]
    assert lookup("02def456").title == "Build a Next.js Marketing Site"


def test_parse_failure_leaves_a_stub_for_backfill(store, pacer, monkeypatch) -> None:
    real_parse = crawler_module.parse_posting_html
    broken = "<html>broken</html>"

    def parse(html):
        if html == broken:
            raise ValueError("unexpected markup")
        return real_parse(html)

    monkeypatch.setattr(crawler_module, "parse_posting_html", parse)

    result = Crawler(FakeBypass(_site(**{NEXT: broken})), store, pacer=pacer).crawl("react")

    assert result.scraped == 2
    assert any(NEXT in e for e in result.errors)
    stub = store.get_raw_by_source_id("02def456")
    assert stub.is_stub
    assert [p.source_id for p in store.postings_missing_details()] == ["02def456"]
