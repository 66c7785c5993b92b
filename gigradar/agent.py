"""
GigRadar run: crawl → score → alert.

One call to ``run_once`` opens a bypass session, scrapes new postings into the
raw store, then scores everything the idempotency gate reports as pending.
"""
from __future__ import annotations

import random
import time
from dataclasses import dataclass
from typing import Any, Callable

from gigradar.config import ensure_dirs, load_profile, load_settings, Settings
from gigradar.embeddings import EmbeddingClient
from gigradar.log import get_logger
from gigradar.models import CrawlResult, ProcessResult, UserProfile
from gigradar.notifier import Notifier, build_notifier
from gigradar.pacing import Pacer
from gigradar.pipeline import process_pending
from gigradar.scraper.bypass import BypassClient
from gigradar.scraper.crawler import Crawler
from gigradar.store import Store

log = get_logger(__name__)


@dataclass
class Components:
    """Everything one run talks to. Built from settings, or injected in tests."""

    store: Store
    bypass: BypassClient
    embedder: EmbeddingClient
    notifier: Notifier
    pacer: Pacer
    profile: UserProfile


def build_components(
    settings: Settings,
    *,
    store: Store | None = None,
    sleep: Callable[[float], None] = time.sleep,
) -> Components:
    if store is None:
        ensure_dirs()
        store = Store(settings.database_path)
    return Components(
        store=store,
        bypass=BypassClient(settings.flaresolverr_url, default_timeout_ms=settings.bypass_timeout_ms),
        embedder=EmbeddingClient(
            settings.embedding_url,
            settings.hf_api_key,
            timeout=settings.embedding_timeout,
        ),
        notifier=build_notifier(settings),
        pacer=Pacer.from_settings(settings, sleep=sleep),
        profile=load_profile(),
    )


def pick_query(settings: Settings) -> str:
    return random.choice(settings.search_queries)


def run_once(
    query: str | None = None,
    max_items: int | None = None,
    *,
    settings: Settings | None = None,
    components: Components | None = None,
    urls: list[str] | None = None,
    backfill: bool = False,
    process_only: bool = False,
) -> dict[str, Any]:
    """Run one crawl followed by one processing pass; never raises.

    Returns ``{success, scraped, processed, failed, duration, ...}``.
    ``success`` is False only when the run itself could not proceed (bypass
    session not created, profile not embeddable, bad configuration);
    per-posting failures are reported in ``errors`` instead.
    """
    started = time.monotonic()
    settings = settings or load_settings()
    query = query or pick_query(settings)
    max_items = max_items or settings.max_jobs_per_run

    crawl = CrawlResult()
    processed = ProcessResult()
    summary: dict[str, Any] = {"success": True, "query": None if (urls or backfill or process_only) else query}

    owned = components is None
    try:
        components = components or build_components(settings)
        if not process_only:
            crawler = Crawler(
                components.bypass,
                components.store,
                pacer=components.pacer,
                timeout_ms=settings.bypass_timeout_ms,
                budget_gap_alert_ratio=settings.budget_gap_alert_ratio,
            )
            if urls:
                crawl = crawler.crawl_urls(urls)
            elif backfill:
                crawl = crawler.backfill(max_items)
            else:
                crawl = crawler.crawl(query, max_items)

        processed = process_pending(
            components.store,
            components.embedder,
            components.profile,
            notifier=components.notifier,
            pacer=components.pacer,
        )
    except Exception as exc:
        log.error("Run aborted: %s", exc)
        summary["success"] = False
        summary["error"] = str(exc)
    finally:
        if owned and components is not None:
            components.store.close()

    summary.update(
        {
            "scraped": crawl.scraped,
            "known": crawl.known,
            "processed": processed.processed,
            "failed": processed.failed,
            "notified": processed.notified,
            "errors": crawl.errors + processed.errors,
            "duration": round(time.monotonic() - started, 2),
        }
    )
    log.info(
        "Run complete in %.1fs: %d scraped, %d processed, %d failed",
        summary["duration"],
        summary["scraped"],
        summary["processed"],
        summary["failed"],
    )
    return summary
