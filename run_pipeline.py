#!/usr/bin/env python3
"""Entry point: one crawl followed by one scoring pass."""
from __future__ import annotations

import argparse
import json
import sys
import time
from pathlib import Path

import yaml

sys.path.insert(0, str(Path(__file__).resolve().parent))

from gigradar.config import PROFILE_PATH, ensure_dirs, load_settings
from gigradar.errors import DuplicatePostingError
from gigradar.log import configure_logging, get_logger
from gigradar.models import ClientInfo, RawPosting, budget_from_dict
from gigradar.store import Store

log = get_logger(__name__)


def _check_setup() -> bool:
    """Return True if the profile is missing."""
    if not PROFILE_PATH.exists():
        print()
        print(f"  No profile found at {PROFILE_PATH}.")
        print("  Create it with a `skills` list and a `min_budget`.")
        print()
        return True
    return False


def add_manual(path: Path, database_path: str) -> int:
    """Insert one hand-written posting (YAML) into the raw store."""
    with open(path, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}
    posting = RawPosting(
        source_id=str(data.get("source_id") or f"manual-{int(time.time() * 1000)}"),
        url=data.get("url", ""),
        title=data.get("title"),
        description=data.get("description"),
        budget=budget_from_dict(data.get("budget")),
        job_type=data.get("job_type"),
        experience_level=data.get("experience_level"),
        skill_tags=list(data.get("skill_tags") or []),
        connects_required=data.get("connects_required"),
        client=ClientInfo.from_dict(data.get("client")),
    )
    ensure_dirs()
    with Store(database_path) as store:
        try:
            posting_id = store.insert_raw(posting)
        except DuplicatePostingError:
            log.warning("Posting %s already exists", posting.source_id)
            return 1
    log.info("Inserted manual posting %s as id %d", posting.source_id, posting_id)
    return 0


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Scrape and score job postings.")
    parser.add_argument("--query", help="search query (default: random pick from DEFAULT_SEARCH_QUERY)")
    parser.add_argument("--max-jobs", type=int, help="postings to scrape (default: MAX_JOBS_PER_RUN)")
    parser.add_argument("--urls", nargs="+", metavar="URL", help="scrape these posting URLs only")
    parser.add_argument("--backfill", action="store_true", help="re-fetch postings stored without details")
    parser.add_argument("--process-only", action="store_true", help="skip the crawl, only score pending postings")
    parser.add_argument("--add-manual", type=Path, metavar="FILE.yaml", help="insert one posting from YAML and exit")
    parser.add_argument("-v", "--verbose", action="store_true", help="debug output on the console")
    args = parser.parse_args(argv)
    if args.verbose:
        configure_logging("DEBUG")

    settings = load_settings()
    if args.add_manual:
        return add_manual(args.add_manual, settings.database_path)

    if _check_setup():
        return 1

    from gigradar.agent import run_once

    summary = run_once(
        args.query,
        args.max_jobs,
        settings=settings,
        urls=args.urls,
        backfill=args.backfill,
        process_only=args.process_only,
    )
    log.info("Run complete.")
    log.info("  Scraped: %d (already known: %d)", summary["scraped"], summary["known"])
    log.info("  Processed: %d, failed: %d", summary["processed"], summary["failed"])
    log.info("  Alerts sent: %d", summary["notified"])
    print(json.dumps(summary, indent=2))
    return 0 if summary["success"] else 1


if __name__ == "__main__":
    sys.exit(main())
