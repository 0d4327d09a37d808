# app/services.py
"""Scrape orchestration: freshness check, fetch, extract, persist, record status."""
import threading
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from sqlalchemy.orm import Session

from . import crud, status
from .errors import ExtractionError, FetchError, ScrapeError
from .extractor import ListingExtractor
from .fetcher import FirecrawlFetcher
from .models import CarListing
from .sources import available_sources, build_search_url, config_for
from .utils import logger

READ_BACK_LIMIT = 100

_inflight_lock = threading.Lock()
_inflight: set = set()


@dataclass
class RefreshResult:
    source: str
    listings: List[CarListing] = field(default_factory=list)
    cached: bool = False
    scraped: int = 0


def _claim(source: str) -> bool:
    with _inflight_lock:
        if source in _inflight:
            return False
        _inflight.add(source)
        return True


def _release(source: str):
    with _inflight_lock:
        _inflight.discard(source)


def refresh_source(
    db: Session,
    source: str,
    force_refresh: bool = False,
    fetcher: Optional[FirecrawlFetcher] = None,
    extractor: Optional[ListingExtractor] = None,
    filters: Optional[Dict] = None,
) -> RefreshResult:
    """Scrape ``source`` unless its last scrape is still fresh.

    Configuration problems raise before anything is written. Fetch,
    extraction and storage failures are recorded in ``scrape_status`` and
    re-raised.
    """
    config = config_for(source)
    fetcher = fetcher or FirecrawlFetcher()
    extractor = extractor or ListingExtractor()

    if not status.should_scrape(status.get_status(db, source), force_refresh):
        logger.info("Serving cached listings for %s", source)
        return RefreshResult(source, crud.read_fresh(db, source, READ_BACK_LIMIT), cached=True)

    fetcher.ensure_configured()
    if not _claim(source):
        logger.info("Scrape of %s already in progress, serving cached listings", source)
        return RefreshResult(source, crud.read_fresh(db, source, READ_BACK_LIMIT), cached=True)

    try:
        url = build_search_url(config, **(filters or {}))
        logger.info("Scraping %s: %s", source, url)
        status.mark_scraping(db, source)
        try:
            page = fetcher.fetch(url)
            records = extractor.extract(page.markdown, page.html, page.links, config)
            logger.info("Found %d listings from %s", len(records), source)
            stored = crud.upsert_listings(db, [r.model_dump() for r in records])
        except FetchError as e:
            status.mark_error(db, source, str(e))
            raise
        except Exception as e:
            logger.exception("Processing %s failed: %s", source, e)
            db.rollback()
            status.mark_error(db, source, str(e))
            raise ExtractionError(f"Processing {source} failed: {e}") from e

        if stored < len(records):
            logger.warning("Stored %d of %d listings from %s", stored, len(records), source)
        status.mark_completed(db, source, len(records))
    finally:
        _release(source)

    return RefreshResult(source, crud.read_fresh(db, source, READ_BACK_LIMIT), scraped=len(records))


def refresh_all_sources(db: Session, force_refresh: bool = False,
                        fetcher: Optional[FirecrawlFetcher] = None,
                        extractor: Optional[ListingExtractor] = None) -> List[Dict]:
    summaries = []
    for source in available_sources():
        try:
            result = refresh_source(db, source, force_refresh, fetcher=fetcher, extractor=extractor)
            summaries.append({"source": source, "success": True, "cached": result.cached,
                              "count": len(result.listings)})
        except ScrapeError as e:
            logger.error("Refresh of %s failed: %s", source, e)
            summaries.append({"source": source, "success": False, "error": str(e)})
    return summaries
