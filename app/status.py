# app/status.py
"""Per-source scrape status and the freshness check built on it."""
import os
from datetime import datetime, timedelta, timezone
from typing import List, Optional

from dotenv import load_dotenv
from sqlalchemy.orm import Session

from .crud import insert_for
from .models import ScrapeStatus

load_dotenv()
CACHE_TTL = timedelta(seconds=int(os.getenv("SCRAPE_CACHE_TTL_SECONDS", "300")))

IDLE = "idle"
SCRAPING = "scraping"
COMPLETED = "completed"
ERROR = "error"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _aware(ts: datetime) -> datetime:
    # SQLite hands timestamps back without tzinfo; they are stored as UTC
    return ts if ts.tzinfo is not None else ts.replace(tzinfo=timezone.utc)


def should_scrape(status: Optional[ScrapeStatus], force_refresh: bool = False,
                  now: Optional[datetime] = None, ttl: timedelta = CACHE_TTL) -> bool:
    if force_refresh:
        return True
    if status is None or status.last_scraped_at is None:
        return True
    now = now or _utcnow()
    return _aware(now) - _aware(status.last_scraped_at) > ttl


def get_status(db: Session, source: str) -> Optional[ScrapeStatus]:
    return db.query(ScrapeStatus).filter(ScrapeStatus.source == source).first()


def list_statuses(db: Session) -> List[ScrapeStatus]:
    return db.query(ScrapeStatus).order_by(ScrapeStatus.source).all()


def _write(db: Session, source: str, **fields):
    insert = insert_for(db)
    stmt = insert(ScrapeStatus.__table__).values(source=source, **fields)
    stmt = stmt.on_conflict_do_update(index_elements=["source"], set_=fields)
    db.execute(stmt)
    db.commit()


def mark_scraping(db: Session, source: str):
    _write(db, source, status=SCRAPING)


def mark_completed(db: Session, source: str, count: int, now: Optional[datetime] = None):
    _write(db, source, status=COMPLETED, listings_count=count,
           last_scraped_at=now or _utcnow(), error_message=None)


def mark_error(db: Session, source: str, message: str):
    # last_scraped_at is left alone so a failure never looks like a fresh cache
    _write(db, source, status=ERROR, error_message=message)
