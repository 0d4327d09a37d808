# tests/test_status.py
from datetime import datetime, timedelta, timezone
from app import status
from app.models import ScrapeStatus

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


def test_should_scrape_without_history():
    assert status.should_scrape(None, now=NOW) is True
    assert status.should_scrape(ScrapeStatus(source="autoplius"), now=NOW) is True


def test_should_scrape_respects_ttl():
    recent = ScrapeStatus(source="autoplius", last_scraped_at=NOW - timedelta(minutes=2))
    stale = ScrapeStatus(source="autoplius", last_scraped_at=NOW - timedelta(minutes=6))
    assert status.should_scrape(recent, now=NOW) is False
    assert status.should_scrape(recent, force_refresh=True, now=NOW) is True
    assert status.should_scrape(stale, now=NOW) is True


def test_should_scrape_handles_naive_timestamps():
    naive = ScrapeStatus(source="autoplius", last_scraped_at=(NOW - timedelta(minutes=1)).replace(tzinfo=None))
    assert status.should_scrape(naive, now=NOW) is False


def test_status_transitions(db):
    status.mark_scraping(db, "autoplius")
    row = status.get_status(db, "autoplius")
    assert row.status == status.SCRAPING
    assert row.last_scraped_at is None

    status.mark_completed(db, "autoplius", 12, now=NOW)
    db.expire_all()
    row = status.get_status(db, "autoplius")
    assert row.status == status.COMPLETED
    assert row.listings_count == 12
    assert row.last_scraped_at.replace(tzinfo=timezone.utc) == NOW

    status.mark_scraping(db, "autoplius")
    status.mark_error(db, "autoplius", "Scraping failed")
    db.expire_all()
    row = status.get_status(db, "autoplius")
    assert row.status == status.ERROR
    assert row.error_message == "Scraping failed"
    assert row.listings_count == 12
    assert row.last_scraped_at.replace(tzinfo=timezone.utc) == NOW
    assert db.query(ScrapeStatus).count() == 1


def test_completed_clears_error(db):
    status.mark_error(db, "marktplaats", "boom")
    status.mark_completed(db, "marktplaats", 0, now=NOW)
    db.expire_all()
    row = status.get_status(db, "marktplaats")
    assert row.error_message is None
    assert row.listings_count == 0
    assert [s.source for s in status.list_statuses(db)] == ["marktplaats"]
