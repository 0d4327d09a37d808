# tests/test_services.py
from datetime import datetime, timedelta, timezone
import pytest
from app import services, status
from app.errors import ExtractionError, FetchError, MissingApiKeyError, UnknownSourceError
from app.fetcher import FetchedPage
from app.models import CarListing, ScrapeStatus

MARKDOWN = "\n".join([
    "## Naudoti automobiliai",
    "BMW 320d Touring",
    "98.000 km",
    "24.500 €",
    "2019",
    "VW Passat Variant",
    "€ 13.200",
    "2016 | 187.000 km",
    "Toyota",
])
LINKS = [
    "https://autoplius.lt/skelbimai/bmw-320d-touring-28111111.html",
    "https://autoplius.lt/skelbimai/volkswagen-passat-28222222.html",
]


@pytest.fixture()
def page():
    return FetchedPage(markdown=MARKDOWN, html="", links=LINKS)


def test_refresh_scrapes_and_persists(db, extractor, fake_fetcher_cls, page):
    fetcher = fake_fetcher_cls(page=page)
    result = services.refresh_source(db, "autoplius", fetcher=fetcher, extractor=extractor)
    assert result.cached is False
    assert result.scraped == 2
    assert {(r.brand, r.external_id) for r in result.listings} == {
        ("BMW", "28111111"), ("Volkswagen", "28222222"),
    }
    assert fetcher.urls == ["https://autoplius.lt/skelbimai/naudoti-automobiliai?category_id=2"]
    row = status.get_status(db, "autoplius")
    assert row.status == status.COMPLETED
    assert row.listings_count == 2


def test_second_refresh_is_served_from_cache(db, extractor, fake_fetcher_cls, page):
    fetcher = fake_fetcher_cls(page=page)
    services.refresh_source(db, "autoplius", fetcher=fetcher, extractor=extractor)
    result = services.refresh_source(db, "autoplius", fetcher=fetcher, extractor=extractor)
    assert result.cached is True
    assert len(result.listings) == 2
    assert len(fetcher.urls) == 1


def test_force_refresh_rescrapes_without_duplicates(db, extractor, fake_fetcher_cls, page):
    fetcher = fake_fetcher_cls(page=page)
    services.refresh_source(db, "autoplius", fetcher=fetcher, extractor=extractor)
    result = services.refresh_source(db, "autoplius", force_refresh=True, fetcher=fetcher, extractor=extractor)
    assert result.cached is False
    assert len(fetcher.urls) == 2
    assert db.query(CarListing).count() == 2


def test_stale_status_triggers_scrape(db, extractor, fake_fetcher_cls, page):
    status.mark_completed(db, "autoplius", 0, now=datetime.now(timezone.utc) - timedelta(minutes=10))
    fetcher = fake_fetcher_cls(page=page)
    result = services.refresh_source(db, "autoplius", fetcher=fetcher, extractor=extractor)
    assert result.cached is False
    assert len(fetcher.urls) == 1


def test_filters_shape_search_url(db, extractor, fake_fetcher_cls):
    fetcher = fake_fetcher_cls()
    services.refresh_source(db, "mobile.de", fetcher=fetcher, extractor=extractor,
                            filters={"brand": "Audi", "max_price": 20000})
    assert fetcher.urls == ["https://suchen.mobile.de/fahrzeuge/search.html?s=Car&vc=Car&ms=Audi&prt=20000"]


def test_empty_page_is_success(db, extractor, fake_fetcher_cls):
    result = services.refresh_source(db, "marktplaats", fetcher=fake_fetcher_cls(), extractor=extractor)
    assert result.listings == []
    assert status.get_status(db, "marktplaats").status == status.COMPLETED


def test_fetch_error_is_recorded(db, extractor, fake_fetcher_cls):
    fetcher = fake_fetcher_cls(error=FetchError("Scraping failed", status_code=500))
    with pytest.raises(FetchError):
        services.refresh_source(db, "kleinanzeigen", fetcher=fetcher, extractor=extractor)
    row = status.get_status(db, "kleinanzeigen")
    assert row.status == status.ERROR
    assert row.error_message == "Scraping failed"
    assert row.last_scraped_at is None


def test_configuration_errors_leave_no_trace(db, extractor, fake_fetcher_cls):
    with pytest.raises(UnknownSourceError):
        services.refresh_source(db, "ebay", fetcher=fake_fetcher_cls(), extractor=extractor)
    with pytest.raises(MissingApiKeyError):
        services.refresh_source(db, "autoplius", fetcher=fake_fetcher_cls(api_key=None), extractor=extractor)
    assert db.query(ScrapeStatus).count() == 0


def test_inflight_scrape_serves_cache(db, extractor, fake_fetcher_cls):
    fetcher = fake_fetcher_cls()
    services._inflight.add("autoscout24")
    try:
        result = services.refresh_source(db, "autoscout24", fetcher=fetcher, extractor=extractor)
    finally:
        services._inflight.discard("autoscout24")
    assert result.cached is True
    assert fetcher.urls == []


def test_refresh_all_isolates_failures(db, extractor, fake_fetcher_cls, page):
    class FlakyFetcher(fake_fetcher_cls):
        def fetch(self, url):
            if "marktplaats" in url:
                raise FetchError("Blocked")
            return super().fetch(url)

    summaries = services.refresh_all_sources(db, fetcher=FlakyFetcher(page=page), extractor=extractor)
    by_source = {s["source"]: s for s in summaries}
    assert len(by_source) == 5
    assert by_source["marktplaats"] == {"source": "marktplaats", "success": False, "error": "Blocked"}
    assert by_source["autoplius"]["success"] is True
    assert by_source["autoplius"]["count"] == 2


def test_extraction_failure_is_recorded(db, fake_fetcher_cls, page):
    class BrokenExtractor:
        def extract(self, markdown, html, links, config):
            raise ValueError("unparseable page")

    with pytest.raises(ExtractionError):
        services.refresh_source(db, "autoplius", fetcher=fake_fetcher_cls(page=page), extractor=BrokenExtractor())
    row = status.get_status(db, "autoplius")
    assert row.status == status.ERROR
    assert "unparseable page" in row.error_message
    assert "autoplius" not in services._inflight


def test_overlong_listing_slug_is_stored(db, extractor, fake_fetcher_cls):
    page = FetchedPage(
        markdown="BMW X5\n45.000 €\n2021",
        links=["https://www.autoscout24.de/angebote/" + "a" * 300],
    )
    result = services.refresh_source(db, "autoscout24", fetcher=fake_fetcher_cls(page=page), extractor=extractor)
    assert len(result.listings) == 1
    assert status.get_status(db, "autoscout24").status == status.COMPLETED
