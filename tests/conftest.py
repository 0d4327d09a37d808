# tests/conftest.py
import random
import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool
from app.db import Base
from app.extractor import ListingExtractor
from app.fetcher import FetchedPage
import app.models  # noqa: F401


@pytest.fixture()
def engine():
    eng = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=eng)
    yield eng
    Base.metadata.drop_all(bind=eng)
    eng.dispose()


@pytest.fixture()
def db(engine):
    session = sessionmaker(autocommit=False, autoflush=False, bind=engine)()
    yield session
    session.close()


@pytest.fixture()
def extractor():
    return ListingExtractor(rng=random.Random(42), clock=lambda: 1700000000.0)


class FakeFetcher:
    """Stands in for FirecrawlFetcher; returns a canned page or raises."""

    def __init__(self, page=None, error=None, api_key="test-key"):
        self.page = page or FetchedPage()
        self.error = error
        self.api_key = api_key
        self.urls = []

    def ensure_configured(self):
        if not self.api_key:
            from app.errors import MissingApiKeyError
            raise MissingApiKeyError()

    def fetch(self, url):
        self.ensure_configured()
        self.urls.append(url)
        if self.error:
            raise self.error
        return self.page


@pytest.fixture()
def fake_fetcher_cls():
    return FakeFetcher
