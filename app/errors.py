# app/errors.py
"""Exception hierarchy for the scraping pipeline.

Configuration errors are raised before any state is touched. Fetch errors
are recorded in ``scrape_status`` by the service layer and then re-raised.
"""


class ScrapeError(Exception):
    """Base class for all scraping pipeline failures."""


class ConfigurationError(ScrapeError):
    pass


class UnknownSourceError(ConfigurationError):
    def __init__(self, source: str):
        super().__init__(f"Unknown source: {source}")
        self.source = source


class MissingApiKeyError(ConfigurationError):
    def __init__(self):
        super().__init__("Firecrawl API key not configured")


class FetchError(ScrapeError):
    """The scraping service returned an error or could not be reached."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class ExtractionError(ScrapeError):
    """Parsing or storing a fetched page failed."""
