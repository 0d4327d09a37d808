# app/fetcher.py
"""Client for the Firecrawl scraping API.

Firecrawl renders the marketplace search page and returns it as markdown,
raw HTML and the list of hyperlinks found on the page.
"""
import os
from dataclasses import dataclass, field
from typing import List, Optional

import requests
from dotenv import load_dotenv

from .errors import FetchError, MissingApiKeyError
from .utils import logger

load_dotenv()
FIRECRAWL_API_URL = os.getenv("FIRECRAWL_API_URL", "https://api.firecrawl.dev/v1/scrape")
FIRECRAWL_TIMEOUT = float(os.getenv("FIRECRAWL_TIMEOUT", "60"))
FIRECRAWL_WAIT_FOR = int(os.getenv("FIRECRAWL_WAIT_FOR", "3000"))


@dataclass
class FetchedPage:
    markdown: str = ""
    html: str = ""
    links: List[str] = field(default_factory=list)


class FirecrawlFetcher:
    def __init__(
        self,
        api_key: Optional[str] = None,
        api_url: str = FIRECRAWL_API_URL,
        timeout: float = FIRECRAWL_TIMEOUT,
        wait_for: int = FIRECRAWL_WAIT_FOR,
        session: Optional[requests.Session] = None,
    ):
        self.api_key = api_key if api_key is not None else os.getenv("FIRECRAWL_API_KEY")
        self.api_url = api_url
        self.timeout = timeout
        self.wait_for = wait_for
        self.session = session or requests.Session()

    def ensure_configured(self) -> None:
        if not self.api_key:
            logger.error("FIRECRAWL_API_KEY not configured")
            raise MissingApiKeyError()

    def fetch(self, url: str) -> FetchedPage:
        self.ensure_configured()
        body = {
            "url": url,
            "formats": ["markdown", "html", "links"],
            "onlyMainContent": True,
            "waitFor": self.wait_for,
        }
        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }
        try:
            resp = self.session.post(self.api_url, json=body, headers=headers, timeout=self.timeout)
        except requests.RequestException as e:
            logger.error("Firecrawl request for %s failed: %s", url, e)
            raise FetchError(f"Scraping request failed: {e}") from e

        try:
            payload = resp.json()
        except ValueError:
            payload = {}

        if not isinstance(payload, dict):
            logger.error("Unexpected Firecrawl response for %s: %r", url, payload)
            raise FetchError("Unexpected response from scraping service", status_code=resp.status_code)

        if not resp.ok or payload.get("success") is False:
            message = payload.get("error") or f"Scraping failed with status {resp.status_code}"
            logger.error("Firecrawl API error for %s: %s", url, message)
            raise FetchError(message, status_code=resp.status_code)

        # the API nests results under "data"; older responses are flat
        data = payload.get("data") or payload
        if not isinstance(data, dict):
            logger.error("Unexpected Firecrawl data for %s: %r", url, data)
            raise FetchError("Unexpected response from scraping service", status_code=resp.status_code)
        return FetchedPage(
            markdown=data.get("markdown") or "",
            html=data.get("html") or data.get("rawHtml") or "",
            links=list(data.get("links") or []),
        )
