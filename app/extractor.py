# app/extractor.py
"""Heuristic extraction of car listings from a rendered search page.

The scraping service hands back the page as markdown plus raw HTML and the
page's hyperlinks. Listings are rebuilt line by line: a line naming a known
brand opens a record, later lines fill in price, year and mileage, and the
record is emitted once price, year and brand are all known. The in-progress
record is an optional accumulator threaded through ``_step``.
"""
import random
import re
import time
from dataclasses import dataclass, replace
from typing import Any, Callable, Dict, List, Optional, Tuple
from urllib.parse import urljoin, urlparse

from bs4 import BeautifulSoup

from .schemas import ListingCreate
from .sources import SourceConfig

# try to detect available parser; prefer lxml if installed
try:
    import lxml  # type: ignore  # noqa: F401
    _bs_parser = "lxml"
except ImportError:
    _bs_parser = "html.parser"

MAX_LISTINGS = 20
MAX_LISTING_URLS = 25
MAX_EXTERNAL_ID_LENGTH = 255

DEFAULT_MODEL = "Modelis"
DEFAULT_FUEL = "Dyzelinas"
DEFAULT_TRANSMISSION = "Automatinė"

# order matters: the first brand found in a line wins
CAR_BRANDS = [
    "BMW", "Mercedes", "Audi", "Volkswagen", "VW", "Toyota", "Porsche", "Tesla",
    "Volvo", "Skoda", "Ford", "Opel", "Honda", "Kia", "Hyundai", "Mazda", "Lexus",
    "Nissan", "Peugeot", "Renault",
]
BRAND_ALIASES = {"VW": "Volkswagen"}

BRAND_MODELS: Dict[str, List[str]] = {
    "BMW": ["320d", "318d", "320i", "330i", "330e", "520d", "530d", "530e", "540i",
            "730d", "X1", "X3", "X5", "X6", "X7", "M3", "M4", "M5", "i3", "i4", "iX", "Z4"],
    "Mercedes": ["C 220", "C220", "E 220", "E220", "E 300", "A 180", "A180", "CLA", "GLA",
                 "GLC", "GLE", "GLS", "S 350", "C-Class", "E-Class", "A-Class", "S-Class",
                 "Sprinter", "Vito"],
    "Audi": ["RS6", "A3", "A4", "A5", "A6", "A7", "A8", "Q2", "Q3", "Q5", "Q7", "Q8", "e-tron", "TT"],
    "Volkswagen": ["Golf", "Passat", "Tiguan", "Touareg", "Polo", "Arteon", "T-Roc", "Touran",
                   "Sharan", "ID.3", "ID.4", "Caddy", "Transporter", "Multivan"],
    "Toyota": ["Corolla", "RAV4", "Yaris", "C-HR", "Camry", "Prius", "Land Cruiser", "Auris",
               "Avensis", "Hilux"],
    "Porsche": ["911", "Cayenne", "Macan", "Panamera", "Taycan", "Boxster", "Cayman"],
    "Tesla": ["Model 3", "Model Y", "Model S", "Model X"],
    "Volvo": ["XC90", "XC60", "XC40", "V60", "V90", "S60", "S90", "V40"],
    "Skoda": ["Octavia", "Superb", "Kodiaq", "Karoq", "Fabia", "Kamiq", "Scala", "Enyaq"],
    "Ford": ["Focus", "Mondeo", "Kuga", "Fiesta", "Mustang", "Galaxy", "S-Max", "Ranger", "Transit"],
    "Opel": ["Astra", "Insignia", "Corsa", "Zafira", "Mokka", "Grandland", "Crossland"],
    "Honda": ["Civic", "CR-V", "Accord", "Jazz", "HR-V"],
    "Kia": ["Sportage", "Ceed", "Sorento", "Niro", "Picanto", "EV6", "Stonic"],
    "Hyundai": ["Tucson", "i30", "i20", "i10", "Kona", "Santa Fe", "Ioniq"],
    "Mazda": ["CX-5", "CX-30", "CX-3", "MX-5", "Mazda3", "Mazda6"],
    "Lexus": ["RX", "NX", "UX", "CT 200h", "IS 300h", "ES 300h", "LS 500h"],
    "Nissan": ["Qashqai", "Juke", "X-Trail", "Leaf", "Micra", "Navara"],
    "Peugeot": ["2008", "3008", "5008", "208", "308", "508"],
    "Renault": ["Clio", "Megane", "Captur", "Kadjar", "Scenic", "Talisman", "Zoe", "Arkana", "Austral"],
}

DEFAULT_IMAGE = "https://images.unsplash.com/photo-1494976388531-d1058494cdd8?w=800&q=80"
BRAND_IMAGES = {
    "BMW": "https://images.unsplash.com/photo-1555215695-3004980ad54e?w=800&q=80",
    "Mercedes": "https://images.unsplash.com/photo-1618843479313-40f8afb4b4d8?w=800&q=80",
    "Audi": "https://images.unsplash.com/photo-1606664515524-ed2f786a0bd6?w=800&q=80",
    "Volkswagen": "https://images.unsplash.com/photo-1471444928139-48c5bf5173f8?w=800&q=80",
    "Tesla": "https://images.unsplash.com/photo-1560958089-b8a1929cea89?w=800&q=80",
    "Porsche": "https://images.unsplash.com/photo-1614200179396-2bdb77ebf81b?w=800&q=80",
}

IMAGE_HINTS = ("img", "image", "photo", "car")
IMAGE_EXCLUDES = ("icon", "logo", "avatar")
IMAGE_EXTENSIONS = (".jpg", ".jpeg", ".png", ".webp")

_NUMBER = r"(\d{1,3}(?:[.,\u00a0\u202f]?\d{3})*)"
PRICE_RE = re.compile(rf"(?<![\d.,]){_NUMBER}\s*€|€\s*{_NUMBER}")
YEAR_RE = re.compile(r"\b(19\d{2}|20[0-2]\d)\b")
KM_RE = re.compile(rf"(?<![\d.,]){_NUMBER}\s*km", re.IGNORECASE)
TITLE_STRIP_RE = re.compile(r"[#*\[\]\\]")

_ID_ALPHABET = "0123456789abcdefghijklmnopqrstuvwxyz"


def _to_int(digits: str) -> int:
    return int(re.sub(r"\D", "", digits))


def find_brand(line: str) -> Optional[str]:
    upper = line.upper()
    for brand in CAR_BRANDS:
        if brand.upper() in upper:
            return BRAND_ALIASES.get(brand, brand)
    return None


def find_model(brand: str, line: str) -> str:
    lower = line.lower()
    for model in BRAND_MODELS.get(brand, []):
        if model.lower() in lower:
            return model
    return DEFAULT_MODEL


def clean_title(line: str) -> str:
    return TITLE_STRIP_RE.sub("", line[:100]).strip()


def parse_price(line: str) -> Optional[int]:
    m = PRICE_RE.search(line)
    if not m:
        return None
    price = _to_int(m.group(1) or m.group(2))
    return price or None


def parse_year(line: str) -> Optional[int]:
    m = YEAR_RE.search(line)
    return int(m.group(1)) if m else None


def parse_mileage(line: str) -> Optional[int]:
    m = KM_RE.search(line)
    return _to_int(m.group(1)) if m else None


def listing_id_from_url(url: str) -> str:
    numbers = re.findall(r"\d{6,}", url)
    if numbers:
        return numbers[-1]
    return urlparse(url).path.rstrip("/").split("/")[-1] or url


def listing_url_pool(links: List[str], config: SourceConfig) -> List[str]:
    pattern = config.listing_url_re
    pool: List[str] = []
    for link in links:
        if link in pool or not pattern.search(link):
            continue
        pool.append(link)
        if len(pool) >= MAX_LISTING_URLS:
            break
    return pool


def image_pool(html: str, base_url: str) -> List[str]:
    if not html:
        return []
    soup = BeautifulSoup(html, _bs_parser)
    pool: List[str] = []
    for img in soup.find_all("img", src=True):
        src = img["src"].strip()
        lowered = src.lower()
        if not any(h in lowered for h in IMAGE_HINTS):
            continue
        if any(x in lowered for x in IMAGE_EXCLUDES):
            continue
        if not urlparse(lowered).path.endswith(IMAGE_EXTENSIONS):
            continue
        src = urljoin(base_url + "/", src)
        if src not in pool:
            pool.append(src)
    return pool


@dataclass(frozen=True)
class ExtractionState:
    current: Optional[Dict[str, Any]] = None
    url_cursor: int = 0
    image_cursor: int = 0
    records: Tuple[ListingCreate, ...] = ()


class ListingExtractor:
    """Turns one fetched search page into at most ``MAX_LISTINGS`` records.

    ``rng`` drives fallback id suffixes and location picks; ``clock`` returns
    epoch seconds for fallback ids. Both are injectable for tests.
    """

    def __init__(self, rng: Optional[random.Random] = None, clock: Callable[[], float] = time.time):
        self.rng = rng or random.Random()
        self.clock = clock

    def extract(self, markdown: str, html: str, links: List[str], config: SourceConfig) -> List[ListingCreate]:
        urls = listing_url_pool(links or [], config)
        images = image_pool(html or "", config.base_url)
        used_ids: set = set()

        state = ExtractionState()
        for line in (markdown or "").splitlines():
            if not line.strip():
                continue
            state = self._step(state, line, config, urls, images, used_ids)
            if len(state.records) >= MAX_LISTINGS:
                break
        # an unfinished record at the end is dropped
        return list(state.records)

    def _step(self, state, line, config, urls, images, used_ids) -> ExtractionState:
        current = state.current
        if current is None:
            brand = find_brand(line)
            if brand is None:
                return state
            current = self._start(line, brand, state, config, urls, images, used_ids)

        current = self._scan(current, line)
        if not (current.get("price") and current.get("year") and current.get("brand")):
            return replace(state, current=current)

        current["location"] = self.rng.choice(config.cities) if config.cities else None
        return ExtractionState(
            current=None,
            url_cursor=state.url_cursor + 1,
            image_cursor=state.image_cursor + 1,
            records=state.records + (ListingCreate(**current),),
        )

    def _start(self, line, brand, state, config, urls, images, used_ids) -> Dict[str, Any]:
        if state.url_cursor < len(urls):
            listing_url = urls[state.url_cursor]
            external_id = listing_id_from_url(listing_url)
            if len(external_id) > MAX_EXTERNAL_ID_LENGTH:
                external_id = self._fallback_id(config.id, used_ids)
        else:
            listing_url = None
            external_id = self._fallback_id(config.id, used_ids)

        if state.image_cursor < len(images):
            image = images[state.image_cursor]
        else:
            image = BRAND_IMAGES.get(brand, DEFAULT_IMAGE)

        return {
            "external_id": external_id,
            "title": clean_title(line),
            "brand": brand,
            "model": find_model(brand, line),
            "fuel": DEFAULT_FUEL,
            "transmission": DEFAULT_TRANSMISSION,
            "country": config.country,
            "source": config.id,
            "source_url": config.base_url,
            "listing_url": listing_url,
            "image": image,
        }

    def _scan(self, current: Dict[str, Any], line: str) -> Dict[str, Any]:
        updated = dict(current)
        price = parse_price(line)
        if price:
            updated["price"] = price
        year = parse_year(line)
        if year:
            updated["year"] = year
        mileage = parse_mileage(line)
        if mileage is not None:
            updated["mileage"] = mileage
        return updated

    def _fallback_id(self, source: str, used_ids: set) -> str:
        while True:
            suffix = "".join(self.rng.choice(_ID_ALPHABET) for _ in range(9))
            candidate = f"{source}-{int(self.clock() * 1000)}-{suffix}"
            if candidate not in used_ids:
                used_ids.add(candidate)
                return candidate

