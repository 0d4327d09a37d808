# app/sources.py
"""Registry of supported car marketplaces.

Each source maps to its search page, country, base URL and a regular
expression recognising a listing detail-page URL on that site. The
``source`` column of both tables stores the registry id (e.g. ``"mobile.de"``).
"""
import re
from dataclasses import dataclass, field
from typing import Dict, List, Optional
from urllib.parse import urlencode

from .errors import UnknownSourceError


@dataclass(frozen=True)
class SourceConfig:
    id: str
    name: str
    search_url: str
    country: str
    base_url: str
    listing_url_pattern: str
    cities: List[str] = field(default_factory=list)

    @property
    def listing_url_re(self) -> re.Pattern:
        return re.compile(self.listing_url_pattern, re.IGNORECASE)


SOURCES: Dict[str, SourceConfig] = {
    "mobile.de": SourceConfig(
        id="mobile.de",
        name="Mobile.de",
        search_url="https://suchen.mobile.de/fahrzeuge/search.html?s=Car&vc=Car",
        country="Vokietija",
        base_url="https://mobile.de",
        listing_url_pattern=r"mobile\.de/fahrzeuge/details\.html\?id=\d+",
        cities=["Berlynas", "Miunchenas", "Hamburgas", "Frankfurtas"],
    ),
    "autoscout24": SourceConfig(
        id="autoscout24",
        name="AutoScout24",
        search_url="https://www.autoscout24.de/lst?sort=standard&desc=0",
        country="Vokietija",
        base_url="https://autoscout24.de",
        listing_url_pattern=r"autoscout24\.de/angebote/[\w-]+",
        cities=["Štutgartas", "Diuseldorfas", "Kelnas", "Drezdenas"],
    ),
    "autoplius": SourceConfig(
        id="autoplius",
        name="Autoplius.lt",
        search_url="https://autoplius.lt/skelbimai/naudoti-automobiliai?category_id=2",
        country="Lietuva",
        base_url="https://autoplius.lt",
        listing_url_pattern=r"autoplius\.lt/skelbimai/[\w-]+-\d+\.html",
        cities=["Vilnius", "Kaunas", "Klaipėda", "Šiauliai"],
    ),
    "kleinanzeigen": SourceConfig(
        id="kleinanzeigen",
        name="Kleinanzeigen",
        search_url="https://www.kleinanzeigen.de/s-autos/c216",
        country="Vokietija",
        base_url="https://kleinanzeigen.de",
        listing_url_pattern=r"kleinanzeigen\.de/s-anzeige/[\w-]+/\d+",
        cities=["Berlynas", "Hamburgas", "Miunchenas", "Kelnas"],
    ),
    "marktplaats": SourceConfig(
        id="marktplaats",
        name="Marktplaats",
        search_url="https://www.marktplaats.nl/l/auto-s/",
        country="Nyderlandai",
        base_url="https://marktplaats.nl",
        listing_url_pattern=r"marktplaats\.nl/v/auto-s/[\w-]+/[am]\d+",
        cities=["Amsterdamas", "Roterdamas", "Utrechtas", "Haga"],
    ),
}


def available_sources() -> List[str]:
    return list(SOURCES)


def config_for(source_id: str) -> SourceConfig:
    try:
        return SOURCES[source_id]
    except KeyError:
        raise UnknownSourceError(source_id) from None


def _with_params(url: str, params: Dict[str, str]) -> str:
    if not params:
        return url
    sep = "&" if "?" in url else "?"
    return f"{url}{sep}{urlencode(params)}"


def build_search_url(
    config: SourceConfig,
    brand: Optional[str] = None,
    model: Optional[str] = None,
    max_price: Optional[int] = None,
    min_year: Optional[int] = None,
) -> str:
    """Return the source's search page narrowed by the optional filters.

    Each marketplace names its query parameters differently; sources that
    do not support a filter simply ignore it.
    """
    params: Dict[str, str] = {}
    if config.id == "mobile.de":
        if brand:
            params["ms"] = brand
        if max_price:
            params["prt"] = str(max_price)
        if min_year:
            params["fr"] = str(min_year)
        return _with_params(config.search_url, params)

    if config.id == "autoscout24":
        url = "https://www.autoscout24.de/lst"
        if brand:
            url += f"/{brand.lower()}"
            if model:
                url += f"/{model.lower()}"
        params = {"sort": "standard", "desc": "0"}
        if max_price:
            params["priceto"] = str(max_price)
        if min_year:
            params["fregfrom"] = str(min_year)
        return _with_params(url, params)

    if config.id == "autoplius":
        if brand:
            params["make_id_list"] = brand
        if max_price:
            params["sell_price_to"] = str(max_price)
        if min_year:
            params["make_date_from"] = str(min_year)
        return _with_params(config.search_url, params)

    if config.id == "kleinanzeigen":
        if max_price:
            params["maxPrice"] = str(max_price)
        return _with_params(config.search_url, params)

    if config.id == "marktplaats":
        if max_price:
            params["priceTo"] = str(max_price)
        return _with_params(config.search_url, params)

    return config.search_url
