# app/api/routes.py
from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session
from typing import List
from .. import crud, schemas, status
from ..db import get_db
from ..errors import ExtractionError, FetchError, MissingApiKeyError, UnknownSourceError
from ..fetcher import FirecrawlFetcher
from ..services import refresh_all_sources, refresh_source
from ..sources import SOURCES
from ..utils import logger

router = APIRouter()


def get_fetcher() -> FirecrawlFetcher:
    return FirecrawlFetcher()


def _failure(status_code: int, message: str) -> JSONResponse:
    body = schemas.ScrapeResponse(success=False, error=message)
    return JSONResponse(status_code=status_code, content=body.model_dump(exclude_none=True))


@router.get("/health")
def health():
    return {"status": "ok"}

@router.get("/listings", response_model=List[schemas.ListingOut])
def listings(
    skip: int = 0,
    limit: int = Query(20, le=100),
    brand: str | None = Query(None),
    model: str | None = Query(None),
    min_price: int | None = Query(None),
    max_price: int | None = Query(None),
    min_year: int | None = Query(None),
    max_year: int | None = Query(None),
    location: str | None = Query(None),
    source: str | None = Query(None),
    db: Session = Depends(get_db)
):
    filters = schemas.ListingFilter(
        brand=brand, model=model,
        min_price=min_price, max_price=max_price,
        min_year=min_year, max_year=max_year,
        location=location, source=source,
    )
    res = crud.list_listings(db, skip=skip, limit=limit, filters=filters.model_dump())
    return res["items"]


@router.get("/listings/{listing_id}", response_model=schemas.ListingOut)
def get_listing(listing_id: int, db: Session = Depends(get_db)):
    obj = crud.get_listing(db, listing_id)
    if not obj:
        raise HTTPException(status_code=404, detail="Listing not found")
    return obj


@router.delete("/listings/{listing_id}")
def delete_listing(listing_id: int, db: Session = Depends(get_db)):
    ok = crud.delete_listing(db, listing_id)
    if not ok:
        raise HTTPException(status_code=404, detail="Listing not found")
    return {"status": "deleted"}


@router.get("/sources", response_model=List[schemas.SourceStatusOut])
def sources(db: Session = Depends(get_db)):
    rows = {s.source: s for s in status.list_statuses(db)}
    counts = crud.count_by_source(db)
    out = []
    for cfg in SOURCES.values():
        row = rows.get(cfg.id)
        out.append(schemas.SourceStatusOut(
            source=cfg.id,
            name=cfg.name,
            country=cfg.country,
            base_url=cfg.base_url,
            status=row.status if row else status.IDLE,
            last_scraped_at=row.last_scraped_at if row else None,
            listings_count=row.listings_count if row else None,
            error_message=row.error_message if row else None,
            stored_listings=counts.get(cfg.id, 0),
        ))
    return out


@router.post("/scrape", response_model=schemas.ScrapeResponse, response_model_exclude_none=True)
def trigger_scrape(
    payload: schemas.ScrapeRequest,
    db: Session = Depends(get_db),
    fetcher: FirecrawlFetcher = Depends(get_fetcher),
):
    filters = {
        "brand": payload.brand,
        "model": payload.model,
        "max_price": payload.maxPrice,
        "min_year": payload.minYear,
    }
    try:
        result = refresh_source(db, payload.source, payload.forceRefresh, fetcher=fetcher, filters=filters)
    except UnknownSourceError as e:
        return _failure(400, str(e))
    except MissingApiKeyError as e:
        return _failure(500, str(e))
    except FetchError as e:
        return _failure(502, str(e))
    except ExtractionError as e:
        return _failure(500, str(e))
    return schemas.ScrapeResponse(
        success=True,
        data=[schemas.ListingOut.model_validate(r) for r in result.listings],
        cached=result.cached,
    )


@router.post("/scrape/all", response_model=List[schemas.ScrapeSummary])
def trigger_scrape_all(
    force_refresh: bool = False,
    db: Session = Depends(get_db),
    fetcher: FirecrawlFetcher = Depends(get_fetcher),
):
    summaries = refresh_all_sources(db, force_refresh, fetcher=fetcher)
    failed = [s["source"] for s in summaries if not s["success"]]
    if failed:
        logger.warning("Scrape-all finished with failures: %s", ", ".join(failed))
    return summaries
