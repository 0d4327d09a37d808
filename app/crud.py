# app/crud.py
"""Persistence helpers for `CarListing` rows.

Listings are upserted one row at a time keyed on (external_id, source); a
row that fails is rolled back and logged without aborting the batch.
"""
from datetime import datetime, timezone
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy import and_, func
from .models import CarListing
from .utils import logger
from sqlalchemy.orm import Session
from typing import Dict, Any, Iterable, List, Optional

def insert_for(db: Session):
    """Pick the dialect's INSERT so ON CONFLICT works on PostgreSQL and SQLite."""
    if db.get_bind().dialect.name == "sqlite":
        return sqlite_insert
    return pg_insert

def upsert_listing(db: Session, data: Dict[str, Any]):
    table = CarListing.__table__
    values = dict(data)
    values.setdefault("scraped_at", datetime.now(timezone.utc))
    stmt = insert_for(db)(table).values(**values)
    # copy all updatable columns from EXCLUDED; created_at keeps the first insert
    excluded = {c.name: stmt.excluded[c.name] for c in table.columns
                if c.name in values and c.name not in ("id", "created_at")}
    stmt = stmt.on_conflict_do_update(index_elements=["external_id", "source"], set_=excluded)
    db.execute(stmt)
    db.commit()

def upsert_listings(db: Session, records: Iterable[Dict[str, Any]]) -> int:
    stored = 0
    scraped_at = datetime.now(timezone.utc)
    for data in records:
        try:
            upsert_listing(db, {**data, "scraped_at": data.get("scraped_at") or scraped_at})
            stored += 1
        except SQLAlchemyError as e:
            db.rollback()
            logger.error("Failed to upsert listing %s/%s: %s", data.get("source"), data.get("external_id"), e)
    return stored

def read_fresh(db: Session, source: Optional[str] = None, limit: int = 100) -> List[CarListing]:
    q = db.query(CarListing)
    if source:
        q = q.filter(CarListing.source == source)
    return q.order_by(CarListing.scraped_at.desc(), CarListing.id.desc()).limit(limit).all()

def get_listing(db: Session, listing_id: int):
    return db.query(CarListing).filter(CarListing.id == listing_id).first()

def list_listings(db: Session, skip: int = 0, limit: int = 50, filters: Dict = None):
    q = db.query(CarListing)
    if filters:
        conds = []
        if filters.get("brand"):
            conds.append(CarListing.brand.ilike(f"%{filters['brand']}%"))
        if filters.get("model"):
            conds.append(CarListing.model.ilike(f"%{filters['model']}%"))
        if filters.get("min_price") is not None:
            conds.append(CarListing.price >= filters["min_price"])
        if filters.get("max_price") is not None:
            conds.append(CarListing.price <= filters["max_price"])
        if filters.get("min_year") is not None:
            conds.append(CarListing.year >= filters["min_year"])
        if filters.get("max_year") is not None:
            conds.append(CarListing.year <= filters["max_year"])
        if filters.get("location"):
            conds.append(CarListing.location.ilike(f"%{filters['location']}%"))
        if filters.get("source"):
            conds.append(CarListing.source == filters["source"])
        if conds:
            q = q.filter(and_(*conds))
    total = q.count()
    items = q.order_by(CarListing.scraped_at.desc(), CarListing.id.desc()).offset(skip).limit(limit).all()
    return {"total": total, "items": items}

def count_by_source(db: Session) -> Dict[str, int]:
    rows = db.query(CarListing.source, func.count(CarListing.id)).group_by(CarListing.source).all()
    return {source: count for source, count in rows}

def delete_listing(db: Session, listing_id: int):
    obj = db.query(CarListing).filter(CarListing.id == listing_id).first()
    if not obj:
        return False
    db.delete(obj)
    db.commit()
    return True
