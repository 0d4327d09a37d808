# app/models.py
"""SQLAlchemy ORM models for persisted entities.

`CarListing` holds harvested listings, unique per (external_id, source).
`ScrapeStatus` holds one row per source with the outcome of its last scrape.
"""
from sqlalchemy import Column, Integer, Text, TIMESTAMP, func, Index, UniqueConstraint
from .db import Base

class CarListing(Base):
    __tablename__ = "car_listings"
    __table_args__ = (
        UniqueConstraint("external_id", "source", name="uq_car_listings_external_id_source"),
    )
    id = Column(Integer, primary_key=True, index=True)
    external_id = Column(Text, nullable=False)
    title = Column(Text, nullable=False)
    brand = Column(Text, nullable=False)
    model = Column(Text, nullable=False)
    year = Column(Integer, nullable=False)
    price = Column(Integer, nullable=False)
    mileage = Column(Integer)
    fuel = Column(Text)
    transmission = Column(Text)
    location = Column(Text)
    country = Column(Text, nullable=False)
    source = Column(Text, nullable=False, index=True)
    source_url = Column(Text, nullable=False)
    listing_url = Column(Text)
    image = Column(Text)
    scraped_at = Column(TIMESTAMP(timezone=True), server_default=func.now())
    created_at = Column(TIMESTAMP(timezone=True), server_default=func.now())

Index("idx_car_listings_price", CarListing.price)
Index("idx_car_listings_year", CarListing.year)
Index("idx_car_listings_scraped_at", CarListing.scraped_at)


class ScrapeStatus(Base):
    __tablename__ = "scrape_status"
    id = Column(Integer, primary_key=True, index=True)
    source = Column(Text, nullable=False, unique=True, index=True)
    status = Column(Text, nullable=False, default="idle", server_default="idle")
    last_scraped_at = Column(TIMESTAMP(timezone=True))
    listings_count = Column(Integer)
    error_message = Column(Text)
