# app/schemas.py
from pydantic import BaseModel, Field
from typing import List, Optional
from datetime import datetime

class ListingBase(BaseModel):
    external_id: str = Field(..., max_length=255)
    title: str
    brand: str
    model: str
    year: int
    price: int
    mileage: Optional[int] = None
    fuel: Optional[str] = None
    transmission: Optional[str] = None
    location: Optional[str] = None
    country: str
    source: str
    source_url: str
    listing_url: Optional[str] = None
    image: Optional[str] = None

class ListingCreate(ListingBase):
    pass

class ListingOut(ListingBase):
    id: int
    scraped_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    class Config:
        from_attributes = True

class ListingFilter(BaseModel):
    brand: Optional[str] = None
    model: Optional[str] = None
    min_price: Optional[int] = None
    max_price: Optional[int] = None
    min_year: Optional[int] = None
    max_year: Optional[int] = None
    location: Optional[str] = None
    source: Optional[str] = None

class ScrapeRequest(BaseModel):
    source: str
    forceRefresh: bool = False
    brand: Optional[str] = None
    model: Optional[str] = None
    maxPrice: Optional[int] = None
    minYear: Optional[int] = None

class ScrapeResponse(BaseModel):
    success: bool
    data: Optional[List[ListingOut]] = None
    cached: Optional[bool] = None
    error: Optional[str] = None

class ScrapeSummary(BaseModel):
    source: str
    success: bool
    cached: bool = False
    count: int = 0
    error: Optional[str] = None

class SourceStatusOut(BaseModel):
    source: str
    name: str
    country: str
    base_url: str
    status: str = "idle"
    last_scraped_at: Optional[datetime] = None
    listings_count: Optional[int] = None
    error_message: Optional[str] = None
    stored_listings: int = 0
