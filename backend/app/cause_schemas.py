from pydantic import BaseModel, Field, HttpUrl
from typing import List, Optional
import datetime


class CauseCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    description: Optional[str] = Field(None, max_length=2000)
    tags: List[str] = []
    website_url: Optional[HttpUrl] = None


class Cause(BaseModel):
    id: int
    name: str
    description: Optional[str] = None
    tags: Optional[List[str]] = None
    website_url: Optional[str] = None
    created_at: datetime.datetime

    model_config = {"from_attributes": True}


class CauseStats(BaseModel):
    """Fundraising numbers shown per cause"""
    name: str
    description: Optional[str] = None
    total_raised: float
    donation_count: int
    unique_donors: int
    avg_donation: float
