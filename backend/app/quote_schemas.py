from pydantic import BaseModel, Field, field_validator
from typing import Any, Dict, List, Optional, Union
import datetime


class QuoteRequestIn(BaseModel):
    project: str = Field(..., min_length=1, max_length=200)
    specs: str = Field(..., min_length=1, max_length=1000)
    quantity: int = Field(..., gt=0, le=10000, strict=True)
    donationId: Optional[Union[str, int]] = None

    @field_validator('project', 'specs')
    @classmethod
    def not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError('must not be blank')
        return v.strip()

    @field_validator('donationId')
    @classmethod
    def donation_id_as_text(cls, v):
        if v is None:
            return None
        v = str(v).strip()
        if not v or len(v) > 64:
            raise ValueError('must be a non-empty identifier of at most 64 characters')
        return v


class QuoteAmount(BaseModel):
    amount: float
    currency: str


class QuoteResponse(BaseModel):
    mock: bool
    quote: QuoteAmount
    turnaround: str
    notes: str
    quote_id: Optional[str] = None
    status: Optional[str] = None
    items: Optional[List[Any]] = None
    pricing: Optional[Dict[str, Any]] = None
    estimated_delivery: Optional[Dict[str, Any]] = None
    created_at: Optional[str] = None
    valid_until: Optional[str] = None
    # set when a live call failed and a stub quote was returned instead
    fallback_reason: Optional[str] = None


class QuoteRequestLog(BaseModel):
    id: int
    donation_id: Optional[str] = None
    type: str
    mode: str
    status: str
    request_body: Dict[str, Any]
    response_body: Optional[Dict[str, Any]] = None
    error_message: Optional[str] = None
    created_at: datetime.datetime

    model_config = {"from_attributes": True}
