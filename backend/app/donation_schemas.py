from pydantic import BaseModel, Field, field_validator
from typing import Dict, List, Literal, Optional
from decimal import Decimal
import datetime

PaymentMethod = Literal['credit_card', 'debit_card', 'paypal', 'bank_transfer']


class DonationCreate(BaseModel):
    donor_name: str = Field(..., min_length=1, max_length=200)
    amount: Decimal = Field(..., gt=0, le=1_000_000, decimal_places=2)
    cause: str = Field(..., min_length=1, max_length=100)
    payment_method: PaymentMethod

    @field_validator('donor_name', 'cause')
    @classmethod
    def strip_text(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError('must not be blank')
        return v

    @field_validator('cause')
    @classmethod
    def normalise_cause(cls, v: str) -> str:
        # causes are matched case-insensitively ("Education" == "education")
        return v.lower()


class Donation(BaseModel):
    id: int
    donor_name: str
    amount: float
    cause: str
    payment_method: str
    user_id: Optional[int] = None
    order_id: Optional[int] = None
    created_at: datetime.datetime

    model_config = {"from_attributes": True}


class DonationTotals(BaseModel):
    """Aggregate view of the donation table, rounded for display"""
    total: float
    by_cause: Dict[str, float]
    today: float
    this_week: float
    last_minute: float
    count: int
    cursor: int
    rejected: List[int] = []
    as_of: datetime.datetime


class SeriesPoint(BaseModel):
    period: str
    donations: int
    amount: float
    causes: int


class ImpactCause(BaseModel):
    name: str
    total_donated: float
    donation_count: int


class ImpactSummary(BaseModel):
    total_donated: float
    causes_supported: int
    orders_with_donations: int
    causes: List[ImpactCause]
