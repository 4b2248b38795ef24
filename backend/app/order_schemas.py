from pydantic import BaseModel, Field, field_validator
from typing import List, Optional
from decimal import Decimal
import datetime

from .donation_schemas import PaymentMethod


class ShippingInfo(BaseModel):
    name: str = Field(..., max_length=100)
    line1: str = Field(..., max_length=200)
    line2: Optional[str] = Field(None, max_length=200)
    city: str = Field(..., max_length=100)
    state: str = Field(..., max_length=50)
    postal_code: str = Field(..., max_length=20)
    country: str = Field(..., max_length=50)

    @field_validator('name', 'line1', 'city', 'state', 'postal_code', 'country')
    @classmethod
    def required_text(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError('is required')
        return v

    @field_validator('line2')
    @classmethod
    def optional_text(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return None
        return v.strip() or None


class CheckoutItem(BaseModel):
    product_id: int
    quantity: int = Field(..., ge=1, le=100)
    size: Optional[str] = Field(None, max_length=20)
    # per unit; falls back to the product's suggested donation
    donation_amount: Optional[Decimal] = Field(None, ge=0, le=100_000, decimal_places=2)


class CheckoutRequest(BaseModel):
    items: List[CheckoutItem] = Field(..., min_length=1)
    shipping: ShippingInfo
    payment_method: PaymentMethod
    cause: Optional[str] = Field(None, max_length=100)

    @field_validator('cause')
    @classmethod
    def normalise_cause(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return None
        return v.strip().lower() or None


class OrderItem(BaseModel):
    id: int
    product_id: int
    product_name: str
    size: Optional[str] = None
    quantity: int
    price: float
    donation_amount: float

    model_config = {"from_attributes": True}


class Order(BaseModel):
    id: int
    order_number: str
    status: str
    payment_method: str
    cause: Optional[str] = None
    subtotal: float
    total_donation: float
    total: float
    created_at: datetime.datetime
    items: List[OrderItem] = []

    model_config = {"from_attributes": True}


class CheckoutResult(BaseModel):
    order: Order
    donation_id: Optional[int] = None
    # true when the order's donation reached the check-drop threshold;
    # the quote itself arrives later as a notification
    check_drop: bool = False
