from pydantic import BaseModel
from typing import Optional
import datetime


class Product(BaseModel):
    id: int
    name: str
    description: Optional[str] = None
    price: float
    image_url: Optional[str] = None
    category: Optional[str] = None
    donation_amount: float
    created_at: datetime.datetime

    model_config = {"from_attributes": True}
