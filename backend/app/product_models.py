from sqlalchemy import Column, Integer, String, Text, DateTime, Numeric
from .database import Base
from .models import utcnow


class Product(Base):
    __tablename__ = 'products'
    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(200), nullable=False)
    description = Column(Text, nullable=True)
    price = Column(Numeric(10, 2), nullable=False)
    image_url = Column(String(1000), nullable=True)
    category = Column(String(100), nullable=True, index=True)
    # suggested per-unit donation added to the cart with the product
    donation_amount = Column(Numeric(10, 2), nullable=False, default=0)
    created_at = Column(DateTime, default=utcnow)
