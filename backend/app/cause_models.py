from sqlalchemy import Column, Integer, String, Text, DateTime, ForeignKey, JSON
from .database import Base
from .models import utcnow


class Cause(Base):
    """A fundraising category that donations and orders are attributed to"""
    __tablename__ = 'causes'

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(100), nullable=False, unique=True, index=True)
    description = Column(Text, nullable=True)
    tags = Column(JSON, nullable=True)  # ["kids", "schools"]
    website_url = Column(String(500), nullable=True)
    user_id = Column(Integer, ForeignKey('users.id'), nullable=True)  # who added it
    created_at = Column(DateTime, default=utcnow)
