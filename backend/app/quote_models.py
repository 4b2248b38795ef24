from sqlalchemy import Column, Integer, String, Text, DateTime, JSON, ForeignKey
from .database import Base
from .models import utcnow


class QuoteRequest(Base):
    """
    Append-only audit log of Pressmaster calls.
    One row per quote invocation, written once with its terminal status.
    """
    __tablename__ = 'pressmaster_requests'

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey('users.id'), nullable=True, index=True)
    donation_id = Column(String(64), nullable=True, index=True)
    type = Column(String(20), nullable=False, default='quote')  # quote, story
    mode = Column(String(10), nullable=False)  # stub, live
    status = Column(String(10), nullable=False, default='pending')  # pending, success, error
    request_body = Column(JSON, nullable=False)
    response_body = Column(JSON, nullable=True)
    error_message = Column(Text, nullable=True)
    created_at = Column(DateTime, default=utcnow, index=True)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)
