from sqlalchemy import Column, Integer, String, Text, DateTime, ForeignKey
from .database import Base
import datetime


def utcnow():
    return datetime.datetime.now(datetime.timezone.utc)


class User(Base):
    __tablename__ = 'users'
    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(200), nullable=False)
    email = Column(String(200), nullable=False, unique=True, index=True)
    role = Column(String(50), nullable=False, default='customer')  # customer, admin, manager
    api_token = Column(String(64), nullable=False, unique=True, index=True)
    created_at = Column(DateTime, default=utcnow)


class Notification(Base):
    __tablename__ = 'notifications'
    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey('users.id'), nullable=False, index=True)
    type = Column(String(50), nullable=False)  # check_drop, check_drop_failed
    title = Column(String(200), nullable=False)
    body = Column(Text, nullable=False)
    # target of the "view" action, e.g. a pressmaster quote id
    action_ref = Column(String(100), nullable=True)
    read_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=utcnow)
