from sqlalchemy import Column, Integer, String, Numeric, DateTime, ForeignKey
from .database import Base
from .models import utcnow


class Donation(Base):
    __tablename__ = 'donations'
    # autoincrement id doubles as the realtime feed cursor
    id = Column(Integer, primary_key=True, index=True)
    donor_name = Column(String(200), nullable=False)
    amount = Column(Numeric(12, 2), nullable=False)
    cause = Column(String(100), nullable=False, index=True)
    payment_method = Column(String(50), nullable=False)  # credit_card, debit_card, paypal, bank_transfer
    user_id = Column(Integer, ForeignKey('users.id'), nullable=True, index=True)
    order_id = Column(Integer, ForeignKey('orders.id'), nullable=True)  # set when recorded by checkout
    created_at = Column(DateTime, default=utcnow, index=True)
