from sqlalchemy import Column, Integer, String, Numeric, DateTime, ForeignKey
from sqlalchemy.orm import relationship
from .database import Base
from .models import utcnow


class Order(Base):
    __tablename__ = 'orders'

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey('users.id'), nullable=False, index=True)
    order_number = Column(String(50), nullable=False, unique=True, index=True)
    status = Column(String(20), nullable=False, default='pending')  # pending, processing, shipped, delivered, cancelled
    payment_method = Column(String(50), nullable=False)
    cause = Column(String(100), nullable=True)

    subtotal = Column(Numeric(12, 2), nullable=False)
    total_donation = Column(Numeric(12, 2), nullable=False, default=0)
    total = Column(Numeric(12, 2), nullable=False)

    shipping_name = Column(String(100), nullable=False)
    shipping_line1 = Column(String(200), nullable=False)
    shipping_line2 = Column(String(200), nullable=True)
    shipping_city = Column(String(100), nullable=False)
    shipping_state = Column(String(50), nullable=False)
    shipping_postal_code = Column(String(20), nullable=False)
    shipping_country = Column(String(50), nullable=False)

    created_at = Column(DateTime, default=utcnow, index=True)

    items = relationship("OrderItem", back_populates="order", cascade="all, delete-orphan")


class OrderItem(Base):
    __tablename__ = 'order_items'

    id = Column(Integer, primary_key=True, index=True)
    order_id = Column(Integer, ForeignKey('orders.id'), nullable=False, index=True)
    product_id = Column(Integer, ForeignKey('products.id'), nullable=False)
    product_name = Column(String(200), nullable=False)
    product_image = Column(String(1000), nullable=True)
    size = Column(String(20), nullable=True)
    quantity = Column(Integer, nullable=False)
    price = Column(Numeric(10, 2), nullable=False)
    donation_amount = Column(Numeric(10, 2), nullable=False, default=0)  # per unit
    created_at = Column(DateTime, default=utcnow)

    order = relationship("Order", back_populates="items")
