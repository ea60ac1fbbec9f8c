"""Order model."""
import enum
from sqlalchemy import Column, String, Text, Numeric, DateTime, ForeignKey, JSON
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from estate.database import Base, IdType


class OrderType(str, enum.Enum):
    """What an order purchases."""
    PRODUCT = 'product'
    PROPERTY = 'property'
    ACTIVITY = 'activity'


class OrderStatus(str, enum.Enum):
    """Order lifecycle status."""
    PENDING = 'pending'
    PENDING_PAYMENT = 'pending_payment'
    CONFIRMED = 'confirmed'
    PROCESSING = 'processing'
    SHIPPED = 'shipped'
    COMPLETED = 'completed'
    CANCELLED = 'cancelled'


class PaymentStatus(str, enum.Enum):
    """Payment status of an order or booking."""
    PENDING = 'pending'
    PROCESSING = 'processing'
    COMPLETED = 'completed'
    FAILED = 'failed'
    REFUNDED = 'refunded'


class Order(Base):
    """Order (checkout of products, a stay, or an activity)."""

    __tablename__ = 'orders'

    id = Column(IdType, primary_key=True, autoincrement=True)
    order_number = Column(String(32), nullable=False, unique=True, index=True)
    user_id = Column(IdType, ForeignKey('app_user.id'), nullable=False, index=True)
    type = Column(String(20), nullable=False)
    status = Column(String(30), nullable=False, default=OrderStatus.PENDING.value)
    subtotal = Column(Numeric(10, 2), nullable=False)
    tax = Column(Numeric(10, 2), nullable=False)
    shipping = Column(Numeric(10, 2), nullable=False, default=0)
    total = Column(Numeric(10, 2), nullable=False)
    payment_method = Column(String(30), nullable=False)
    payment_status = Column(String(30), nullable=False, default=PaymentStatus.PENDING.value)
    shipping_address = Column(JSON, nullable=True)
    billing_address = Column(JSON, nullable=True)
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())

    # Relationships
    items = relationship('OrderItem', back_populates='order', cascade='all, delete-orphan')
    bookings = relationship('Booking', back_populates='order', cascade='all, delete-orphan')
    activity_bookings = relationship('ActivityBooking', back_populates='order', cascade='all, delete-orphan')

    def __repr__(self):
        return f"<Order(id={self.id}, number='{self.order_number}', total={self.total}, status='{self.status}')>"
