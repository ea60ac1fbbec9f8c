"""Booking model - a property stay."""
import enum
from sqlalchemy import Column, String, Integer, Numeric, Date, DateTime, ForeignKey
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from estate.database import Base, IdType


class BookingStatus(str, enum.Enum):
    """Status shared by property and activity bookings."""
    PENDING = 'pending'
    CONFIRMED = 'confirmed'
    CANCELLED = 'cancelled'
    COMPLETED = 'completed'


# Bookings in these states hold the dates / capacity
BLOCKING_STATUSES = (BookingStatus.PENDING.value, BookingStatus.CONFIRMED.value)


class Booking(Base):
    """Property booking created with its order."""

    __tablename__ = 'booking'

    id = Column(IdType, primary_key=True, autoincrement=True)
    order_id = Column(IdType, ForeignKey('orders.id'), nullable=False, index=True)
    user_id = Column(IdType, ForeignKey('app_user.id'), nullable=False)
    property_id = Column(IdType, ForeignKey('property.id'), nullable=False, index=True)
    check_in = Column(Date, nullable=False)
    check_out = Column(Date, nullable=False)
    guests = Column(Integer, nullable=False, default=1)
    total_amount = Column(Numeric(10, 2), nullable=False)
    status = Column(String(20), nullable=False, default=BookingStatus.PENDING.value)
    payment_method = Column(String(30), nullable=False)
    payment_status = Column(String(30), nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    # Relationships
    order = relationship('Order', back_populates='bookings')
    property = relationship('Property', back_populates='bookings')
    user = relationship('AppUser')

    def __repr__(self):
        return f"<Booking(id={self.id}, property_id={self.property_id}, {self.check_in}..{self.check_out})>"
