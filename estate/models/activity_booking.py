"""Activity Booking model."""
from sqlalchemy import Column, String, Integer, Numeric, Date, DateTime, ForeignKey
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from estate.database import Base, IdType
from estate.models.booking import BookingStatus


class ActivityBooking(Base):
    """Activity booking created with its order."""

    __tablename__ = 'activity_booking'

    id = Column(IdType, primary_key=True, autoincrement=True)
    order_id = Column(IdType, ForeignKey('orders.id'), nullable=False, index=True)
    user_id = Column(IdType, ForeignKey('app_user.id'), nullable=False)
    activity_id = Column(IdType, ForeignKey('activity.id'), nullable=False, index=True)
    activity_date = Column(Date, nullable=False)
    participants = Column(Integer, nullable=False)
    total_amount = Column(Numeric(10, 2), nullable=False)
    status = Column(String(20), nullable=False, default=BookingStatus.PENDING.value)
    payment_method = Column(String(30), nullable=False)
    payment_status = Column(String(30), nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    # Relationships
    order = relationship('Order', back_populates='activity_bookings')
    activity = relationship('Activity')
    user = relationship('AppUser')

    def __repr__(self):
        return f"<ActivityBooking(id={self.id}, activity_id={self.activity_id}, date={self.activity_date})>"
