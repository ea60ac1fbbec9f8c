"""Property (rental unit) model."""
from sqlalchemy import Column, String, Text, Boolean, Numeric, Integer, DateTime, ForeignKey, Table
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from estate.database import Base, IdType


property_amenity = Table(
    'property_amenity',
    Base.metadata,
    Column('property_id', IdType, ForeignKey('property.id'), primary_key=True),
    Column('amenity_id', IdType, ForeignKey('amenity.id'), primary_key=True),
)


class Property(Base):
    """Bookable property (cottage, room, lodge)."""

    __tablename__ = 'property'

    id = Column(IdType, primary_key=True, autoincrement=True)
    name = Column(String(200), nullable=False)
    slug = Column(String(220), nullable=False, unique=True)
    description = Column(Text, nullable=True)
    base_price = Column(Numeric(10, 2), nullable=False)
    max_guests = Column(Integer, nullable=False, default=2)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    amenities = relationship('Amenity', secondary=property_amenity, back_populates='properties')
    bookings = relationship('Booking', back_populates='property')

    def __repr__(self):
        return f"<Property(id={self.id}, name='{self.name}')>"
