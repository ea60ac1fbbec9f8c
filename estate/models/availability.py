"""Calendar models: blocked dates and per-night custom pricing."""
from sqlalchemy import Column, String, Date, Numeric, ForeignKey, UniqueConstraint
from estate.database import Base, IdType


class BlockedDate(Base):
    """A day on which a property or an activity cannot be booked."""

    __tablename__ = 'blocked_date'

    id = Column(IdType, primary_key=True, autoincrement=True)
    property_id = Column(IdType, ForeignKey('property.id'), nullable=True, index=True)
    activity_id = Column(IdType, ForeignKey('activity.id'), nullable=True, index=True)
    date = Column(Date, nullable=False)
    reason = Column(String(200), nullable=True)

    def __repr__(self):
        return f"<BlockedDate(date={self.date}, property_id={self.property_id}, activity_id={self.activity_id})>"


class CustomPricing(Base):
    """Nightly price override for a property."""

    __tablename__ = 'custom_pricing'
    __table_args__ = (UniqueConstraint('property_id', 'date', name='uq_custom_pricing_property_date'),)

    id = Column(IdType, primary_key=True, autoincrement=True)
    property_id = Column(IdType, ForeignKey('property.id'), nullable=False)
    date = Column(Date, nullable=False)
    price = Column(Numeric(10, 2), nullable=False)

    def __repr__(self):
        return f"<CustomPricing(property_id={self.property_id}, date={self.date}, price={self.price})>"
