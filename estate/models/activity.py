"""Activity model."""
from sqlalchemy import Column, String, Text, Boolean, Numeric, Integer, DateTime
from sqlalchemy.sql import func
from estate.database import Base, IdType


class Activity(Base):
    """Bookable activity (tour, tasting, hike)."""

    __tablename__ = 'activity'

    id = Column(IdType, primary_key=True, autoincrement=True)
    name = Column(String(200), nullable=False)
    slug = Column(String(220), nullable=False, unique=True)
    description = Column(Text, nullable=True)
    price = Column(Numeric(10, 2), nullable=False)
    duration_hours = Column(Numeric(4, 1), nullable=True)
    min_participants = Column(Integer, nullable=False, default=1)
    max_participants = Column(Integer, nullable=False, default=10)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    def __repr__(self):
        return f"<Activity(id={self.id}, name='{self.name}')>"
