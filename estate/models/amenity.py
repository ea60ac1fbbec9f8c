"""Amenity model."""
from sqlalchemy import Column, String
from sqlalchemy.orm import relationship
from estate.database import Base, IdType
from estate.models.property import property_amenity


class Amenity(Base):
    """Amenity offered by properties (wifi, pool, fireplace)."""

    __tablename__ = 'amenity'

    id = Column(IdType, primary_key=True, autoincrement=True)
    name = Column(String(120), nullable=False, unique=True)
    icon = Column(String(60), nullable=True)
    category = Column(String(60), nullable=True)

    properties = relationship('Property', secondary=property_amenity, back_populates='amenities')

    def __repr__(self):
        return f"<Amenity(id={self.id}, name='{self.name}')>"
