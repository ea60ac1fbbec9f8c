"""Add-on model."""
from sqlalchemy import Column, String, Text, Boolean, Numeric
from estate.database import Base, IdType


class AddOn(Base):
    """Optional extra sold with stays (breakfast, transfer)."""

    __tablename__ = 'addon'

    id = Column(IdType, primary_key=True, autoincrement=True)
    name = Column(String(120), nullable=False)
    description = Column(Text, nullable=True)
    price = Column(Numeric(10, 2), nullable=False)
    is_active = Column(Boolean, nullable=False, default=True)

    def __repr__(self):
        return f"<AddOn(id={self.id}, name='{self.name}')>"
