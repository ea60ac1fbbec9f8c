"""Product model."""
from sqlalchemy import Column, String, Text, Boolean, Numeric, Integer, DateTime
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from estate.database import Base, IdType


class Product(Base):
    """Shop product. A NULL stock_quantity means unlimited stock."""

    __tablename__ = 'product'

    id = Column(IdType, primary_key=True, autoincrement=True)
    name = Column(String(200), nullable=False, unique=True)
    slug = Column(String(220), nullable=False, unique=True)
    description = Column(Text, nullable=True)
    category = Column(String(40), nullable=False, default='MERCHANDISE')
    price = Column(Numeric(10, 2), nullable=False)
    stock_quantity = Column(Integer, nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)
    max_quantity_per_order = Column(Integer, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())

    # Relationships
    variants = relationship('ProductVariant', back_populates='product', cascade='all, delete-orphan',
                            order_by='ProductVariant.id')

    def __repr__(self):
        return f"<Product(id={self.id}, name='{self.name}', stock={self.stock_quantity})>"
