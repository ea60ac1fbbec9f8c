"""Promo Code model."""
import enum
from sqlalchemy import Column, String, Boolean, Numeric, Integer, DateTime
from sqlalchemy.sql import func
from estate.database import Base, IdType


class DiscountType(str, enum.Enum):
    """How a promo discount is computed."""
    PERCENTAGE = 'percentage'
    FIXED = 'fixed'


class PromoCode(Base):
    """Promo code. Codes are stored upper-case."""

    __tablename__ = 'promo_code'

    id = Column(IdType, primary_key=True, autoincrement=True)
    code = Column(String(40), nullable=False, unique=True)
    description = Column(String(255), nullable=True)
    discount_type = Column(String(20), nullable=False, default=DiscountType.PERCENTAGE.value)
    discount_value = Column(Numeric(10, 2), nullable=False)
    minimum_amount = Column(Numeric(10, 2), nullable=True)
    maximum_discount = Column(Numeric(10, 2), nullable=True)
    usage_limit = Column(Integer, nullable=True)
    expires_at = Column(DateTime(timezone=True), nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())

    def __repr__(self):
        return f"<PromoCode(id={self.id}, code='{self.code}', type='{self.discount_type}')>"
