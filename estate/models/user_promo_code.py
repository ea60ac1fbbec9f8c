"""UserPromoCode model - a promo code applied by a user."""
from sqlalchemy import Column, Boolean, DateTime, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from estate.database import Base, IdType


class UserPromoCode(Base):
    """
    Association between a user and a promo code.

    A user uses each promo code at most once (unique pair) and has at most
    one active row at a time.
    """

    __tablename__ = 'user_promo_code'
    __table_args__ = (
        UniqueConstraint('user_id', 'promo_code_id', name='uq_user_promo_code_user_promo'),
    )

    id = Column(IdType, primary_key=True, autoincrement=True)
    user_id = Column(IdType, ForeignKey('app_user.id'), nullable=False, index=True)
    promo_code_id = Column(IdType, ForeignKey('promo_code.id'), nullable=False, index=True)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    promo_code = relationship('PromoCode')

    def __repr__(self):
        return f"<UserPromoCode(user_id={self.user_id}, promo_code_id={self.promo_code_id}, active={self.is_active})>"
