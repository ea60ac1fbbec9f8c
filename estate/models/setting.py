"""Setting model - typed key/value configuration."""
import enum
from sqlalchemy import Column, String, Text, Boolean, DateTime
from sqlalchemy.sql import func
from estate.database import Base, IdType


class SettingDataType(str, enum.Enum):
    """Encoding of Setting.value."""
    STRING = 'string'
    NUMBER = 'number'
    BOOLEAN = 'boolean'
    JSON = 'json'


class SettingCategory(str, enum.Enum):
    """Setting groups."""
    PRICING = 'pricing'
    PROPERTY = 'property'
    BOOKING = 'booking'
    CONTACT = 'contact'
    SITE = 'site'
    SYSTEM = 'system'


class Setting(Base):
    """A configuration entry; value is always stored as text."""

    __tablename__ = 'settings'

    id = Column(IdType, primary_key=True, autoincrement=True)
    key = Column(String(120), nullable=False, unique=True)
    value = Column(Text, nullable=False)
    description = Column(String(255), nullable=True)
    category = Column(String(40), nullable=False)
    data_type = Column(String(20), nullable=False, default=SettingDataType.STRING.value)
    is_editable = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())

    def __repr__(self):
        return f"<Setting(key='{self.key}', type='{self.data_type}')>"
