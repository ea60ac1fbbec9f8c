"""Models package - exports all SQLAlchemy models."""
# Users
from estate.models.app_user import AppUser, UserRole

# Catalog
from estate.models.product import Product
from estate.models.product_variant import ProductVariant
from estate.models.property import Property, property_amenity
from estate.models.amenity import Amenity
from estate.models.activity import Activity
from estate.models.addon import AddOn
from estate.models.availability import BlockedDate, CustomPricing

# Cart & promotions
from estate.models.cart_item import CartItem
from estate.models.promo_code import PromoCode, DiscountType
from estate.models.user_promo_code import UserPromoCode

# Orders
from estate.models.order import Order, OrderType, OrderStatus, PaymentStatus
from estate.models.order_item import OrderItem
from estate.models.booking import Booking, BookingStatus, BLOCKING_STATUSES
from estate.models.activity_booking import ActivityBooking

# Settings
from estate.models.setting import Setting, SettingDataType, SettingCategory

__all__ = [
    'AppUser', 'UserRole',
    'Product', 'ProductVariant', 'Property', 'property_amenity', 'Amenity', 'Activity', 'AddOn',
    'BlockedDate', 'CustomPricing',
    'CartItem', 'PromoCode', 'DiscountType', 'UserPromoCode',
    'Order', 'OrderType', 'OrderStatus', 'PaymentStatus', 'OrderItem',
    'Booking', 'BookingStatus', 'BLOCKING_STATUSES', 'ActivityBooking',
    'Setting', 'SettingDataType', 'SettingCategory',
]
