"""Request schemas (pydantic). camelCase on the wire, snake_case in Python."""
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra='ignore')


# =====================================================
# AUTH
# =====================================================

class LoginIn(CamelModel):
    email: str = Field(..., min_length=3, max_length=255)
    password: str = Field(..., min_length=1)


# =====================================================
# CART
# =====================================================

class CartItemIn(CamelModel):
    product_id: int = Field(..., gt=0)
    variant_id: Optional[int] = Field(None, gt=0)
    quantity: int = Field(1, ge=1, le=10)


class CartItemUpdate(CamelModel):
    item_id: int = Field(..., gt=0)
    quantity: int = Field(..., ge=1, le=10)


class CartItemDelete(CamelModel):
    item_id: int = Field(..., gt=0)


class PromoApplyIn(CamelModel):
    code: str = Field(..., min_length=1, max_length=40)


# =====================================================
# ORDERS
# =====================================================

class AddressIn(CamelModel):
    first_name: str = Field(..., min_length=1)
    last_name: str = Field(..., min_length=1)
    email: EmailStr
    phone: str = Field(..., min_length=1)
    address: str = Field(..., min_length=1)
    city: str = Field(..., min_length=1)
    state: Optional[str] = None
    zip_code: str = Field(..., min_length=1)
    country: str = Field(..., min_length=1)


class BankDetailsIn(CamelModel):
    account_name: Optional[str] = None
    account_number: Optional[str] = None
    bank_name: Optional[str] = None
    branch_code: Optional[str] = None


class PaymentDetailsIn(CamelModel):
    card_number: Optional[str] = None
    expiry_date: Optional[str] = None
    cvv: Optional[str] = None
    card_name: Optional[str] = None
    paynow_number: Optional[str] = None
    bank_details: Optional[BankDetailsIn] = None


class OrderItemIn(CamelModel):
    product_id: Optional[int] = None
    variant_id: Optional[int] = None
    property_id: Optional[int] = None
    activity_id: Optional[int] = None
    quantity: int = Field(..., ge=1)
    price: Decimal = Field(..., ge=0)
    check_in: Optional[date] = None
    check_out: Optional[date] = None
    participants: Optional[int] = None
    activity_date: Optional[date] = None


class OrderCreateIn(CamelModel):
    type: Literal['product', 'property', 'activity']
    items: List[OrderItemIn] = Field(..., min_length=1)
    shipping_address: AddressIn
    billing_address: AddressIn
    payment_method: Literal['card', 'paynow', 'bank_transfer', 'cash']
    payment_details: PaymentDetailsIn = Field(default_factory=PaymentDetailsIn)
    notes: Optional[str] = Field(None, max_length=2000)

    def to_service_data(self) -> Dict[str, Any]:
        """Snake-case dict for the order service; addresses are stored camelCase."""
        data = self.model_dump(exclude={'shipping_address', 'billing_address', 'payment_details'})
        data['shipping_address'] = self.shipping_address.model_dump(by_alias=True, mode='json')
        data['billing_address'] = self.billing_address.model_dump(by_alias=True, mode='json')
        return data


class OrderStatusUpdate(CamelModel):
    status: Optional[str] = None
    payment_status: Optional[str] = None


# =====================================================
# SETTINGS
# =====================================================

class SettingIn(CamelModel):
    key: str = Field(..., min_length=1, max_length=100)
    value: str
    description: Optional[str] = None
    category: str
    data_type: Literal['string', 'number', 'boolean', 'json']
    is_editable: bool = True


class SettingsBulkIn(CamelModel):
    settings: List[SettingIn] = Field(..., min_length=1)


# =====================================================
# ADMIN CATALOG / PROMOS / BOOKINGS
# =====================================================

class VariantIn(CamelModel):
    name: str = Field(..., min_length=1, max_length=120)
    price: Decimal = Field(..., ge=0)
    stock_quantity: Optional[int] = Field(None, ge=0)
    is_active: bool = True


class ProductIn(CamelModel):
    name: str = Field(..., min_length=1, max_length=200)
    slug: Optional[str] = Field(None, max_length=220)
    description: Optional[str] = None
    category: Optional[str] = Field(None, max_length=40)
    price: Decimal = Field(..., ge=0)
    stock_quantity: Optional[int] = Field(None, ge=0)
    is_active: bool = True
    max_quantity_per_order: Optional[int] = Field(None, ge=1)
    variants: List[VariantIn] = Field(default_factory=list)


class ProductUpdate(CamelModel):
    name: Optional[str] = Field(None, min_length=1, max_length=200)
    description: Optional[str] = None
    category: Optional[str] = Field(None, max_length=40)
    price: Optional[Decimal] = Field(None, ge=0)
    stock_quantity: Optional[int] = None
    is_active: Optional[bool] = None
    max_quantity_per_order: Optional[int] = Field(None, ge=1)


class VariantUpdate(CamelModel):
    is_active: Optional[bool] = None
    stock_quantity: Optional[int] = Field(None, ge=0)
    unlimited_stock: bool = False


class PromoCodeIn(CamelModel):
    code: str = Field(..., min_length=1, max_length=40)
    description: Optional[str] = Field(None, max_length=255)
    discount_type: Literal['percentage', 'fixed']
    discount_value: Decimal = Field(..., gt=0)
    minimum_amount: Optional[Decimal] = Field(None, ge=0)
    maximum_discount: Optional[Decimal] = Field(None, ge=0)
    usage_limit: Optional[int] = Field(None, ge=1)
    expires_at: Optional[datetime] = None
    is_active: bool = True


class PromoCodeUpdate(CamelModel):
    description: Optional[str] = Field(None, max_length=255)
    discount_type: Optional[Literal['percentage', 'fixed']] = None
    discount_value: Optional[Decimal] = Field(None, gt=0)
    minimum_amount: Optional[Decimal] = Field(None, ge=0)
    maximum_discount: Optional[Decimal] = Field(None, ge=0)
    usage_limit: Optional[int] = Field(None, ge=1)
    expires_at: Optional[datetime] = None
    is_active: Optional[bool] = None


class BookingStatusUpdate(CamelModel):
    status: Optional[str] = None
    payment_status: Optional[str] = None


class PropertyIn(CamelModel):
    name: str = Field(..., min_length=1, max_length=200)
    slug: Optional[str] = Field(None, max_length=220)
    description: Optional[str] = None
    base_price: Decimal = Field(..., ge=0)
    max_guests: int = Field(2, ge=1, le=50)
    is_active: bool = True
    amenity_ids: List[int] = Field(default_factory=list)


class PropertyUpdate(CamelModel):
    name: Optional[str] = Field(None, min_length=1, max_length=200)
    slug: Optional[str] = Field(None, min_length=1, max_length=220)
    description: Optional[str] = None
    base_price: Optional[Decimal] = Field(None, ge=0)
    max_guests: Optional[int] = Field(None, ge=1, le=50)
    is_active: Optional[bool] = None
    amenity_ids: Optional[List[int]] = None


class ActivityIn(CamelModel):
    name: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = None
    price: Decimal = Field(..., ge=0)
    duration_hours: Optional[Decimal] = Field(None, gt=0)
    min_participants: int = Field(1, ge=1)
    max_participants: int = Field(10, ge=1)
    is_active: bool = True


class ActivityUpdate(CamelModel):
    name: Optional[str] = Field(None, min_length=1, max_length=200)
    description: Optional[str] = None
    price: Optional[Decimal] = Field(None, ge=0)
    duration_hours: Optional[Decimal] = Field(None, gt=0)
    min_participants: Optional[int] = Field(None, ge=1)
    max_participants: Optional[int] = Field(None, ge=1)
    is_active: Optional[bool] = None
