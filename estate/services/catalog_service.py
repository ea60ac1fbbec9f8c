"""Catalog service - read-mostly lookups for products, stays and activities."""
import logging
import re
from datetime import date
from decimal import Decimal
from typing import Any, Dict, List, Optional

from sqlalchemy import func, or_
from sqlalchemy.orm import Session, selectinload

from estate.exceptions import BusinessLogicError, ConflictError, NotFoundError
from estate.models import (
    Activity, ActivityBooking, AddOn, Amenity, BlockedDate, Booking, CustomPricing,
    Product, ProductVariant, Property, BLOCKING_STATUSES,
)
from estate.utils.dates import each_day
from estate.utils.money import round_money

logger = logging.getLogger(__name__)

CATALOG_CACHE_MODULE = 'catalog'
PRODUCT_SORT_FIELDS = {
    'price': Product.price,
    'name': Product.name,
    'stock': Product.stock_quantity,
    'createdAt': Product.created_at,
}
MAX_AVAILABILITY_DAYS = 366


# =====================================================
# PRICE / STOCK RULES
# =====================================================

def effective_price(product: Product, variant: Optional[ProductVariant] = None) -> Decimal:
    """Unit price of a cart/order line: the variant's when present."""
    if variant is not None:
        return variant.price
    return product.price


def effective_stock(product: Product, variant: Optional[ProductVariant] = None) -> Optional[int]:
    """Stock of a line; None means unlimited. Variant stock overrides the product's."""
    if variant is not None and variant.stock_quantity is not None:
        return variant.stock_quantity
    return product.stock_quantity


def slugify(name: str) -> str:
    slug = re.sub(r'[^a-z0-9]+', '-', name.lower()).strip('-')
    return slug or 'item'


# =====================================================
# SERIALIZERS
# =====================================================

def serialize_variant(variant: ProductVariant) -> Dict[str, Any]:
    return {
        'id': variant.id,
        'productId': variant.product_id,
        'name': variant.name,
        'price': variant.price,
        'stockQuantity': variant.stock_quantity,
        'isActive': variant.is_active,
    }


def serialize_product(product: Product, include_variants: bool = True) -> Dict[str, Any]:
    data = {
        'id': product.id,
        'name': product.name,
        'slug': product.slug,
        'description': product.description,
        'category': product.category,
        'price': product.price,
        'stockQuantity': product.stock_quantity,
        'isActive': product.is_active,
        'maxQuantityPerOrder': product.max_quantity_per_order,
    }
    if include_variants:
        data['variants'] = [serialize_variant(v) for v in product.variants]
    return data


def serialize_property(prop: Property) -> Dict[str, Any]:
    return {
        'id': prop.id,
        'name': prop.name,
        'slug': prop.slug,
        'description': prop.description,
        'basePrice': prop.base_price,
        'maxGuests': prop.max_guests,
        'isActive': prop.is_active,
        'amenities': [serialize_amenity(a) for a in prop.amenities],
    }


def serialize_activity(activity: Activity) -> Dict[str, Any]:
    return {
        'id': activity.id,
        'name': activity.name,
        'slug': activity.slug,
        'description': activity.description,
        'price': activity.price,
        'durationHours': activity.duration_hours,
        'minParticipants': activity.min_participants,
        'maxParticipants': activity.max_participants,
        'isActive': activity.is_active,
    }


def serialize_amenity(amenity: Amenity) -> Dict[str, Any]:
    return {'id': amenity.id, 'name': amenity.name, 'icon': amenity.icon, 'category': amenity.category}


def serialize_addon(addon: AddOn) -> Dict[str, Any]:
    return {
        'id': addon.id,
        'name': addon.name,
        'description': addon.description,
        'price': addon.price,
        'isActive': addon.is_active,
    }


# =====================================================
# PRODUCTS
# =====================================================

def _product_list_cache_key(filters: Dict[str, Any]) -> str:
    return 'products:' + ':'.join(f"{k}={filters.get(k)}" for k in sorted(filters))


def list_products(session: Session, filters: Dict[str, Any], cache=None) -> Dict[str, Any]:
    """
    Public product listing (active products only).

    Filters: category, search, in_stock, sort_by, sort_order, limit, offset.
    Results are memoized in Redis when a cache service is given.
    """
    def load() -> Dict[str, Any]:
        query = session.query(Product).filter(Product.is_active.is_(True))

        category = filters.get('category')
        if category and category != 'all':
            query = query.filter(Product.category == category)

        search = (filters.get('search') or '')[:100]
        if search:
            pattern = f'%{search.lower()}%'
            query = query.filter(or_(
                func.lower(Product.name).like(pattern),
                func.lower(Product.description).like(pattern),
            ))

        if filters.get('in_stock'):
            query = query.filter(or_(Product.stock_quantity.is_(None), Product.stock_quantity > 0))

        total = query.count()

        column = PRODUCT_SORT_FIELDS.get(filters.get('sort_by'), Product.created_at)
        ordering = column.asc() if filters.get('sort_order') == 'asc' else column.desc()
        limit = filters.get('limit', 12)
        offset = filters.get('offset', 0)
        products = (query.options(selectinload(Product.variants))
                    .order_by(ordering, Product.id)
                    .offset(offset)
                    .limit(limit)
                    .all())

        return {
            'products': [serialize_product(p) for p in products],
            'pagination': {
                'total': total,
                'limit': limit,
                'offset': offset,
                'hasMore': offset + limit < total,
            },
        }

    if cache is None:
        return load()
    from flask import current_app
    return cache.memoize(CATALOG_CACHE_MODULE, _product_list_cache_key(filters), load,
                         ttl=current_app.config.get('CACHE_CATALOG_TTL'))


def get_product(session: Session, product_ref: str, include_inactive: bool = False) -> Product:
    """Product by numeric id or slug."""
    query = session.query(Product)
    if str(product_ref).isdigit():
        query = query.filter(Product.id == int(product_ref))
    else:
        query = query.filter(Product.slug == product_ref)
    product = query.first()
    if not product or (not product.is_active and not include_inactive):
        raise NotFoundError('Product not found')
    return product


def create_product(session: Session, data: Dict[str, Any]) -> Product:
    """Create a product with optional variants (admin)."""
    name = data['name'].strip()
    if session.query(Product).filter(func.lower(Product.name) == name.lower()).first():
        raise ConflictError(f'A product named "{name}" already exists')

    product = Product(
        name=name,
        slug=data.get('slug') or slugify(name),
        description=data.get('description'),
        category=data.get('category') or 'MERCHANDISE',
        price=round_money(data['price']),
        stock_quantity=data.get('stock_quantity'),
        is_active=data.get('is_active', True),
        max_quantity_per_order=data.get('max_quantity_per_order'),
    )
    for variant in data.get('variants') or []:
        product.variants.append(ProductVariant(
            name=variant['name'],
            price=round_money(variant['price']),
            stock_quantity=variant.get('stock_quantity'),
            is_active=variant.get('is_active', True),
        ))
    session.add(product)
    session.commit()
    invalidate_catalog_cache()
    logger.info(f"[CATALOG] Product created: {product.id} {product.name}")
    return product


def update_product(session: Session, product_id: int, data: Dict[str, Any]) -> Product:
    """Partial update of product fields (admin)."""
    product = session.get(Product, product_id)
    if not product:
        raise NotFoundError('Product not found')

    if 'name' in data and data['name'] is not None:
        name = data['name'].strip()
        clash = session.query(Product).filter(
            func.lower(Product.name) == name.lower(),
            Product.id != product_id
        ).first()
        if clash:
            raise ConflictError(f'A product named "{name}" already exists')
        product.name = name
    for field in ('description', 'max_quantity_per_order'):
        if field in data:
            setattr(product, field, data[field])
    for field in ('category', 'is_active'):
        if data.get(field) is not None:
            setattr(product, field, data[field])
    if data.get('price') is not None:
        product.price = round_money(data['price'])
    if 'stock_quantity' in data:
        stock = data['stock_quantity']
        if stock is not None and stock < 0:
            raise BusinessLogicError('Stock cannot be negative')
        product.stock_quantity = stock

    session.commit()
    invalidate_catalog_cache()
    return product


def set_variant_state(session: Session, variant_id: int, is_active: Optional[bool] = None,
                      stock_quantity: Optional[int] = None, clear_stock: bool = False) -> ProductVariant:
    """Toggle a variant or set its stock (admin)."""
    variant = session.get(ProductVariant, variant_id)
    if not variant:
        raise NotFoundError('Product variant not found')
    if is_active is not None:
        variant.is_active = is_active
    if clear_stock:
        variant.stock_quantity = None
    elif stock_quantity is not None:
        if stock_quantity < 0:
            raise BusinessLogicError('Stock cannot be negative')
        variant.stock_quantity = stock_quantity
    session.commit()
    invalidate_catalog_cache()
    return variant


# =====================================================
# ADMIN: STAYS AND ACTIVITIES
# =====================================================

def _amenities(session: Session, amenity_ids: List[int]) -> List[Amenity]:
    amenities = session.query(Amenity).filter(Amenity.id.in_(amenity_ids)).all() if amenity_ids else []
    missing = set(amenity_ids) - {a.id for a in amenities}
    if missing:
        raise NotFoundError(f'Unknown amenity id(s): {", ".join(str(i) for i in sorted(missing))}')
    return amenities


def create_property(session: Session, data: Dict[str, Any]) -> Property:
    """Create a bookable property (admin). The slug must be unused."""
    slug = data.get('slug') or slugify(data['name'])
    if session.query(Property.id).filter(Property.slug == slug).first():
        raise ConflictError('Property slug already exists')

    prop = Property(
        name=data['name'].strip(),
        slug=slug,
        description=data.get('description'),
        base_price=round_money(data['base_price']),
        max_guests=data.get('max_guests') or 2,
        is_active=data.get('is_active', True),
    )
    prop.amenities = _amenities(session, data.get('amenity_ids') or [])
    session.add(prop)
    session.commit()
    logger.info(f"[CATALOG] Property created: {prop.id} {prop.name}")
    return prop


def update_property(session: Session, property_id: int, data: Dict[str, Any]) -> Property:
    """Partial update of a property (admin); inactive properties can be edited too."""
    prop = session.get(Property, property_id)
    if not prop:
        raise NotFoundError('Property not found')

    slug = data.get('slug')
    if slug and slug != prop.slug:
        if session.query(Property.id).filter(Property.slug == slug).first():
            raise ConflictError('Property slug already exists')
        prop.slug = slug
    if data.get('name') is not None:
        prop.name = data['name'].strip()
    if 'description' in data:
        prop.description = data['description']
    if data.get('base_price') is not None:
        prop.base_price = round_money(data['base_price'])
    for field in ('max_guests', 'is_active'):
        if data.get(field) is not None:
            setattr(prop, field, data[field])
    if data.get('amenity_ids') is not None:
        prop.amenities = _amenities(session, data['amenity_ids'])

    session.commit()
    return prop


def _unique_activity_slug(session: Session, name: str) -> str:
    base = slugify(name)
    slug, counter = base, 1
    while session.query(Activity.id).filter(Activity.slug == slug).first():
        slug = f'{base}-{counter}'
        counter += 1
    return slug


def _check_participants(minimum: int, maximum: int) -> None:
    if minimum > maximum:
        raise BusinessLogicError('Minimum participants cannot exceed maximum participants')


def create_activity(session: Session, data: Dict[str, Any]) -> Activity:
    """Create an activity (admin); the slug is derived from the name and made unique."""
    _check_participants(data.get('min_participants', 1), data.get('max_participants', 10))
    activity = Activity(
        name=data['name'].strip(),
        slug=_unique_activity_slug(session, data['name']),
        description=data.get('description'),
        price=round_money(data['price']),
        duration_hours=data.get('duration_hours'),
        min_participants=data.get('min_participants', 1),
        max_participants=data.get('max_participants', 10),
        is_active=data.get('is_active', True),
    )
    session.add(activity)
    session.commit()
    logger.info(f"[CATALOG] Activity created: {activity.id} {activity.name}")
    return activity


def update_activity(session: Session, activity_id: int, data: Dict[str, Any]) -> Activity:
    """Partial update of an activity (admin)."""
    activity = session.get(Activity, activity_id)
    if not activity:
        raise NotFoundError('Activity not found')

    minimum = data.get('min_participants') or activity.min_participants
    maximum = data.get('max_participants') or activity.max_participants
    _check_participants(minimum, maximum)

    if data.get('name') is not None:
        activity.name = data['name'].strip()
    if 'description' in data:
        activity.description = data['description']
    if data.get('price') is not None:
        activity.price = round_money(data['price'])
    for field in ('duration_hours', 'min_participants', 'max_participants', 'is_active'):
        if data.get(field) is not None:
            setattr(activity, field, data[field])

    session.commit()
    return activity


def deactivate_listing(session: Session, model, entity_id: int):
    """Soft delete of a property or activity: it leaves the public catalog, bookings stay."""
    entity = session.get(model, entity_id)
    if not entity:
        raise NotFoundError(f'{model.__name__} not found')
    entity.is_active = False
    session.commit()
    logger.info(f"[CATALOG] {model.__name__} {entity_id} deactivated")
    return entity


def invalidate_catalog_cache() -> None:
    """Gracefully attempt to invalidate the catalog cache."""
    try:
        from estate.services.cache_service import get_cache
        get_cache().invalidate_module(CATALOG_CACHE_MODULE)
    except RuntimeError:
        logger.debug("[CACHE] Catalog invalidation skipped: cache not initialized")


# =====================================================
# STAYS, ACTIVITIES, EXTRAS
# =====================================================

def list_properties(session: Session) -> List[Property]:
    return (session.query(Property)
            .options(selectinload(Property.amenities))
            .filter(Property.is_active.is_(True))
            .order_by(Property.name)
            .all())


def get_property(session: Session, property_ref: str) -> Property:
    query = session.query(Property).filter(Property.is_active.is_(True))
    if str(property_ref).isdigit():
        query = query.filter(Property.id == int(property_ref))
    else:
        query = query.filter(Property.slug == property_ref)
    prop = query.first()
    if not prop:
        raise NotFoundError('Property not found or inactive')
    return prop


def list_activities(session: Session) -> List[Activity]:
    return (session.query(Activity)
            .filter(Activity.is_active.is_(True))
            .order_by(Activity.name)
            .all())


def get_activity(session: Session, activity_ref: str) -> Activity:
    query = session.query(Activity).filter(Activity.is_active.is_(True))
    if str(activity_ref).isdigit():
        query = query.filter(Activity.id == int(activity_ref))
    else:
        query = query.filter(Activity.slug == activity_ref)
    activity = query.first()
    if not activity:
        raise NotFoundError('Activity not found or inactive')
    return activity


def list_amenities(session: Session) -> List[Amenity]:
    return session.query(Amenity).order_by(Amenity.category, Amenity.name).all()


def list_addons(session: Session) -> List[AddOn]:
    return (session.query(AddOn)
            .filter(AddOn.is_active.is_(True))
            .order_by(AddOn.name)
            .all())


# =====================================================
# AVAILABILITY
# =====================================================

def booked_participants(session: Session, activity_id: int, day: date) -> int:
    """Participants already holding capacity for an activity on a day."""
    total = session.query(func.coalesce(func.sum(ActivityBooking.participants), 0)).filter(
        ActivityBooking.activity_id == activity_id,
        ActivityBooking.activity_date == day,
        ActivityBooking.status.in_(BLOCKING_STATUSES)
    ).scalar()
    return int(total or 0)


def _check_range(start: date, end: date) -> None:
    if end < start:
        raise BusinessLogicError('End date must not be before start date')
    if (end - start).days > MAX_AVAILABILITY_DAYS:
        raise BusinessLogicError(f'Date range cannot exceed {MAX_AVAILABILITY_DAYS} days')


def property_availability(session: Session, property_id: int, start: date, end: date) -> List[Dict[str, Any]]:
    """Per-night availability and price of a property over [start, end]."""
    _check_range(start, end)
    prop = session.query(Property).filter(Property.id == property_id, Property.is_active.is_(True)).first()
    if not prop:
        raise NotFoundError('Property not found or inactive')

    bookings = session.query(Booking).filter(
        Booking.property_id == property_id,
        Booking.status.in_(BLOCKING_STATUSES),
        Booking.check_in <= end,
        Booking.check_out > start
    ).all()
    blocked = {
        b.date: b.reason for b in session.query(BlockedDate).filter(
            BlockedDate.property_id == property_id,
            BlockedDate.date >= start,
            BlockedDate.date <= end
        )
    }
    custom = {
        c.date: c.price for c in session.query(CustomPricing).filter(
            CustomPricing.property_id == property_id,
            CustomPricing.date >= start,
            CustomPricing.date <= end
        )
    }

    days = []
    for day in each_day(start, end):
        entry = {'date': day.isoformat(), 'available': True, 'price': custom.get(day, prop.base_price)}
        if day in blocked:
            entry.update(available=False, price=prop.base_price, reason=blocked[day] or 'Blocked')
        elif any(b.check_in <= day < b.check_out for b in bookings):
            entry.update(available=False, price=prop.base_price, reason='Booked')
        days.append(entry)
    return days


def activity_availability(session: Session, activity_id: int, start: date, end: date) -> List[Dict[str, Any]]:
    """Per-day remaining capacity of an activity over [start, end]."""
    _check_range(start, end)
    activity = session.query(Activity).filter(Activity.id == activity_id, Activity.is_active.is_(True)).first()
    if not activity:
        raise NotFoundError('Activity not found or inactive')

    blocked = {
        b.date: b.reason for b in session.query(BlockedDate).filter(
            BlockedDate.activity_id == activity_id,
            BlockedDate.date >= start,
            BlockedDate.date <= end
        )
    }
    rows = session.query(ActivityBooking.activity_date, func.sum(ActivityBooking.participants)).filter(
        ActivityBooking.activity_id == activity_id,
        ActivityBooking.activity_date >= start,
        ActivityBooking.activity_date <= end,
        ActivityBooking.status.in_(BLOCKING_STATUSES)
    ).group_by(ActivityBooking.activity_date).all()
    booked = {day: int(count or 0) for day, count in rows}

    days = []
    for day in each_day(start, end):
        if day in blocked:
            days.append({'date': day.isoformat(), 'available': False, 'price': activity.price,
                         'reason': blocked[day] or 'Blocked'})
            continue
        remaining = activity.max_participants - booked.get(day, 0)
        entry = {
            'date': day.isoformat(),
            'available': remaining >= activity.min_participants,
            'price': activity.price,
            'remainingCapacity': remaining,
        }
        if not entry['available']:
            entry['reason'] = 'Fully booked'
        days.append(entry)
    return days
