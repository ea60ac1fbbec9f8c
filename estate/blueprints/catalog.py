"""
Catalog blueprint - public product, stay and activity listings and availability.
"""
from flask import Blueprint, jsonify, request

from estate.database import get_session
from estate.exceptions import ValidationError
from estate.services import catalog_service
from estate.services.cache_service import get_cache
from estate.utils.dates import parse_iso_date

catalog_bp = Blueprint('catalog', __name__, url_prefix='/api')


def _int_arg(name: str, default: int, minimum: int = 0, maximum: int = 100) -> int:
    try:
        value = int(request.args.get(name, default))
    except (TypeError, ValueError):
        value = default
    return min(max(value, minimum), maximum)


@catalog_bp.route('/products', methods=['GET'])
def list_products():
    filters = {
        'category': request.args.get('category'),
        'search': request.args.get('search', '').strip(),
        'in_stock': request.args.get('inStock', 'false').lower() == 'true',
        'sort_by': request.args.get('sortBy', 'createdAt'),
        'sort_order': request.args.get('sortOrder', 'desc'),
        'limit': _int_arg('limit', 12, minimum=1),
        'offset': _int_arg('offset', 0, maximum=100000),
    }
    return jsonify(catalog_service.list_products(get_session(), filters, cache=get_cache()))


@catalog_bp.route('/products/<product_ref>', methods=['GET'])
def get_product(product_ref: str):
    product = catalog_service.get_product(get_session(), product_ref)
    return jsonify({'product': catalog_service.serialize_product(product)})


@catalog_bp.route('/properties', methods=['GET'])
def list_properties():
    properties = catalog_service.list_properties(get_session())
    return jsonify({'properties': [catalog_service.serialize_property(p) for p in properties]})


@catalog_bp.route('/properties/<property_ref>', methods=['GET'])
def get_property(property_ref: str):
    prop = catalog_service.get_property(get_session(), property_ref)
    return jsonify({'property': catalog_service.serialize_property(prop)})


@catalog_bp.route('/activities', methods=['GET'])
def list_activities():
    activities = catalog_service.list_activities(get_session())
    return jsonify({'activities': [catalog_service.serialize_activity(a) for a in activities]})


@catalog_bp.route('/activities/<activity_ref>', methods=['GET'])
def get_activity(activity_ref: str):
    activity = catalog_service.get_activity(get_session(), activity_ref)
    return jsonify({'activity': catalog_service.serialize_activity(activity)})


@catalog_bp.route('/amenities', methods=['GET'])
def list_amenities():
    amenities = catalog_service.list_amenities(get_session())
    return jsonify({'amenities': [catalog_service.serialize_amenity(a) for a in amenities]})


@catalog_bp.route('/addons', methods=['GET'])
def list_addons():
    addons = catalog_service.list_addons(get_session())
    return jsonify({'addons': [catalog_service.serialize_addon(a) for a in addons]})


@catalog_bp.route('/availability', methods=['GET'])
def availability():
    """
    Day-by-day availability of a property or an activity.

    Query: propertyId or activityId, startDate, endDate (YYYY-MM-DD).
    """
    property_id = request.args.get('propertyId', type=int)
    activity_id = request.args.get('activityId', type=int)
    if bool(property_id) == bool(activity_id):
        raise ValidationError('Exactly one of propertyId or activityId is required',
                              errors=['propertyId/activityId: exactly one is required'])
    try:
        start = parse_iso_date(request.args['startDate'])
        end = parse_iso_date(request.args['endDate'])
    except (KeyError, ValueError):
        raise ValidationError('startDate and endDate must be dates (YYYY-MM-DD)',
                              errors=['startDate/endDate: invalid or missing'])

    session = get_session()
    if property_id:
        days = catalog_service.property_availability(session, property_id, start, end)
        return jsonify({'propertyId': property_id, 'availability': days})
    days = catalog_service.activity_availability(session, activity_id, start, end)
    return jsonify({'activityId': activity_id, 'availability': days})
