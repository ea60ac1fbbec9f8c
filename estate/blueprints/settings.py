"""
Settings blueprint - public read endpoint and admin CRUD.

The public endpoint is served from the per-process SettingsCache for up
to SETTINGS_CACHE_TTL seconds; admin writes do not invalidate it.
"""
from flask import Blueprint, current_app, jsonify, request

from estate.database import get_session
from estate.exceptions import ValidationError
from estate.middleware import BACK_OFFICE_ROLES, require_role
from estate.schemas import SettingIn, SettingsBulkIn
from estate.services import settings_service
from estate.services.cache_service import get_settings_cache

settings_bp = Blueprint('settings', __name__)


def _public_cache_key(category, keys, group_by_category) -> str:
    return f"{category or '*'}|{','.join(sorted(keys)) or '*'}|{int(group_by_category)}"


@settings_bp.route('/api/settings', methods=['GET'])
def public_settings():
    """Public settings, optionally filtered by category or key list."""
    category = request.args.get('category')
    keys = [k.strip() for k in request.args.get('keys', '').split(',') if k.strip()]
    group_by_category = request.args.get('groupByCategory', 'false').lower() == 'true'

    cache = get_settings_cache()
    cache_key = _public_cache_key(category, keys, group_by_category)
    cached = cache.get(cache_key)
    if cached is not None:
        return jsonify({'success': True, 'data': cached, 'cached': True})

    data = settings_service.get_settings(get_session(), category, keys, group_by_category)
    cache.set(cache_key, data)
    return jsonify({'success': True, 'data': data})


@settings_bp.route('/api/admin/settings', methods=['GET'])
@require_role(*BACK_OFFICE_ROLES)
def admin_list_settings():
    settings = settings_service.list_all_settings(get_session(), request.args.get('category'))
    return jsonify({'success': True, 'data': [settings_service.serialize_setting(s) for s in settings]})


@settings_bp.route('/api/admin/settings', methods=['POST'])
@require_role(*BACK_OFFICE_ROLES)
def admin_create_setting():
    data = SettingIn.model_validate(request.get_json(silent=True) or {})
    setting = settings_service.create_setting(get_session(), data.model_dump())
    return jsonify({'success': True, 'data': settings_service.serialize_setting(setting)}), 201


@settings_bp.route('/api/admin/settings', methods=['PUT'])
@require_role(*BACK_OFFICE_ROLES)
def admin_upsert_settings():
    """Bulk create-or-update; nothing is written when any item is invalid."""
    data = SettingsBulkIn.model_validate(request.get_json(silent=True) or {})
    settings = settings_service.upsert_settings(get_session(), [s.model_dump() for s in data.settings])
    current_app.logger.info(f"{len(settings)} settings saved")
    return jsonify({
        'success': True,
        'message': f'{len(settings)} settings updated',
        'data': [settings_service.serialize_setting(s) for s in settings],
    })


@settings_bp.route('/api/admin/settings', methods=['DELETE'])
@require_role(*BACK_OFFICE_ROLES)
def admin_delete_setting():
    key = request.args.get('key')
    if not key:
        raise ValidationError('Setting key is required', errors=['key: required'])
    settings_service.delete_setting(get_session(), key)
    return jsonify({'success': True, 'message': 'Setting deleted successfully'})
