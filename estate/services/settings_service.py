"""Settings service - typed key/value configuration."""
import json
import logging
import re
from typing import Any, Dict, Iterable, List, Optional

from email_validator import EmailNotValidError, validate_email
from sqlalchemy.orm import Session

from estate.exceptions import ConflictError, ForbiddenError, NotFoundError, ValidationError
from estate.models import Setting, SettingCategory, SettingDataType

logger = logging.getLogger(__name__)

CATEGORIES = {c.value for c in SettingCategory}
DATA_TYPES = {t.value for t in SettingDataType}

URL_RE = re.compile(r'^https?://\S+$')

# (key, value, data_type, category, description)
DEFAULT_SETTINGS = [
    ('pricing.serviceFeeRate', '0.05', 'number', 'pricing', 'Service fee applied to stays'),
    ('pricing.taxRate', '0.15', 'number', 'pricing', 'Tax rate'),
    ('pricing.currency', 'USD', 'string', 'pricing', 'Currency code'),
    ('property.defaultRating', '4.5', 'number', 'property', 'Rating shown for unrated properties'),
    ('booking.minimumStay', '1', 'number', 'booking', 'Minimum nights per stay'),
    ('contact.email', 'info@zimunda.com', 'string', 'contact', 'Public contact e-mail'),
    ('contact.phone', '+263777123456', 'string', 'contact', 'Public contact phone'),
    ('site.name', 'Zimunda Estate', 'string', 'site', 'Site name'),
    ('site.description', 'Vacation estate in the Eastern Highlands', 'string', 'site', 'Site description'),
]


def parse_setting_value(value: str, data_type: str) -> Any:
    """Decode a stored setting value according to its data type."""
    if data_type == SettingDataType.NUMBER.value:
        try:
            number = float(value)
        except (TypeError, ValueError):
            return None
        return int(number) if number.is_integer() and '.' not in value else number
    if data_type == SettingDataType.BOOLEAN.value:
        return value == 'true'
    if data_type == SettingDataType.JSON.value:
        try:
            return json.loads(value)
        except (TypeError, ValueError):
            return None
    return value


def stringify_setting_value(value: Any, data_type: str) -> str:
    """Encode a Python value for storage."""
    if data_type == SettingDataType.JSON.value:
        return json.dumps(value)
    if data_type == SettingDataType.BOOLEAN.value:
        return 'true' if value else 'false'
    if data_type == SettingDataType.NUMBER.value:
        return str(value)
    return str(value)


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _validate_known_key(key: str, parsed: Any) -> Optional[str]:
    """Rules for well-known keys. Returns error message or None."""
    if key in ('pricing.serviceFeeRate', 'pricing.taxRate'):
        if not _is_number(parsed) or not 0 <= parsed <= 1:
            return 'Rate must be a number between 0 and 1'
    elif key == 'pricing.currency':
        if not isinstance(parsed, str) or len(parsed) != 3 or not parsed.isalpha():
            return 'Currency must be a 3-letter code'
    elif key == 'property.defaultRating':
        if not _is_number(parsed) or not 0 <= parsed <= 5:
            return 'Rating must be a number between 0 and 5'
    elif key == 'booking.minimumStay':
        if not _is_number(parsed) or not float(parsed).is_integer() or parsed < 1:
            return 'Minimum stay must be a positive integer'
    elif key == 'contact.email':
        if not isinstance(parsed, str):
            return 'Invalid email format'
        try:
            validate_email(parsed, check_deliverability=False)
        except EmailNotValidError:
            return 'Invalid email format'
    elif key == 'contact.phone':
        if not parsed:
            return 'Phone number is required'
    elif key == 'site.name':
        if not parsed:
            return 'Site name is required'
    elif key == 'site.logo':
        if parsed and (not isinstance(parsed, str) or not URL_RE.match(parsed)):
            return 'Logo must be a URL'
    return None


def validate_setting_value(key: str, value: str, data_type: str, category: str) -> Optional[str]:
    """Validate a raw setting value. Returns error message or None."""
    if not key:
        return 'Setting key is required'
    if category not in CATEGORIES:
        return f'Unknown category "{category}"'
    if data_type not in DATA_TYPES:
        return f'Unknown data type "{data_type}"'

    if data_type == SettingDataType.NUMBER.value:
        try:
            parsed = float(value)
        except (TypeError, ValueError):
            return 'Invalid number format'
    elif data_type == SettingDataType.BOOLEAN.value:
        if value not in ('true', 'false'):
            return 'Boolean value must be "true" or "false"'
        parsed = value == 'true'
    elif data_type == SettingDataType.JSON.value:
        try:
            parsed = json.loads(value)
        except (TypeError, ValueError):
            return 'Invalid JSON format'
    else:
        parsed = value

    return _validate_known_key(key, parsed)


def get_settings(
    session: Session,
    category: Optional[str] = None,
    keys: Optional[Iterable[str]] = None,
    group_by_category: bool = False,
) -> Dict[str, Any]:
    """
    Read settings with parsed values.

    Flat shape:    {key: {value, category, description}}
    Grouped shape: {category: {key: {value, description}}}
    """
    query = session.query(Setting)
    if category:
        query = query.filter(Setting.category == category)
    key_list = [k for k in (keys or []) if k]
    if key_list:
        query = query.filter(Setting.key.in_(key_list))

    result: Dict[str, Any] = {}
    for setting in query.order_by(Setting.key).all():
        value = parse_setting_value(setting.value, setting.data_type)
        if group_by_category:
            result.setdefault(setting.category, {})[setting.key] = {
                'value': value,
                'description': setting.description,
            }
        else:
            result[setting.key] = {
                'value': value,
                'category': setting.category,
                'description': setting.description,
            }
    return result


def get_setting_values(session: Session, keys: List[str]) -> Dict[str, Any]:
    """
    Parsed values for the given keys, for use by other services.

    Missing keys and values that do not parse are left out, so callers
    fall back to their own defaults.
    """
    values = {}
    for setting in session.query(Setting).filter(Setting.key.in_(keys)).all():
        value = parse_setting_value(setting.value, setting.data_type)
        if value is None:
            logger.warning(f"[SETTINGS] Ignoring unparsable value for {setting.key}")
            continue
        values[setting.key] = value
    return values


def serialize_setting(setting: Setting) -> Dict[str, Any]:
    return {
        'id': setting.id,
        'key': setting.key,
        'value': setting.value,
        'parsedValue': parse_setting_value(setting.value, setting.data_type),
        'description': setting.description,
        'category': setting.category,
        'dataType': setting.data_type,
        'isEditable': setting.is_editable,
        'updatedAt': setting.updated_at.isoformat() if setting.updated_at else None,
    }


def list_all_settings(session: Session, category: Optional[str] = None) -> List[Setting]:
    query = session.query(Setting)
    if category:
        query = query.filter(Setting.category == category)
    return query.order_by(Setting.category, Setting.key).all()


def create_setting(session: Session, data: Dict[str, Any]) -> Setting:
    """Create a new setting; the key must not exist yet."""
    error = validate_setting_value(data['key'], data['value'], data['data_type'], data['category'])
    if error:
        raise ValidationError('Setting validation failed', errors=[f"{data['key']}: {error}"])

    if session.query(Setting).filter_by(key=data['key']).first():
        raise ConflictError('Setting with this key already exists')

    setting = Setting(
        key=data['key'],
        value=data['value'],
        description=data.get('description'),
        category=data['category'],
        data_type=data['data_type'],
        is_editable=data.get('is_editable', True),
    )
    session.add(setting)
    session.commit()
    logger.info(f"[SETTINGS] Created {setting.key}")
    return setting


def upsert_settings(session: Session, items: List[Dict[str, Any]]) -> List[Setting]:
    """Bulk create-or-update. Every item is validated before anything is written."""
    errors = []
    for item in items:
        error = validate_setting_value(item['key'], item['value'], item['data_type'], item['category'])
        if error:
            errors.append(f"{item['key']}: {error}")
    if errors:
        raise ValidationError('Setting validation failed', errors=errors)

    results = []
    try:
        for item in items:
            setting = session.query(Setting).filter_by(key=item['key']).first()
            if setting is None:
                setting = Setting(key=item['key'])
                session.add(setting)
            setting.value = item['value']
            setting.description = item.get('description')
            setting.category = item['category']
            setting.data_type = item['data_type']
            setting.is_editable = item.get('is_editable', True)
            results.append(setting)
        session.commit()
    except Exception:
        session.rollback()
        raise

    logger.info(f"[SETTINGS] Upserted {len(results)} settings")
    return results


def delete_setting(session: Session, key: str) -> Setting:
    """Delete an editable setting."""
    setting = session.query(Setting).filter_by(key=key).first()
    if not setting:
        raise NotFoundError('Setting not found')
    if not setting.is_editable:
        raise ForbiddenError('This setting cannot be deleted')

    session.delete(setting)
    session.commit()
    logger.info(f"[SETTINGS] Deleted {key}")
    return setting


def seed_default_settings(session: Session) -> int:
    """Insert the default settings that do not exist yet."""
    existing = {k for (k,) in session.query(Setting.key).all()}
    created = 0
    for key, value, data_type, category, description in DEFAULT_SETTINGS:
        if key in existing:
            continue
        session.add(Setting(key=key, value=value, data_type=data_type,
                            category=category, description=description))
        created += 1
    session.commit()
    return created
