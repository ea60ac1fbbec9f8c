"""
Promo code service.

A user has at most one active promo association at a time and may use
each code once. Expiry of an applied code is detected by
reconcile_applied_promo(), which every summary computation runs first.
"""
import logging
from collections import namedtuple
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from estate.blueprints.metrics import promo_applications_total
from estate.exceptions import BusinessLogicError, ConflictError, NotFoundError, ValidationError
from estate.models import DiscountType, PromoCode, UserPromoCode
from estate.services.cart_service import load_cart_items
from estate.services.pricing_service import (
    calculate_cart_summary, calculate_subtotal, is_promo_usable,
)
from estate.utils.dates import as_aware_utc, is_expired
from estate.utils.money import round_money, to_decimal

logger = logging.getLogger(__name__)

ALREADY_USED_MESSAGE = 'You have already used this promo code'

PromoReconciliation = namedtuple('PromoReconciliation', ['promo', 'deactivated'])


def normalize_code(code: Optional[str]) -> str:
    return (code or '').strip().upper()


def _deactivate_user_promos(session: Session, user_id: int) -> int:
    return session.query(UserPromoCode).filter(
        UserPromoCode.user_id == user_id,
        UserPromoCode.is_active.is_(True)
    ).update({UserPromoCode.is_active: False}, synchronize_session=False)


# =====================================================
# APPLIED PROMO STATE
# =====================================================

def reconcile_applied_promo(session: Session, user_id: int,
                            now: Optional[datetime] = None) -> PromoReconciliation:
    """
    Resolve the user's applied promo before pricing.

    An active association whose promo has expired or been switched off is
    deactivated here (and committed). Returns (promo or None, deactivated).
    """
    association = (session.query(UserPromoCode)
                   .filter(UserPromoCode.user_id == user_id, UserPromoCode.is_active.is_(True))
                   .order_by(UserPromoCode.created_at.desc(), UserPromoCode.id.desc())
                   .first())
    if association is None:
        return PromoReconciliation(None, False)

    promo = association.promo_code
    if is_promo_usable(promo, now):
        return PromoReconciliation(promo, False)

    association.is_active = False
    session.commit()
    logger.info(f"[PROMO] Deactivated promo {promo.code if promo else '?'} for user={user_id} (expired or inactive)")
    return PromoReconciliation(None, True)


def get_cart_summary(session: Session, user_id: int,
                     now: Optional[datetime] = None) -> Tuple[PromoReconciliation, Dict[str, Any]]:
    """Reconcile the applied promo, then price the cart. Returns (reconciliation, summary)."""
    reconciliation = reconcile_applied_promo(session, user_id, now)
    items = load_cart_items(session, user_id)
    return reconciliation, calculate_cart_summary(items, reconciliation.promo, now)


# =====================================================
# APPLY / REMOVE
# =====================================================

def _check_promo(session: Session, user_id: int, code: str, now: Optional[datetime]) -> PromoCode:
    """Eligibility checks in order; raises on the first failing rule."""
    promo = (session.query(PromoCode)
             .filter(PromoCode.code == code, PromoCode.is_active.is_(True))
             .with_for_update()
             .first())
    if promo is None:
        raise BusinessLogicError('Invalid or expired promo code')

    if is_expired(promo.expires_at, now):
        raise BusinessLogicError('This promo code has expired')

    if promo.usage_limit is not None:
        usage_count = session.query(func.count(UserPromoCode.id)).filter(
            UserPromoCode.promo_code_id == promo.id
        ).scalar()
        if usage_count >= promo.usage_limit:
            raise BusinessLogicError('This promo code has reached its usage limit')

    already_used = session.query(UserPromoCode.id).filter(
        UserPromoCode.user_id == user_id,
        UserPromoCode.promo_code_id == promo.id
    ).first()
    if already_used:
        raise ConflictError(ALREADY_USED_MESSAGE)

    return promo


def apply_promo_code(session: Session, user_id: int, code: str,
                     now: Optional[datetime] = None) -> Dict[str, Any]:
    """
    Apply a promo code to the user's cart.

    Returns {message, summary, discount, promoCode}.
    """
    code = normalize_code(code)
    if not code:
        raise ValidationError('Invalid request data', errors=['code: Promo code is required'])

    try:
        promo = _check_promo(session, user_id, code, now)

        items = load_cart_items(session, user_id)
        subtotal = calculate_subtotal(items)
        if promo.minimum_amount is not None and subtotal < to_decimal(promo.minimum_amount):
            raise BusinessLogicError(
                f'Minimum order amount of ${promo.minimum_amount} required for this promo code',
                payload={'minimumAmount': promo.minimum_amount, 'currentAmount': subtotal}
            )

        _deactivate_user_promos(session, user_id)
        session.add(UserPromoCode(user_id=user_id, promo_code_id=promo.id, is_active=True))
        session.commit()
    except IntegrityError:
        session.rollback()
        promo_applications_total.labels(result='rejected').inc()
        raise ConflictError(ALREADY_USED_MESSAGE)
    except BusinessLogicError:
        session.rollback()
        promo_applications_total.labels(result='rejected').inc()
        raise

    promo_applications_total.labels(result='applied').inc()
    logger.info(f"[PROMO] Applied {promo.code} for user={user_id}")

    summary = calculate_cart_summary(items, promo, now)
    return {
        'message': 'Promo code applied successfully',
        'summary': summary,
        'discount': summary['discount'],
        'promoCode': {
            'code': promo.code,
            'discountType': promo.discount_type,
            'discountValue': promo.discount_value,
        },
    }


def remove_promo_code(session: Session, user_id: int, now: Optional[datetime] = None) -> Dict[str, Any]:
    """Deactivate the user's applied promo (idempotent). Returns {message, summary}."""
    _deactivate_user_promos(session, user_id)
    session.commit()
    summary = calculate_cart_summary(load_cart_items(session, user_id), None, now)
    return {'message': 'Promo code removed successfully', 'summary': summary}


def deactivate_user_promos(session: Session, user_id: int) -> int:
    """Deactivate the user's active associations without committing (order checkout)."""
    return _deactivate_user_promos(session, user_id)


# =====================================================
# ADMIN
# =====================================================

def serialize_promo_code(promo: PromoCode, usage_count: Optional[int] = None) -> Dict[str, Any]:
    data = {
        'id': promo.id,
        'code': promo.code,
        'description': promo.description,
        'discountType': promo.discount_type,
        'discountValue': promo.discount_value,
        'minimumAmount': promo.minimum_amount,
        'maximumDiscount': promo.maximum_discount,
        'usageLimit': promo.usage_limit,
        'expiresAt': as_aware_utc(promo.expires_at).isoformat() if promo.expires_at else None,
        'isActive': promo.is_active,
    }
    if usage_count is not None:
        data['usageCount'] = usage_count
    return data


def list_promo_codes(session: Session, active: Optional[bool] = None) -> List[Dict[str, Any]]:
    """All promo codes with their usage counts."""
    usage = dict(session.query(UserPromoCode.promo_code_id, func.count(UserPromoCode.id))
                 .group_by(UserPromoCode.promo_code_id).all())
    query = session.query(PromoCode)
    if active is not None:
        query = query.filter(PromoCode.is_active.is_(active))
    return [serialize_promo_code(p, usage.get(p.id, 0))
            for p in query.order_by(PromoCode.created_at.desc(), PromoCode.id.desc()).all()]


def _validate_discount(discount_type: str, discount_value) -> None:
    if discount_type not in (DiscountType.PERCENTAGE.value, DiscountType.FIXED.value):
        raise ValidationError('Invalid promo code', errors=[f'discountType: unknown type "{discount_type}"'])
    value = to_decimal(discount_value)
    if value <= 0:
        raise ValidationError('Invalid promo code', errors=['discountValue: must be greater than 0'])
    if discount_type == DiscountType.PERCENTAGE.value and value > 100:
        raise ValidationError('Invalid promo code', errors=['discountValue: percentage cannot exceed 100'])


def _optional_money(value):
    return round_money(value) if value is not None else None


def create_promo_code(session: Session, data: Dict[str, Any]) -> PromoCode:
    code = normalize_code(data['code'])
    _validate_discount(data['discount_type'], data['discount_value'])
    if session.query(PromoCode.id).filter(PromoCode.code == code).first():
        raise ConflictError('Promo code already exists')

    promo = PromoCode(
        code=code,
        description=data.get('description'),
        discount_type=data['discount_type'],
        discount_value=round_money(data['discount_value']),
        minimum_amount=_optional_money(data.get('minimum_amount')),
        maximum_discount=_optional_money(data.get('maximum_discount')),
        usage_limit=data.get('usage_limit'),
        expires_at=data.get('expires_at'),
        is_active=data.get('is_active', True),
    )
    session.add(promo)
    try:
        session.commit()
    except IntegrityError:
        session.rollback()
        raise ConflictError('Promo code already exists')
    logger.info(f"[PROMO] Created {promo.code}")
    return promo


def update_promo_code(session: Session, promo_id: int, data: Dict[str, Any]) -> PromoCode:
    """Partial update; the code itself is immutable."""
    promo = session.get(PromoCode, promo_id)
    if not promo:
        raise NotFoundError('Promo code not found')

    discount_type = data.get('discount_type') or promo.discount_type
    discount_value = data.get('discount_value')
    if discount_value is None:
        discount_value = promo.discount_value
    _validate_discount(discount_type, discount_value)

    promo.discount_type = discount_type
    promo.discount_value = round_money(discount_value)
    for field in ('description', 'usage_limit', 'expires_at', 'is_active'):
        if field in data:
            setattr(promo, field, data[field])
    for field in ('minimum_amount', 'maximum_discount'):
        if field in data:
            setattr(promo, field, _optional_money(data[field]))

    session.commit()
    return promo
