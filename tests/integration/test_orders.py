"""
Integration tests for checkout and order history.
"""

import pytest
from datetime import date, timedelta
from decimal import Decimal

from estate.models import (
    ActivityBooking, Booking, CartItem, Order, OrderItem, Product, ProductVariant, Setting, UserPromoCode,
)
from estate.services import order_service


def _in(days):
    return (date.today() + timedelta(days=days)).isoformat()


@pytest.fixture
def order_payload(address):
    """Build a checkout request body."""
    def _build(order_type, items, payment_method='card'):
        return {
            'type': order_type,
            'items': items,
            'shippingAddress': address,
            'billingAddress': address,
            'paymentMethod': payment_method,
        }
    return _build


class TestProductOrders:

    def test_create_product_order(self, authenticated_client, session, user1, product, add_cart_item,
                                  order_payload):
        add_cart_item(user1, product, quantity=2)
        body = order_payload('product', [{'productId': product.id, 'quantity': 2, 'price': 10.00}])

        response = authenticated_client.post('/api/orders', json=body)

        assert response.status_code == 200
        data = response.get_json()
        order = data['order']
        assert order['orderNumber'].startswith('ZE')
        assert len(order['orderNumber']) == 14
        assert order['status'] == 'pending'
        assert order['total'] == 28.99
        assert data['payment'] == {'kind': 'other'}

        session.refresh(product)
        assert product.stock_quantity == 18
        assert session.query(CartItem).filter_by(user_id=user1.id).count() == 0
        assert session.query(OrderItem).count() == 1

    def test_order_totals_match_on_refetch(self, authenticated_client, product, order_payload):
        body = order_payload('product', [{'productId': product.id, 'quantity': 6, 'price': 10.00}])
        created = authenticated_client.post('/api/orders', json=body).get_json()['order']

        fetched = authenticated_client.get(f"/api/orders/{created['id']}").get_json()['order']

        assert fetched['subtotal'] == 60.0
        assert fetched['tax'] == 9.0
        assert fetched['shipping'] == 0
        assert fetched['total'] == created['total'] == 69.0
        assert fetched['shippingAddress']['firstName'] == 'Tendai'
        assert fetched['items'][0]['productName'] == 'Estate Honey'

    def test_variant_stock_is_decremented(self, authenticated_client, session, product_with_variants,
                                          order_payload):
        large = product_with_variants.variants[1]
        body = order_payload('product', [{'productId': product_with_variants.id, 'variantId': large.id,
                                          'quantity': 2, 'price': 55.00}])

        assert authenticated_client.post('/api/orders', json=body).status_code == 200

        session.refresh(large)
        session.refresh(product_with_variants)
        assert large.stock_quantity == 0
        assert product_with_variants.stock_quantity is None

    def test_insufficient_stock(self, authenticated_client, session, product_with_variants, order_payload):
        large = product_with_variants.variants[1]
        body = order_payload('product', [{'productId': product_with_variants.id, 'variantId': large.id,
                                          'quantity': 3, 'price': 55.00}])

        response = authenticated_client.post('/api/orders', json=body)

        assert response.status_code == 400
        assert response.get_json()['availableQuantity'] == 2
        assert session.query(Order).count() == 0

    def test_price_mismatch(self, authenticated_client, session, product, order_payload):
        body = order_payload('product', [{'productId': product.id, 'quantity': 1, 'price': 9.00}])

        response = authenticated_client.post('/api/orders', json=body)

        assert response.status_code == 409
        data = response.get_json()
        assert data['reason'] == 'price_mismatch'
        assert data['expectedPrice'] == 10.0
        assert data['submittedPrice'] == 9.0
        assert session.query(Order).count() == 0

    def test_second_item_failing_validation_writes_nothing(self, authenticated_client, session, product,
                                                          product_with_variants, order_payload):
        large = product_with_variants.variants[1]
        body = order_payload('product', [
            {'productId': product.id, 'quantity': 1, 'price': 10.00},
            {'productId': product_with_variants.id, 'variantId': large.id, 'quantity': 5, 'price': 55.00},
        ])

        assert authenticated_client.post('/api/orders', json=body).status_code == 400

        session.refresh(product)
        assert product.stock_quantity == 20
        assert session.query(Order).count() == 0

    def test_variant_without_stock_is_unlimited(self, authenticated_client, session, order_payload):
        jam = Product(name='Plum Jam', slug='plum-jam', category='FOOD', price=Decimal('6.00'),
                      stock_quantity=1, is_active=True)
        jam.variants = [ProductVariant(name='Big', price=Decimal('12.00'), stock_quantity=None, is_active=True)]
        session.add(jam)
        session.commit()
        big = jam.variants[0]
        body = order_payload('product', [{'productId': jam.id, 'variantId': big.id, 'quantity': 3, 'price': 12.00}])

        response = authenticated_client.post('/api/orders', json=body)

        assert response.status_code == 200
        session.refresh(jam)
        session.refresh(big)
        assert jam.stock_quantity == 1
        assert big.stock_quantity is None

    def test_stock_taken_by_earlier_line_rolls_back_everything(self, authenticated_client, session, product,
                                                               order_payload):
        body = order_payload('product', [
            {'productId': product.id, 'quantity': 15, 'price': 10.00},
            {'productId': product.id, 'quantity': 15, 'price': 10.00},
        ])

        response = authenticated_client.post('/api/orders', json=body)

        assert response.status_code == 409
        assert response.get_json()['availableQuantity'] == 5
        session.refresh(product)
        assert product.stock_quantity == 20
        assert session.query(Order).count() == 0
        assert session.query(OrderItem).count() == 0

    def test_order_number_collision_is_retried(self, authenticated_client, session, product, confirmed_booking,
                                               order_payload, monkeypatch):
        numbers = iter(['ZETEST000001', 'ZETEST000002'])
        monkeypatch.setattr(order_service, 'generate_order_number', lambda prefix='ZE': next(numbers))
        body = order_payload('product', [{'productId': product.id, 'quantity': 1, 'price': 10.00}])

        response = authenticated_client.post('/api/orders', json=body)

        assert response.status_code == 200
        assert response.get_json()['order']['orderNumber'] == 'ZETEST000002'
        assert session.query(Order).count() == 2
        session.refresh(product)
        assert product.stock_quantity == 19

    def test_product_order_deactivates_applied_promo(self, authenticated_client, session, user1, product,
                                                     fixed_promo, add_cart_item, order_payload):
        add_cart_item(user1, product, quantity=6)
        authenticated_client.post('/api/cart/promo', json={'code': 'SAVE10'})
        body = order_payload('product', [{'productId': product.id, 'quantity': 6, 'price': 10.00}])

        assert authenticated_client.post('/api/orders', json=body).status_code == 200

        assert session.query(UserPromoCode).filter_by(user_id=user1.id, is_active=True).count() == 0

    def test_bank_transfer_waits_for_payment(self, authenticated_client, product, order_payload):
        body = order_payload('product', [{'productId': product.id, 'quantity': 1, 'price': 10.00}],
                             payment_method='bank_transfer')

        data = authenticated_client.post('/api/orders', json=body).get_json()

        assert data['order']['status'] == 'pending_payment'
        assert data['payment']['kind'] == 'bank_transfer'
        assert data['payment']['reference'] == data['order']['orderNumber']
        assert data['payment']['amount'] == '$17.49 USD'

        fetched = authenticated_client.get(f"/api/orders/{data['order']['id']}").get_json()['order']
        assert fetched['paymentStatus'] == 'pending'

    def test_invalid_payload(self, authenticated_client, order_payload):
        body = order_payload('product', [])
        response = authenticated_client.post('/api/orders', json=body)

        assert response.status_code == 400
        assert response.get_json()['errors']

    def test_unknown_payment_method(self, authenticated_client, product, order_payload):
        body = order_payload('product', [{'productId': product.id, 'quantity': 1, 'price': 10.00}],
                             payment_method='bitcoin')
        assert authenticated_client.post('/api/orders', json=body).status_code == 400


class TestPropertyOrders:

    def _stay(self, property_, check_in, check_out, guests=2):
        return [{'propertyId': property_.id, 'quantity': guests, 'price': 120.00,
                 'checkIn': check_in, 'checkOut': check_out}]

    def test_book_stay(self, authenticated_client, session, user1, property_, order_payload):
        body = order_payload('property', self._stay(property_, _in(20), _in(23)), payment_method='cash')

        response = authenticated_client.post('/api/orders', json=body)

        assert response.status_code == 200
        data = response.get_json()
        assert data['order']['total'] == 264.0
        assert data['payment']['kind'] == 'cash'
        booking = session.query(Booking).filter_by(user_id=user1.id).one()
        assert booking.status == 'pending'
        assert booking.guests == 2

    def test_overlapping_stay_is_rejected(self, authenticated_client, session, property_, confirmed_booking,
                                          order_payload):
        body = order_payload('property', self._stay(property_, _in(12), _in(14)))

        response = authenticated_client.post('/api/orders', json=body)

        assert response.status_code == 400
        assert response.get_json()['message'] == 'Property is not available for the selected dates'
        assert session.query(Order).count() == 1
        assert session.query(Booking).count() == 1

    def test_back_to_back_stay_is_allowed(self, authenticated_client, property_, confirmed_booking,
                                          order_payload):
        body = order_payload('property', self._stay(property_, _in(13), _in(15)))
        assert authenticated_client.post('/api/orders', json=body).status_code == 200

    def test_check_out_must_follow_check_in(self, authenticated_client, property_, order_payload):
        body = order_payload('property', self._stay(property_, _in(5), _in(5)))

        response = authenticated_client.post('/api/orders', json=body)

        assert response.status_code == 400
        assert response.get_json()['message'] == 'Check-out date must be after check-in date'

    def test_minimum_stay_setting(self, authenticated_client, session, property_, order_payload):
        session.add(Setting(key='booking.minimumStay', value='2', data_type='number', category='booking'))
        session.commit()

        short = authenticated_client.post('/api/orders', json=order_payload(
            'property', self._stay(property_, _in(5), _in(6))))
        long = authenticated_client.post('/api/orders', json=order_payload(
            'property', self._stay(property_, _in(5), _in(7))))

        assert short.status_code == 400
        assert short.get_json()['message'] == 'Stays must be at least 2 night(s)'
        assert long.status_code == 200

    def test_too_many_guests(self, authenticated_client, property_, order_payload):
        body = order_payload('property', self._stay(property_, _in(5), _in(7), guests=5))
        assert authenticated_client.post('/api/orders', json=body).status_code == 400


class TestActivityOrders:

    def _tour(self, activity, day, participants):
        return [{'activityId': activity.id, 'quantity': participants, 'price': 25.00,
                 'participants': participants, 'activityDate': day}]

    def test_book_activity(self, authenticated_client, session, activity, order_payload):
        body = order_payload('activity', self._tour(activity, _in(3), 3))

        data = authenticated_client.post('/api/orders', json=body).get_json()

        assert data['order']['total'] == 82.5
        booking = session.query(ActivityBooking).one()
        assert booking.participants == 3

    def test_below_minimum_participants(self, authenticated_client, session, activity, order_payload):
        body = order_payload('activity', self._tour(activity, _in(3), 1))

        response = authenticated_client.post('/api/orders', json=body)

        assert response.status_code == 400
        assert response.get_json()['message'] == 'Activity requires 2-6 participants'
        assert session.query(Order).count() == 0

    def test_activity_price_must_match_catalog(self, authenticated_client, session, activity, order_payload):
        items = self._tour(activity, _in(3), 3)
        items[0]['price'] = 20.00

        response = authenticated_client.post('/api/orders', json=order_payload('activity', items))

        assert response.status_code == 409
        data = response.get_json()
        assert data['reason'] == 'price_mismatch'
        assert data['activityId'] == activity.id
        assert data['expectedPrice'] == 25.0
        assert session.query(Order).count() == 0

    def test_capacity_is_enforced(self, authenticated_client, activity, order_payload):
        day = _in(4)
        assert authenticated_client.post('/api/orders', json=order_payload(
            'activity', self._tour(activity, day, 5))).status_code == 200

        response = authenticated_client.post('/api/orders', json=order_payload(
            'activity', self._tour(activity, day, 2)))

        assert response.status_code == 400
        assert response.get_json()['remainingCapacity'] == 1


class TestOrderHistory:

    def test_list_orders_paginated(self, authenticated_client, product, order_payload):
        body = order_payload('product', [{'productId': product.id, 'quantity': 1, 'price': 10.00}])
        for _ in range(3):
            authenticated_client.post('/api/orders', json=body)

        data = authenticated_client.get('/api/orders?page=1&limit=2').get_json()

        assert len(data['orders']) == 2
        assert data['pagination']['totalCount'] == 3
        assert data['pagination']['totalPages'] == 2
        assert data['pagination']['hasNext'] is True

    def test_other_users_order_is_not_found(self, authenticated_client, confirmed_booking):
        response = authenticated_client.get(f'/api/orders/{confirmed_booking.order_id}')
        assert response.status_code == 404

    def test_filter_by_type(self, authenticated_client, product, property_, order_payload):
        authenticated_client.post('/api/orders', json=order_payload(
            'product', [{'productId': product.id, 'quantity': 1, 'price': 10.00}]))
        authenticated_client.post('/api/orders', json=order_payload(
            'property', [{'propertyId': property_.id, 'quantity': 1, 'price': 120.00,
                          'checkIn': _in(30), 'checkOut': _in(31)}]))

        data = authenticated_client.get('/api/orders?type=property').get_json()

        assert [o['type'] for o in data['orders']] == ['property']
