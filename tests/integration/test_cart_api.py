"""
Integration tests for the cart endpoints.
"""

from estate.models import CartItem


class TestCartLines:

    def test_add_item(self, authenticated_client, session, user1, product):
        response = authenticated_client.post('/api/cart', json={'productId': product.id, 'quantity': 2})

        assert response.status_code == 201
        item = response.get_json()['item']
        assert item['productId'] == product.id
        assert item['quantity'] == 2
        assert item['price'] == 10.0
        assert item['lineTotal'] == 20.0

    def test_adding_same_product_merges_lines(self, authenticated_client, session, user1, product):
        authenticated_client.post('/api/cart', json={'productId': product.id, 'quantity': 2})
        authenticated_client.post('/api/cart', json={'productId': product.id, 'quantity': 3})

        lines = session.query(CartItem).filter_by(user_id=user1.id).all()
        assert len(lines) == 1
        assert lines[0].quantity == 5

    def test_variants_are_separate_lines(self, authenticated_client, session, user1, product_with_variants):
        small, large = product_with_variants.variants
        authenticated_client.post('/api/cart', json={'productId': product_with_variants.id, 'variantId': small.id})
        authenticated_client.post('/api/cart', json={'productId': product_with_variants.id, 'variantId': large.id})

        cart = authenticated_client.get('/api/cart').get_json()
        assert cart['itemCount'] == 2
        assert sorted(i['price'] for i in cart['items']) == [18.0, 55.0]

    def test_add_more_than_stock(self, authenticated_client, product_with_variants):
        large = product_with_variants.variants[1]
        response = authenticated_client.post(
            '/api/cart', json={'productId': product_with_variants.id, 'variantId': large.id, 'quantity': 3})

        assert response.status_code == 400
        data = response.get_json()
        assert data['requestedQuantity'] == 3
        assert data['availableQuantity'] == 2

    def test_add_inactive_product(self, authenticated_client, session, product):
        product.is_active = False
        session.commit()

        response = authenticated_client.post('/api/cart', json={'productId': product.id})
        assert response.status_code == 404

    def test_add_quantity_above_line_limit(self, authenticated_client, product):
        response = authenticated_client.post('/api/cart', json={'productId': product.id, 'quantity': 11})
        assert response.status_code == 400

    def test_update_item(self, authenticated_client, user1, product, add_cart_item):
        item = add_cart_item(user1, product, quantity=1)

        response = authenticated_client.put('/api/cart', json={'itemId': item.id, 'quantity': 4})

        assert response.status_code == 200
        assert response.get_json()['item']['quantity'] == 4

    def test_cannot_touch_other_users_line(self, authenticated_client, user2, product, add_cart_item):
        item = add_cart_item(user2, product)

        assert authenticated_client.put('/api/cart', json={'itemId': item.id, 'quantity': 2}).status_code == 404
        assert authenticated_client.delete('/api/cart', json={'itemId': item.id}).status_code == 404

    def test_delete_item(self, authenticated_client, session, user1, product, add_cart_item):
        item = add_cart_item(user1, product)

        response = authenticated_client.delete('/api/cart', json={'itemId': item.id})

        assert response.status_code == 200
        assert session.query(CartItem).filter_by(user_id=user1.id).count() == 0


class TestCartSummaryApi:

    def test_summary_without_promo(self, authenticated_client, user1, product, add_cart_item):
        add_cart_item(user1, product, quantity=4)

        summary = authenticated_client.get('/api/cart/summary').get_json()

        assert summary['subtotal'] == 40.0
        assert summary['shipping'] == 5.99
        assert summary['tax'] == 6.0
        assert summary['total'] == 51.99
        assert summary['appliedPromo'] is None

    def test_summary_ignores_inactive_lines(self, authenticated_client, session, user1, product,
                                            product_with_variants, add_cart_item):
        add_cart_item(user1, product, quantity=1)
        add_cart_item(user1, product_with_variants, quantity=1, variant=product_with_variants.variants[0])
        product_with_variants.variants[0].is_active = False
        session.commit()

        summary = authenticated_client.get('/api/cart/summary').get_json()

        assert summary['subtotal'] == 10.0
        assert summary['itemCount'] == 1
