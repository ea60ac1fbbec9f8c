"""
Integration tests for authentication and role checks.
"""

import pytest


class TestLogin:
    """Session login flow."""

    def test_login_success(self, client, user1):
        response = client.post('/auth/login', json={'email': user1.email, 'password': 'password123'})

        assert response.status_code == 200
        assert response.get_json()['user']['id'] == user1.id
        with client.session_transaction() as sess:
            assert sess['user_id'] == user1.id

    def test_login_email_is_case_insensitive(self, client, user1):
        response = client.post('/auth/login', json={'email': user1.email.upper(), 'password': 'password123'})
        assert response.status_code == 200

    def test_login_wrong_password(self, client, user1):
        response = client.post('/auth/login', json={'email': user1.email, 'password': 'nope'})

        assert response.status_code == 401
        assert response.get_json()['message'] == 'Invalid email or password'

    def test_login_inactive_user(self, client, session, user1):
        user1.active = False
        session.commit()

        response = client.post('/auth/login', json={'email': user1.email, 'password': 'password123'})
        assert response.status_code == 401

    def test_login_missing_fields(self, client):
        response = client.post('/auth/login', json={})

        assert response.status_code == 400
        assert response.get_json()['errors']

    def test_logout(self, authenticated_client):
        authenticated_client.post('/auth/logout')

        assert authenticated_client.get('/auth/me').status_code == 401

    def test_me(self, authenticated_client, user1):
        response = authenticated_client.get('/auth/me')

        assert response.status_code == 200
        assert response.get_json()['user']['email'] == user1.email


class TestAccessControl:
    """401 for anonymous callers, 403 for the wrong role."""

    @pytest.mark.parametrize('method,url', [
        ('get', '/api/cart'),
        ('get', '/api/cart/summary'),
        ('post', '/api/cart/validate'),
        ('get', '/api/orders'),
        ('post', '/api/orders'),
    ])
    def test_customer_routes_require_login(self, client, method, url):
        response = getattr(client, method)(url)

        assert response.status_code == 401
        assert response.get_json()['status'] == 'error'

    @pytest.mark.parametrize('method,url', [
        ('get', '/api/admin/orders'),
        ('get', '/api/admin/settings'),
        ('post', '/api/admin/promo-codes'),
        ('delete', '/api/admin/settings?key=site.name'),
    ])
    def test_admin_routes_reject_guests(self, authenticated_client, method, url):
        assert getattr(authenticated_client, method)(url).status_code == 403

    def test_admin_routes_require_login(self, client):
        assert client.get('/api/admin/orders').status_code == 401

    def test_deactivated_user_session_is_dropped(self, authenticated_client, session, user1):
        user1.active = False
        session.commit()

        assert authenticated_client.get('/api/cart').status_code == 401

    def test_admin_can_access_back_office(self, admin_client):
        assert admin_client.get('/api/admin/orders').status_code == 200
