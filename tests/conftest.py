import pytest
from datetime import date, timedelta
from decimal import Decimal
import uuid

from estate import create_app
from estate.database import Base, create_all, get_session
from estate.models import (
    AppUser, Product, ProductVariant, Property, Activity, CartItem, PromoCode,
    Booking, Order, UserRole
)


@pytest.fixture(scope='session')
def app():
    """Create application instance for testing (in-memory SQLite)."""
    app = create_app('config.TestingConfig')
    with app.app_context():
        create_all()
    return app


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def session(app):
    """
    Database session shared with the request handlers.

    An app context stays pushed for the whole test so the scoped session is
    not removed between requests. Every table is emptied afterwards.
    """
    ctx = app.app_context()
    ctx.push()
    session = get_session()
    yield session
    session.rollback()
    for table in reversed(Base.metadata.sorted_tables):
        session.execute(table.delete())
    session.commit()
    session.remove()
    app.extensions['settings_cache'].invalidate()
    ctx.pop()


def _make_user(session, role=UserRole.GUEST.value, name='Test Guest'):
    suffix = str(uuid.uuid4())[:8]
    user = AppUser(email=f'user-{suffix}@test.com', name=name, role=role, active=True)
    user.set_password('password123')
    session.add(user)
    session.commit()
    return user


@pytest.fixture(scope='function')
def user1(session):
    """Create a guest user."""
    return _make_user(session, name='User One')


@pytest.fixture(scope='function')
def user2(session):
    """Create a second guest user."""
    return _make_user(session, name='User Two')


@pytest.fixture(scope='function')
def admin_user(session):
    """Create a back-office admin."""
    return _make_user(session, role=UserRole.ADMIN.value, name='Admin')


@pytest.fixture(scope='function')
def product(session):
    """Active product priced 10.00 with 20 units in stock."""
    product = Product(name='Estate Honey', slug='estate-honey', category='FOOD',
                      price=Decimal('10.00'), stock_quantity=20, is_active=True)
    session.add(product)
    session.commit()
    return product


@pytest.fixture(scope='function')
def product_with_variants(session):
    """Product with unlimited product stock and two variants with their own stock."""
    product = Product(name='Highland Coffee', slug='highland-coffee', category='FOOD',
                      price=Decimal('18.00'), stock_quantity=None, is_active=True)
    product.variants = [
        ProductVariant(name='250g', price=Decimal('18.00'), stock_quantity=5, is_active=True),
        ProductVariant(name='1kg', price=Decimal('55.00'), stock_quantity=2, is_active=True),
    ]
    session.add(product)
    session.commit()
    return product


@pytest.fixture(scope='function')
def property_(session):
    """Bookable property."""
    prop = Property(name='Forest Cottage', slug='forest-cottage', base_price=Decimal('120.00'),
                    max_guests=4, is_active=True)
    session.add(prop)
    session.commit()
    return prop


@pytest.fixture(scope='function')
def activity(session):
    """Activity for 2 to 6 participants."""
    activity = Activity(name='Coffee Farm Tour', slug='coffee-farm-tour', price=Decimal('25.00'),
                        min_participants=2, max_participants=6, is_active=True)
    session.add(activity)
    session.commit()
    return activity


@pytest.fixture(scope='function')
def fixed_promo(session):
    """$10 fixed promo without minimum."""
    promo = PromoCode(code='SAVE10', discount_type='fixed', discount_value=Decimal('10.00'), is_active=True)
    session.add(promo)
    session.commit()
    return promo


@pytest.fixture(scope='function')
def percent_promo(session):
    """20% promo capped at $15 with a $30 minimum."""
    promo = PromoCode(code='TWENTY', discount_type='percentage', discount_value=Decimal('20'),
                      minimum_amount=Decimal('30.00'), maximum_discount=Decimal('15.00'), is_active=True)
    session.add(promo)
    session.commit()
    return promo


@pytest.fixture(scope='function')
def add_cart_item(session):
    """Factory: put a line in a user's cart."""
    def _add(user, product, quantity=1, variant=None):
        item = CartItem(user_id=user.id, product_id=product.id,
                        variant_id=variant.id if variant else None, quantity=quantity)
        session.add(item)
        session.commit()
        return item
    return _add


@pytest.fixture(scope='function')
def confirmed_booking(session, user2, property_):
    """Confirmed stay at the property, 10 to 13 days from today."""
    order = Order(order_number='ZETEST000001', user_id=user2.id, type='property', status='confirmed',
                  subtotal=Decimal('240.00'), tax=Decimal('24.00'), shipping=Decimal('0'),
                  total=Decimal('264.00'), payment_method='card', payment_status='completed')
    session.add(order)
    session.flush()
    booking = Booking(order_id=order.id, user_id=user2.id, property_id=property_.id,
                      check_in=date.today() + timedelta(days=10),
                      check_out=date.today() + timedelta(days=13),
                      guests=2, total_amount=Decimal('240.00'), status='confirmed',
                      payment_method='card', payment_status='completed')
    session.add(booking)
    session.commit()
    return booking


@pytest.fixture(scope='function')
def authenticated_client(client, user1):
    """Client logged in as user1."""
    with client.session_transaction() as sess:
        sess['user_id'] = user1.id
    return client


@pytest.fixture(scope='function')
def admin_client(client, admin_user):
    """Client logged in as an admin."""
    with client.session_transaction() as sess:
        sess['user_id'] = admin_user.id
    return client


@pytest.fixture(scope='function')
def address():
    return {
        'firstName': 'Tendai',
        'lastName': 'Moyo',
        'email': 'tendai@example.com',
        'phone': '+263771000000',
        'address': '1 Estate Road',
        'city': 'Mutare',
        'zipCode': '0000',
        'country': 'Zimbabwe',
    }
