"""
Flask CLI commands.

Commands:
- flask init-db: Create every table
- flask seed: Insert default settings and a small sample catalog
- flask create-admin: Create a back-office user
"""
import re
from decimal import Decimal

import click

from estate.database import create_all, get_session
from estate.models import Activity, AddOn, Amenity, AppUser, Product, ProductVariant, Property, UserRole
from estate.services.settings_service import seed_default_settings

EMAIL_PATTERN = r'^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$'


def seed_sample_catalog(db_session) -> int:
    """Sample products, stays and activities. Skipped when products already exist."""
    if db_session.query(Product.id).first():
        return 0

    honey = Product(name='Estate Honey', slug='estate-honey', category='FOOD',
                    price=Decimal('12.50'), stock_quantity=40)
    coffee = Product(name='Highland Coffee', slug='highland-coffee', category='FOOD',
                     price=Decimal('18.00'), stock_quantity=None, max_quantity_per_order=5)
    coffee.variants = [
        ProductVariant(name='250g', price=Decimal('18.00'), stock_quantity=25),
        ProductVariant(name='1kg', price=Decimal('55.00'), stock_quantity=8),
    ]
    wifi = Amenity(name='Wi-Fi', icon='wifi', category='Connectivity')
    fireplace = Amenity(name='Fireplace', icon='flame', category='Comfort')
    cottage = Property(name='Forest Cottage', slug='forest-cottage', base_price=Decimal('120.00'),
                       max_guests=4, description='Two-bedroom cottage by the forest edge')
    cottage.amenities = [wifi, fireplace]
    tour = Activity(name='Coffee Farm Tour', slug='coffee-farm-tour', price=Decimal('25.00'),
                    duration_hours=Decimal('2.0'), min_participants=2, max_participants=12)
    hike = Activity(name='Mountain Hike', slug='mountain-hike', price=Decimal('40.00'),
                    duration_hours=Decimal('5.0'), min_participants=1, max_participants=8)
    breakfast = AddOn(name='Breakfast Basket', price=Decimal('15.00'),
                      description='Delivered to your cottage at 8am')

    db_session.add_all([honey, coffee, cottage, tour, hike, breakfast])
    db_session.commit()
    return 6


def init_cli_commands(app):
    """Register CLI commands with Flask app."""

    @app.cli.command('init-db')
    def init_db_command():
        """Create all database tables."""
        create_all()
        click.echo(click.style('✅ Database tables created', fg='green'))

    @app.cli.command('seed')
    def seed_command():
        """Insert default settings and the sample catalog."""
        db_session = get_session()
        settings_count = seed_default_settings(db_session)
        catalog_count = seed_sample_catalog(db_session)
        click.echo(f'Settings created: {settings_count}')
        click.echo(f'Catalog entries created: {catalog_count}')

    @app.cli.command('create-admin')
    @click.option('--email', prompt=True, help='Admin email address')
    @click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True, help='Admin password')
    @click.option('--name', default=None, help='Display name')
    @click.option('--role', type=click.Choice(['ADMIN', 'MANAGER']), default='ADMIN', show_default=True)
    def create_admin(email, password, name, role):
        """Create a back-office user."""
        if not re.match(EMAIL_PATTERN, email):
            click.echo(click.style('❌ Invalid email. Use the format user@example.com', fg='red'))
            raise SystemExit(1)

        if len(password) < 8:
            click.echo(click.style('❌ Password must be at least 8 characters.', fg='red'))
            raise SystemExit(1)

        db_session = get_session()
        if db_session.query(AppUser).filter_by(email=email.lower()).first():
            click.echo(click.style(f'❌ A user with email {email} already exists', fg='red'))
            raise SystemExit(1)

        user = AppUser(email=email.lower(), name=name, role=UserRole[role].value)
        user.set_password(password)
        try:
            db_session.add(user)
            db_session.commit()
        except Exception as e:
            db_session.rollback()
            click.echo(click.style(f'❌ Could not create user: {e}', fg='red'))
            raise SystemExit(1)

        click.echo(click.style('\n✅ Admin user created', fg='green', bold=True))
        click.echo(f'   Email: {user.email}')
        click.echo(f'   ID: {user.id}')
        click.echo(f'   Role: {user.role}')
