"""
Pytest fixtures for stockroom backend tests.

Provides an in-memory database, directory fixtures (locations, company,
products, users), principals, and an authenticated test client.
"""

import pytest
from stockroom import create_app
from stockroom.extensions import db
from stockroom.models import Category, Company, Location, Product, User
from stockroom.services import session_service
from stockroom.services.session_service import Principal


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'LOG_LEVEL': 'DEBUG',
    })

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def db_session(app):
    """Empty every table before each test."""
    meta = db.metadata
    for table in reversed(meta.sorted_tables):
        db.session.execute(table.delete())
    db.session.commit()

    yield db.session

    db.session.rollback()
    db.session.remove()


@pytest.fixture(scope='function')
def hq(db_session):
    location = Location(name="HQ", is_headquarters=True)
    db_session.add(location)
    db_session.commit()
    return location


@pytest.fixture(scope='function')
def warehouse(db_session):
    location = Location(name="Warehouse")
    db_session.add(location)
    db_session.commit()
    return location


@pytest.fixture(scope='function')
def supplier(db_session):
    company = Company(name="Acme Supplies", email="orders@acme.example")
    db_session.add(company)
    db_session.commit()
    return company


@pytest.fixture(scope='function')
def category(db_session):
    cat = Category(name="General")
    db_session.add(cat)
    db_session.commit()
    return cat


def make_product(session, location, item_code, *, name=None, cost=0.0, price=0.0, stock=0, category=None):
    product = Product(
        item_code=item_code,
        name=name or item_code,
        description=f"{item_code} description",
        cost_price=cost,
        selling_price=price,
        stock=stock,
        location_id=location.id,
        category_id=category.id if category else None,
    )
    session.add(product)
    session.commit()
    return product


@pytest.fixture(scope='function')
def widget(db_session, hq, category):
    """20 units at HQ, cost 5, sells at 8."""
    return make_product(db_session, hq, "WID-001", name="Widget", cost=5.0, price=8.0, stock=20, category=category)


@pytest.fixture(scope='function')
def gadget(db_session, hq, category):
    """5 units at HQ, cost 20, sells at 30."""
    return make_product(db_session, hq, "GAD-001", name="Gadget", cost=20.0, price=30.0, stock=5, category=category)


@pytest.fixture(scope='function')
def admin_user(db_session, hq):
    user = User(name="Admin", email="admin@stockroom.test", role="admin", location_id=hq.id)
    db_session.add(user)
    db_session.commit()
    return user


@pytest.fixture(scope='function')
def plain_user(db_session, hq):
    user = User(name="Requester", email="user@stockroom.test", role="user", location_id=hq.id)
    db_session.add(user)
    db_session.commit()
    return user


@pytest.fixture(scope='function')
def admin(admin_user):
    return Principal(id=admin_user.id, role="admin")


@pytest.fixture(scope='function')
def requester(plain_user):
    return Principal(id=plain_user.id, role="user")


def auth_headers(token: str) -> dict:
    """Helper to create Authorization headers."""
    return {'Authorization': f'Bearer {token}'}


def issue_token(session, user) -> str:
    _, token = session_service.create_session(user.id)
    session.commit()
    return token


@pytest.fixture(scope='function')
def admin_headers(db_session, admin_user):
    return auth_headers(issue_token(db_session, admin_user))


@pytest.fixture(scope='function')
def user_headers(db_session, plain_user):
    return auth_headers(issue_token(db_session, plain_user))
