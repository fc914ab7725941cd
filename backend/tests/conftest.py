"""
Pytest fixtures for DrinkQuick backend tests.

Provides an in-memory database, per-test table cleanup, users of each role,
bearer-token headers, a drink factory and the test client. Celery tasks run
eagerly and the mailer only records messages in its outbox.
"""

import pytest

from drinkquick import create_app
from drinkquick.enums import Role
from drinkquick.extensions import db
from drinkquick.models import Drink, User
from drinkquick.services import session_service
from drinkquick.services.auth_service import hash_password
from drinkquick.services.mail_service import get_mailer


PASSWORD = "Password123!"


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'MAIL_SUPPRESS_SEND': True,
        'SENDGRID_API_KEY': '',
        'DEFAULT_TIMEZONE': 'UTC',
        'CELERY': {
            'broker_url': 'memory://',
            'result_backend': 'cache+memory://',
            'task_ignore_result': True,
            'task_always_eager': True,
        },
    })

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


@pytest.fixture(scope='session')
def password_hash():
    """bcrypt is slow on purpose; hash the shared test password once."""
    return hash_password(PASSWORD)


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function', autouse=True)
def db_session(app):
    """Create fresh database for each test."""
    for table in reversed(db.metadata.sorted_tables):
        db.session.execute(table.delete())
    db.session.commit()
    get_mailer().outbox.clear()

    yield db.session

    db.session.rollback()


@pytest.fixture(scope='function')
def outbox(app):
    return get_mailer().outbox


@pytest.fixture(scope='function')
def make_user(db_session, password_hash):
    def _make(username: str, role: str = Role.STAFF.value, **extra) -> User:
        user = User(
            username=username,
            email=f"{username}@example.com",
            password_hash=password_hash,
            role=role,
            **extra,
        )
        db_session.add(user)
        db_session.commit()
        return user
    return _make


@pytest.fixture(scope='function')
def staff(make_user):
    return make_user("staff_a")


@pytest.fixture(scope='function')
def other_staff(make_user):
    return make_user("staff_b")


@pytest.fixture(scope='function')
def admin(make_user):
    return make_user("admin_a", Role.ADMIN.value)


@pytest.fixture(scope='function')
def staff_headers(staff):
    return auth_headers(staff)


@pytest.fixture(scope='function')
def other_headers(other_staff):
    return auth_headers(other_staff)


@pytest.fixture(scope='function')
def admin_headers(admin):
    return auth_headers(admin)


@pytest.fixture(scope='function')
def make_drink(db_session):
    def _make(owner: User, name: str = "Lager", price: int = 800, category: str = "Beer", **extra) -> Drink:
        drink = Drink(owner_id=owner.id, name=name, price=price, category=category, **extra)
        db_session.add(drink)
        db_session.commit()
        return drink
    return _make


@pytest.fixture(scope='function')
def lager(staff, make_drink):
    return make_drink(staff, "Lager", 800, "Beer")


@pytest.fixture(scope='function')
def merlot(staff, make_drink):
    return make_drink(staff, "Merlot", 3000, "Wine")


def auth_headers(user: User) -> dict:
    """Helper to create Authorization headers for a fresh session."""
    _, token = session_service.create_session(user)
    return {'Authorization': f'Bearer {token}'}


def order_payload(*lines, amount_paid: int, **extra) -> dict:
    """Build a POST /api/orders body from (drink, quantity) pairs."""
    payload = {
        "items": [{"drink": drink.id, "quantity": quantity} for drink, quantity in lines],
        "amountPaid": amount_paid,
    }
    payload.update(extra)
    return payload
