"""
Pytest fixtures for Mercado backend tests.

Provides an in-memory database, two tenants (supermarket A and B), their
users, a small catalog, a loyalty customer and auth helpers.
"""

import pytest
from mercado import create_app
from mercado.extensions import db
from mercado.models import Supermarket, User, Role, Product, Customer
from mercado.services.auth_service import hash_password
from mercado.services import shift_service

PASSWORD = "senha123"


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'GEMINI_API_KEY': None,
        'ADVISORY_TRANSPORT': None,
        'OPENING_CASH_CENTS': 20000,
        'LOYALTY_POINTS_DIVISOR': 1,
        'DEFAULT_LOW_STOCK_THRESHOLD': 10,
    })

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


@pytest.fixture(scope='session')
def password_hash(app):
    """One bcrypt hash shared by every fixture user (hashing is slow)."""
    return hash_password(PASSWORD)


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def db_session(app):
    """Create fresh database for each test."""
    with app.app_context():
        db.session.rollback()
        # Clear all data but keep schema
        meta = db.metadata
        for table in reversed(meta.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()
        db.session.expunge_all()

        yield db.session

        # Cleanup after test
        db.session.rollback()


def _make_user(db_session, supermarket, name, email, role, password_hash):
    user = User(
        supermarket_id=supermarket.id,
        name=name,
        email=email,
        password_hash=password_hash,
        role=role,
        is_active=True,
    )
    db_session.add(user)
    db_session.commit()
    return user


@pytest.fixture(scope='function')
def supermarket(db_session):
    """Supermarket A (first tenant)."""
    market = Supermarket(
        name="Mercado Central",
        address="Rua das Flores, 100",
        cnpj="12.345.678/0001-90",
        ie="123.456.789",
        phone="(11) 5555-0000",
    )
    db_session.add(market)
    db_session.commit()
    return market


@pytest.fixture(scope='function')
def other_supermarket(db_session):
    """Supermarket B (second tenant)."""
    market = Supermarket(name="Mercado Vizinho")
    db_session.add(market)
    db_session.commit()
    return market


@pytest.fixture(scope='function')
def owner(db_session, supermarket, password_hash):
    user = _make_user(db_session, supermarket, "Dona Ana", "ana@central.com", Role.OWNER, password_hash)
    supermarket.owner_id = user.id
    db_session.commit()
    return user


@pytest.fixture(scope='function')
def operator(db_session, supermarket, password_hash):
    return _make_user(db_session, supermarket, "Caixa Bruno", "bruno@central.com", Role.OPERATOR, password_hash)


@pytest.fixture(scope='function')
def other_owner(db_session, other_supermarket, password_hash):
    user = _make_user(db_session, other_supermarket, "Dono Carlos", "carlos@vizinho.com", Role.OWNER, password_hash)
    other_supermarket.owner_id = user.id
    db_session.commit()
    return user


@pytest.fixture(scope='function')
def other_operator(db_session, other_supermarket, password_hash):
    return _make_user(db_session, other_supermarket, "Caixa Davi", "davi@vizinho.com", Role.OPERATOR, password_hash)


@pytest.fixture(scope='function')
def products(db_session, supermarket):
    """Arroz (barcode), Feijao (low stock) and Leite in supermarket A."""
    items = [
        Product(supermarket_id=supermarket.id, name="Arroz 5kg", price_cents=2599, stock=50,
                low_stock_threshold=10, barcode="7891000000001"),
        Product(supermarket_id=supermarket.id, name="Feijao 1kg", price_cents=899, stock=5,
                low_stock_threshold=10),
        Product(supermarket_id=supermarket.id, name="Leite 1L", price_cents=499, stock=30,
                low_stock_threshold=10),
    ]
    db_session.add_all(items)
    db_session.commit()
    return items


@pytest.fixture(scope='function')
def other_product(db_session, other_supermarket):
    """Product in supermarket B."""
    product = Product(supermarket_id=other_supermarket.id, name="Cafe 500g", price_cents=1599, stock=20,
                      low_stock_threshold=10)
    db_session.add(product)
    db_session.commit()
    return product


@pytest.fixture(scope='function')
def customer(db_session, supermarket):
    c = Customer(supermarket_id=supermarket.id, name="Maria Souza", national_id="12345678900", points=0)
    db_session.add(c)
    db_session.commit()
    return c


@pytest.fixture(scope='function')
def open_shift(db_session, supermarket, operator):
    """OPEN shift for the operator seeded with R$ 200,00."""
    return shift_service.open_shift(supermarket.id, operator.id, 20000)


def get_auth_token(client, email: str, password: str = PASSWORD) -> str:
    """Helper to get auth token for a user."""
    response = client.post('/api/auth/login', json={
        'email': email,
        'password': password
    })
    if response.status_code == 200:
        return response.json.get('token')
    return None


def auth_headers(token: str) -> dict:
    """Helper to create Authorization headers."""
    return {'Authorization': f'Bearer {token}'}


@pytest.fixture(scope='function')
def owner_headers(client, owner):
    return auth_headers(get_auth_token(client, owner.email))


@pytest.fixture(scope='function')
def operator_headers(client, operator):
    """Logging the operator in opens their shift."""
    return auth_headers(get_auth_token(client, operator.email))
