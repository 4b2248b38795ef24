import os
import sys
import tempfile
from decimal import Decimal

# ensure backend package is on path for tests
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

_db_dir = tempfile.mkdtemp(prefix='storefront-tests-')
os.environ['DATABASE_URL'] = f"sqlite:///{os.path.join(_db_dir, 'test.db')}"
os.environ.pop('PRESSMASTER_API_KEY', None)

import pytest
from fastapi.testclient import TestClient

from app.main import app
from app.database import Base, SessionLocal, engine
from app.product_models import Product
from app.pressmaster import StubQuoteProvider


@pytest.fixture(autouse=True)
def fresh_db():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    app.state.quote_provider = StubQuoteProvider()
    yield


@pytest.fixture
def client():
    return TestClient(app)


@pytest.fixture
def signup(client):
    def _signup(email='donor@example.org', name='Dana Donor'):
        resp = client.post('/api/v1/signup', json={'name': name, 'email': email})
        assert resp.status_code == 200, resp.text
        return resp.json()
    return _signup


@pytest.fixture
def user(signup):
    return signup()


@pytest.fixture
def auth_headers(user):
    return {'Authorization': f"Bearer {user['api_token']}"}


@pytest.fixture
def products():
    db = SessionLocal()
    try:
        items = [
            Product(name='Custom Print T-Shirt', price=Decimal('29.99'), category='Apparel', donation_amount=Decimal('5')),
            Product(name='Branded Mug Set', price=Decimal('24.99'), category='Drinkware', donation_amount=Decimal('3')),
        ]
        db.add_all(items)
        db.commit()
        return [p.id for p in items]
    finally:
        db.close()


@pytest.fixture
def db_session():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
