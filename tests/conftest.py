"""
Pytest configuration and fixtures.

Every test gets a fresh app on an in-memory SQLite database and an in-process
throttle store, so nothing leaks between tests.
"""
from datetime import timedelta

import pytest
from werkzeug.security import generate_password_hash

from qrservice import create_app
from qrservice.models import db, ApiKey, QrCode, User, utcnow
from qrservice.services import qr, rate_limit
from qrservice.services.tokens import generate_api_key, sign_session_jwt

TEST_CONFIG = {
    'TESTING': True,
    'SQLALCHEMY_DATABASE_URI': 'sqlite://',
    'SECRET_KEY': 'test-secret-key-that-is-long-enough-for-hs256',
    'JWT_ALG': 'HS256',
    'USE_REDIS': False,
    'BASE_URL': 'http://qr.test',
    'AUTH_RATE_LIMIT': 1000,
    'APIKEY_RATE_LIMIT': 1000,
}


@pytest.fixture
def make_app():
    def _make(**overrides):
        return create_app({**TEST_CONFIG, **overrides})
    return _make


@pytest.fixture
def app(make_app):
    return make_app()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture(autouse=True)
def memory_throttle():
    rate_limit._set(rate_limit._MemStore())
    yield
    rate_limit._set(None)


@pytest.fixture
def encoded(monkeypatch):
    """Replace PNG rendering with a recorder; returns the list of encoded contents."""
    calls = []

    def fake_make_qr_bytes(content, style=None):
        calls.append(content)
        return b'\x89PNG-fake'

    monkeypatch.setattr(qr, 'make_qr_bytes', fake_make_qr_bytes)
    return calls


def create_user(app, username='alice', email=None, password='correct-horse'):
    with app.app_context():
        user = User(
            username=username,
            email=email or f'{username}@example.com',
            password_hash=generate_password_hash(password),
        )
        db.session.add(user)
        db.session.commit()
        return user.id


def bearer_for(app, user_id, role='user'):
    with app.app_context():
        return {'Authorization': f'Bearer {sign_session_jwt(user_id, role)}'}


def create_api_key(app, user_id, **fields):
    with app.app_context():
        key = ApiKey(name=fields.pop('name', 'test'), key=generate_api_key(), user_id=user_id, **fields)
        db.session.add(key)
        db.session.commit()
        return key.key


def seed_artifacts(app, user_id, count, channel='apikey', age=timedelta(minutes=1), url_prefix='https://seed.test/'):
    """Insert ``count`` finalized artifacts created ``age`` ago."""
    with app.app_context():
        created = utcnow() - age
        for i in range(count):
            db.session.add(QrCode(
                name=f'seed {i}',
                data=f'{url_prefix}{i}',
                qr_data='data:image/png;base64,',
                user_id=user_id,
                generated_via=channel,
                status='finalized',
                size=300,
                foreground_color='#000000',
                background_color='#FFFFFF',
                error_correction_level='M',
                margin=4,
                created_at=created,
            ))
        db.session.commit()


@pytest.fixture
def user_id(app):
    return create_user(app)


@pytest.fixture
def auth_headers(app, user_id):
    return bearer_for(app, user_id)


@pytest.fixture
def api_key(app, user_id):
    return create_api_key(app, user_id)


@pytest.fixture
def key_headers(api_key):
    return {'x-api-key': api_key}
