import time, jwt, secrets
from flask import current_app

API_KEY_PREFIX = 'sk_'


def generate_api_key() -> str:
    return API_KEY_PREFIX + secrets.token_hex(24)


def _signing_key():
    if current_app.config['JWT_ALG'].startswith('HS'):
        return current_app.config['SECRET_KEY']
    return current_app.config['JWT_PRIVATE_KEY']


def _verify_key():
    if current_app.config['JWT_ALG'].startswith('HS'):
        return current_app.config['SECRET_KEY']
    return current_app.config['JWT_PUBLIC_KEY']


# Session JWT (HS256 with SECRET_KEY, or RS256 with the key pair)
def sign_session_jwt(user_id: int, role: str, ttl: int | None = None) -> str:
    now = int(time.time())
    if ttl is None:
        ttl = current_app.config.get('JWT_TTL_SECONDS', 86400)
    payload = {
        'sub': str(user_id),
        'role': role,
        'iat': now,
        'exp': now + ttl,
    }
    return jwt.encode(payload, _signing_key(), algorithm=current_app.config['JWT_ALG'])


def decode_session_jwt(token: str) -> dict:
    """Decode and verify a session token. Raises ``jwt.PyJWTError`` subclasses."""
    alg = current_app.config.get('JWT_ALG', 'HS256')
    return jwt.decode(token, _verify_key(), algorithms=[alg], options={'require': ['sub', 'exp']})
