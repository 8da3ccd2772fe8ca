"""Caller identities and the resolver that turns request credentials into them.

A request carries exactly one caller: either a ``SessionCaller`` (bearer
token) or an ``ApiKeyCaller`` (``x-api-key`` header), stored on ``g.caller``.
"""
import logging
from dataclasses import dataclass
from datetime import datetime
from functools import wraps

import jwt
from flask import g, request
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError

from ..errors import AuthenticationError, AuthorizationError, DependencyError
from ..models import db, ApiKey, User, utcnow
from .tokens import decode_session_jwt

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SessionCaller:
    subject_id: int
    role: str
    channel = 'session'
    key_id = None


@dataclass(frozen=True)
class ApiKeyCaller:
    subject_id: int
    key_id: int
    used: int
    expires_at: datetime | None
    status: str
    channel = 'apikey'


class IdentityResolver:
    def __init__(self, session=None):
        self.session = session or db.session

    def from_bearer(self, header: str | None) -> SessionCaller:
        if not header:
            raise AuthenticationError('Token missing')
        scheme, _, token = header.partition(' ')
        if scheme != 'Bearer' or not token.strip():
            raise AuthenticationError('Token missing')
        try:
            payload = decode_session_jwt(token.strip())
        except jwt.ExpiredSignatureError:
            raise AuthenticationError('Token expired')
        except jwt.PyJWTError:
            raise AuthenticationError('Invalid token')
        try:
            user_id = int(payload['sub'])
        except (TypeError, ValueError):
            raise AuthenticationError('Invalid token')
        user = self.session.get(User, user_id)
        if user is None:
            raise AuthenticationError('Invalid token')
        return SessionCaller(subject_id=user.id, role=user.role)

    def from_api_key(self, value: str | None, now: datetime | None = None) -> ApiKeyCaller:
        if not value:
            raise AuthenticationError('API key required')
        now = now or utcnow()
        key = self.session.scalars(select(ApiKey).where(ApiKey.key == value)).first()
        if key is None:
            raise AuthenticationError('Invalid API key')
        # Known but unusable keys are a 403, not a 401
        if not key.is_active:
            raise AuthorizationError('API key has been revoked')
        if key.is_expired(now):
            raise AuthorizationError('API key has expired')

        key.last_used = now
        key.usage_count = (key.usage_count or 0) + 1
        try:
            self.session.commit()
        except SQLAlchemyError as e:
            self.session.rollback()
            logger.exception('Could not record API key use for key %s', key.id)
            raise DependencyError('Store write failed') from e
        return ApiKeyCaller(
            subject_id=key.user_id,
            key_id=key.id,
            used=key.usage_count,
            expires_at=key.expires_at,
            status='active',
        )


def resolve_session_caller() -> SessionCaller:
    g.caller = IdentityResolver().from_bearer(request.headers.get('Authorization'))
    return g.caller


def resolve_api_key_caller() -> ApiKeyCaller:
    g.caller = IdentityResolver().from_api_key(request.headers.get('x-api-key'))
    return g.caller


def session_required(fn):
    @wraps(fn)
    def wrapper(*args, **kwargs):
        resolve_session_caller()
        return fn(*args, **kwargs)
    return wrapper

