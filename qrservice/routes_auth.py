import logging
import re
from flask import Blueprint, jsonify, request, g
from sqlalchemy import or_, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from werkzeug.security import check_password_hash, generate_password_hash

from .errors import AuthenticationError, DependencyError, NotFoundError, ValidationError
from .models import db, User
from .services.identity import session_required
from .services.rate_limit import throttle_auth
from .services.tokens import sign_session_jwt

logger = logging.getLogger(__name__)

bp = Blueprint('auth', __name__)

_EMAIL = re.compile(r'^[^@\s]+@[^@\s]+\.[^@\s]+$')


def _field(data, name, max_len):
    value = data.get(name)
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f'{name} is required')
    value = value.strip()
    if len(value) > max_len:
        raise ValidationError(f'{name} must be at most {max_len} characters')
    return value


@bp.post('/register')
def register():
    throttle_auth()
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        data = {}
    username = _field(data, 'username', 64)
    email = _field(data, 'email', 255).lower()
    password = data.get('password')
    if not _EMAIL.match(email):
        raise ValidationError('email is invalid')
    if not isinstance(password, str) or len(password) < 8:
        raise ValidationError('password must be at least 8 characters')

    exists = db.session.scalars(
        select(User).where(or_(User.email == email, User.username == username))
    ).first()
    if exists:
        raise ValidationError('User already exists')

    user = User(username=username, email=email, password_hash=generate_password_hash(password))
    db.session.add(user)
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise ValidationError('User already exists')
    except SQLAlchemyError as e:
        db.session.rollback()
        raise DependencyError('Store write failed') from e
    logger.info('Registered user %s', user.id)
    return jsonify({'message': 'User created successfully', 'user': user.to_dict()}), 201


@bp.post('/login')
def login():
    throttle_auth()
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        data = {}
    email = str(data.get('email') or '').strip().lower()
    password = data.get('password')
    user = db.session.scalars(select(User).where(User.email == email)).first() if email else None
    if user is None or not isinstance(password, str) or not check_password_hash(user.password_hash, password):
        raise AuthenticationError('Invalid credentials')
    token = sign_session_jwt(user.id, user.role)
    return jsonify({'token': token, 'user': user.to_dict()})


@bp.post('/logout')
@session_required
def logout():
    # Tokens are stateless; the client drops its copy
    return jsonify({'message': 'Logged out successfully'})


@bp.get('/profile')
@session_required
def profile():
    user = db.session.get(User, g.caller.subject_id)
    if user is None:
        raise NotFoundError('User not found')
    return jsonify({'user': user.to_dict()})
