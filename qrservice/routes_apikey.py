import logging
from datetime import timedelta
from flask import Blueprint, jsonify, request, g
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError

from .errors import DependencyError, NotFoundError, ValidationError
from .models import db, ApiKey, parse_row_id, utcnow
from .services.identity import session_required
from .services.rate_limit import throttle_apikey_issue
from .services.tokens import generate_api_key

logger = logging.getLogger(__name__)

bp = Blueprint('apikey', __name__)


def _commit():
    try:
        db.session.commit()
    except SQLAlchemyError as e:
        db.session.rollback()
        logger.exception('API key write failed')
        raise DependencyError('Store write failed') from e


def _owned_key(key_id) -> ApiKey:
    key_id = parse_row_id(key_id)
    if key_id is None:
        raise NotFoundError('API Key not found')
    key = db.session.scalars(
        select(ApiKey).where(ApiKey.id == key_id, ApiKey.user_id == g.caller.subject_id)
    ).first()
    if key is None:
        raise NotFoundError('API Key not found')
    return key


@bp.post('/apikey/generate')
@session_required
def issue_key():
    throttle_apikey_issue()
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        data = {}
    name = data.get('name')
    if not isinstance(name, str) or not name.strip():
        raise ValidationError('name is required')
    if len(name.strip()) > 100:
        raise ValidationError('name must be at most 100 characters')

    expires_at = None
    days = data.get('expiresInDays')
    if days is not None:
        if isinstance(days, bool) or not isinstance(days, int) or days < 1 or days > 3650:
            raise ValidationError('expiresInDays must be an integer between 1 and 3650')
        expires_at = utcnow() + timedelta(days=days)

    key = ApiKey(name=name.strip(), key=generate_api_key(), user_id=g.caller.subject_id, expires_at=expires_at)
    db.session.add(key)
    _commit()
    logger.info('Issued API key %s for user %s', key.id, key.user_id)
    # The full key is only ever shown here
    return jsonify({'message': 'API key generated successfully', 'apiKey': key.to_dict(reveal=True)}), 201


@bp.get('/apikey')
@session_required
def list_keys():
    keys = db.session.scalars(
        select(ApiKey).where(ApiKey.user_id == g.caller.subject_id).order_by(ApiKey.created_at.desc())
    ).all()
    return jsonify({'apiKeys': [k.to_dict() for k in keys]})


@bp.post('/apikey/revoke/<key_id>')
@session_required
def revoke_key(key_id):
    key = _owned_key(key_id)
    # One-way: a revoked key is never reactivated
    if key.is_active:
        key.is_active = False
        _commit()
        logger.info('Revoked API key %s', key.id)
    return jsonify({'message': 'API key revoked successfully', 'apiKey': key.to_dict()})


@bp.delete('/apikey/<key_id>')
@session_required
def delete_key(key_id):
    key = _owned_key(key_id)
    db.session.delete(key)
    _commit()
    logger.info('Deleted API key %s', key_id)
    return jsonify({'message': 'API Key deleted successfully'})
