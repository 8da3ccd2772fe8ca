from flask import Blueprint, request, jsonify, g, current_app
from .errors import NotFoundError, ValidationError
from .models import parse_row_id, utcnow
from .services.analytics import owner_analytics
from .services.cache import ArtifactCache
from .services.identity import session_required
from .services.store import SORT_FIELDS, get_store

bp = Blueprint('library', __name__)


def _int_arg(name, default, lo, hi):
    raw = request.args.get(name)
    if raw is None or raw == '':
        return default
    try:
        value = int(raw)
    except ValueError:
        raise ValidationError(f'{name} must be an integer')
    if value < lo or value > hi:
        raise ValidationError(f'{name} must be between {lo} and {hi}')
    return value


def _artifact_id(raw):
    artifact_id = parse_row_id(raw)
    if artifact_id is None:
        raise NotFoundError('QR Code not found')
    return artifact_id


@bp.get('/qrcodes')
@session_required
def list_qrcodes():
    page = _int_arg('page', 1, 1, 1_000_000)
    limit = _int_arg('limit', 10, 1, 100)
    sort_by = request.args.get('sortBy', 'createdAt')
    if sort_by not in SORT_FIELDS:
        raise ValidationError(f"sortBy must be one of {', '.join(SORT_FIELDS)}")
    sort_order = request.args.get('sortOrder', 'desc').lower()
    if sort_order not in ('asc', 'desc'):
        raise ValidationError('sortOrder must be asc or desc')

    rows, total = get_store().list_owned(g.caller.subject_id, page, limit, sort_by, sort_order == 'desc')
    return jsonify({
        'qrCodes': [q.to_dict(include_image=False) for q in rows],
        'pagination': {
            'page': page,
            'limit': limit,
            'total': total,
            'pages': (total + limit - 1) // limit,
        },
    })


@bp.get('/qrcodes/<artifact_id>')
@session_required
def get_qrcode(artifact_id):
    store = get_store()
    artifact = store.get_owned(_artifact_id(artifact_id), g.caller.subject_id)
    if artifact is None:
        raise NotFoundError('QR Code not found')
    # A direct fetch counts as an access, same as a cache hit
    ArtifactCache(store, strict=current_app.config.get('STRICT_HIT_RECORDING', False)).record_hit(artifact, utcnow())
    return jsonify({'qrCode': artifact.to_dict()})


@bp.delete('/qrcodes/<artifact_id>')
@session_required
def delete_qrcode(artifact_id):
    if not get_store().delete_owned(_artifact_id(artifact_id), g.caller.subject_id):
        raise NotFoundError('QR Code not found')
    return jsonify({'message': 'QR Code deleted successfully'})


@bp.get('/analytics/qrcodes')
@session_required
def analytics():
    days = _int_arg('days', 30, 1, 365)
    return jsonify({'analytics': owner_analytics(g.caller.subject_id, days)})
