from flask import Blueprint, request, redirect
from .services.scan import ScanTracker
from .services.store import get_store

bp = Blueprint('public', __name__)


@bp.get('/scan/<artifact_id>')
def scan(artifact_id):
    meta = {
        'userAgent': request.headers.get('User-Agent'),
        'ipAddress': request.remote_addr,
        'referrer': request.headers.get('Referer'),
    }
    target = ScanTracker(get_store()).track_and_redirect(artifact_id, meta)
    return redirect(target, code=302)
