from flask import Blueprint, request, jsonify
from .services.generation import GenerationRequest, build_orchestrator
from .services.identity import resolve_api_key_caller, resolve_session_caller

bp = Blueprint('api', __name__)


def _respond(result):
    if result.cached:
        return jsonify(result.to_response('QR code retrieved from cache')), 200
    return jsonify(result.to_response('QR code generated successfully')), 201


def _query_request():
    return GenerationRequest(url=request.args.get('url'), name=request.args.get('name'))


def _body_request():
    return GenerationRequest.from_mapping(request.get_json(silent=True))


# Identity is resolved by the orchestrator, after input validation.

@bp.get('/qrcode')
def generate_basic():
    return _respond(build_orchestrator().generate(_query_request(), resolve_api_key_caller))


@bp.post('/qrcode/generate')
def generate_styled():
    return _respond(build_orchestrator().generate(_body_request(), resolve_api_key_caller))


@bp.post('/qrcode/generate-jwt')
def generate_styled_session():
    return _respond(build_orchestrator().generate(_body_request(), resolve_session_caller))


@bp.get('/qrcode/jwt')
def generate_basic_session():
    return _respond(build_orchestrator().generate(_query_request(), resolve_session_caller))


@bp.post('/qrcode/preview')
def preview():
    body = build_orchestrator().preview(_body_request(), resolve_session_caller)
    return jsonify({'message': 'Preview generated', 'preview': body})
