import logging
from flask import jsonify
from werkzeug.exceptions import HTTPException

logger = logging.getLogger(__name__)


class ServiceError(Exception):
    status_code = 500
    message = 'Internal server error'

    def __init__(self, message: str | None = None):
        super().__init__(message or self.message)
        if message:
            self.message = message

    def payload(self) -> dict:
        return {'error': self.message}


class ValidationError(ServiceError):
    status_code = 400
    message = 'Invalid request'


class AuthenticationError(ServiceError):
    status_code = 401
    message = 'Authentication required'


class AuthorizationError(ServiceError):
    status_code = 403
    message = 'Forbidden'


class NotFoundError(ServiceError):
    status_code = 404
    message = 'Not found'


class QuotaExceededError(ServiceError):
    """Admission refused for one quota window.

    ``resetTime`` is when the oldest artifact counted in that window ages
    out: creation time plus window length.
    """
    status_code = 429

    def __init__(self, scope: str, used: int, limit: int, reset_time):
        super().__init__(f'{scope.capitalize()} rate limit exceeded')
        self.scope = scope
        self.used = used
        self.limit = limit
        self.reset_time = reset_time

    def payload(self) -> dict:
        return {
            'error': self.message,
            'scope': self.scope,
            'limit': self.limit,
            'used': self.used,
            'resetTime': self.reset_time.isoformat() + 'Z',
        }


class RateLimitedError(ServiceError):
    status_code = 429
    message = 'Too many requests, please try again later.'


class DependencyError(ServiceError):
    status_code = 500
    message = 'Upstream dependency failed'


class ServiceUnavailableError(ServiceError):
    status_code = 503
    message = 'Service temporarily unavailable'


def register_error_handlers(app):
    @app.errorhandler(ServiceError)
    def handle_service_error(err: ServiceError):
        return jsonify(err.payload()), err.status_code

    @app.errorhandler(404)
    def handle_not_found(_err):
        return jsonify({'error': 'Route not found'}), 404

    @app.errorhandler(405)
    def handle_method_not_allowed(_err):
        return jsonify({'error': 'Method not allowed'}), 405

    @app.errorhandler(Exception)
    def handle_unexpected(err):
        if isinstance(err, HTTPException):
            return jsonify({'error': err.description}), err.code
        logger.exception('Unhandled error')
        return jsonify({'error': 'Internal server error'}), 500
