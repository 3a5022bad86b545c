"""
geserver - Custom Exceptions and Exception Handlers
"""
import structlog
from flask import jsonify
from werkzeug.exceptions import HTTPException

logger = structlog.get_logger('exceptions')


class GeServerException(Exception):
    """Base exception for geserver"""
    status_code = 400

    def __init__(self, message: str, code: str = "GESERVER_ERROR"):
        self.message = message
        self.code = code
        super().__init__(message)

    def to_dict(self):
        return {
            'success': False,
            'code': self.code,
            'message': self.message
        }


class StoreWriteError(GeServerException):
    """Persisting the store to disk failed"""
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message, code="STORE_WRITE_ERROR")
        logger.error(f"Store write error: {message}")


class UpstreamException(GeServerException):
    """itch.io request failed"""
    status_code = 502

    def __init__(self, message: str):
        super().__init__(message, code="UPSTREAM_ERROR")
        logger.error(f"Upstream error: {message}")


class ValidationException(GeServerException):
    """Validation-related exceptions"""
    status_code = 400

    def __init__(self, message: str):
        super().__init__(message, code="VALIDATION_ERROR")
        logger.warning(f"Validation error: {message}")


class NotFoundException(GeServerException):
    """Unknown title, announcement or account"""
    status_code = 404

    def __init__(self, message: str):
        super().__init__(message, code="NOT_FOUND")


class ConflictException(GeServerException):
    status_code = 409

    def __init__(self, message: str):
        super().__init__(message, code="CONFLICT")


class AuthenticationException(GeServerException):
    """Authentication-related exceptions"""
    status_code = 401

    def __init__(self, message: str = "Authentication required"):
        super().__init__(message, code="UNAUTHORIZED")
        logger.warning(f"Authentication error: {message}")


class AuthorizationException(GeServerException):
    """Authorization-related exceptions"""
    status_code = 403

    def __init__(self, message: str = "Access denied"):
        super().__init__(message, code="FORBIDDEN")
        logger.warning(f"Authorization error: {message}")


def register_exception_handlers(app):
    """Register exception handlers with Flask app"""

    @app.errorhandler(HTTPException)
    def handle_http_exception(e):
        """Handle HTTP exceptions"""
        return jsonify({
            'success': False,
            'code': e.name.upper().replace(' ', '_'),
            'message': e.description
        }), e.code

    @app.errorhandler(GeServerException)
    def handle_geserver_exception(e):
        """Handle geserver exceptions, status comes from the subclass"""
        return jsonify(e.to_dict()), e.status_code

    @app.errorhandler(Exception)
    def handle_generic_exception(e):
        """Handle all other exceptions"""
        logger.error(f"Unhandled exception: {e}", exc_info=True)
        return jsonify({
            'success': False,
            'code': 'INTERNAL_ERROR',
            'message': 'An unexpected error occurred'
        }), 500
