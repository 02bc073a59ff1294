"""
Domain exceptions and the DRF exception handler.

Repositories return None for absent records; the exceptions below cover the
remaining error kinds (authentication, permission-denied, validation,
conflict) and carry the HTTP status the API layer maps them to.
"""
import logging
from rest_framework.views import exception_handler
from rest_framework.response import Response
from rest_framework import status
from rest_framework.exceptions import APIException, ValidationError as DRFValidationError
from django_ratelimit.exceptions import Ratelimited
from django.http import JsonResponse

logger = logging.getLogger(__name__)


RETRY_AFTER_BY_PATH = (
    ('/auth/register', 3600),
    ('/contact', 3600),
    ('/invites/', 600),
    ('/auth/login', 60),
)


def _retry_after_for(path):
    """Seconds a rate-limited client should wait before retrying."""
    for fragment, seconds in RETRY_AFTER_BY_PATH:
        if path and fragment in path:
            return seconds
    return 60


def rate_limited_response(request, limit=None, response_class=Response):
    """
    Build the 429 response for a rate-limited request and log the event.

    Views decorated with ratelimit(block=False) call this when
    request.limited is set; the blocking path goes through ratelimit_view.
    """
    from apps.core.logging import SecurityLogger

    path = getattr(request, 'path', '') or ''
    ip_address = request.META.get('REMOTE_ADDR', 'unknown')
    email = None
    data = getattr(request, 'data', None)
    if isinstance(data, dict):
        email = data.get('email')

    retry_after = _retry_after_for(path)

    SecurityLogger.log_rate_limit_exceeded(
        endpoint=path,
        ip_address=ip_address,
        user_email=email,
        limit=limit or 'Rate limit exceeded'
    )

    logger.warning(
        "Rate limit exceeded",
        extra={
            'request_id': getattr(request, 'request_id', None),
            'path': path,
            'method': request.method,
            'ip': ip_address,
            'retry_after': retry_after,
        }
    )

    body = {
        'error': {
            'code': 'RATE_LIMIT_EXCEEDED',
            'message': 'Rate limit exceeded. Please try again later.',
        },
        'retry_after': retry_after,
    }
    if response_class is Response:
        response = Response(body, status=status.HTTP_429_TOO_MANY_REQUESTS)
    else:
        response = JsonResponse(body, status=429)

    # RFC 6585
    response['Retry-After'] = str(retry_after)
    return response


def ratelimit_view(request, exception):
    """
    View for django-ratelimit to return 429 instead of 403.

    Called when a rate limit is exceeded with block=True.
    """
    return rate_limited_response(request, response_class=JsonResponse)


class ConsoleException(Exception):
    """Base exception for admin console errors."""
    status_code = 500
    default_code = 'ERROR'

    def __init__(self, message, details=None, code=None):
        self.message = message
        self.details = details or {}
        self.code = code or self.default_code
        super().__init__(self.message)


class AuthenticationError(ConsoleException):
    """Raised when credentials or a session token are rejected."""
    status_code = 401
    default_code = 'AUTHENTICATION_FAILED'


class PermissionDeniedError(ConsoleException):
    """
    Raised when the actor lacks the permission an operation requires.

    Distinct from a missing record: callers must never treat this as
    "not found".
    """
    status_code = 403
    default_code = 'PERMISSION_DENIED'


class ProtectedRoleError(PermissionDeniedError):
    """Raised when an operation would grant, edit or strip the Admin role."""
    default_code = 'PROTECTED_ROLE'


class ValidationError(ConsoleException):
    """Raised when input validation fails."""
    status_code = 400
    default_code = 'VALIDATION_ERROR'


class NotFoundError(ConsoleException):
    """Raised at the API edge when a referenced record does not exist."""
    status_code = 404
    default_code = 'NOT_FOUND'


class ConflictError(ConsoleException):
    """Raised on duplicate role names, accepted invites and taken emails."""
    status_code = 409
    default_code = 'CONFLICT'


def custom_exception_handler(exc, context):
    """
    Exception handler that logs errors and returns a consistent format.
    """
    request = context.get('request')
    request_id = getattr(request, 'request_id', None) if request else None

    if isinstance(exc, Ratelimited):
        response = rate_limited_response(request)
        response.data['request_id'] = request_id
        return response

    if isinstance(exc, ConsoleException):
        log_method = logger.error if exc.status_code >= 500 else logger.info
        log_method(
            f"API Exception: {exc.__class__.__name__}",
            extra={
                'exception': exc.message,
                'code': exc.code,
                'request_id': request_id,
                'path': request.path if request else None,
                'method': request.method if request else None,
            }
        )
        error = {
            'code': exc.code,
            'message': exc.message,
        }
        if exc.details:
            error['details'] = exc.details
        return Response(
            {'error': error, 'request_id': request_id},
            status=exc.status_code
        )

    # Call DRF's default exception handler for its own exception types
    response = exception_handler(exc, context)

    logger.error(
        f"API Exception: {exc.__class__.__name__}",
        extra={
            'exception': str(exc),
            'request_id': request_id,
            'path': request.path if request else None,
            'method': request.method if request else None,
        },
        exc_info=response is None
    )

    # If DRF didn't handle it, return a generic 500 error
    if response is None:
        return Response(
            {
                'error': {
                    'code': 'INTERNAL_ERROR',
                    'message': 'An unexpected error occurred',
                },
                'request_id': request_id,
            },
            status=status.HTTP_500_INTERNAL_SERVER_ERROR
        )

    # Reshape DRF's own errors into the console's error envelope
    if isinstance(exc, DRFValidationError):
        error = {
            'code': 'VALIDATION_ERROR',
            'message': 'Validation error',
            'details': response.data,
        }
    elif isinstance(exc, APIException):
        error = {
            'code': str(exc.default_code).upper(),
            'message': str(exc.detail),
        }
    else:
        error = {
            'code': 'ERROR',
            'message': str(exc),
        }
    response.data = {'error': error, 'request_id': request_id}

    return response
