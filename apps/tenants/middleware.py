"""
Company context middleware.

Authenticates the bearer token and attaches the caller's company context
to the request for views and permission classes.
"""
import logging
import threading
from django.http import JsonResponse
from django.utils.deprecation import MiddlewareMixin

logger = logging.getLogger(__name__)


class CompanyContextMiddleware(MiddlewareMixin):
    """
    Resolve the session behind an `Authorization: Bearer <jwt>` header.

    Sets on every request:
    - request.user: the identity account (left untouched without a token)
    - request.auth_token: the raw token, or None
    - request.actor: Actor passed into services, or None
    - request.profile: ResolvedProfile, or None
    - request.company_id: the caller's company id, or None
    - request.permissions: effective permission set

    A malformed, expired or revoked token is rejected with 401 here, except
    on paths that never take credentials.
    """

    PUBLIC_PATHS = [
        '/schema',
        '/admin/',
    ]

    def process_request(self, request):
        request.auth_token = None
        request.actor = None
        request.profile = None
        request.company_id = None
        request.permissions = frozenset()

        if self._is_public_path(request.path):
            return None

        header = request.headers.get('Authorization', '')
        if not header:
            return None

        scheme, _, token = header.partition(' ')
        if scheme.lower() != 'bearer' or not token.strip():
            return self._error_response(
                'INVALID_AUTH_HEADER',
                'Authorization header must be: Bearer <token>',
                status=401
            )

        # Import here to avoid loading models before the app registry
        from apps.rbac.services import AuthorizationResolver, IdentityProvider

        user = IdentityProvider.get_user_from_token(token.strip())
        if user is None:
            logger.info(
                "Rejected invalid or revoked token",
                extra={'request_id': getattr(request, 'request_id', None), 'path': request.path}
            )
            return self._error_response(
                'INVALID_TOKEN',
                'Invalid or expired token',
                status=401
            )

        actor = AuthorizationResolver.actor_for(user)

        request.user = user
        request.auth_token = token.strip()
        request.actor = actor
        request.profile = actor.profile
        request.company_id = actor.company_id
        request.permissions = actor.permissions

        if actor.company_id:
            threading.current_thread().company_id = str(actor.company_id)

        logger.debug(
            f"Company context set for user {user.id}",
            extra={
                'request_id': getattr(request, 'request_id', None),
                'company_id': str(actor.company_id) if actor.company_id else None,
            }
        )
        return None

    def _is_public_path(self, path):
        return any(path.startswith(public_path) for public_path in self.PUBLIC_PATHS)

    def _error_response(self, code, message, status=400, details=None):
        """Generate standardized error response."""
        error_data = {
            'error': {
                'code': code,
                'message': message,
            }
        }

        if details:
            error_data['error']['details'] = details

        return JsonResponse(error_data, status=status)
