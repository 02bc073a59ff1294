"""
Authorization policy for the admin console.

This module provides:
- The fixed permission enumeration roles draw from
- can(): the single predicate every service, view and permission class uses
- HasCompanyPermission: DRF permission class enforcing view-declared permissions
- IsPlatformOperator: DRF permission class for cross-tenant endpoints
- @requires_permissions: Decorator to declare required permissions on views
"""
import logging
from functools import wraps
from rest_framework.permissions import BasePermission

logger = logging.getLogger(__name__)


MANAGE_USERS = 'manage_users'
MANAGE_ROLES = 'manage_roles'
VIEW_DASHBOARD = 'view_dashboard'

ALL_PERMISSIONS = (MANAGE_USERS, MANAGE_ROLES, VIEW_DASHBOARD)

PERMISSION_CHOICES = [
    (MANAGE_USERS, 'Manage users'),
    (MANAGE_ROLES, 'Manage roles'),
    (VIEW_DASHBOARD, 'View dashboard'),
]

# Not a role permission: granted only by the explicit platform-operator flag
PLATFORM_ADMIN = 'platform_admin'


def can(actor, action, company_id=None):
    """
    Return True if actor may perform action.

    actor is anything exposing `permissions`, `company_id` and
    `is_platform_operator` (a resolved session actor or profile); None never
    has access. When company_id is given the actor must belong to that
    company, so a permission held in one tenant never applies to another.
    """
    if actor is None:
        return False

    if action == PLATFORM_ADMIN:
        return bool(getattr(actor, 'is_platform_operator', False))

    if company_id is not None:
        actor_company = getattr(actor, 'company_id', None)
        if actor_company is None or str(actor_company) != str(company_id):
            return False

    return action in (getattr(actor, 'permissions', None) or ())


def require_permission(actor, action, company_id=None):
    """Raise PermissionDeniedError unless can(actor, action, company_id)."""
    from apps.core.exceptions import PermissionDeniedError

    if not can(actor, action, company_id):
        raise PermissionDeniedError(
            'You do not have permission to perform this action.',
            details={'required_permission': action}
        )


class HasCompanyPermission(BasePermission):
    """
    DRF permission class that enforces permission requirements on API endpoints.

    Reads `required_permissions` from the view and checks each against the
    actor attached to the request by CompanyContextMiddleware.

    Usage in views:
        class UserListView(APIView):
            permission_classes = [HasCompanyPermission]
            required_permissions = ['manage_users']

    Or use with decorator:
        @requires_permissions('manage_users')
        class UserListView(APIView):
            ...
    """

    message = 'You do not have permission to perform this action.'

    def has_permission(self, request, view):
        required = getattr(view, 'required_permissions', None)

        actor = getattr(request, 'actor', None)
        if actor is None or getattr(actor, 'profile', None) is None:
            # Company endpoints need a company profile even with no declared permissions
            logger.warning(
                "Permission denied: request has no company profile",
                extra={
                    'view': view.__class__.__name__,
                    'path': request.path,
                    'request_id': getattr(request, 'request_id', None),
                }
            )
            return False

        if not required:
            return True

        if isinstance(required, str):
            required = {required}

        missing = {action for action in required if not can(actor, action)}

        if missing:
            from apps.core.logging import SecurityLogger

            logger.warning(
                f"Permission denied: user {actor.user_id} missing {sorted(missing)}",
                extra={
                    'company_id': str(actor.company_id),
                    'required_permissions': sorted(required),
                    'missing_permissions': sorted(missing),
                    'view': view.__class__.__name__,
                    'method': request.method,
                    'path': request.path,
                    'request_id': getattr(request, 'request_id', None),
                }
            )
            SecurityLogger.log_permission_denied(
                actor.user_id,
                actor.company_id,
                missing,
                ip_address=request.META.get('REMOTE_ADDR'),
            )
            return False

        return True


class IsPlatformOperator(BasePermission):
    """
    Allows access only to accounts flagged as platform operators.

    The flag is set out of band (see the grant_platform_operator command);
    company names and roles never confer it.
    """

    message = 'Platform operator access required.'

    def has_permission(self, request, view):
        return can(getattr(request, 'actor', None), PLATFORM_ADMIN)


def requires_permissions(*permissions):
    """
    Decorator to declare required permissions on view classes or methods.

    Usage:
        @requires_permissions('manage_users')
        class UserListView(APIView):
            permission_classes = [HasCompanyPermission]

    Or on individual methods, which DRF checks after the handler is chosen:
        class RoleListView(APIView):
            permission_classes = [HasCompanyPermission]

            @requires_permissions('manage_roles')
            def post(self, request):
                ...
    """
    def decorator(view_or_method):
        if isinstance(view_or_method, type):
            view_or_method.required_permissions = set(permissions)
            return view_or_method

        @wraps(view_or_method)
        def wrapped(self, request, *args, **kwargs):
            self.required_permissions = set(permissions)
            # Re-run the permission check now the method-level requirement is known
            self.check_permissions(request)
            return view_or_method(self, request, *args, **kwargs)

        wrapped.required_permissions = set(permissions)
        return wrapped

    return decorator
