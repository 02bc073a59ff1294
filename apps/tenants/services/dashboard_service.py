"""
Embedded dashboard URL retrieval.

URLs are opaque strings handed to the client's frame; nothing here fetches
or inspects them.
"""
import logging
from typing import List, Optional

from django.conf import settings

from apps.core.exceptions import PermissionDeniedError
from apps.core.permissions import VIEW_DASHBOARD, require_permission
from apps.core.retry import call_with_retry
from apps.rbac.models import CompanyUser
from apps.rbac.services import AuthorizationResolver

logger = logging.getLogger(__name__)


class DashboardService:
    """
    Resolve the dashboard URLs a user may view.

    Whether a permission-denied result is retried is a deployment choice:
    DASHBOARD_RETRY_ON_PERMISSION_DENIED enables a fixed-backoff retry
    (DASHBOARD_RETRY_ATTEMPTS, DASHBOARD_RETRY_DELAY_SECONDS) for setups
    where a freshly changed role takes a moment to be visible. Off by
    default, so the denial surfaces immediately.
    """

    @classmethod
    def get_dashboard_urls(cls, user_id) -> Optional[List[str]]:
        """
        Returns:
            The user's own URLs, else the company's; None when the user has
            no company profile

        Raises:
            PermissionDeniedError: the user's role lacks view_dashboard
        """
        if not getattr(settings, 'DASHBOARD_RETRY_ON_PERMISSION_DENIED', False):
            return cls._load_urls(user_id)

        return call_with_retry(
            cls._load_urls, user_id,
            error_types=PermissionDeniedError,
            attempts=getattr(settings, 'DASHBOARD_RETRY_ATTEMPTS', 3),
            delay_seconds=getattr(settings, 'DASHBOARD_RETRY_DELAY_SECONDS', 1.0),
            log=logger,
        )

    @classmethod
    def _load_urls(cls, user_id) -> Optional[List[str]]:
        resolved = AuthorizationResolver.resolve(user_id)
        if resolved is None:
            return None

        require_permission(resolved, VIEW_DASHBOARD)

        profile = CompanyUser.objects.select_related('company').filter(user_id=resolved.user_id).first()
        if profile is None:
            return None
        return list(profile.dashboard_urls or profile.company.dashboard_urls or [])
