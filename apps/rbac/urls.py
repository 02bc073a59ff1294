"""
RBAC API URLs.

Provides endpoints for:
- Company user management
- Role management
- Invites
- Audit log viewing
"""
from django.urls import path
from apps.rbac.views import (
    UserListView,
    UserRoleView,
    UserDetailView,
    RoleListView,
    RoleDetailView,
    InviteListView,
    InviteDetailView,
    InviteAcceptView,
    AuditLogListView,
)

app_name = 'rbac'

urlpatterns = [
    # User endpoints
    path('users', UserListView.as_view(), name='user-list'),
    path('users/<uuid:user_id>', UserDetailView.as_view(), name='user-detail'),
    path('users/<uuid:user_id>/role', UserRoleView.as_view(), name='user-role'),

    # Role endpoints
    path('roles', RoleListView.as_view(), name='role-list'),
    path('roles/<str:role_name>', RoleDetailView.as_view(), name='role-detail'),

    # Invite endpoints
    path('invites', InviteListView.as_view(), name='invite-list'),
    path('invites/<uuid:company_id>/<uuid:invite_id>', InviteDetailView.as_view(), name='invite-detail'),
    path('invites/<uuid:company_id>/<uuid:invite_id>/accept', InviteAcceptView.as_view(), name='invite-accept'),

    # Audit log endpoint
    path('audit-logs', AuditLogListView.as_view(), name='audit-log-list'),
]
