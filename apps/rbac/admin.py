"""
Django admin configuration for RBAC app.

Back-office inspection only. The platform-operator flag and token version
are read-only here; the flag changes through grant_platform_operator.
"""
from django.contrib import admin
from .models import (
    User,
    CompanyUser,
    UserCompanyLookup,
    Role,
    Invite,
    AuditLog,
)


@admin.register(User)
class UserAdmin(admin.ModelAdmin):
    """Identity accounts (email-based, no username field)."""
    list_display = ['email', 'is_active', 'is_superuser', 'is_platform_operator', 'last_login_at', 'created_at']
    list_filter = ['is_active', 'is_superuser', 'is_platform_operator', 'created_at']
    search_fields = ['email']
    ordering = ['-created_at']

    fieldsets = (
        (None, {
            'fields': ('email',)
        }),
        ('Permissions', {
            'fields': ('is_active', 'is_superuser', 'is_platform_operator')
        }),
        ('Sessions', {
            'fields': ('token_version', 'last_login_at', 'created_at', 'updated_at')
        }),
    )
    readonly_fields = ['is_platform_operator', 'token_version', 'last_login_at', 'created_at', 'updated_at']


@admin.register(CompanyUser)
class CompanyUserAdmin(admin.ModelAdmin):
    list_display = ['email', 'full_name', 'company', 'role_name', 'is_active', 'created_at']
    list_filter = ['role_name', 'is_active']
    search_fields = ['email', 'full_name', 'company__name']
    raw_id_fields = ['user', 'company']
    readonly_fields = ['created_at', 'updated_at']


@admin.register(UserCompanyLookup)
class UserCompanyLookupAdmin(admin.ModelAdmin):
    list_display = ['user', 'company', 'created_at']
    raw_id_fields = ['user', 'company']


@admin.register(Role)
class RoleAdmin(admin.ModelAdmin):
    """Admin interface for Role model."""
    list_display = ['name', 'company', 'permissions', 'is_system', 'created_at']
    list_filter = ['is_system']
    search_fields = ['name', 'company__name']
    raw_id_fields = ['company']
    readonly_fields = ['created_at', 'updated_at']


@admin.register(Invite)
class InviteAdmin(admin.ModelAdmin):
    list_display = ['email', 'company', 'role_name', 'status', 'created_at', 'accepted_at']
    list_filter = ['status']
    search_fields = ['email', 'company__name']
    raw_id_fields = ['company', 'invited_by', 'accepted_by']
    readonly_fields = ['created_at', 'updated_at', 'accepted_at']


@admin.register(AuditLog)
class AuditLogAdmin(admin.ModelAdmin):
    """Audit entries are append-only; the admin only reads them."""
    list_display = ['created_at', 'company', 'actor_email', 'action', 'message']
    list_filter = ['action', 'created_at']
    search_fields = ['actor_email', 'message', 'company__name']
    readonly_fields = [
        'company', 'actor', 'actor_name', 'actor_email', 'action', 'message',
        'target_type', 'target_id', 'metadata', 'ip_address', 'user_agent',
        'request_id', 'created_at', 'updated_at',
    ]

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False
