"""
RBAC serializers for REST API endpoints.

Provides serialization for:
- Authentication (registration, login, re-authentication, password change)
- Company users and their profiles
- Roles
- Invites
- Audit logs

Input serializers check shape only; business rules (password strength,
protected roles, uniqueness) are enforced by the services.
"""
from rest_framework import serializers

from apps.core.permissions import PERMISSION_CHOICES
from apps.core.validators import InputValidator
from apps.rbac.models import AuditLog, CompanyUser, Invite, Role
from apps.tenants.models import Company


# ===== AUTHENTICATION SERIALIZERS =====

class RegistrationSerializer(serializers.Serializer):
    """Serializer for self-service company registration."""

    company_name = serializers.CharField(required=True, max_length=255)
    industry = serializers.ChoiceField(choices=Company.INDUSTRY_CHOICES, required=False, default='other')
    company_size = serializers.CharField(required=False, allow_blank=True, max_length=50)
    registered_email = serializers.EmailField(required=False, allow_blank=True)
    phone_number = serializers.CharField(required=False, allow_blank=True, max_length=50)
    full_name = serializers.CharField(required=True, max_length=255)
    email = serializers.EmailField(required=True)
    password = serializers.CharField(
        required=True,
        write_only=True,
        style={'input_type': 'password'}
    )

    def validate_email(self, value):
        if not InputValidator.validate_email(value):
            raise serializers.ValidationError("Please enter a valid email address.")
        return InputValidator.normalize_email(value)

    def validate_company_name(self, value):
        if not value.strip():
            raise serializers.ValidationError("Company name cannot be empty.")
        return value.strip()

    def company_info(self):
        data = self.validated_data
        return {
            'name': data['company_name'],
            'industry': data.get('industry'),
            'company_size': data.get('company_size', ''),
            'registered_email': data.get('registered_email', ''),
            'phone_number': data.get('phone_number', ''),
        }

    def first_admin(self):
        data = self.validated_data
        return {
            'email': data['email'],
            'password': data['password'],
            'full_name': data['full_name'],
            'phone_number': data.get('phone_number', ''),
        }


class LoginSerializer(serializers.Serializer):
    """Serializer for user login."""

    email = serializers.EmailField(required=True)
    password = serializers.CharField(
        required=True,
        write_only=True,
        style={'input_type': 'password'}
    )

    def validate_email(self, value):
        return InputValidator.normalize_email(value)


class ReauthenticateSerializer(serializers.Serializer):
    password = serializers.CharField(
        required=True,
        write_only=True,
        style={'input_type': 'password'}
    )


class ChangePasswordSerializer(serializers.Serializer):
    """Serializer for changing the signed-in user's password."""

    current_password = serializers.CharField(
        required=True,
        write_only=True,
        style={'input_type': 'password'}
    )
    new_password = serializers.CharField(
        required=True,
        write_only=True,
        style={'input_type': 'password'}
    )

    def validate(self, attrs):
        if attrs['current_password'] == attrs['new_password']:
            raise serializers.ValidationError(
                {'new_password': "New password must differ from the current password."}
            )
        return attrs


class ProfileUpdateSerializer(serializers.Serializer):
    full_name = serializers.CharField(required=False, max_length=255)
    phone_number = serializers.CharField(required=False, allow_blank=True, max_length=50)


# ===== COMPANY USER SERIALIZERS =====

class CompanyUserSerializer(serializers.ModelSerializer):
    """Serializer for a company user's profile."""

    id = serializers.UUIDField(source='user_id', read_only=True)
    company_id = serializers.UUIDField(read_only=True)
    permissions = serializers.SerializerMethodField()

    class Meta:
        model = CompanyUser
        fields = [
            'id', 'company_id', 'full_name', 'email', 'role_name',
            'permissions', 'is_active', 'phone_number', 'dashboard_urls',
            'created_at', 'updated_at',
        ]
        read_only_fields = fields

    def get_permissions(self, obj):
        # Set by UserService.list_users; absent on freshly created profiles
        return list(getattr(obj, 'permissions', []))


class AddUserSerializer(serializers.Serializer):
    """Serializer for provisioning a user directly into a company."""

    full_name = serializers.CharField(required=True, max_length=255)
    email = serializers.EmailField(required=True)
    password = serializers.CharField(
        required=True,
        write_only=True,
        style={'input_type': 'password'}
    )
    role_name = serializers.CharField(required=True, max_length=100)
    phone_number = serializers.CharField(required=False, allow_blank=True, max_length=50)
    dashboard_urls = serializers.ListField(
        child=serializers.CharField(max_length=2048),
        required=False,
        default=list
    )

    def validate_email(self, value):
        return InputValidator.normalize_email(value)


class ChangeRoleSerializer(serializers.Serializer):
    role_name = serializers.CharField(required=True, max_length=100)


# ===== ROLE SERIALIZERS =====

class RoleSerializer(serializers.ModelSerializer):
    """Serializer for a company role."""

    company_id = serializers.UUIDField(read_only=True)

    class Meta:
        model = Role
        fields = ['id', 'company_id', 'name', 'permissions', 'is_system', 'created_at', 'updated_at']
        read_only_fields = fields


class RoleCreateSerializer(serializers.Serializer):
    """Serializer for creating a role."""

    name = serializers.CharField(required=True, max_length=100)
    permissions = serializers.ListField(
        child=serializers.ChoiceField(choices=PERMISSION_CHOICES),
        required=False,
        default=list
    )

    def validate_name(self, value):
        if not value.strip():
            raise serializers.ValidationError("Role name cannot be empty.")
        return value.strip()


class RoleUpdateSerializer(serializers.Serializer):
    permissions = serializers.ListField(
        child=serializers.ChoiceField(choices=PERMISSION_CHOICES),
        required=True,
        allow_empty=True
    )


# ===== INVITE SERIALIZERS =====

class InviteSerializer(serializers.ModelSerializer):
    """Serializer for an invite as seen by company administrators."""

    company_id = serializers.UUIDField(read_only=True)
    company_name = serializers.CharField(source='company.name', read_only=True)
    invited_by_id = serializers.UUIDField(read_only=True)
    accepted_by_id = serializers.UUIDField(read_only=True)

    class Meta:
        model = Invite
        fields = [
            'id', 'company_id', 'company_name', 'email', 'full_name', 'role_name',
            'status', 'invited_by_id', 'accepted_by_id', 'accepted_at', 'created_at',
        ]
        read_only_fields = fields


class InviteDetailSerializer(serializers.ModelSerializer):
    """Public view of an invite, shown on the acceptance page."""

    company_name = serializers.CharField(source='company.name', read_only=True)

    class Meta:
        model = Invite
        fields = ['id', 'company_name', 'email', 'full_name', 'role_name', 'status']
        read_only_fields = fields


class InviteCreateSerializer(serializers.Serializer):
    email = serializers.EmailField(required=True)
    full_name = serializers.CharField(required=True, max_length=255)
    role_name = serializers.CharField(required=True, max_length=100)

    def validate_email(self, value):
        return InputValidator.normalize_email(value)


class InviteAcceptSerializer(serializers.Serializer):
    """Serializer for redeeming an invite."""

    password = serializers.CharField(
        required=True,
        write_only=True,
        style={'input_type': 'password'}
    )
    full_name = serializers.CharField(required=False, allow_blank=True, max_length=255)


# ===== AUDIT LOG SERIALIZERS =====

class AuditLogSerializer(serializers.ModelSerializer):
    """Serializer for audit log entries."""

    company_id = serializers.UUIDField(read_only=True)
    actor_id = serializers.UUIDField(read_only=True)

    class Meta:
        model = AuditLog
        fields = [
            'id', 'company_id', 'actor_id', 'actor_name', 'actor_email',
            'action', 'message', 'target_type', 'target_id', 'metadata',
            'ip_address', 'request_id', 'created_at',
        ]
        read_only_fields = fields
