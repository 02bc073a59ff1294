"""
RBAC models for company-scoped access control.

Implements:
- User: identity account (email, password hash, session token version)
- CompanyUser: company-scoped profile sharing its id with the identity account
- UserCompanyLookup: identity id -> company index
- Role: per-company named permission bundle
- Invite: pending binding of an email and role to a company
- AuditLog: append-only per-company record of administrative actions
"""
import logging
from django.db import models, transaction
from django.db.models.functions import Lower
from django.contrib.auth.hashers import make_password, check_password
from django.utils import timezone
from apps.core.models import BaseModel
from apps.core.permissions import ALL_PERMISSIONS, VIEW_DASHBOARD
from apps.core.validators import InputValidator

logger = logging.getLogger(__name__)


ADMIN_ROLE = 'Admin'

# Seeded into every company at creation
DEFAULT_ROLES = {
    ADMIN_ROLE: list(ALL_PERMISSIONS),
    'Analyst': [VIEW_DASHBOARD],
    'Viewer': [VIEW_DASHBOARD],
}


def default_permission_list():
    return []


class UserManager(models.Manager):
    """
    Manager for identity accounts.

    Compatible with Django's authentication system and admin interface.
    """

    def active(self):
        """Return only active users."""
        return self.filter(is_active=True)

    def by_email(self, email):
        """Find user by normalized email."""
        return self.filter(email=InputValidator.normalize_email(email)).first()

    def create_user(self, email, password=None, **extra_fields):
        """Create a new user with hashed password."""
        if not email:
            raise ValueError('Email address is required')

        email = InputValidator.normalize_email(email)
        extra_fields.setdefault('is_active', True)
        extra_fields.setdefault('is_superuser', False)

        user = self.model(email=email, **extra_fields)
        if password:
            user.set_password(password)
        else:
            user.password_hash = make_password(None)
        user.save(using=self._db)
        return user

    def create_superuser(self, email, password=None, **extra_fields):
        """
        Create a Django admin superuser.

        Superuser is a back-office flag; it does not make the account a
        platform operator.
        """
        extra_fields['is_superuser'] = True
        return self.create_user(email, password, **extra_fields)

    def get_by_natural_key(self, email):
        return self.get(**{self.model.USERNAME_FIELD: InputValidator.normalize_email(email)})


class User(BaseModel):
    """
    Identity account.

    Authentication happens here; company membership and permissions live on
    CompanyUser and Role. This is the AUTH_USER_MODEL, including for the
    Django admin.
    """

    email = models.EmailField(
        unique=True,
        db_index=True,
        help_text="Login email, stored lowercase"
    )
    password_hash = models.CharField(
        max_length=255,
        help_text="Hashed password",
        db_column='password_hash'
    )

    is_active = models.BooleanField(
        default=True,
        db_index=True,
        help_text="Whether the account may sign in"
    )
    is_superuser = models.BooleanField(
        default=False,
        help_text="Django admin access"
    )
    is_platform_operator = models.BooleanField(
        default=False,
        db_index=True,
        help_text="Cross-tenant operator access. Set only by the grant_platform_operator command"
    )
    token_version = models.PositiveIntegerField(
        default=0,
        help_text="Bumped on sign-out and password change to revoke issued tokens"
    )
    last_login_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text="Last successful sign-in"
    )

    USERNAME_FIELD = 'email'
    EMAIL_FIELD = 'email'
    REQUIRED_FIELDS = []

    objects = UserManager()

    class Meta:
        db_table = 'users'
        ordering = ['-created_at']

    def __str__(self):
        return self.email

    @property
    def password(self):
        """Alias for password_hash, the name Django admin expects."""
        return self.password_hash

    @password.setter
    def password(self, value):
        self.password_hash = value

    def check_password(self, raw_password):
        """Check if provided password matches stored hash."""
        return check_password(raw_password, self.password_hash)

    def set_password(self, raw_password):
        """Set user password (hashes automatically)."""
        self.password_hash = make_password(raw_password)

    def get_username(self):
        return self.email

    def get_full_name(self):
        profile = getattr(self, 'company_profile', None)
        if profile is not None and profile.full_name:
            return profile.full_name
        return self.email

    def update_last_login(self):
        self.last_login_at = timezone.now()
        self.save(update_fields=['last_login_at'])

    @property
    def is_authenticated(self):
        return True

    @property
    def is_anonymous(self):
        return False

    @property
    def is_staff(self):
        """Django admin access follows is_superuser."""
        return self.is_superuser

    def has_perm(self, perm, obj=None):
        return self.is_active and self.is_superuser

    def has_perms(self, perm_list, obj=None):
        return self.is_active and self.is_superuser

    def has_module_perms(self, app_label):
        return self.is_active and self.is_superuser

    def natural_key(self):
        return (self.email,)


class CompanyUserManager(models.Manager):
    """Manager for company-scoped profile queries."""

    def for_company(self, company):
        return self.filter(company=company)

    def with_role(self, company, role_name):
        return self.filter(company=company, role_name=role_name)

    def admins(self, company):
        return self.with_role(company, ADMIN_ROLE)


class CompanyUser(models.Model):
    """
    Company-scoped user profile.

    Shares its primary key with the identity account and belongs to exactly
    one company. role_name is a plain key into the company's roles rather
    than a foreign key: a role removed out of band leaves the name dangling
    and the user resolves to no permissions.
    """

    user = models.OneToOneField(
        User,
        on_delete=models.CASCADE,
        primary_key=True,
        related_name='company_profile',
        help_text="Identity account; also the profile id"
    )
    company = models.ForeignKey(
        'tenants.Company',
        on_delete=models.CASCADE,
        related_name='users',
        db_index=True
    )
    full_name = models.CharField(max_length=255)
    email = models.EmailField(db_index=True)
    role_name = models.CharField(
        max_length=100,
        db_index=True,
        help_text="Name of a role in the same company"
    )
    is_active = models.BooleanField(default=True)
    phone_number = models.CharField(max_length=30, blank=True)
    dashboard_urls = models.JSONField(
        default=list,
        blank=True,
        help_text="Dashboard URLs assigned to this user; empty falls back to the company's"
    )

    created_at = models.DateTimeField(auto_now_add=True, db_index=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = CompanyUserManager()

    class Meta:
        db_table = 'company_users'
        ordering = ['created_at']
        indexes = [
            models.Index(fields=['company', 'role_name'], name='company_users_role_idx'),
        ]

    def __str__(self):
        return f"{self.full_name} <{self.email}> ({self.role_name})"

    @property
    def is_admin(self):
        return self.role_name == ADMIN_ROLE


class UserCompanyLookup(models.Model):
    """
    Index from identity id to owning company.

    Created and deleted together with the CompanyUser profile so resolving
    a session never scans companies.
    """

    user = models.OneToOneField(
        User,
        on_delete=models.CASCADE,
        primary_key=True,
        related_name='company_lookup'
    )
    company = models.ForeignKey(
        'tenants.Company',
        on_delete=models.CASCADE,
        related_name='user_lookups'
    )
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'user_company_lookup'

    def __str__(self):
        return f"{self.user_id} -> {self.company_id}"


class RoleManager(models.Manager):
    """Manager for role queries."""

    def for_company(self, company):
        return self.filter(company=company).order_by('name')

    def by_name(self, company, name):
        """Exact-name lookup; role names are case-sensitive keys."""
        return self.filter(company=company, name=name).first()

    def name_taken(self, company, name):
        """True if a role with this name exists, ignoring case."""
        return self.filter(company=company, name__iexact=name).exists()


class Role(BaseModel):
    """
    Named, company-scoped bundle of permission flags.

    The Admin role is seeded at company creation with every flag; its name
    and permission set never change afterwards.
    """

    company = models.ForeignKey(
        'tenants.Company',
        on_delete=models.CASCADE,
        related_name='roles',
        db_index=True
    )
    name = models.CharField(
        max_length=100,
        help_text="Display label and lookup key, unique per company ignoring case"
    )
    permissions = models.JSONField(
        default=default_permission_list,
        blank=True,
        help_text="Subset of manage_users, manage_roles, view_dashboard"
    )
    is_system = models.BooleanField(
        default=False,
        help_text="Seeded at company creation"
    )

    objects = RoleManager()

    class Meta:
        db_table = 'roles'
        ordering = ['name']
        constraints = [
            models.UniqueConstraint(
                Lower('name'), 'company',
                name='unique_role_name_per_company_ci',
            ),
        ]

    def __str__(self):
        return f"{self.company_id}: {self.name}"

    @property
    def is_admin(self):
        return self.name == ADMIN_ROLE

    def permission_set(self):
        return frozenset(p for p in (self.permissions or []) if p in ALL_PERMISSIONS)


class InviteManager(models.Manager):
    """Manager for invite queries."""

    def for_company(self, company, show_all=False):
        qs = self.filter(company=company)
        if not show_all:
            qs = qs.filter(status=Invite.STATUS_PENDING)
        return qs.order_by('-created_at')

    def pending_for_email(self, company, email):
        return self.filter(company=company, email=email, status=Invite.STATUS_PENDING)


class Invite(BaseModel):
    """
    Pending binding of an email and role to a company.

    Transitions to accepted exactly once, in the same transaction that
    creates the invitee's profile. Never deleted.
    """

    STATUS_PENDING = 'pending'
    STATUS_ACCEPTED = 'accepted'

    STATUS_CHOICES = [
        (STATUS_PENDING, 'Pending'),
        (STATUS_ACCEPTED, 'Accepted'),
    ]

    company = models.ForeignKey(
        'tenants.Company',
        on_delete=models.CASCADE,
        related_name='invites',
        db_index=True
    )
    email = models.EmailField(db_index=True)
    full_name = models.CharField(max_length=255)
    role_name = models.CharField(max_length=100)
    status = models.CharField(
        max_length=20,
        choices=STATUS_CHOICES,
        default=STATUS_PENDING,
        db_index=True
    )
    invited_by = models.ForeignKey(
        User,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='invites_sent'
    )
    accepted_at = models.DateTimeField(null=True, blank=True)
    accepted_by = models.ForeignKey(
        User,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='invites_accepted',
        help_text="Identity account created on acceptance"
    )

    objects = InviteManager()

    class Meta:
        db_table = 'invites'
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['company', 'status'], name='invites_company_status_idx'),
        ]

    def __str__(self):
        return f"{self.email} -> {self.company_id} ({self.status})"

    @property
    def is_pending(self):
        return self.status == self.STATUS_PENDING


class AuditLogManager(models.Manager):
    """Manager for AuditLog queries with company scoping."""

    def for_company(self, company):
        return self.filter(company=company).order_by('-created_at')

    def by_action(self, action):
        return self.filter(action=action)


class AuditLog(BaseModel):
    """
    Append-only record of an administrative action.

    Actor name and email are copied at write time so entries stay readable
    after the actor is removed.
    """

    company = models.ForeignKey(
        'tenants.Company',
        on_delete=models.CASCADE,
        null=True,
        blank=True,
        related_name='audit_logs',
        db_index=True,
        help_text="Company this entry belongs to (null for platform-level)"
    )
    actor = models.ForeignKey(
        User,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='audit_logs',
        help_text="Account that performed the action (null for system actions)"
    )
    actor_name = models.CharField(max_length=255, blank=True)
    actor_email = models.CharField(max_length=255, blank=True)

    action = models.CharField(
        max_length=100,
        db_index=True,
        help_text="Action code (e.g. 'user_added', 'role_changed')"
    )
    message = models.TextField(help_text="Human-readable description")
    target_type = models.CharField(max_length=50, blank=True)
    target_id = models.CharField(max_length=255, blank=True)
    metadata = models.JSONField(default=dict, blank=True)

    # Request context
    ip_address = models.GenericIPAddressField(null=True, blank=True)
    user_agent = models.TextField(blank=True)
    request_id = models.CharField(max_length=64, blank=True, db_index=True)

    objects = AuditLogManager()

    class Meta:
        db_table = 'audit_logs'
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['company', 'created_at'], name='audit_logs_company_created_idx'),
            models.Index(fields=['action', 'created_at'], name='audit_logs_action_created_idx'),
        ]

    def __str__(self):
        return f"{self.actor_email or 'System'} - {self.action}"

    def save(self, *args, **kwargs):
        if not self._state.adding:
            raise ValueError("Audit log entries are immutable")
        super().save(*args, **kwargs)

    @classmethod
    def record(cls, company, actor, message, action='', target_type='',
               target_id='', metadata=None, request=None):
        """
        Append an audit entry, best effort.

        actor may be an Actor/ResolvedProfile, a User, or None for system
        actions. Any failure is logged and swallowed so the action being
        documented never fails or rolls back because of its audit entry.

        Returns:
            AuditLog instance, or None if the write failed
        """
        try:
            actor_id = getattr(actor, 'user_id', None) or getattr(actor, 'id', None)
            entry = cls(
                company_id=getattr(company, 'id', company),
                actor_id=actor_id,
                actor_name=(getattr(actor, 'full_name', '') or '') if actor else '',
                actor_email=(getattr(actor, 'email', '') or '') if actor else '',
                action=action,
                message=message,
                target_type=target_type or '',
                target_id=str(target_id) if target_id else '',
                metadata=metadata or {},
            )
            if request is not None:
                entry.ip_address = request.META.get('REMOTE_ADDR')
                entry.user_agent = request.META.get('HTTP_USER_AGENT', '')
                entry.request_id = getattr(request, 'request_id', '') or ''

            # Savepoint so a failed insert cannot poison the caller's transaction
            with transaction.atomic():
                entry.save(force_insert=True)
            return entry
        except Exception as e:
            logger.error(
                f"Failed to write audit log entry: {e}",
                extra={'action': action, 'company_id': str(getattr(company, 'id', company))},
                exc_info=True
            )
            return None
