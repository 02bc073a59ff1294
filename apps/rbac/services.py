"""
RBAC and authentication services.

Implements:
- AuthorizationResolver: user id -> company, role and effective permissions
- IdentityProvider: accounts, password checks and JWT session tokens
- UserService: company-scoped user management
- RoleService: per-company role definitions
- InviteService: invite lifecycle
- AuditService: reading the audit trail

Every mutating call takes the acting Actor explicitly and checks it through
apps.core.permissions.can(); nothing reads the caller from ambient state.
"""
import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone as dt_timezone
from typing import Optional, Dict, Any, List, FrozenSet

import jwt
from django.conf import settings
from django.core.mail import send_mail
from django.db import IntegrityError, transaction
from django.db.models import F, QuerySet
from django.utils import timezone

from apps.core.exceptions import (
    AuthenticationError, ConflictError, NotFoundError,
    PermissionDeniedError, ProtectedRoleError, ValidationError,
)
from apps.core.permissions import (
    ALL_PERMISSIONS, MANAGE_ROLES, MANAGE_USERS, PLATFORM_ADMIN,
    can, require_permission,
)
from apps.core.validators import clean_email, clean_password, clean_phone, clean_urls, parse_uuid
from apps.rbac.models import (
    ADMIN_ROLE, DEFAULT_ROLES,
    AuditLog, CompanyUser, Invite, Role, User, UserCompanyLookup,
)
from apps.tenants.models import Company

logger = logging.getLogger(__name__)


def get_company_or_404(company_id) -> Company:
    company_uuid = parse_uuid(company_id)
    company = Company.objects.filter(id=company_uuid).first() if company_uuid else None
    if company is None:
        raise NotFoundError('Company not found')
    return company


@dataclass(frozen=True)
class ResolvedProfile:
    """A user's company membership with the permissions of their current role."""
    user_id: uuid.UUID
    company_id: uuid.UUID
    company_name: str
    role: str
    permissions: FrozenSet[str]
    full_name: str = ''
    email: str = ''


@dataclass(frozen=True)
class Actor:
    """
    The authenticated caller passed into every service call.

    Platform operators may have no company profile, in which case every
    company-scoped permission check fails for them.
    """
    user_id: uuid.UUID
    email: str
    is_platform_operator: bool = False
    profile: Optional[ResolvedProfile] = None
    full_name: str = ''

    @property
    def company_id(self):
        return self.profile.company_id if self.profile else None

    @property
    def company_name(self):
        return self.profile.company_name if self.profile else None

    @property
    def role(self):
        return self.profile.role if self.profile else None

    @property
    def permissions(self) -> FrozenSet[str]:
        return self.profile.permissions if self.profile else frozenset()


class AuthorizationResolver:
    """
    Resolve a user id to company, role and effective permissions.

    Resolution is two-hop (profile -> role name -> role permissions), read
    fresh on every call. Missing records mean "no profile", never an error.
    """

    @classmethod
    def resolve(cls, user_id) -> Optional[ResolvedProfile]:
        """
        Args:
            user_id: Identity account id

        Returns:
            ResolvedProfile, or None when the lookup record, company or
            profile is missing
        """
        user_uuid = parse_uuid(user_id)
        if user_uuid is None:
            return None

        lookup = UserCompanyLookup.objects.select_related('company').filter(user_id=user_uuid).first()
        if lookup is None or lookup.company is None:
            return None

        company = lookup.company
        profile = CompanyUser.objects.filter(user_id=user_uuid, company=company).first()
        if profile is None:
            return None

        return ResolvedProfile(
            user_id=user_uuid,
            company_id=company.id,
            company_name=company.name,
            role=profile.role_name,
            permissions=cls._permissions_for(profile),
            full_name=profile.full_name,
            email=profile.email,
        )

    @classmethod
    def get_permissions(cls, user_id) -> FrozenSet[str]:
        """Effective permissions of a user; empty for any missing record."""
        resolved = cls.resolve(user_id)
        return resolved.permissions if resolved else frozenset()

    @classmethod
    def actor_for(cls, user: Optional[User]) -> Optional[Actor]:
        """Build the Actor for an authenticated identity account."""
        if user is None or not getattr(user, 'is_authenticated', False):
            return None
        profile = cls.resolve(user.id)
        return Actor(
            user_id=user.id,
            email=user.email,
            is_platform_operator=user.is_platform_operator,
            profile=profile,
            full_name=profile.full_name if profile else user.email,
        )

    @staticmethod
    def _permissions_for(profile: CompanyUser) -> FrozenSet[str]:
        # Fail closed: inactive profiles and missing roles grant nothing
        if not profile.is_active:
            return frozenset()
        role = Role.objects.by_name(profile.company_id, profile.role_name)
        return role.permission_set() if role else frozenset()


class IdentityProvider:
    """
    Identity accounts and session tokens.

    Tokens are HS256 JWTs carrying the account's token_version; bumping the
    version (sign-out, password change) revokes every token issued before.
    Creating an account never issues, refreshes or revokes any token, so an
    admin provisioning another user keeps their own session untouched.
    """

    @classmethod
    def create_account(cls, email: str, password: str) -> User:
        """
        Create an identity account.

        Raises:
            ValidationError: bad email or weak password
            ConflictError: email already registered
        """
        email = clean_email(email)
        clean_password(password)

        if User.objects.filter(email=email).exists():
            raise ConflictError('A user with this email already exists',
                                details={'email': ['A user with this email already exists.']})

        try:
            with transaction.atomic():
                return User.objects.create_user(email=email, password=password)
        except IntegrityError:
            raise ConflictError('A user with this email already exists',
                                details={'email': ['A user with this email already exists.']})

    @classmethod
    def issue_token(cls, user: User) -> str:
        now = datetime.now(dt_timezone.utc)
        payload = {
            'user_id': str(user.id),
            'email': user.email,
            'ver': user.token_version,
            'exp': now + timedelta(hours=getattr(settings, 'JWT_EXPIRATION_HOURS', 24)),
            'iat': now,
        }
        return jwt.encode(
            payload,
            settings.JWT_SECRET_KEY,
            algorithm=getattr(settings, 'JWT_ALGORITHM', 'HS256')
        )

    @classmethod
    def validate_token(cls, token: str) -> Optional[Dict[str, Any]]:
        """Decode a token, returning its payload or None if invalid or expired."""
        try:
            return jwt.decode(
                token,
                settings.JWT_SECRET_KEY,
                algorithms=[getattr(settings, 'JWT_ALGORITHM', 'HS256')]
            )
        except jwt.ExpiredSignatureError:
            return None
        except jwt.InvalidTokenError:
            return None

    @classmethod
    def get_user_from_token(cls, token: str) -> Optional[User]:
        """Return the active account a token belongs to, if it has not been revoked."""
        payload = cls.validate_token(token)
        if not payload:
            return None

        user_uuid = parse_uuid(payload.get('user_id'))
        if user_uuid is None:
            return None

        user = User.objects.filter(id=user_uuid, is_active=True).first()
        if user is None or payload.get('ver') != user.token_version:
            return None
        return user

    @classmethod
    def authenticate(cls, email: str, password: str) -> Optional[User]:
        user = User.objects.by_email(email or '')
        if user is None:
            # Hash anyway to keep timing similar for unknown emails
            User().set_password(password or '')
            return None
        if not user.is_active or not user.check_password(password or ''):
            return None
        return user

    @classmethod
    def sign_in(cls, email: str, password: str) -> Optional[Dict[str, Any]]:
        """
        Returns:
            {'user': User, 'token': str}, or None for bad credentials
        """
        user = cls.authenticate(email, password)
        if user is None:
            return None
        user.update_last_login()
        return {'user': user, 'token': cls.issue_token(user)}

    @classmethod
    def sign_out(cls, user: User):
        """Revoke every outstanding token of the account."""
        User.objects.filter(pk=user.pk).update(token_version=F('token_version') + 1)
        user.refresh_from_db(fields=['token_version'])

    @classmethod
    def reauthenticate(cls, user: User, password: str) -> Optional[str]:
        """Confirm the password of an already signed-in account and issue a fresh token."""
        if not user.is_active or not user.check_password(password or ''):
            return None
        return cls.issue_token(user)

    @classmethod
    def change_password(cls, user: User, current_password: str, new_password: str) -> str:
        """
        Change the password after re-authenticating.

        Existing tokens are revoked; the returned token is the only valid one.
        """
        if not user.check_password(current_password or ''):
            raise AuthenticationError('Current password is incorrect')
        clean_password(new_password)

        user.set_password(new_password)
        user.token_version = F('token_version') + 1
        user.save(update_fields=['password_hash', 'token_version'])
        user.refresh_from_db(fields=['token_version'])
        return cls.issue_token(user)


class UserService:
    """Company-scoped user management."""

    @classmethod
    def add_user(cls, company_id, profile: Dict[str, Any], credentials: Dict[str, Any],
                 actor: Actor, request=None) -> CompanyUser:
        """
        Provision an identity account and company profile for a new user.

        Args:
            company_id: Target company
            profile: full_name, email, role_name, optional phone_number and dashboard_urls
            credentials: password
            actor: Acting session; needs manage_users in the company

        Raises:
            PermissionDeniedError, ProtectedRoleError, ValidationError, ConflictError
        """
        require_permission(actor, MANAGE_USERS, company_id)
        company = get_company_or_404(company_id)

        full_name = (profile.get('full_name') or '').strip()
        if not full_name:
            raise ValidationError('Full name is required', details={'full_name': ['This field is required.']})

        role_name = profile.get('role_name') or ''
        if role_name == ADMIN_ROLE:
            raise ProtectedRoleError('The Admin role cannot be assigned to new users')
        if Role.objects.by_name(company, role_name) is None:
            raise ValidationError(f"Role '{role_name}' does not exist",
                                  details={'role_name': ['Unknown role.']})

        dashboard_urls = clean_urls(profile.get('dashboard_urls'))
        phone_number = clean_phone(profile.get('phone_number'))

        with transaction.atomic():
            account = IdentityProvider.create_account(profile.get('email'), credentials.get('password'))
            company_user = CompanyUser.objects.create(
                user=account,
                company=company,
                full_name=full_name,
                email=account.email,
                role_name=role_name,
                phone_number=phone_number,
                dashboard_urls=dashboard_urls,
            )
            UserCompanyLookup.objects.create(user=account, company=company)

        AuditLog.record(
            company, actor,
            f"{actor.full_name} added user {company_user.email} as {role_name}",
            action='user_added',
            target_type='CompanyUser',
            target_id=account.id,
            metadata={'role_name': role_name},
            request=request,
        )
        logger.info(
            f"User added to company {company.id}",
            extra={'company_id': str(company.id), 'user_id': str(account.id)}
        )
        return company_user

    @classmethod
    def list_users(cls, company_id, actor: Actor) -> List[CompanyUser]:
        """
        Users of a company, each with a `permissions` attribute holding the
        current permission set of their role (empty for a missing role).
        """
        require_permission(actor, MANAGE_USERS, company_id)
        company = get_company_or_404(company_id)

        role_permissions = {
            role.name: role.permission_set()
            for role in Role.objects.for_company(company)
        }
        users = list(CompanyUser.objects.for_company(company).order_by('created_at'))
        for company_user in users:
            company_user.permissions = sorted(role_permissions.get(company_user.role_name, frozenset()))
        return users

    @classmethod
    def _get_profile_or_404(cls, user_id) -> CompanyUser:
        user_uuid = parse_uuid(user_id)
        company_user = (
            CompanyUser.objects.select_related('company').filter(user_id=user_uuid).first()
            if user_uuid else None
        )
        if company_user is None:
            raise NotFoundError('User not found')
        return company_user

    @classmethod
    def change_role(cls, user_id, new_role_name: str, actor: Actor, request=None) -> CompanyUser:
        """
        Move a user to another existing role.

        Admin is never a valid target unless it already is the user's role
        (a no-op), and a current Admin cannot be moved away from it.
        """
        company_user = cls._get_profile_or_404(user_id)
        require_permission(actor, MANAGE_USERS, company_user.company_id)

        current_role = company_user.role_name
        if new_role_name == current_role:
            return company_user

        if new_role_name == ADMIN_ROLE:
            raise ProtectedRoleError('The Admin role can only be granted at company creation')
        if current_role == ADMIN_ROLE:
            raise ProtectedRoleError('The role of an Admin user cannot be changed')

        if Role.objects.by_name(company_user.company_id, new_role_name) is None:
            raise ValidationError(f"Role '{new_role_name}' does not exist",
                                  details={'role_name': ['Unknown role.']})

        company_user.role_name = new_role_name
        company_user.save(update_fields=['role_name', 'updated_at'])

        AuditLog.record(
            company_user.company, actor,
            f"{actor.full_name} changed role of {company_user.email} from {current_role} to {new_role_name}",
            action='role_changed',
            target_type='CompanyUser',
            target_id=company_user.user_id,
            metadata={'from': current_role, 'to': new_role_name},
            request=request,
        )
        return company_user

    @classmethod
    def remove_user(cls, user_id, actor: Actor, request=None):
        """
        Delete a user's profile and lookup record.

        The identity account is kept: it can still sign in but resolves to
        no company and no permissions.
        """
        company_user = cls._get_profile_or_404(user_id)
        require_permission(actor, MANAGE_USERS, company_user.company_id)

        if str(company_user.user_id) == str(actor.user_id):
            raise ValidationError('You cannot remove yourself')

        company = company_user.company
        if company_user.is_admin and CompanyUser.objects.admins(company).count() <= 1:
            raise ConflictError('A company must keep at least one Admin user')

        removed_email = company_user.email
        removed_id = company_user.user_id
        with transaction.atomic():
            UserCompanyLookup.objects.filter(user_id=removed_id).delete()
            company_user.delete()

        AuditLog.record(
            company, actor,
            f"{actor.full_name} removed user {removed_email}",
            action='user_removed',
            target_type='CompanyUser',
            target_id=removed_id,
            request=request,
        )

    @classmethod
    def update_profile(cls, actor: Actor, full_name: Optional[str] = None,
                       phone_number: Optional[str] = None) -> CompanyUser:
        """Update the caller's own display name and phone number."""
        if actor is None or actor.profile is None:
            raise NotFoundError('No company profile for this account')
        company_user = cls._get_profile_or_404(actor.user_id)

        update_fields = []
        if full_name is not None:
            full_name = full_name.strip()
            if not full_name:
                raise ValidationError('Full name cannot be blank', details={'full_name': ['This field may not be blank.']})
            company_user.full_name = full_name
            update_fields.append('full_name')
        if phone_number is not None:
            company_user.phone_number = clean_phone(phone_number)
            update_fields.append('phone_number')

        if update_fields:
            company_user.save(update_fields=update_fields + ['updated_at'])
        return company_user


class RoleService:
    """Per-company role definitions."""

    @staticmethod
    def _clean_permissions(permissions) -> List[str]:
        if permissions is None:
            permissions = []
        unknown = [p for p in permissions if p not in ALL_PERMISSIONS]
        if unknown:
            raise ValidationError(
                'Unknown permissions',
                details={'permissions': [f"Unknown permission: {p}" for p in unknown]}
            )
        # Keep the enumeration order so stored lists are stable
        return [p for p in ALL_PERMISSIONS if p in set(permissions)]

    @classmethod
    def seed_default_roles(cls, company: Company) -> List[Role]:
        """
        Create any default role the company is missing.

        Idempotent, but not safe against two concurrent seeders: both may
        see a role missing and the loser hits the unique constraint.
        """
        created = []
        for name, permissions in DEFAULT_ROLES.items():
            if Role.objects.name_taken(company, name):
                continue
            created.append(Role.objects.create(
                company=company,
                name=name,
                permissions=list(permissions),
                is_system=True,
            ))
        return created

    @classmethod
    def list_roles(cls, company_id, actor: Actor) -> List[Role]:
        if not (can(actor, PLATFORM_ADMIN) or str(actor.company_id) == str(company_id)):
            raise PermissionDeniedError('You are not a member of this company')
        company = get_company_or_404(company_id)
        return list(Role.objects.for_company(company))

    @classmethod
    def add_role(cls, company_id, role_name: str, permissions, actor: Actor, request=None) -> Role:
        """
        Create a role.

        Raises:
            ConflictError: a role with the same name exists, ignoring case
        """
        require_permission(actor, MANAGE_ROLES, company_id)
        company = get_company_or_404(company_id)

        role_name = (role_name or '').strip()
        if not role_name:
            raise ValidationError('Role name is required', details={'name': ['This field is required.']})
        permissions = cls._clean_permissions(permissions)

        if Role.objects.name_taken(company, role_name):
            raise ConflictError(f"Role '{role_name}' already exists")

        try:
            with transaction.atomic():
                role = Role.objects.create(company=company, name=role_name, permissions=permissions)
        except IntegrityError:
            raise ConflictError(f"Role '{role_name}' already exists")

        AuditLog.record(
            company, actor,
            f"{actor.full_name} created role {role_name}",
            action='role_created',
            target_type='Role',
            target_id=role_name,
            metadata={'permissions': permissions},
            request=request,
        )
        return role

    @classmethod
    def update_role_permissions(cls, company_id, role_name: str, permissions, actor: Actor, request=None) -> Role:
        require_permission(actor, MANAGE_ROLES, company_id)
        company = get_company_or_404(company_id)

        role = Role.objects.by_name(company, role_name)
        if role is None:
            raise NotFoundError(f"Role '{role_name}' not found")
        if role.is_admin:
            raise ProtectedRoleError('The Admin role cannot be edited')

        previous = list(role.permissions)
        role.permissions = cls._clean_permissions(permissions)
        role.save(update_fields=['permissions', 'updated_at'])

        AuditLog.record(
            company, actor,
            f"{actor.full_name} updated permissions of role {role_name}",
            action='role_updated',
            target_type='Role',
            target_id=role_name,
            metadata={'from': previous, 'to': role.permissions},
            request=request,
        )
        return role

    @classmethod
    def delete_role(cls, company_id, role_name: str, actor: Actor, request=None):
        require_permission(actor, MANAGE_ROLES, company_id)
        company = get_company_or_404(company_id)

        role = Role.objects.by_name(company, role_name)
        if role is None:
            raise NotFoundError(f"Role '{role_name}' not found")
        if role.is_admin:
            raise ProtectedRoleError('The Admin role cannot be deleted')

        assigned = CompanyUser.objects.with_role(company, role_name).count()
        if assigned:
            raise ConflictError(
                f"Role '{role_name}' is assigned to {assigned} user(s)",
                details={'assigned_users': assigned}
            )

        role.delete()

        AuditLog.record(
            company, actor,
            f"{actor.full_name} deleted role {role_name}",
            action='role_deleted',
            target_type='Role',
            target_id=role_name,
            request=request,
        )


class InviteService:
    """Invite lifecycle: create, look up, list and accept."""

    @classmethod
    def create_invite(cls, company_id, email: str, full_name: str, role_name: str,
                      actor: Actor, request=None) -> Invite:
        require_permission(actor, MANAGE_USERS, company_id)
        company = get_company_or_404(company_id)

        email = clean_email(email)
        full_name = (full_name or '').strip()
        if not full_name:
            raise ValidationError('Full name is required', details={'full_name': ['This field is required.']})

        if role_name == ADMIN_ROLE:
            raise ProtectedRoleError('The Admin role cannot be granted through an invite')
        if Role.objects.by_name(company, role_name) is None:
            raise ValidationError(f"Role '{role_name}' does not exist",
                                  details={'role_name': ['Unknown role.']})

        if User.objects.filter(email=email).exists():
            raise ConflictError('A user with this email already exists')
        if Invite.objects.pending_for_email(company, email).exists():
            raise ConflictError('A pending invite for this email already exists')

        invite = Invite.objects.create(
            company=company,
            email=email,
            full_name=full_name,
            role_name=role_name,
            invited_by_id=actor.user_id,
        )

        AuditLog.record(
            company, actor,
            f"{actor.full_name} invited {email} as {role_name}",
            action='invite_created',
            target_type='Invite',
            target_id=invite.id,
            metadata={'role_name': role_name},
            request=request,
        )
        cls._send_invite_email(invite, company)
        return invite

    @staticmethod
    def _send_invite_email(invite: Invite, company: Company):
        accept_url = f"{settings.FRONTEND_URL}/invites/{company.id}/{invite.id}"
        send_mail(
            subject=f"You've been invited to join {company.name}",
            message=(
                f"Hi {invite.full_name},\n\n"
                f"You have been invited to join {company.name} as {invite.role_name}.\n\n"
                f"Accept the invitation here: {accept_url}\n"
            ),
            from_email=settings.DEFAULT_FROM_EMAIL,
            recipient_list=[invite.email],
            fail_silently=True,
        )

    @classmethod
    def get_invite(cls, company_id, invite_id) -> Optional[Invite]:
        """Invite with its company loaded (invite.company.name), or None."""
        company_uuid, invite_uuid = parse_uuid(company_id), parse_uuid(invite_id)
        if company_uuid is None or invite_uuid is None:
            return None
        return Invite.objects.select_related('company').filter(
            company_id=company_uuid, id=invite_uuid
        ).first()

    @classmethod
    def list_invites(cls, company_id, actor: Actor, show_all: bool = False) -> List[Invite]:
        require_permission(actor, MANAGE_USERS, company_id)
        company = get_company_or_404(company_id)
        return list(Invite.objects.for_company(company, show_all=show_all))

    @classmethod
    def accept_invite(cls, company_id, invite_id, password: str,
                      full_name: Optional[str] = None, request=None) -> Dict[str, Any]:
        """
        Redeem an invite: create the account, profile and lookup and mark
        the invite accepted, all in one transaction.

        The accepted check reads the status field without a row lock, so
        two concurrent acceptances can both pass it; the unique email on
        the identity account makes the loser fail with a conflict.

        Returns:
            {'profile': CompanyUser, 'user': User, 'token': str}
        """
        invite = cls.get_invite(company_id, invite_id)
        if invite is None:
            raise NotFoundError('Invite not found')
        if not invite.is_pending:
            raise ConflictError('This invite has already been accepted')

        company = invite.company
        with transaction.atomic():
            account = IdentityProvider.create_account(invite.email, password)
            company_user = CompanyUser.objects.create(
                user=account,
                company=company,
                full_name=(full_name or '').strip() or invite.full_name,
                email=account.email,
                role_name=invite.role_name,
            )
            UserCompanyLookup.objects.create(user=account, company=company)

            invite.status = Invite.STATUS_ACCEPTED
            invite.accepted_at = timezone.now()
            invite.accepted_by = account
            invite.save(update_fields=['status', 'accepted_at', 'accepted_by', 'updated_at'])

        AuditLog.record(
            company, company_user,
            f"{company_user.full_name} accepted the invite as {invite.role_name}",
            action='invite_accepted',
            target_type='Invite',
            target_id=invite.id,
            request=request,
        )
        return {
            'profile': company_user,
            'user': account,
            'token': IdentityProvider.issue_token(account),
        }


class AuditService:
    """Read access to a company's audit trail."""

    @classmethod
    def list_entries(cls, company_id, actor: Actor, action: Optional[str] = None,
                     limit: Optional[int] = None) -> QuerySet:
        """
        Newest entries first, optionally narrowed to one action code.

        Returns a lazy queryset so callers can paginate the whole trail.
        """
        require_permission(actor, MANAGE_USERS, company_id)
        company = get_company_or_404(company_id)
        entries = AuditLog.objects.for_company(company)
        if action:
            entries = entries.filter(action=action)
        if limit:
            entries = entries[:limit]
        return entries
