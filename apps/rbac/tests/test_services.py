"""
Tests for RBAC services.

Tests:
- Permission resolution (profile -> role -> permissions)
- Company user management and the protected Admin role
- Role definitions
- Invite lifecycle
- Audit trail reads
"""
import uuid
from unittest.mock import patch

import pytest
from django.core import mail
from django.db import DatabaseError

from apps.core.exceptions import (
    ConflictError, NotFoundError, PermissionDeniedError, ProtectedRoleError, ValidationError,
)
from apps.core.permissions import ALL_PERMISSIONS, MANAGE_ROLES, MANAGE_USERS, VIEW_DASHBOARD
from apps.rbac.models import AuditLog, CompanyUser, Invite, Role, User, UserCompanyLookup
from apps.rbac.services import (
    AuditService, AuthorizationResolver, IdentityProvider, InviteService, RoleService, UserService,
)

PASSWORD = 'SecurePass123!'


def add_user(company, actor, email, role_name='Viewer', full_name='Member User', **profile):
    profile.update({'full_name': full_name, 'email': email, 'role_name': role_name})
    return UserService.add_user(company.id, profile, {'password': PASSWORD}, actor)


@pytest.mark.django_db
class TestAuthorizationResolver:
    """Test two-hop permission resolution."""

    def test_admin_resolves_to_every_permission(self, company, admin_user):
        resolved = AuthorizationResolver.resolve(admin_user.id)

        assert resolved.company_id == company.id
        assert resolved.company_name == 'Acme'
        assert resolved.role == 'Admin'
        assert resolved.permissions == frozenset(ALL_PERMISSIONS)

    def test_unknown_or_malformed_user_resolves_to_none(self, db):
        assert AuthorizationResolver.resolve(uuid.uuid4()) is None
        assert AuthorizationResolver.resolve('not-a-uuid') is None
        assert AuthorizationResolver.get_permissions(uuid.uuid4()) == frozenset()

    def test_account_without_company_resolves_to_none(self, platform_operator):
        assert AuthorizationResolver.resolve(platform_operator.id) is None

    def test_missing_role_grants_nothing(self, company, make_member):
        user, _, _ = make_member('analyst@acme.example', role_name='Analyst')
        Role.objects.filter(company=company, name='Analyst').delete()

        resolved = AuthorizationResolver.resolve(user.id)

        assert resolved is not None
        assert resolved.role == 'Analyst'
        assert resolved.permissions == frozenset()

    def test_inactive_profile_grants_nothing(self, make_member):
        user, _, _ = make_member('viewer@acme.example')
        CompanyUser.objects.filter(pk=user.pk).update(is_active=False)

        assert AuthorizationResolver.get_permissions(user.id) == frozenset()

    def test_role_edits_apply_on_next_resolution(self, company, admin_actor, make_member):
        user, _, _ = make_member('viewer@acme.example')
        assert AuthorizationResolver.get_permissions(user.id) == frozenset({VIEW_DASHBOARD})

        RoleService.update_role_permissions(company.id, 'Viewer', [], admin_actor)

        assert AuthorizationResolver.get_permissions(user.id) == frozenset()

    def test_actor_for(self, admin_user, platform_operator):
        actor = AuthorizationResolver.actor_for(admin_user)
        assert actor.full_name == 'Ada Admin'
        assert actor.role == 'Admin'

        operator = AuthorizationResolver.actor_for(platform_operator)
        assert operator.is_platform_operator is True
        assert operator.profile is None
        assert operator.company_id is None

        assert AuthorizationResolver.actor_for(None) is None


@pytest.mark.django_db
class TestUserService:
    """Test company user management."""

    def test_company_starts_with_one_admin(self, company):
        assert CompanyUser.objects.for_company(company).count() == 1
        assert CompanyUser.objects.admins(company).count() == 1

    def test_add_user(self, company, admin_actor):
        profile = add_user(company, admin_actor, 'Bea@Acme.Example', role_name='Analyst',
                           full_name='Bea Analyst', dashboard_urls=['https://bi.example.com/bea'])

        assert profile.email == 'bea@acme.example'
        assert profile.role_name == 'Analyst'
        assert profile.dashboard_urls == ['https://bi.example.com/bea']
        assert UserCompanyLookup.objects.get(user_id=profile.pk).company_id == company.id
        assert User.objects.get(pk=profile.pk).check_password(PASSWORD)
        assert AuditLog.objects.filter(company=company, action='user_added').count() == 1

    def test_add_user_keeps_admin_session(self, company, admin_user, admin_actor, admin_token):
        add_user(company, admin_actor, 'bea@acme.example')

        assert IdentityProvider.get_user_from_token(admin_token) == admin_user

    def test_add_user_cannot_grant_admin(self, company, admin_actor):
        with pytest.raises(ProtectedRoleError):
            add_user(company, admin_actor, 'bea@acme.example', role_name='Admin')

        assert CompanyUser.objects.for_company(company).count() == 1
        assert not User.objects.filter(email='bea@acme.example').exists()

    def test_add_user_unknown_role(self, company, admin_actor):
        with pytest.raises(ValidationError):
            add_user(company, admin_actor, 'bea@acme.example', role_name='Auditor')

    def test_add_user_rejects_invalid_phone(self, company, admin_actor):
        with pytest.raises(ValidationError):
            add_user(company, admin_actor, 'bea@acme.example', phone_number='call me')

        assert not User.objects.filter(email='bea@acme.example').exists()

    def test_add_user_survives_audit_failure(self, company, admin_actor):
        with patch.object(AuditLog, 'save', side_effect=DatabaseError('audit table locked')):
            profile = add_user(company, admin_actor, 'bea@acme.example')

        assert CompanyUser.objects.filter(pk=profile.pk).exists()
        assert UserCompanyLookup.objects.filter(user_id=profile.pk, company=company).exists()
        assert User.objects.filter(email='bea@acme.example').exists()
        assert not AuditLog.objects.filter(company=company, action='user_added').exists()

    def test_add_user_duplicate_email(self, company, admin_actor):
        add_user(company, admin_actor, 'bea@acme.example')

        with pytest.raises(ConflictError):
            add_user(company, admin_actor, 'BEA@acme.example')

        assert User.objects.filter(email='bea@acme.example').count() == 1

    def test_add_user_weak_password_creates_nothing(self, company, admin_actor):
        with pytest.raises(ValidationError):
            UserService.add_user(
                company.id,
                {'full_name': 'Bea', 'email': 'bea@acme.example', 'role_name': 'Viewer'},
                {'password': 'weak'},
                admin_actor,
            )

        assert not User.objects.filter(email='bea@acme.example').exists()

    def test_add_user_requires_manage_users(self, company, make_member):
        _, viewer_actor, _ = make_member('viewer@acme.example')

        with pytest.raises(PermissionDeniedError):
            add_user(company, viewer_actor, 'bea@acme.example')

    def test_permissions_do_not_cross_companies(self, company, admin_actor, other_company_setup):
        other = other_company_setup['company']

        with pytest.raises(PermissionDeniedError):
            add_user(other, admin_actor, 'bea@globex.example')
        with pytest.raises(PermissionDeniedError):
            UserService.list_users(other.id, admin_actor)

    def test_list_users_includes_role_permissions(self, company, admin_actor, make_member):
        make_member('viewer@acme.example')

        users = UserService.list_users(company.id, admin_actor)

        assert [u.email for u in users] == ['admin@acme.example', 'viewer@acme.example']
        assert users[0].permissions == sorted(ALL_PERMISSIONS)
        assert users[1].permissions == [VIEW_DASHBOARD]

    def test_change_role(self, company, admin_actor, make_member):
        user, _, _ = make_member('viewer@acme.example')

        profile = UserService.change_role(user.id, 'Analyst', admin_actor)

        assert profile.role_name == 'Analyst'
        entry = AuditLog.objects.get(company=company, action='role_changed')
        assert entry.metadata == {'from': 'Viewer', 'to': 'Analyst'}

    def test_change_role_to_admin_is_rejected(self, company, admin_actor, make_member):
        user, _, _ = make_member('viewer@acme.example')

        with pytest.raises(ProtectedRoleError):
            UserService.change_role(user.id, 'Admin', admin_actor)

        assert CompanyUser.objects.get(pk=user.pk).role_name == 'Viewer'

    def test_admin_to_admin_is_a_no_op(self, admin_user, admin_actor):
        profile = UserService.change_role(admin_user.id, 'Admin', admin_actor)

        assert profile.role_name == 'Admin'
        assert not AuditLog.objects.filter(action='role_changed').exists()

    def test_admin_cannot_be_demoted(self, admin_user, admin_actor):
        with pytest.raises(ProtectedRoleError):
            UserService.change_role(admin_user.id, 'Viewer', admin_actor)

    def test_change_role_unknown_user(self, admin_actor):
        with pytest.raises(NotFoundError):
            UserService.change_role(uuid.uuid4(), 'Viewer', admin_actor)

    def test_remove_user(self, company, admin_actor, make_member):
        user, _, token = make_member('viewer@acme.example')

        UserService.remove_user(user.id, admin_actor)

        assert AuthorizationResolver.resolve(user.id) is None
        assert not UserCompanyLookup.objects.filter(user_id=user.id).exists()
        # The identity account survives but grants nothing
        assert User.objects.filter(pk=user.pk).exists()
        assert IdentityProvider.get_user_from_token(token) == user
        assert AuditLog.objects.filter(company=company, action='user_removed').count() == 1

    def test_cannot_remove_yourself(self, admin_user, admin_actor):
        with pytest.raises(ValidationError):
            UserService.remove_user(admin_user.id, admin_actor)

    def test_last_admin_cannot_be_removed(self, company, admin_user, admin_actor, make_member):
        RoleService.add_role(company.id, 'Manager', [MANAGE_USERS], admin_actor)
        _, manager_actor, _ = make_member('manager@acme.example', role_name='Manager')

        with pytest.raises(ConflictError):
            UserService.remove_user(admin_user.id, manager_actor)

        assert CompanyUser.objects.admins(company).count() == 1

    def test_update_profile(self, admin_actor):
        profile = UserService.update_profile(admin_actor, full_name='  Ada Lovelace ', phone_number='+1 555 0100')

        assert profile.full_name == 'Ada Lovelace'
        assert profile.phone_number == '+1 555 0100'

    def test_update_profile_rejects_invalid_phone(self, admin_actor):
        with pytest.raises(ValidationError):
            UserService.update_profile(admin_actor, phone_number='not a number')

        assert CompanyUser.objects.get(pk=admin_actor.user_id).phone_number == ''

    def test_update_profile_rejects_blank_name(self, admin_actor):
        with pytest.raises(ValidationError):
            UserService.update_profile(admin_actor, full_name='   ')

    def test_update_profile_without_company(self, operator_actor):
        with pytest.raises(NotFoundError):
            UserService.update_profile(operator_actor, full_name='Op')


@pytest.mark.django_db
class TestRoleService:
    """Test per-company role definitions."""

    def test_seed_is_idempotent(self, company):
        assert RoleService.seed_default_roles(company) == []
        assert Role.objects.for_company(company).count() == 3

    def test_seed_fills_in_missing_roles(self, company):
        Role.objects.filter(company=company, name='Viewer').delete()

        created = RoleService.seed_default_roles(company)

        assert [role.name for role in created] == ['Viewer']

    def test_list_roles(self, company, admin_actor, make_member):
        _, viewer_actor, _ = make_member('viewer@acme.example')

        names = [role.name for role in RoleService.list_roles(company.id, viewer_actor)]

        assert names == ['Admin', 'Analyst', 'Viewer']

    def test_list_roles_of_another_company_is_denied(self, admin_actor, other_company_setup):
        with pytest.raises(PermissionDeniedError):
            RoleService.list_roles(other_company_setup['company'].id, admin_actor)

    def test_operator_can_list_any_company_roles(self, company, operator_actor):
        assert len(RoleService.list_roles(company.id, operator_actor)) == 3

    def test_add_role(self, company, admin_actor):
        role = RoleService.add_role(company.id, ' Auditor ', [VIEW_DASHBOARD, MANAGE_USERS], admin_actor)

        assert role.name == 'Auditor'
        # Stored in enumeration order
        assert role.permissions == [MANAGE_USERS, VIEW_DASHBOARD]
        assert role.is_system is False
        assert AuditLog.objects.filter(company=company, action='role_created').count() == 1

    @pytest.mark.parametrize('role_name', ['viewer', 'Admin', 'admin'])
    def test_add_role_duplicate_ignores_case(self, company, admin_actor, role_name):
        with pytest.raises(ConflictError) as exc_info:
            RoleService.add_role(company.id, role_name, [VIEW_DASHBOARD], admin_actor)

        assert not isinstance(exc_info.value, ProtectedRoleError)
        assert exc_info.value.status_code == 409
        assert Role.objects.for_company(company).count() == 3

    def test_add_role_unknown_permission(self, company, admin_actor):
        with pytest.raises(ValidationError):
            RoleService.add_role(company.id, 'Pilot', ['fly_planes'], admin_actor)

    def test_add_role_requires_manage_roles(self, company, make_member):
        _, viewer_actor, _ = make_member('viewer@acme.example')

        with pytest.raises(PermissionDeniedError):
            RoleService.add_role(company.id, 'Pilot', [], viewer_actor)

    def test_update_role_permissions(self, company, admin_actor):
        role = RoleService.update_role_permissions(company.id, 'Analyst', [VIEW_DASHBOARD, MANAGE_ROLES], admin_actor)

        assert role.permissions == [MANAGE_ROLES, VIEW_DASHBOARD]
        entry = AuditLog.objects.get(company=company, action='role_updated')
        assert entry.metadata['from'] == [VIEW_DASHBOARD]

    def test_admin_role_cannot_be_edited_or_deleted(self, company, admin_actor):
        with pytest.raises(ProtectedRoleError):
            RoleService.update_role_permissions(company.id, 'Admin', [], admin_actor)
        with pytest.raises(ProtectedRoleError):
            RoleService.delete_role(company.id, 'Admin', admin_actor)

        assert Role.objects.by_name(company, 'Admin').permission_set() == frozenset(ALL_PERMISSIONS)

    def test_update_unknown_role(self, company, admin_actor):
        with pytest.raises(NotFoundError):
            RoleService.update_role_permissions(company.id, 'Pilot', [], admin_actor)

    def test_delete_role(self, company, admin_actor):
        RoleService.delete_role(company.id, 'Analyst', admin_actor)

        assert Role.objects.by_name(company, 'Analyst') is None
        assert AuditLog.objects.filter(company=company, action='role_deleted').count() == 1

    def test_delete_assigned_role_is_rejected(self, company, admin_actor, make_member):
        make_member('viewer@acme.example')

        with pytest.raises(ConflictError) as exc_info:
            RoleService.delete_role(company.id, 'Viewer', admin_actor)

        assert exc_info.value.details == {'assigned_users': 1}


@pytest.mark.django_db
class TestInviteService:
    """Test the invite lifecycle."""

    def test_create_invite(self, company, admin_user, admin_actor):
        invite = InviteService.create_invite(company.id, 'Bea@Acme.Example', 'Bea', 'Viewer', admin_actor)

        assert invite.email == 'bea@acme.example'
        assert invite.is_pending
        assert invite.invited_by_id == admin_user.id
        assert len(mail.outbox) == 1
        assert mail.outbox[0].to == ['bea@acme.example']
        assert f"/invites/{company.id}/{invite.id}" in mail.outbox[0].body

    def test_invite_cannot_grant_admin(self, company, admin_actor):
        with pytest.raises(ProtectedRoleError):
            InviteService.create_invite(company.id, 'bea@acme.example', 'Bea', 'Admin', admin_actor)

        assert not Invite.objects.exists()

    def test_invite_unknown_role(self, company, admin_actor):
        with pytest.raises(ValidationError):
            InviteService.create_invite(company.id, 'bea@acme.example', 'Bea', 'Pilot', admin_actor)

    def test_invite_existing_account(self, company, admin_actor):
        with pytest.raises(ConflictError):
            InviteService.create_invite(company.id, 'admin@acme.example', 'Ada', 'Viewer', admin_actor)

    def test_duplicate_pending_invite(self, company, admin_actor):
        InviteService.create_invite(company.id, 'bea@acme.example', 'Bea', 'Viewer', admin_actor)

        with pytest.raises(ConflictError):
            InviteService.create_invite(company.id, 'bea@acme.example', 'Bea', 'Analyst', admin_actor)

    def test_invite_requires_manage_users(self, company, make_member):
        _, viewer_actor, _ = make_member('viewer@acme.example')

        with pytest.raises(PermissionDeniedError):
            InviteService.create_invite(company.id, 'bea@acme.example', 'Bea', 'Viewer', viewer_actor)

    def test_get_invite(self, company, admin_actor, other_company_setup):
        invite = InviteService.create_invite(company.id, 'bea@acme.example', 'Bea', 'Viewer', admin_actor)

        assert InviteService.get_invite(company.id, invite.id) == invite
        assert InviteService.get_invite(str(company.id), str(invite.id)).company.name == 'Acme'
        assert InviteService.get_invite(other_company_setup['company'].id, invite.id) is None
        assert InviteService.get_invite('nope', invite.id) is None

    def test_list_invites(self, company, admin_actor):
        invite = InviteService.create_invite(company.id, 'bea@acme.example', 'Bea', 'Viewer', admin_actor)
        InviteService.accept_invite(company.id, invite.id, PASSWORD)
        pending = InviteService.create_invite(company.id, 'cy@acme.example', 'Cy', 'Analyst', admin_actor)

        assert InviteService.list_invites(company.id, admin_actor) == [pending]
        assert len(InviteService.list_invites(company.id, admin_actor, show_all=True)) == 2

    def test_accept_invite(self, company, admin_actor):
        invite = InviteService.create_invite(company.id, 'bea@acme.example', 'Bea', 'Viewer', admin_actor)

        result = InviteService.accept_invite(company.id, invite.id, PASSWORD, full_name='Bea Viewer')

        profile = result['profile']
        assert profile.company_id == company.id
        assert profile.role_name == 'Viewer'
        assert profile.full_name == 'Bea Viewer'
        assert IdentityProvider.get_user_from_token(result['token']) == result['user']
        assert AuthorizationResolver.get_permissions(result['user'].id) == frozenset({VIEW_DASHBOARD})

        invite.refresh_from_db()
        assert invite.status == Invite.STATUS_ACCEPTED
        assert invite.accepted_by_id == result['user'].id
        assert invite.accepted_at is not None

        entry = AuditLog.objects.get(company=company, action='invite_accepted')
        assert entry.actor_id == result['user'].id

    def test_accept_keeps_invited_name_by_default(self, company, admin_actor):
        invite = InviteService.create_invite(company.id, 'bea@acme.example', 'Bea', 'Viewer', admin_actor)

        result = InviteService.accept_invite(company.id, invite.id, PASSWORD)

        assert result['profile'].full_name == 'Bea'

    def test_accept_twice_is_a_conflict(self, company, admin_actor):
        invite = InviteService.create_invite(company.id, 'bea@acme.example', 'Bea', 'Viewer', admin_actor)
        InviteService.accept_invite(company.id, invite.id, PASSWORD)

        with pytest.raises(ConflictError):
            InviteService.accept_invite(company.id, invite.id, PASSWORD)

        assert User.objects.filter(email='bea@acme.example').count() == 1
        assert CompanyUser.objects.for_company(company).count() == 2

    def test_accept_with_weak_password_leaves_invite_pending(self, company, admin_actor):
        invite = InviteService.create_invite(company.id, 'bea@acme.example', 'Bea', 'Viewer', admin_actor)

        with pytest.raises(ValidationError):
            InviteService.accept_invite(company.id, invite.id, 'weak')

        invite.refresh_from_db()
        assert invite.is_pending
        assert not User.objects.filter(email='bea@acme.example').exists()

    def test_accept_unknown_invite(self, company):
        with pytest.raises(NotFoundError):
            InviteService.accept_invite(company.id, uuid.uuid4(), PASSWORD)


@pytest.mark.django_db
class TestAuditService:

    def test_list_entries_newest_first(self, company, admin_actor, make_member):
        make_member('viewer@acme.example')

        entries = AuditService.list_entries(company.id, admin_actor)

        assert entries[0].action == 'user_added'
        assert {e.action for e in entries} == {'user_added', 'company_created', 'company_roles_seeded'}

    def test_filter_by_action_and_limit(self, company, admin_actor, make_member):
        make_member('one@acme.example')
        make_member('two@acme.example')

        assert len(AuditService.list_entries(company.id, admin_actor, action='user_added')) == 2
        assert len(AuditService.list_entries(company.id, admin_actor, limit=1)) == 1

    def test_requires_manage_users(self, company, make_member):
        _, viewer_actor, _ = make_member('viewer@acme.example')

        with pytest.raises(PermissionDeniedError):
            AuditService.list_entries(company.id, viewer_actor)

    def test_entries_stay_in_their_company(self, company, admin_actor, other_company_setup):
        other = other_company_setup['company']

        entries = AuditService.list_entries(company.id, admin_actor)

        assert all(entry.company_id == company.id for entry in entries)
        assert AuditLog.objects.filter(company=other).exists()
