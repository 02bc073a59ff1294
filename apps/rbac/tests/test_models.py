"""
Tests for RBAC models.
"""
from unittest.mock import patch

import pytest
from django.db import IntegrityError, transaction

from apps.rbac.models import (
    ADMIN_ROLE, DEFAULT_ROLES, AuditLog, CompanyUser, Invite, Role, User, UserCompanyLookup,
)


@pytest.mark.django_db
class TestUserModel:
    """Test identity accounts."""

    def test_create_user_normalizes_email_and_hashes_password(self):
        user = User.objects.create_user(email='  Ada@Acme.Example ', password='SecurePass123!')

        assert user.email == 'ada@acme.example'
        assert user.password_hash != 'SecurePass123!'
        assert user.check_password('SecurePass123!')
        assert not user.check_password('wrong')
        assert user.token_version == 0
        assert user.is_platform_operator is False

    def test_create_user_requires_email(self):
        with pytest.raises(ValueError):
            User.objects.create_user(email='', password='SecurePass123!')

    def test_by_email_is_case_insensitive(self):
        user = User.objects.create_user(email='ada@acme.example', password='SecurePass123!')

        assert User.objects.by_email('ADA@acme.example') == user
        assert User.objects.by_email('nobody@acme.example') is None

    def test_email_is_unique(self):
        User.objects.create_user(email='ada@acme.example', password='SecurePass123!')
        with pytest.raises(IntegrityError), transaction.atomic():
            User.objects.create_user(email='ada@acme.example', password='SecurePass123!')

    def test_superuser_is_not_platform_operator(self):
        user = User.objects.create_superuser(email='root@acme.example', password='SecurePass123!')

        assert user.is_staff is True
        assert user.has_perm('anything') is True
        assert user.is_platform_operator is False

    def test_full_name_falls_back_to_email(self, company_setup):
        assert company_setup['user'].get_full_name() == 'Ada Admin'

        lonely = User.objects.create_user(email='lonely@acme.example', password='SecurePass123!')
        assert lonely.get_full_name() == 'lonely@acme.example'


@pytest.mark.django_db
class TestCompanyUserModel:

    def test_profile_shares_id_with_account(self, admin_user, admin_profile):
        assert admin_profile.pk == admin_user.pk
        assert admin_profile.is_admin is True
        assert UserCompanyLookup.objects.get(user=admin_user).company_id == admin_profile.company_id

    def test_admins_manager(self, company, admin_profile, make_member):
        make_member('viewer@acme.example')

        assert list(CompanyUser.objects.admins(company)) == [admin_profile]
        assert CompanyUser.objects.for_company(company).count() == 2


@pytest.mark.django_db
class TestRoleModel:
    """Test per-company roles."""

    def test_default_roles_seeded(self, company):
        roles = {role.name: role for role in Role.objects.for_company(company)}

        assert set(roles) == set(DEFAULT_ROLES)
        assert roles[ADMIN_ROLE].permission_set() == frozenset(DEFAULT_ROLES[ADMIN_ROLE])
        assert all(role.is_system for role in roles.values())

    def test_role_name_unique_per_company_ignoring_case(self, company):
        with pytest.raises(IntegrityError), transaction.atomic():
            Role.objects.create(company=company, name='viewer', permissions=[])

    def test_same_name_allowed_in_another_company(self, company, other_company_setup):
        assert Role.objects.by_name(other_company_setup['company'], 'Viewer') is not None
        assert Role.objects.by_name(company, 'Viewer') is not None

    def test_by_name_is_exact_and_name_taken_ignores_case(self, company):
        assert Role.objects.by_name(company, 'viewer') is None
        assert Role.objects.name_taken(company, 'viewer') is True
        assert Role.objects.name_taken(company, 'Auditor') is False

    def test_permission_set_ignores_unknown_flags(self, company):
        role = Role.objects.create(company=company, name='Odd', permissions=['view_dashboard', 'launch_rockets'])
        assert role.permission_set() == frozenset({'view_dashboard'})


@pytest.mark.django_db
class TestInviteModel:

    def test_pending_queries(self, company, admin_user):
        pending = Invite.objects.create(company=company, email='b@acme.example', full_name='Bea',
                                        role_name='Viewer', invited_by=admin_user)
        Invite.objects.create(company=company, email='c@acme.example', full_name='Cy',
                              role_name='Viewer', status=Invite.STATUS_ACCEPTED)

        assert pending.is_pending
        assert list(Invite.objects.for_company(company)) == [pending]
        assert Invite.objects.for_company(company, show_all=True).count() == 2
        assert Invite.objects.pending_for_email(company, 'b@acme.example').exists()
        assert not Invite.objects.pending_for_email(company, 'c@acme.example').exists()


@pytest.mark.django_db
class TestAuditLogModel:
    """Test the append-only audit trail."""

    def test_company_creation_is_audited(self, company):
        actions = set(AuditLog.objects.for_company(company).values_list('action', flat=True))
        assert actions == {'company_created', 'company_roles_seeded'}

    def test_record_copies_actor_identity(self, company, admin_actor):
        entry = AuditLog.record(company, admin_actor, 'Something happened', action='test_action',
                                target_type='Role', target_id='Viewer', metadata={'k': 'v'})

        assert entry is not None
        assert entry.actor_id == admin_actor.user_id
        assert entry.actor_name == 'Ada Admin'
        assert entry.actor_email == 'admin@acme.example'
        assert entry.target_id == 'Viewer'
        assert entry.metadata == {'k': 'v'}

    def test_system_entry_without_actor(self, company):
        entry = AuditLog.record(company, None, 'System did something', action='system_action')

        assert entry.actor_id is None
        assert entry.actor_name == ''
        assert str(entry) == 'System - system_action'

    def test_entries_are_immutable(self, company):
        entry = AuditLog.objects.for_company(company).first()
        entry.message = 'rewritten'

        with pytest.raises(ValueError):
            entry.save()

    def test_record_failure_is_swallowed(self, company, admin_actor):
        before = AuditLog.objects.count()

        with patch.object(AuditLog, 'save', side_effect=RuntimeError('disk full')):
            entry = AuditLog.record(company, admin_actor, 'Lost entry', action='lost')

        assert entry is None
        assert AuditLog.objects.count() == before

