"""
Tests for RBAC REST API endpoints.

Tests:
- Company user management (list, add, role change, removal)
- Role management (list, create, edit, delete)
- Invites (create, list, public lookup, acceptance)
- Audit log viewing
"""
import uuid

import pytest
from rest_framework import status

from apps.rbac.models import AuditLog, CompanyUser, Invite, Role, User

PASSWORD = 'SecurePass123!'


def bearer(token):
    return {'HTTP_AUTHORIZATION': f'Bearer {token}'}


@pytest.mark.django_db
class TestUserEndpoints:
    """Test /v1/users."""

    def test_list_users(self, api_client, auth_header, make_member):
        make_member('viewer@acme.example')

        response = api_client.get('/v1/users', **auth_header)

        assert response.status_code == status.HTTP_200_OK
        users = response.json()
        assert [u['email'] for u in users] == ['admin@acme.example', 'viewer@acme.example']
        assert users[1]['permissions'] == ['view_dashboard']

    def test_viewer_cannot_list_users(self, api_client, make_member):
        _, _, token = make_member('viewer@acme.example')

        response = api_client.get('/v1/users', **bearer(token))

        assert response.status_code == status.HTTP_403_FORBIDDEN

    def test_unauthenticated(self, api_client, db):
        assert api_client.get('/v1/users').status_code == status.HTTP_401_UNAUTHORIZED

    def test_operator_without_company_is_forbidden(self, api_client, operator_header):
        assert api_client.get('/v1/users', **operator_header).status_code == status.HTTP_403_FORBIDDEN

    def test_add_user(self, api_client, auth_header, company):
        response = api_client.post('/v1/users', {
            'full_name': 'Bea Analyst',
            'email': 'bea@acme.example',
            'password': PASSWORD,
            'role_name': 'Analyst',
        }, format='json', **auth_header)

        assert response.status_code == status.HTTP_201_CREATED
        assert response.json()['role_name'] == 'Analyst'
        assert response.json()['company_id'] == str(company.id)
        assert 'password' not in response.json()

        # The admin's own session is untouched
        assert api_client.get('/v1/users', **auth_header).status_code == status.HTTP_200_OK

    def test_add_user_as_admin_is_rejected(self, api_client, auth_header):
        response = api_client.post('/v1/users', {
            'full_name': 'Bea',
            'email': 'bea@acme.example',
            'password': PASSWORD,
            'role_name': 'Admin',
        }, format='json', **auth_header)

        assert response.status_code == status.HTTP_403_FORBIDDEN
        assert response.json()['error']['code'] == 'PROTECTED_ROLE'

    def test_add_user_taken_email(self, api_client, auth_header):
        response = api_client.post('/v1/users', {
            'full_name': 'Ada Again',
            'email': 'admin@acme.example',
            'password': PASSWORD,
            'role_name': 'Viewer',
        }, format='json', **auth_header)

        assert response.status_code == status.HTTP_409_CONFLICT

    def test_change_role(self, api_client, auth_header, make_member):
        user, _, _ = make_member('viewer@acme.example')

        response = api_client.patch(f'/v1/users/{user.id}/role', {'role_name': 'Analyst'},
                                     format='json', **auth_header)

        assert response.status_code == status.HTTP_200_OK
        assert response.json()['role_name'] == 'Analyst'

    def test_change_role_to_admin(self, api_client, auth_header, make_member):
        user, _, _ = make_member('viewer@acme.example')

        response = api_client.patch(f'/v1/users/{user.id}/role', {'role_name': 'Admin'},
                                    format='json', **auth_header)

        assert response.status_code == status.HTTP_403_FORBIDDEN
        assert CompanyUser.objects.get(pk=user.pk).role_name == 'Viewer'

    def test_change_role_in_other_company(self, api_client, auth_header, other_company_setup):
        other_admin = other_company_setup['user']

        response = api_client.patch(f'/v1/users/{other_admin.id}/role', {'role_name': 'Viewer'},
                                    format='json', **auth_header)

        assert response.status_code == status.HTTP_403_FORBIDDEN

    def test_change_role_unknown_user(self, api_client, auth_header):
        response = api_client.patch(f'/v1/users/{uuid.uuid4()}/role', {'role_name': 'Viewer'},
                                    format='json', **auth_header)

        assert response.status_code == status.HTTP_404_NOT_FOUND

    def test_remove_user(self, api_client, auth_header, make_member):
        user, _, token = make_member('viewer@acme.example')

        response = api_client.delete(f'/v1/users/{user.id}', **auth_header)

        assert response.status_code == status.HTTP_204_NO_CONTENT
        assert not CompanyUser.objects.filter(pk=user.pk).exists()

        me = api_client.get('/v1/auth/me', **bearer(token)).json()
        assert me['profile'] is None
        assert me['permissions'] == []

    def test_remove_self(self, api_client, auth_header, admin_user):
        response = api_client.delete(f'/v1/users/{admin_user.id}', **auth_header)

        assert response.status_code == status.HTTP_400_BAD_REQUEST


@pytest.mark.django_db
class TestRoleEndpoints:
    """Test /v1/roles."""

    def test_any_member_can_list_roles(self, api_client, make_member):
        _, _, token = make_member('viewer@acme.example')

        response = api_client.get('/v1/roles', **bearer(token))

        assert response.status_code == status.HTTP_200_OK
        assert [role['name'] for role in response.json()] == ['Admin', 'Analyst', 'Viewer']

    def test_create_role(self, api_client, auth_header, company):
        response = api_client.post('/v1/roles', {'name': 'Auditor', 'permissions': ['view_dashboard']},
                                   format='json', **auth_header)

        assert response.status_code == status.HTTP_201_CREATED
        assert response.json()['name'] == 'Auditor'
        assert Role.objects.for_company(company).count() == 4

    def test_create_duplicate_role_ignoring_case(self, api_client, auth_header, company):
        response = api_client.post('/v1/roles', {'name': 'ANALYST', 'permissions': []},
                                   format='json', **auth_header)

        assert response.status_code == status.HTTP_409_CONFLICT
        assert Role.objects.for_company(company).count() == 3

    def test_create_role_named_admin_conflicts(self, api_client, auth_header, company):
        response = api_client.post('/v1/roles', {'name': 'admin', 'permissions': []},
                                   format='json', **auth_header)

        assert response.status_code == status.HTTP_409_CONFLICT
        assert response.json()['error']['code'] == 'CONFLICT'
        assert Role.objects.for_company(company).count() == 3

    def test_create_role_unknown_permission(self, api_client, auth_header):
        response = api_client.post('/v1/roles', {'name': 'Pilot', 'permissions': ['fly']},
                                   format='json', **auth_header)

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert 'permissions' in response.json()['error']['details']

    def test_viewer_cannot_create_role(self, api_client, make_member):
        _, _, token = make_member('viewer@acme.example')

        response = api_client.post('/v1/roles', {'name': 'Pilot', 'permissions': []},
                                   format='json', **bearer(token))

        assert response.status_code == status.HTTP_403_FORBIDDEN

    def test_update_role(self, api_client, auth_header):
        response = api_client.put('/v1/roles/Analyst', {'permissions': ['view_dashboard', 'manage_roles']},
                                  format='json', **auth_header)

        assert response.status_code == status.HTTP_200_OK
        assert response.json()['permissions'] == ['manage_roles', 'view_dashboard']

    def test_admin_role_is_protected(self, api_client, auth_header):
        response = api_client.put('/v1/roles/Admin', {'permissions': []}, format='json', **auth_header)
        assert response.status_code == status.HTTP_403_FORBIDDEN

        response = api_client.delete('/v1/roles/Admin', **auth_header)
        assert response.status_code == status.HTTP_403_FORBIDDEN

    def test_delete_role(self, api_client, auth_header, company):
        response = api_client.delete('/v1/roles/Analyst', **auth_header)

        assert response.status_code == status.HTTP_204_NO_CONTENT
        assert Role.objects.by_name(company, 'Analyst') is None

    def test_delete_unknown_role(self, api_client, auth_header):
        assert api_client.delete('/v1/roles/Pilot', **auth_header).status_code == status.HTTP_404_NOT_FOUND


@pytest.mark.django_db
class TestInviteEndpoints:
    """Test /v1/invites."""

    def create_invite(self, api_client, auth_header, email='bea@acme.example', role_name='Viewer'):
        return api_client.post('/v1/invites', {
            'email': email,
            'full_name': 'Bea',
            'role_name': role_name,
        }, format='json', **auth_header)

    def test_create_and_list(self, api_client, auth_header):
        response = self.create_invite(api_client, auth_header)

        assert response.status_code == status.HTTP_201_CREATED
        assert response.json()['status'] == 'pending'
        assert response.json()['company_name'] == 'Acme'

        invites = api_client.get('/v1/invites', **auth_header).json()
        assert [invite['email'] for invite in invites] == ['bea@acme.example']

    def test_admin_invite_rejected(self, api_client, auth_header):
        response = self.create_invite(api_client, auth_header, role_name='Admin')

        assert response.status_code == status.HTTP_403_FORBIDDEN
        assert not Invite.objects.exists()

    def test_public_lookup(self, api_client, auth_header, company):
        invite_id = self.create_invite(api_client, auth_header).json()['id']

        response = api_client.get(f'/v1/invites/{company.id}/{invite_id}')

        assert response.status_code == status.HTTP_200_OK
        assert response.json()['company_name'] == 'Acme'
        assert response.json()['role_name'] == 'Viewer'

    def test_public_lookup_unknown(self, api_client, company):
        response = api_client.get(f'/v1/invites/{company.id}/{uuid.uuid4()}')

        assert response.status_code == status.HTTP_404_NOT_FOUND
        assert response.json()['error']['code'] == 'NOT_FOUND'

    def test_accept(self, api_client, auth_header, company):
        invite_id = self.create_invite(api_client, auth_header).json()['id']

        response = api_client.post(f'/v1/invites/{company.id}/{invite_id}/accept',
                                   {'password': PASSWORD}, format='json')

        assert response.status_code == status.HTTP_201_CREATED
        assert response.json()['profile']['role_name'] == 'Viewer'
        me = api_client.get('/v1/auth/me', **bearer(response.json()['token'])).json()
        assert me['profile']['email'] == 'bea@acme.example'
        assert me['permissions'] == ['view_dashboard']

    def test_accept_twice(self, api_client, auth_header, company):
        invite_id = self.create_invite(api_client, auth_header).json()['id']
        url = f'/v1/invites/{company.id}/{invite_id}/accept'

        assert api_client.post(url, {'password': PASSWORD}, format='json').status_code == 201
        response = api_client.post(url, {'password': PASSWORD}, format='json')

        assert response.status_code == status.HTTP_409_CONFLICT
        assert User.objects.filter(email='bea@acme.example').count() == 1

    def test_show_all(self, api_client, auth_header, company):
        invite_id = self.create_invite(api_client, auth_header).json()['id']
        api_client.post(f'/v1/invites/{company.id}/{invite_id}/accept', {'password': PASSWORD}, format='json')

        assert api_client.get('/v1/invites', **auth_header).json() == []
        invites = api_client.get('/v1/invites?show_all=true', **auth_header).json()
        assert [invite['status'] for invite in invites] == ['accepted']


@pytest.mark.django_db
class TestAuditLogEndpoint:

    def test_list_audit_logs(self, api_client, auth_header, make_member):
        make_member('viewer@acme.example')

        response = api_client.get('/v1/audit-logs', **auth_header)

        assert response.status_code == status.HTTP_200_OK
        body = response.json()
        assert body['count'] == 3
        assert body['results'][0]['action'] == 'user_added'
        assert body['results'][0]['actor_email'] == 'admin@acme.example'

    def test_filter_by_action(self, api_client, auth_header, make_member):
        make_member('viewer@acme.example')

        body = api_client.get('/v1/audit-logs?action=company_created', **auth_header).json()

        assert body['count'] == 1
        assert body['results'][0]['action'] == 'company_created'

    def test_whole_history_is_paginated(self, api_client, auth_header, company):
        AuditLog.objects.bulk_create([
            AuditLog(company=company, action='user_added', message=f'entry {i}')
            for i in range(1100)
        ])

        first = api_client.get('/v1/audit-logs?page_size=100', **auth_header).json()
        last = api_client.get('/v1/audit-logs?page_size=100&page=12', **auth_header).json()

        assert first['count'] == 1102
        assert len(first['results']) == 100
        assert last['next'] is None
        assert len(last['results']) == 2

    def test_viewer_cannot_read_audit_log(self, api_client, make_member):
        _, _, token = make_member('viewer@acme.example')

        assert api_client.get('/v1/audit-logs', **bearer(token)).status_code == status.HTTP_403_FORBIDDEN


@pytest.mark.django_db
class TestInviteOnboardingFlow:
    """A company admin invites a colleague who accepts and signs in."""

    def test_acme_invites_viewer(self, api_client, auth_header, company):
        assert len(api_client.get('/v1/roles', **auth_header).json()) == 3
        assert len(api_client.get('/v1/users', **auth_header).json()) == 1

        invite = api_client.post('/v1/invites', {
            'email': 'b@acme.example',
            'full_name': 'B',
            'role_name': 'Viewer',
        }, format='json', **auth_header).json()
        assert len(api_client.get('/v1/invites', **auth_header).json()) == 1

        accepted = api_client.post(f"/v1/invites/{company.id}/{invite['id']}/accept",
                                   {'password': PASSWORD}, format='json')
        assert accepted.status_code == status.HTTP_201_CREATED

        assert len(api_client.get('/v1/users', **auth_header).json()) == 2
        assert api_client.get('/v1/invites', **auth_header).json() == []

        login = api_client.post('/v1/auth/login', {'email': 'b@acme.example', 'password': PASSWORD},
                                format='json').json()
        me = api_client.get('/v1/auth/me', **bearer(login['token'])).json()
        assert me['permissions'] == ['view_dashboard']
        assert me['company']['name'] == 'Acme'
