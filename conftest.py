"""
Pytest configuration and fixtures.
"""
import pytest

PASSWORD = 'SecurePass123!'


@pytest.fixture
def api_client():
    """Return DRF API client."""
    from rest_framework.test import APIClient
    return APIClient()


def _create_company(name, admin_email, admin_name='Ada Admin', **company_fields):
    from apps.tenants.services import TenantService
    company_info = {'name': name, 'industry': 'technology'}
    company_info.update(company_fields)
    return TenantService.create_company(
        company_info,
        {'email': admin_email, 'password': PASSWORD, 'full_name': admin_name},
    )


@pytest.fixture
def company_setup(db):
    """Create the Acme company with its first Admin."""
    return _create_company('Acme', 'admin@acme.example')


@pytest.fixture
def company(company_setup):
    return company_setup['company']


@pytest.fixture
def admin_user(company_setup):
    """Identity account of Acme's Admin."""
    return company_setup['user']


@pytest.fixture
def admin_profile(company_setup):
    """Acme Admin's CompanyUser profile."""
    return company_setup['admin']


@pytest.fixture
def admin_actor(admin_user):
    from apps.rbac.services import AuthorizationResolver
    return AuthorizationResolver.actor_for(admin_user)


@pytest.fixture
def admin_token(admin_user):
    from apps.rbac.services import IdentityProvider
    return IdentityProvider.issue_token(admin_user)


@pytest.fixture
def auth_header(admin_token):
    """Authorization header kwargs for the Acme Admin."""
    return {'HTTP_AUTHORIZATION': f'Bearer {admin_token}'}


@pytest.fixture
def other_company_setup(db):
    """A second, unrelated company for isolation tests."""
    return _create_company('Globex', 'admin@globex.example', admin_name='Hank Admin')


@pytest.fixture
def make_member(company, admin_actor):
    """
    Factory adding a user to Acme with the given role.

    Returns (user, actor, token).
    """
    from apps.rbac.services import AuthorizationResolver, IdentityProvider, UserService

    def _make(email, role_name='Viewer', full_name='Member User'):
        profile = UserService.add_user(
            company.id,
            {'full_name': full_name, 'email': email, 'role_name': role_name},
            {'password': PASSWORD},
            admin_actor,
        )
        user = profile.user
        return user, AuthorizationResolver.actor_for(user), IdentityProvider.issue_token(user)

    return _make


@pytest.fixture
def platform_operator(db):
    """An account flagged as platform operator, with no company."""
    from apps.rbac.models import User
    return User.objects.create_user(
        email='operator@platform.example',
        password=PASSWORD,
        is_platform_operator=True,
    )


@pytest.fixture
def operator_actor(platform_operator):
    from apps.rbac.services import AuthorizationResolver
    return AuthorizationResolver.actor_for(platform_operator)


@pytest.fixture
def operator_header(platform_operator):
    from apps.rbac.services import IdentityProvider
    return {'HTTP_AUTHORIZATION': f'Bearer {IdentityProvider.issue_token(platform_operator)}'}
