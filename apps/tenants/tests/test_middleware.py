"""
Tests for request context middleware.
"""
import json
import threading

import pytest
from django.contrib.auth.models import AnonymousUser
from django.http import HttpResponse
from django.test import RequestFactory

from apps.core.middleware import RequestIDMiddleware
from apps.rbac.services import IdentityProvider
from apps.tenants.middleware import CompanyContextMiddleware


def get_response(request):
    return HttpResponse('ok')


@pytest.fixture
def request_factory():
    return RequestFactory()


@pytest.fixture
def middleware():
    return CompanyContextMiddleware(get_response)


def anonymous(request):
    request.user = AnonymousUser()
    return request


@pytest.mark.django_db
class TestCompanyContextMiddleware:
    """Test token resolution into request context."""

    def test_no_header_leaves_request_anonymous(self, middleware, request_factory):
        request = anonymous(request_factory.get('/v1/company'))

        assert middleware.process_request(request) is None
        assert request.actor is None
        assert request.company_id is None
        assert request.permissions == frozenset()
        assert request.user.is_authenticated is False

    def test_valid_token_sets_context(self, middleware, request_factory, company, admin_user, admin_token):
        request = anonymous(request_factory.get('/v1/company', HTTP_AUTHORIZATION=f'Bearer {admin_token}'))

        assert middleware.process_request(request) is None
        assert request.user == admin_user
        assert request.auth_token == admin_token
        assert request.company_id == company.id
        assert request.profile.role == 'Admin'
        assert 'manage_users' in request.permissions
        assert threading.current_thread().company_id == str(company.id)
        del threading.current_thread().company_id

    def test_operator_without_company(self, middleware, request_factory, platform_operator):
        token = IdentityProvider.issue_token(platform_operator)
        request = anonymous(request_factory.get('/v1/platform/overview', HTTP_AUTHORIZATION=f'Bearer {token}'))

        middleware.process_request(request)

        assert request.actor.is_platform_operator is True
        assert request.profile is None
        assert request.company_id is None

    def test_wrong_scheme(self, middleware, request_factory):
        request = anonymous(request_factory.get('/v1/company', HTTP_AUTHORIZATION='Basic dXNlcjpwYXNz'))

        response = middleware.process_request(request)

        assert response.status_code == 401
        assert json.loads(response.content)['error']['code'] == 'INVALID_AUTH_HEADER'

    def test_revoked_token(self, middleware, request_factory, admin_user, admin_token):
        IdentityProvider.sign_out(admin_user)
        request = anonymous(request_factory.get('/v1/company', HTTP_AUTHORIZATION=f'Bearer {admin_token}'))

        response = middleware.process_request(request)

        assert response.status_code == 401
        assert json.loads(response.content)['error']['code'] == 'INVALID_TOKEN'

    def test_public_paths_skip_token_checks(self, middleware, request_factory):
        request = anonymous(request_factory.get('/schema/', HTTP_AUTHORIZATION='Bearer garbage'))

        assert middleware.process_request(request) is None
        assert request.actor is None


class TestRequestIDMiddleware:

    def test_generates_and_echoes_request_id(self, request_factory):
        middleware = RequestIDMiddleware(get_response)
        request = request_factory.get('/v1/company')

        response = middleware(request)

        assert request.request_id
        assert response['X-Request-ID'] == request.request_id
        assert not hasattr(threading.current_thread(), 'request_id')

    def test_keeps_incoming_request_id(self, request_factory):
        middleware = RequestIDMiddleware(get_response)
        request = request_factory.get('/v1/company', HTTP_X_REQUEST_ID='trace-abc')

        response = middleware(request)

        assert response['X-Request-ID'] == 'trace-abc'
