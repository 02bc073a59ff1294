"""
Authentication REST API views.

Implements endpoints for:
- Company registration (company + first Admin)
- Login and logout
- Re-authentication and password change
- The signed-in user's resolved profile
"""
import json
import logging

from django.http.request import RawPostDataException
from rest_framework import status
from rest_framework.views import APIView
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated
from django_ratelimit.decorators import ratelimit
from django.utils.decorators import method_decorator
from drf_spectacular.utils import extend_schema, OpenApiExample
from drf_spectacular.types import OpenApiTypes

from apps.core.exceptions import AuthenticationError, PermissionDeniedError, rate_limited_response
from apps.core.logging import SecurityLogger
from apps.rbac.services import IdentityProvider, UserService
from apps.rbac.serializers import (
    RegistrationSerializer, LoginSerializer, ReauthenticateSerializer,
    ChangePasswordSerializer, ProfileUpdateSerializer, CompanyUserSerializer,
)
from apps.tenants.services import DashboardService, TenantService

logger = logging.getLogger(__name__)


def login_email_key(group, request):
    """
    Rate limit key for logins: the submitted email, lowercased.

    The body is JSON, so `request.POST` is empty here. Requests without a
    readable email fall back to the client IP.
    """
    try:
        payload = json.loads(request.body or b'{}')
    except (ValueError, RawPostDataException):
        payload = {}
    email = payload.get('email') if isinstance(payload, dict) else None
    if isinstance(email, str) and email.strip():
        return email.strip().lower()
    return request.META.get('REMOTE_ADDR', '')


def _user_payload(user):
    return {
        'id': str(user.id),
        'email': user.email,
        'is_platform_operator': user.is_platform_operator,
    }


@extend_schema(
    tags=['Authentication'],
    summary='Register company',
    description='''
Register a new company together with its first Admin user.

Creates:
- Identity account for the admin
- Company on the Trial plan
- Default roles (Admin, Analyst, Viewer)
- Admin's company profile with role Admin

Returns a JWT token for immediate login.

**No authentication required** - this is a public endpoint.

**Rate limit**: 3 requests/hour per IP
    ''',
    request=RegistrationSerializer,
    responses={
        201: OpenApiTypes.OBJECT,
        400: OpenApiTypes.OBJECT,
        409: OpenApiTypes.OBJECT,
        429: OpenApiTypes.OBJECT,
    },
    examples=[
        OpenApiExample(
            'Registration Request',
            value={
                'company_name': 'Acme',
                'industry': 'technology',
                'company_size': '11-50',
                'phone_number': '+1 555 0100',
                'full_name': 'Ada Admin',
                'email': 'ada@acme.example',
                'password': 'SecurePass123!'
            },
            request_only=True
        ),
        OpenApiExample(
            'Email Already Registered',
            value={
                'error': {
                    'code': 'CONFLICT',
                    'message': 'A user with this email already exists',
                    'details': {'email': ['A user with this email already exists.']}
                },
                'request_id': '7f0c1c2e-0d3c-4a57-9d59-0f1b1a0c8d11'
            },
            response_only=True,
            status_codes=['409']
        ),
    ]
)
@method_decorator(ratelimit(key='ip', rate='3/h', method='POST', block=False), name='dispatch')
class RegistrationView(APIView):
    """
    POST /v1/auth/register

    Register a company and its first Admin.

    No authentication required.
    Rate limited to 3 requests per hour per IP.
    """
    authentication_classes = []
    permission_classes = []

    def post(self, request):
        if getattr(request, 'limited', False):
            return rate_limited_response(request, limit='3/hour per IP')

        serializer = RegistrationSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        result = TenantService.register_company(
            serializer.company_info(),
            serializer.first_admin(),
        )
        company = result['company']
        admin = result['admin']

        return Response(
            {
                'user': _user_payload(result['user']),
                'company': {
                    'id': str(company.id),
                    'name': company.name,
                    'subscription_plan': company.subscription_plan,
                },
                'profile': CompanyUserSerializer(admin).data,
                'token': result['token'],
                'message': 'Registration successful.'
            },
            status=status.HTTP_201_CREATED
        )


@extend_schema(
    tags=['Authentication'],
    summary='Login user',
    description='''
Authenticate with email and password.

**No authentication required** - this is a public endpoint.

**Rate limits**:
- 5 requests/minute per IP address
- 10 requests/hour per email address
    ''',
    request=LoginSerializer,
    responses={
        200: OpenApiTypes.OBJECT,
        401: OpenApiTypes.OBJECT,
        429: OpenApiTypes.OBJECT,
    },
    examples=[
        OpenApiExample(
            'Login Request',
            value={
                'email': 'ada@acme.example',
                'password': 'SecurePass123!'
            },
            request_only=True
        ),
        OpenApiExample(
            'Invalid Credentials',
            value={
                'error': {
                    'code': 'AUTHENTICATION_FAILED',
                    'message': 'Invalid email or password'
                },
                'request_id': '7f0c1c2e-0d3c-4a57-9d59-0f1b1a0c8d11'
            },
            response_only=True,
            status_codes=['401']
        ),
    ]
)
@method_decorator(ratelimit(key='ip', rate='5/m', method='POST', block=False), name='dispatch')
@method_decorator(ratelimit(key=login_email_key, rate='10/h', method='POST', block=False), name='dispatch')
class LoginView(APIView):
    """
    POST /v1/auth/login

    Authenticate user and return JWT token.
    """
    authentication_classes = []
    permission_classes = []

    def post(self, request):
        if getattr(request, 'limited', False):
            return rate_limited_response(request, limit='5/min per IP or 10/hour per email')

        serializer = LoginSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        result = IdentityProvider.sign_in(
            email=serializer.validated_data['email'],
            password=serializer.validated_data['password']
        )

        if not result:
            SecurityLogger.log_failed_login(
                email=serializer.validated_data['email'],
                ip_address=request.META.get('REMOTE_ADDR', 'unknown'),
                user_agent=request.META.get('HTTP_USER_AGENT', 'unknown'),
                reason='Invalid credentials'
            )
            raise AuthenticationError('Invalid email or password')

        return Response(
            {
                'user': _user_payload(result['user']),
                'token': result['token'],
                'message': 'Login successful'
            },
            status=status.HTTP_200_OK
        )


@extend_schema(
    tags=['Authentication'],
    summary='Logout user',
    description='Revoke every token issued to the signed-in account.',
    request=None,
    responses={200: OpenApiTypes.OBJECT, 401: OpenApiTypes.OBJECT},
)
class LogoutView(APIView):
    """
    POST /v1/auth/logout
    """
    permission_classes = [IsAuthenticated]

    def post(self, request):
        IdentityProvider.sign_out(request.user)
        logger.info("User signed out", extra={'user_id': str(request.user.id)})
        return Response({'message': 'Logout successful'}, status=status.HTTP_200_OK)


@extend_schema(
    tags=['Authentication'],
    summary='Re-authenticate',
    description='''
Confirm the password of the signed-in account before a sensitive action.

Returns a fresh token; earlier tokens stay valid.
    ''',
    request=ReauthenticateSerializer,
    responses={200: OpenApiTypes.OBJECT, 401: OpenApiTypes.OBJECT},
)
@method_decorator(ratelimit(key='ip', rate='5/m', method='POST', block=False), name='dispatch')
class ReauthenticateView(APIView):
    """
    POST /v1/auth/reauthenticate
    """
    permission_classes = [IsAuthenticated]

    def post(self, request):
        if getattr(request, 'limited', False):
            return rate_limited_response(request, limit='5/min per IP')

        serializer = ReauthenticateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        token = IdentityProvider.reauthenticate(request.user, serializer.validated_data['password'])
        if token is None:
            SecurityLogger.log_failed_login(
                email=request.user.email,
                ip_address=request.META.get('REMOTE_ADDR', 'unknown'),
                user_agent=request.META.get('HTTP_USER_AGENT', 'unknown'),
                reason='Re-authentication failed'
            )
            raise AuthenticationError('Invalid password')

        return Response({'token': token}, status=status.HTTP_200_OK)


@extend_schema(
    tags=['Authentication'],
    summary='Change password',
    description='''
Change the signed-in account's password.

Requires the current password. Every token issued before is revoked; use
the token in the response from now on.
    ''',
    request=ChangePasswordSerializer,
    responses={200: OpenApiTypes.OBJECT, 400: OpenApiTypes.OBJECT, 401: OpenApiTypes.OBJECT},
)
class ChangePasswordView(APIView):
    """
    POST /v1/auth/change-password
    """
    permission_classes = [IsAuthenticated]

    def post(self, request):
        serializer = ChangePasswordSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        token = IdentityProvider.change_password(
            request.user,
            serializer.validated_data['current_password'],
            serializer.validated_data['new_password'],
        )
        return Response(
            {'token': token, 'message': 'Password changed'},
            status=status.HTTP_200_OK
        )


class UserProfileView(APIView):
    """
    GET /v1/auth/me
    PUT /v1/auth/me

    The signed-in user with their company, role, permissions and dashboard.
    """
    permission_classes = [IsAuthenticated]

    @extend_schema(
        tags=['Authentication'],
        summary='Get current user profile',
        description='''
Resolved profile of the signed-in user.

`profile` is null for accounts without a company (for example a platform
operator or a removed user). Dashboard URLs are empty when the role lacks
view_dashboard.
        ''',
        responses={200: OpenApiTypes.OBJECT, 401: OpenApiTypes.OBJECT},
    )
    def get(self, request):
        actor = request.actor
        profile = actor.profile if actor else None

        body = {
            'user': _user_payload(request.user),
            'profile': None,
            'company': None,
            'permissions': [],
            'dashboard_urls': [],
        }

        if profile is not None:
            body['profile'] = {
                'full_name': profile.full_name,
                'email': profile.email,
                'role': profile.role,
            }
            body['permissions'] = sorted(profile.permissions)

            company = TenantService.get_company(profile.company_id)
            if company is not None:
                body['company'] = {
                    'id': str(company.id),
                    'name': company.name,
                    'subscription_plan': company.subscription_plan,
                    'is_active': company.is_active,
                }

            # A missing view_dashboard permission hides the dashboard, not the profile
            try:
                body['dashboard_urls'] = DashboardService.get_dashboard_urls(request.user.id) or []
            except PermissionDeniedError:
                body['dashboard_urls'] = []

        return Response(body, status=status.HTTP_200_OK)

    @extend_schema(
        tags=['Authentication'],
        summary='Update current user profile',
        request=ProfileUpdateSerializer,
        responses={200: CompanyUserSerializer, 404: OpenApiTypes.OBJECT},
    )
    def put(self, request):
        serializer = ProfileUpdateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        company_user = UserService.update_profile(
            request.actor,
            full_name=serializer.validated_data.get('full_name'),
            phone_number=serializer.validated_data.get('phone_number'),
        )
        return Response(CompanyUserSerializer(company_user).data, status=status.HTTP_200_OK)
