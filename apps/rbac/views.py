"""
RBAC REST API views.

Implements endpoints for:
- Company user management (list, add, change role, remove)
- Role management (list, create, edit permissions, delete)
- Invites (create, list, public lookup and acceptance)
- Audit log viewing

Company-scoped endpoints act on the caller's own company; the services
re-check every permission against the actor passed in.
"""
from rest_framework import status
from rest_framework.views import APIView
from rest_framework.response import Response
from rest_framework.pagination import PageNumberPagination
from django.utils.decorators import method_decorator
from django_ratelimit.decorators import ratelimit
from drf_spectacular.utils import extend_schema, extend_schema_view, OpenApiParameter, OpenApiExample
from drf_spectacular.types import OpenApiTypes

from apps.core.exceptions import NotFoundError, rate_limited_response
from apps.core.permissions import HasCompanyPermission, requires_permissions
from apps.rbac.services import AuditService, InviteService, RoleService, UserService
from apps.rbac.serializers import (
    AddUserSerializer, AuditLogSerializer, ChangeRoleSerializer, CompanyUserSerializer,
    InviteAcceptSerializer, InviteCreateSerializer, InviteDetailSerializer, InviteSerializer,
    RoleCreateSerializer, RoleSerializer, RoleUpdateSerializer,
)


class StandardResultsSetPagination(PageNumberPagination):
    """Standard pagination for list endpoints."""
    page_size = 50
    page_size_query_param = 'page_size'
    max_page_size = 100


# ===== USERS =====

@extend_schema_view(
    get=extend_schema(
        tags=['Users'],
        summary='List company users',
        description='Users of the caller\'s company, each with the current permissions of their role.',
        responses={200: CompanyUserSerializer(many=True), 403: OpenApiTypes.OBJECT},
    ),
    post=extend_schema(
        tags=['Users'],
        summary='Add user',
        description='''
Provision an account and company profile directly.

The Admin role cannot be assigned here. Creating the account never touches
the caller's own session.
        ''',
        request=AddUserSerializer,
        responses={
            201: CompanyUserSerializer,
            400: OpenApiTypes.OBJECT,
            403: OpenApiTypes.OBJECT,
            409: OpenApiTypes.OBJECT,
        },
        examples=[
            OpenApiExample(
                'Add User Request',
                value={
                    'full_name': 'Bea Analyst',
                    'email': 'bea@acme.example',
                    'password': 'SecurePass123!',
                    'role_name': 'Analyst'
                },
                request_only=True
            ),
        ]
    ),
)
@requires_permissions('manage_users')
class UserListView(APIView):
    """
    GET /v1/users
    POST /v1/users

    Required permission: manage_users
    """
    permission_classes = [HasCompanyPermission]

    def get(self, request):
        users = UserService.list_users(request.company_id, request.actor)
        return Response(CompanyUserSerializer(users, many=True).data)

    def post(self, request):
        serializer = AddUserSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        company_user = UserService.add_user(
            request.company_id,
            profile={
                'full_name': data['full_name'],
                'email': data['email'],
                'role_name': data['role_name'],
                'phone_number': data.get('phone_number', ''),
                'dashboard_urls': data.get('dashboard_urls', []),
            },
            credentials={'password': data['password']},
            actor=request.actor,
            request=request,
        )
        return Response(CompanyUserSerializer(company_user).data, status=status.HTTP_201_CREATED)


@extend_schema_view(
    patch=extend_schema(
        tags=['Users'],
        summary='Change user role',
        description='Move a user to another existing role. Admin is never a valid target.',
        request=ChangeRoleSerializer,
        responses={
            200: CompanyUserSerializer,
            400: OpenApiTypes.OBJECT,
            403: OpenApiTypes.OBJECT,
            404: OpenApiTypes.OBJECT,
        },
    ),
)
@requires_permissions('manage_users')
class UserRoleView(APIView):
    """
    PATCH /v1/users/{user_id}/role

    Required permission: manage_users
    """
    permission_classes = [HasCompanyPermission]

    def patch(self, request, user_id):
        serializer = ChangeRoleSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        company_user = UserService.change_role(
            user_id,
            serializer.validated_data['role_name'],
            request.actor,
            request=request,
        )
        return Response(CompanyUserSerializer(company_user).data)


@extend_schema_view(
    delete=extend_schema(
        tags=['Users'],
        summary='Remove user',
        description='''
Delete a user's company profile. The account itself is kept but no longer
resolves to any company. You cannot remove yourself or the last Admin.
        ''',
        responses={
            204: None,
            400: OpenApiTypes.OBJECT,
            403: OpenApiTypes.OBJECT,
            404: OpenApiTypes.OBJECT,
            409: OpenApiTypes.OBJECT,
        },
    ),
)
@requires_permissions('manage_users')
class UserDetailView(APIView):
    """
    DELETE /v1/users/{user_id}

    Required permission: manage_users
    """
    permission_classes = [HasCompanyPermission]

    def delete(self, request, user_id):
        UserService.remove_user(user_id, request.actor, request=request)
        return Response(status=status.HTTP_204_NO_CONTENT)


# ===== ROLES =====

class RoleListView(APIView):
    """
    GET /v1/roles
    POST /v1/roles

    Listing is open to every company member; creating needs manage_roles.
    """
    permission_classes = [HasCompanyPermission]

    @extend_schema(
        tags=['Roles'],
        summary='List roles',
        description='Roles of the caller\'s company, sorted by name.',
        responses={200: RoleSerializer(many=True)},
    )
    def get(self, request):
        roles = RoleService.list_roles(request.company_id, request.actor)
        return Response(RoleSerializer(roles, many=True).data)

    @extend_schema(
        tags=['Roles'],
        summary='Create role',
        description='Names are unique per company ignoring case, so "admin" clashes with "Admin".',
        request=RoleCreateSerializer,
        responses={
            201: RoleSerializer,
            400: OpenApiTypes.OBJECT,
            403: OpenApiTypes.OBJECT,
            409: OpenApiTypes.OBJECT,
        },
        examples=[
            OpenApiExample(
                'Create Role Request',
                value={
                    'name': 'Support',
                    'permissions': ['view_dashboard']
                },
                request_only=True
            ),
        ]
    )
    @requires_permissions('manage_roles')
    def post(self, request):
        serializer = RoleCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        role = RoleService.add_role(
            request.company_id,
            serializer.validated_data['name'],
            serializer.validated_data['permissions'],
            request.actor,
            request=request,
        )
        return Response(RoleSerializer(role).data, status=status.HTTP_201_CREATED)


@extend_schema_view(
    put=extend_schema(
        tags=['Roles'],
        summary='Update role permissions',
        description='Replace the permission set of a role. The Admin role cannot be edited.',
        request=RoleUpdateSerializer,
        responses={
            200: RoleSerializer,
            403: OpenApiTypes.OBJECT,
            404: OpenApiTypes.OBJECT,
        },
    ),
    delete=extend_schema(
        tags=['Roles'],
        summary='Delete role',
        description='The Admin role and roles still assigned to users cannot be deleted.',
        responses={
            204: None,
            403: OpenApiTypes.OBJECT,
            404: OpenApiTypes.OBJECT,
            409: OpenApiTypes.OBJECT,
        },
    ),
)
@requires_permissions('manage_roles')
class RoleDetailView(APIView):
    """
    PUT /v1/roles/{role_name}
    DELETE /v1/roles/{role_name}

    Required permission: manage_roles
    """
    permission_classes = [HasCompanyPermission]

    def put(self, request, role_name):
        serializer = RoleUpdateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        role = RoleService.update_role_permissions(
            request.company_id,
            role_name,
            serializer.validated_data['permissions'],
            request.actor,
            request=request,
        )
        return Response(RoleSerializer(role).data)

    def delete(self, request, role_name):
        RoleService.delete_role(request.company_id, role_name, request.actor, request=request)
        return Response(status=status.HTTP_204_NO_CONTENT)


# ===== INVITES =====

@extend_schema_view(
    get=extend_schema(
        tags=['Invites'],
        summary='List invites',
        parameters=[
            OpenApiParameter(
                name='show_all',
                type=OpenApiTypes.BOOL,
                location=OpenApiParameter.QUERY,
                description='Include accepted invites'
            ),
        ],
        responses={200: InviteSerializer(many=True)},
    ),
    post=extend_schema(
        tags=['Invites'],
        summary='Invite user',
        description='''
Invite an email address into the company with a role.

The invitee receives an email with an acceptance link. Admin cannot be
granted by invite; an already registered email or a second pending invite
for the same email is rejected.
        ''',
        request=InviteCreateSerializer,
        responses={
            201: InviteSerializer,
            400: OpenApiTypes.OBJECT,
            403: OpenApiTypes.OBJECT,
            409: OpenApiTypes.OBJECT,
        },
        examples=[
            OpenApiExample(
                'Invite Request',
                value={
                    'email': 'cy@acme.example',
                    'full_name': 'Cy Viewer',
                    'role_name': 'Viewer'
                },
                request_only=True
            ),
        ]
    ),
)
@requires_permissions('manage_users')
class InviteListView(APIView):
    """
    GET /v1/invites
    POST /v1/invites

    Required permission: manage_users
    """
    permission_classes = [HasCompanyPermission]

    def get(self, request):
        show_all = request.query_params.get('show_all', '').lower() in ('1', 'true', 'yes')
        invites = InviteService.list_invites(request.company_id, request.actor, show_all=show_all)
        return Response(InviteSerializer(invites, many=True).data)

    def post(self, request):
        serializer = InviteCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        invite = InviteService.create_invite(
            request.company_id,
            serializer.validated_data['email'],
            serializer.validated_data['full_name'],
            serializer.validated_data['role_name'],
            request.actor,
            request=request,
        )
        return Response(InviteSerializer(invite).data, status=status.HTTP_201_CREATED)


@extend_schema(
    tags=['Invites'],
    summary='Get invite details',
    description='Public lookup used by the acceptance page.',
    responses={200: InviteDetailSerializer, 404: OpenApiTypes.OBJECT},
)
class InviteDetailView(APIView):
    """
    GET /v1/invites/{company_id}/{invite_id}

    No authentication required.
    """
    authentication_classes = []
    permission_classes = []

    def get(self, request, company_id, invite_id):
        invite = InviteService.get_invite(company_id, invite_id)
        if invite is None:
            raise NotFoundError('Invite not found')
        return Response(InviteDetailSerializer(invite).data)


@extend_schema(
    tags=['Invites'],
    summary='Accept invite',
    description='''
Redeem an invite: creates the account and company profile and returns a
session token.

**No authentication required** - this is a public endpoint.

**Rate limit**: 10 requests/hour per IP
    ''',
    request=InviteAcceptSerializer,
    responses={
        201: OpenApiTypes.OBJECT,
        400: OpenApiTypes.OBJECT,
        404: OpenApiTypes.OBJECT,
        409: OpenApiTypes.OBJECT,
        429: OpenApiTypes.OBJECT,
    },
)
@method_decorator(ratelimit(key='ip', rate='10/h', method='POST', block=False), name='dispatch')
class InviteAcceptView(APIView):
    """
    POST /v1/invites/{company_id}/{invite_id}/accept
    """
    authentication_classes = []
    permission_classes = []

    def post(self, request, company_id, invite_id):
        if getattr(request, 'limited', False):
            return rate_limited_response(request, limit='10/hour per IP')

        serializer = InviteAcceptSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        result = InviteService.accept_invite(
            company_id,
            invite_id,
            serializer.validated_data['password'],
            full_name=serializer.validated_data.get('full_name') or None,
            request=request,
        )
        return Response(
            {
                'profile': CompanyUserSerializer(result['profile']).data,
                'token': result['token'],
            },
            status=status.HTTP_201_CREATED
        )


# ===== AUDIT LOG =====

@extend_schema_view(
    get=extend_schema(
        tags=['Audit'],
        summary='List audit log entries',
        description='Administrative actions in the caller\'s company, newest first.',
        parameters=[
            OpenApiParameter(
                name='action',
                type=OpenApiTypes.STR,
                location=OpenApiParameter.QUERY,
                description='Filter by action code (e.g. role_changed)'
            ),
            OpenApiParameter(
                name='page',
                type=OpenApiTypes.INT,
                location=OpenApiParameter.QUERY,
            ),
        ],
        responses={200: AuditLogSerializer(many=True)},
    ),
)
@requires_permissions('manage_users')
class AuditLogListView(APIView):
    """
    GET /v1/audit-logs

    Required permission: manage_users
    """
    permission_classes = [HasCompanyPermission]
    pagination_class = StandardResultsSetPagination

    def get(self, request):
        entries = AuditService.list_entries(
            request.company_id,
            request.actor,
            action=request.query_params.get('action') or None,
        )

        paginator = self.pagination_class()
        page = paginator.paginate_queryset(entries, request)
        serializer = AuditLogSerializer(page, many=True)
        return paginator.get_paginated_response(serializer.data)
