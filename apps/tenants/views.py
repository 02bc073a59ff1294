"""
Company, dashboard and contact API views.
"""
from rest_framework.views import APIView
from rest_framework.response import Response
from rest_framework import status
from django.utils.decorators import method_decorator
from django_ratelimit.decorators import ratelimit
from drf_spectacular.utils import extend_schema, OpenApiExample
from drf_spectacular.types import OpenApiTypes
import logging

from apps.core.exceptions import NotFoundError, rate_limited_response
from apps.core.permissions import HasCompanyPermission, requires_permissions
from apps.tenants.serializers import (
    CompanySerializer, CompanyUpdateSerializer, ContactSubmissionSerializer, DashboardSerializer,
)
from apps.tenants.services import ContactService, DashboardService, TenantService

logger = logging.getLogger(__name__)


class CompanyView(APIView):
    """
    Current company of the authenticated user.

    GET /v1/company
    PATCH /v1/company

    Reading is open to every member; editing needs manage_users.
    """
    permission_classes = [HasCompanyPermission]

    @extend_schema(
        summary="Get company",
        description="The company the authenticated user belongs to",
        responses={200: CompanySerializer},
        tags=['Company']
    )
    def get(self, request):
        company = TenantService.get_company(request.company_id)
        if company is None:
            raise NotFoundError('Company not found')
        return Response(CompanySerializer(company).data)

    @extend_schema(
        summary="Update company",
        description="Partially update descriptive company fields. "
                    "Plan, status and dashboard URLs are reserved for platform operators.",
        request=CompanyUpdateSerializer,
        responses={
            200: CompanySerializer,
            400: OpenApiTypes.OBJECT,
            403: OpenApiTypes.OBJECT,
        },
        tags=['Company']
    )
    @requires_permissions('manage_users')
    def patch(self, request):
        serializer = CompanyUpdateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        company = TenantService.update_company(
            request.company_id,
            serializer.update_fields(),
            request.actor,
            apply_dashboard_to_admins=serializer.validated_data.get('apply_dashboard_to_admins', False),
            request=request,
        )
        return Response(CompanySerializer(company).data)


class DashboardView(APIView):
    """
    Embedded dashboard URLs for the authenticated user.

    GET /v1/dashboard

    Required permission: view_dashboard
    """
    permission_classes = [HasCompanyPermission]

    @extend_schema(
        summary="Get dashboard URLs",
        description="The user's assigned dashboard URLs, falling back to the company's",
        responses={200: DashboardSerializer, 403: OpenApiTypes.OBJECT},
        tags=['Dashboard']
    )
    def get(self, request):
        urls = DashboardService.get_dashboard_urls(request.user.id)
        return Response({'dashboard_urls': urls or []})


@extend_schema(
    summary="Submit contact form",
    description="Public contact form. Submissions are read by platform operators.\n\n"
                "**Rate limit**: 5 requests/hour per IP",
    request=ContactSubmissionSerializer,
    responses={
        201: ContactSubmissionSerializer,
        400: OpenApiTypes.OBJECT,
        429: OpenApiTypes.OBJECT,
    },
    examples=[
        OpenApiExample(
            'Contact Request',
            value={
                'name': 'Dee Prospect',
                'email': 'dee@example.com',
                'company_name': 'Prospect Ltd',
                'message': 'We would like a demo.'
            },
            request_only=True
        ),
    ],
    tags=['Contact']
)
@method_decorator(ratelimit(key='ip', rate='5/h', method='POST', block=False), name='dispatch')
class ContactView(APIView):
    """
    POST /v1/contact

    No authentication required.
    """
    authentication_classes = []
    permission_classes = []

    def post(self, request):
        if getattr(request, 'limited', False):
            return rate_limited_response(request, limit='5/hour per IP')

        serializer = ContactSubmissionSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        submission = ContactService.submit(
            serializer.validated_data['name'],
            serializer.validated_data['email'],
            serializer.validated_data['company_name'],
            message=serializer.validated_data.get('message'),
        )
        return Response(ContactSubmissionSerializer(submission).data, status=status.HTTP_201_CREATED)
