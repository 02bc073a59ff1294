"""
Admin API views for platform operators.

Provides endpoints for:
- Company listing, creation and updates across tenants
- Platform overview counters
- Contact form submissions

Access requires the explicit platform-operator flag on the account;
company roles never grant it.
"""
from rest_framework.views import APIView
from rest_framework.response import Response
from rest_framework import status
from rest_framework.pagination import PageNumberPagination
from drf_spectacular.utils import extend_schema, OpenApiParameter
from drf_spectacular.types import OpenApiTypes
import logging

from apps.core.permissions import IsPlatformOperator
from apps.tenants.serializers import (
    CompanySerializer, CompanyUpdateSerializer, ContactSubmissionSerializer,
    PlatformCompanyCreateSerializer, PlatformOverviewSerializer,
)
from apps.tenants.services import ContactService, TenantService

logger = logging.getLogger(__name__)


class StandardResultsSetPagination(PageNumberPagination):
    """Standard pagination for list endpoints."""
    page_size = 50
    page_size_query_param = 'page_size'
    max_page_size = 100


class AdminCompanyListView(APIView):
    """
    GET /v1/platform/companies
    POST /v1/platform/companies

    Required: platform operator
    """
    permission_classes = [IsPlatformOperator]
    pagination_class = StandardResultsSetPagination

    @extend_schema(
        summary="List all companies (admin)",
        description="Every company, newest first.",
        parameters=[
            OpenApiParameter(
                name='plan',
                type=OpenApiTypes.STR,
                location=OpenApiParameter.QUERY,
                description='Filter by subscription plan',
                enum=['Trial', 'Basic', 'Enterprise']
            ),
            OpenApiParameter(
                name='page',
                type=OpenApiTypes.INT,
                location=OpenApiParameter.QUERY,
                description='Page number'
            ),
        ],
        responses={200: CompanySerializer(many=True), 403: OpenApiTypes.OBJECT},
        tags=['Admin - Companies']
    )
    def get(self, request):
        companies = TenantService.list_companies(request.actor)

        plan = request.query_params.get('plan')
        if plan:
            companies = [company for company in companies if company.subscription_plan == plan]

        paginator = self.pagination_class()
        page = paginator.paginate_queryset(companies, request)
        return paginator.get_paginated_response(CompanySerializer(page, many=True).data)

    @extend_schema(
        summary="Create company (admin)",
        description="Create a company with its first Admin user on any plan.",
        request=PlatformCompanyCreateSerializer,
        responses={
            201: CompanySerializer,
            400: OpenApiTypes.OBJECT,
            409: OpenApiTypes.OBJECT,
        },
        tags=['Admin - Companies']
    )
    def post(self, request):
        serializer = PlatformCompanyCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        result = TenantService.create_company(serializer.company_info(), serializer.first_admin())

        logger.info(
            "Company created by platform operator",
            extra={
                'company_id': str(result['company'].id),
                'operator_id': str(request.actor.user_id),
            }
        )
        return Response(CompanySerializer(result['company']).data, status=status.HTTP_201_CREATED)


class AdminCompanyDetailView(APIView):
    """
    PATCH /v1/platform/companies/{company_id}

    Required: platform operator
    """
    permission_classes = [IsPlatformOperator]

    @extend_schema(
        summary="Update company (admin)",
        description="Update any company field, including plan, active flag and dashboard URLs. "
                    "With apply_dashboard_to_admins the new URLs are also set on every Admin user.",
        request=CompanyUpdateSerializer,
        responses={
            200: CompanySerializer,
            400: OpenApiTypes.OBJECT,
            404: OpenApiTypes.OBJECT,
        },
        tags=['Admin - Companies']
    )
    def patch(self, request, company_id):
        serializer = CompanyUpdateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        company = TenantService.update_company(
            company_id,
            serializer.update_fields(),
            request.actor,
            apply_dashboard_to_admins=serializer.validated_data.get('apply_dashboard_to_admins', False),
            request=request,
        )
        return Response(CompanySerializer(company).data)


class AdminOverviewView(APIView):
    """
    GET /v1/platform/overview

    Required: platform operator
    """
    permission_classes = [IsPlatformOperator]

    @extend_schema(
        summary="Platform overview (admin)",
        description="Company, subscription and user counts with estimated monthly revenue.",
        responses={200: PlatformOverviewSerializer, 403: OpenApiTypes.OBJECT},
        tags=['Admin - Overview']
    )
    def get(self, request):
        overview = TenantService.platform_overview(request.actor)
        return Response(PlatformOverviewSerializer(overview).data)


class AdminContactListView(APIView):
    """
    GET /v1/platform/contacts

    Required: platform operator
    """
    permission_classes = [IsPlatformOperator]
    pagination_class = StandardResultsSetPagination

    @extend_schema(
        summary="List contact submissions (admin)",
        responses={200: ContactSubmissionSerializer(many=True), 403: OpenApiTypes.OBJECT},
        tags=['Admin - Contacts']
    )
    def get(self, request):
        submissions = ContactService.list_submissions(request.actor)

        paginator = self.pagination_class()
        page = paginator.paginate_queryset(submissions, request)
        return paginator.get_paginated_response(ContactSubmissionSerializer(page, many=True).data)
