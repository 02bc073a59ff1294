"""
Company lifecycle: creation with the first Admin, reads, edits and the
platform-operator views across companies.
"""
import logging
from typing import Optional, Dict, Any, List

from django.conf import settings
from django.db import transaction
from django.db.models import Count

from apps.core.exceptions import NotFoundError, PermissionDeniedError, ValidationError
from apps.core.permissions import MANAGE_USERS, PLATFORM_ADMIN, can, require_permission
from apps.core.validators import clean_email, clean_phone, clean_urls, parse_uuid
from apps.rbac.models import ADMIN_ROLE, AuditLog, CompanyUser, UserCompanyLookup
from apps.rbac.services import IdentityProvider, RoleService
from apps.tenants.models import Company

logger = logging.getLogger(__name__)


class TenantService:
    """
    Service for company creation and management.
    """

    # Fields a company member holding manage_users may edit
    MEMBER_EDITABLE_FIELDS = {'name', 'industry', 'company_size', 'phone_number'}

    # Billing and dashboard configuration stay with the platform operator
    OPERATOR_EDITABLE_FIELDS = MEMBER_EDITABLE_FIELDS | {
        'subscription_plan', 'subscription_status', 'is_active', 'dashboard_urls',
    }

    @staticmethod
    def _clean_company_info(company_info: Dict[str, Any]) -> Dict[str, Any]:
        name = (company_info.get('name') or '').strip()
        if not name:
            raise ValidationError('Company name is required', details={'name': ['This field is required.']})

        industry = company_info.get('industry') or 'other'
        if industry not in dict(Company.INDUSTRY_CHOICES):
            raise ValidationError('Unknown industry', details={'industry': [f"Unknown industry: {industry}"]})

        plan = company_info.get('subscription_plan') or Company.PLAN_TRIAL
        if plan not in dict(Company.PLAN_CHOICES):
            raise ValidationError('Unknown subscription plan',
                                  details={'subscription_plan': [f"Unknown plan: {plan}"]})

        registered_email = company_info.get('registered_email') or ''
        if registered_email:
            registered_email = clean_email(registered_email)

        return {
            'name': name,
            'industry': industry,
            'company_size': company_info.get('company_size') or '',
            'registered_email': registered_email,
            'phone_number': clean_phone(company_info.get('phone_number')),
            'subscription_plan': plan,
            'dashboard_urls': clean_urls(company_info.get('dashboard_urls')),
        }

    @classmethod
    @transaction.atomic
    def create_company(cls, company_info: Dict[str, Any], first_admin: Dict[str, Any]) -> Dict[str, Any]:
        """
        Create a company together with its first Admin user.

        Creates, in one transaction:
        - Identity account for the admin
        - Company (Trial plan unless given)
        - Default roles: Admin, Analyst, Viewer
        - Admin's company profile with role Admin
        - Admin's lookup record

        A company name never grants anything beyond a normal tenant,
        whatever it is.

        Args:
            company_info: name, industry, company_size, registered_email,
                phone_number, subscription_plan, dashboard_urls
            first_admin: email, password, full_name, phone_number

        Returns:
            Dict with company, admin (CompanyUser) and user (identity account)
        """
        cleaned = cls._clean_company_info(company_info)

        full_name = (first_admin.get('full_name') or '').strip()
        if not full_name:
            raise ValidationError('Admin full name is required', details={'full_name': ['This field is required.']})
        admin_phone = clean_phone(first_admin.get('phone_number'))

        account = IdentityProvider.create_account(first_admin.get('email'), first_admin.get('password'))

        if not cleaned['registered_email']:
            cleaned['registered_email'] = account.email
        company = Company.objects.create(**cleaned)

        RoleService.seed_default_roles(company)

        admin = CompanyUser.objects.create(
            user=account,
            company=company,
            full_name=full_name,
            email=account.email,
            role_name=ADMIN_ROLE,
            phone_number=admin_phone,
        )
        UserCompanyLookup.objects.create(user=account, company=company)

        AuditLog.record(
            company, admin,
            f"Company {company.name} created with admin {account.email}",
            action='company_created',
            target_type='Company',
            target_id=company.id,
            metadata={'subscription_plan': company.subscription_plan},
        )

        logger.info(
            f"Company created: {company.name}",
            extra={'company_id': str(company.id)}
        )

        return {
            'company': company,
            'admin': admin,
            'user': account,
        }

    @classmethod
    def register_company(cls, company_info: Dict[str, Any], first_admin: Dict[str, Any]) -> Dict[str, Any]:
        """Self-service registration: create the company and sign the admin in."""
        result = cls.create_company(company_info, first_admin)
        result['token'] = IdentityProvider.issue_token(result['user'])
        return result

    @classmethod
    def get_company(cls, company_id) -> Optional[Company]:
        company_uuid = parse_uuid(company_id)
        if company_uuid is None:
            return None
        return Company.objects.filter(id=company_uuid).first()

    @classmethod
    def update_company(cls, company_id, fields: Dict[str, Any], actor,
                       apply_dashboard_to_admins: bool = False, request=None) -> Company:
        """
        Partially update a company.

        Platform operators may edit every field; company members holding
        manage_users only the descriptive ones. With
        apply_dashboard_to_admins, new dashboard URLs are also copied onto
        every Admin profile of the company.

        Raises:
            NotFoundError, PermissionDeniedError, ValidationError
        """
        company = cls.get_company(company_id)
        if company is None:
            raise NotFoundError('Company not found')

        if can(actor, PLATFORM_ADMIN):
            allowed = cls.OPERATOR_EDITABLE_FIELDS
        else:
            require_permission(actor, MANAGE_USERS, company.id)
            allowed = cls.MEMBER_EDITABLE_FIELDS

        unknown = set(fields) - cls.OPERATOR_EDITABLE_FIELDS
        if unknown:
            raise ValidationError('Unknown fields', details={name: ['Unknown field.'] for name in sorted(unknown)})
        forbidden = set(fields) - allowed
        if forbidden:
            raise PermissionDeniedError(
                'Only platform operators can change these fields',
                details={'fields': sorted(forbidden)}
            )

        if 'name' in fields and not (fields['name'] or '').strip():
            raise ValidationError('Company name cannot be blank', details={'name': ['This field may not be blank.']})
        if 'industry' in fields and fields['industry'] not in dict(Company.INDUSTRY_CHOICES):
            raise ValidationError('Unknown industry', details={'industry': [f"Unknown industry: {fields['industry']}"]})
        if 'subscription_plan' in fields and fields['subscription_plan'] not in dict(Company.PLAN_CHOICES):
            raise ValidationError('Unknown subscription plan',
                                  details={'subscription_plan': [f"Unknown plan: {fields['subscription_plan']}"]})
        if 'subscription_status' in fields and \
                fields['subscription_status'] not in dict(Company.SUBSCRIPTION_STATUS_CHOICES):
            raise ValidationError('Unknown subscription status')

        changes = {}
        for name, value in fields.items():
            if name == 'dashboard_urls':
                value = clean_urls(value)
            elif name == 'name':
                value = value.strip()
            elif name == 'is_active':
                value = bool(value)
            elif name == 'phone_number':
                value = clean_phone(value)
            old = getattr(company, name)
            if old != value:
                changes[name] = {'from': old, 'to': value}
                setattr(company, name, value)

        with transaction.atomic():
            if changes:
                company.save(update_fields=list(changes) + ['updated_at'])
            if apply_dashboard_to_admins and 'dashboard_urls' in fields:
                CompanyUser.objects.admins(company).update(dashboard_urls=company.dashboard_urls)

        if changes:
            AuditLog.record(
                company, actor,
                f"{actor.full_name} updated company {', '.join(sorted(changes))}",
                action='company_updated',
                target_type='Company',
                target_id=company.id,
                metadata={'changes': changes},
                request=request,
            )
        return company

    @classmethod
    def list_companies(cls, actor) -> List[Company]:
        """All companies, newest first. Platform operators only."""
        require_permission(actor, PLATFORM_ADMIN)
        return list(Company.objects.newest_first())

    @classmethod
    def platform_overview(cls, actor) -> Dict[str, Any]:
        """
        Cross-tenant counters for the platform dashboard.

        Estimated revenue multiplies each plan's company count by its
        PLAN_MONTHLY_PRICES entry.
        """
        require_permission(actor, PLATFORM_ADMIN)

        prices = getattr(settings, 'PLAN_MONTHLY_PRICES', {})
        per_plan = {
            row['subscription_plan']: row['count']
            for row in Company.objects.values('subscription_plan').annotate(count=Count('id'))
        }

        return {
            'total_companies': sum(per_plan.values()),
            'active_companies': Company.objects.active().count(),
            'active_subscriptions': Company.objects.paying().count(),
            'total_users': CompanyUser.objects.count(),
            'companies_by_plan': {plan: per_plan.get(plan, 0) for plan, _ in Company.PLAN_CHOICES},
            'estimated_monthly_revenue': sum(
                prices.get(plan, 0) * count for plan, count in per_plan.items()
            ),
        }
